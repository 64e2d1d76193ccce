"""Redaction of sensitive recipient data in free text.

Collaboration notes can be exported or read by every employee, so account
identifiers and contact details pasted into them are replaced with fixed
placeholders before storage. Detection is heuristic; rules are ordered and can
be swapped without touching the note storage path.
"""

import re
from typing import Protocol


IBAN_PLACEHOLDER = "[REDACTED-IBAN]"
SWIFT_PLACEHOLDER = "[REDACTED-SWIFT]"
EMAIL_PLACEHOLDER = "[REDACTED-EMAIL]"
PHONE_PLACEHOLDER = "[REDACTED-PHONE]"


class Redactor(Protocol):
    def redact(self, text: str) -> str: ...


class RegexRedactor:
    """Apply `(pattern, placeholder)` rules in order."""

    def __init__(self, rules: list[tuple[re.Pattern[str], str]]) -> None:
        self.rules = rules

    def redact(self, text: str) -> str:
        sanitized = text or ""
        for pattern, placeholder in self.rules:
            sanitized = pattern.sub(placeholder, sanitized)
        return sanitized


DEFAULT_RULES: list[tuple[re.Pattern[str], str]] = [
    # Emails first so their local parts are not mistaken for bank codes.
    (re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"), EMAIL_PLACEHOLDER),
    # IBAN written compactly, any case.
    (re.compile(r"\b[A-Z]{2}\d{2}[A-Z0-9]{11,30}\b", re.IGNORECASE), IBAN_PLACEHOLDER),
    # IBAN written in the printed 4-character groups.
    (re.compile(r"\b[A-Z]{2}\d{2}(?: [A-Z0-9]{4}){3,7}(?: [A-Z0-9]{1,3})?\b", re.IGNORECASE), IBAN_PLACEHOLDER),
    # SWIFT/BIC: 6 letters, 2 alnum location, optional 3 alnum branch; uppercase only.
    # Placeholders already written ("[REDACTED-...]") must not match.
    (re.compile(r"(?<![\[\w-])[A-Z]{6}[A-Z0-9]{2}(?:[A-Z0-9]{3})?(?![\w-])"), SWIFT_PLACEHOLDER),
    (re.compile(r"\+?\d[\d\s()-]{7,}\d"), PHONE_PLACEHOLDER),
]

default_redactor = RegexRedactor(DEFAULT_RULES)


def mask_iban(iban: str | None) -> str:
    """Shorten an IBAN for log output: country, check digits and bank prefix only."""

    if not iban:
        return ""
    compact = re.sub(r"\s+", "", iban).upper()
    return compact[:8] + "****"
