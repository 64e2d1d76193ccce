"""Format validators for payment fields.

All functions are pure so the same checks run on payment creation and on the
public pre-submission endpoints.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from pydantic import BaseModel


SUPPORTED_CURRENCIES: frozenset[str] = frozenset(
    {"USD", "EUR", "GBP", "JPY", "CAD", "AUD", "CHF", "CNY", "SEK", "NZD", "ZAR", "BRL", "INR", "KRW", "PLN"}
)
MAX_AMOUNT = Decimal("1000000")

_WHITESPACE = re.compile(r"\s+")
_IBAN_RE = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]+$")
_SWIFT_RE = re.compile(r"^[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_SEPARATORS = re.compile(r"[\s\-()]")
_PHONE_RE = re.compile(r"^\+[1-9]\d{6,14}$")
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")

# wire field name -> max length (None means only required)
PAYMENT_TEXT_FIELDS: dict[str, int | None] = {
    "recipientName": 100,
    "recipientEmail": 254,
    "recipientIBAN": None,
    "recipientSWIFT": None,
    "recipientAddress": 200,
    "recipientCity": 100,
    "recipientCountry": None,
    "currency": None,
    "reference": 140,
    "purpose": 255,
}


class FieldError(BaseModel):
    """One failed field check, reported back to the caller."""

    field: str
    message: str


class AmountCheck(BaseModel):
    is_valid: bool
    value: Decimal | None = None
    error: str | None = None


def normalize_iban(value: str | None) -> str:
    return _WHITESPACE.sub("", value or "").upper()


def normalize_swift(value: str | None) -> str:
    return _WHITESPACE.sub("", value or "").upper()


def validate_iban(value: str | None) -> bool:
    """ISO 13616 structure check plus ISO 7064 MOD 97-10 checksum."""

    iban = normalize_iban(value)
    if len(iban) < 15 or len(iban) > 34:
        return False
    if not _IBAN_RE.match(iban):
        return False

    rearranged = iban[4:] + iban[:4]
    digits = "".join(str(ord(ch) - 55) if "A" <= ch <= "Z" else ch for ch in rearranged)

    # Digit-at-a-time keeps the running value small, same result as int(digits) % 97.
    remainder = 0
    for digit in digits:
        remainder = (remainder * 10 + int(digit)) % 97
    return remainder == 1


def validate_swift(value: str | None) -> bool:
    swift = normalize_swift(value)
    if len(swift) not in (8, 11):
        return False
    return bool(_SWIFT_RE.match(swift))


def validate_currency(code: str | None) -> bool:
    if not code:
        return False
    return str(code).strip().upper() in SUPPORTED_CURRENCIES


def validate_country_code(code: str | None) -> bool:
    if not code:
        return False
    return bool(_COUNTRY_RE.match(str(code).strip().upper()))


def validate_email(email: str | None) -> bool:
    if not email or len(email) > 254:
        return False
    return bool(_EMAIL_RE.match(email.strip().lower()))


def validate_phone(phone: str | None) -> bool:
    if not phone or len(phone) > 32:
        return False
    return bool(_PHONE_RE.match(_PHONE_SEPARATORS.sub("", phone)))


def validate_amount(amount: Any, max_amount: Decimal | int = MAX_AMOUNT) -> AmountCheck:
    """Parse `amount` and enforce the positive / ceiling / two-decimals rules."""

    if isinstance(amount, bool) or amount is None:
        return AmountCheck(is_valid=False, error="Amount must be a valid number")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        return AmountCheck(is_valid=False, error="Amount must be a valid number")
    if not value.is_finite():
        return AmountCheck(is_valid=False, error="Amount must be a valid number")
    if value <= 0:
        return AmountCheck(is_valid=False, error="Amount must be greater than 0")
    if value > Decimal(max_amount):
        return AmountCheck(is_valid=False, error=f"Amount cannot exceed {Decimal(max_amount):,.0f}")
    if value != value.quantize(Decimal("0.01")):
        return AmountCheck(is_valid=False, error="Amount cannot have more than 2 decimal places")
    return AmountCheck(is_valid=True, value=value.quantize(Decimal("0.01")))


def collect_payment_errors(fields: Mapping[str, Any], max_amount: Decimal | int = MAX_AMOUNT) -> list[FieldError]:
    """Run every payment field check and return all failures, never only the first."""

    errors: list[FieldError] = []
    present: set[str] = set()
    for name, max_length in PAYMENT_TEXT_FIELDS.items():
        raw = fields.get(name)
        text = raw.strip() if isinstance(raw, str) else ""
        if not text:
            errors.append(FieldError(field=name, message=f"{name} is required."))
            continue
        present.add(name)
        if max_length is not None and len(text) > max_length:
            errors.append(FieldError(field=name, message=f"{name} must be at most {max_length} characters."))

    raw_amount = fields.get("amount")
    if raw_amount is None or (isinstance(raw_amount, str) and not raw_amount.strip()):
        errors.append(FieldError(field="amount", message="amount is required."))
    else:
        check = validate_amount(raw_amount, max_amount)
        if not check.is_valid:
            errors.append(FieldError(field="amount", message=f"{check.error}."))

    if "recipientEmail" in present and not validate_email(fields["recipientEmail"]):
        errors.append(FieldError(field="recipientEmail", message="Invalid email format"))
    if "recipientIBAN" in present and not validate_iban(fields["recipientIBAN"]):
        errors.append(FieldError(field="recipientIBAN", message="Invalid IBAN format"))
    if "recipientSWIFT" in present and not validate_swift(fields["recipientSWIFT"]):
        errors.append(FieldError(field="recipientSWIFT", message="Invalid SWIFT code format"))
    if "recipientCountry" in present and not validate_country_code(fields["recipientCountry"]):
        errors.append(FieldError(field="recipientCountry", message="Country code must be 2 letters"))
    if "currency" in present and not validate_currency(fields["currency"]):
        errors.append(FieldError(field="currency", message="Unsupported currency code."))
    return errors
