"""Controlled vocabulary of rejection/cancellation reason codes."""

REASON_CODES: tuple[str, ...] = (
    "Insufficient docs",
    "AML flag",
    "Invalid recipient details",
    "Compliance hold",
    "Risk review",
    "Duplicate payment",
    "Funding issue",
)

_BY_KEY = {code.lower(): code for code in REASON_CODES}


def canonical_reason_code(code: str | None) -> str | None:
    """Return the registry spelling of `code`, or None when it is not registered.

    Matching ignores case and surrounding whitespace.
    """

    if not code:
        return None
    return _BY_KEY.get(str(code).strip().lower())


def is_valid_reason_code(code: str | None) -> bool:
    return canonical_reason_code(code) is not None
