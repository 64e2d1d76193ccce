"""Payment status graph and the soft-delete preconditions layered on top of it."""

from payportal.common.errors import InvalidTransition

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

STATUSES: tuple[str, ...] = (PENDING, PROCESSING, COMPLETED, FAILED, CANCELLED)
OPEN_STATUSES: frozenset[str] = frozenset({PENDING, PROCESSING})
TERMINAL_STATUSES: frozenset[str] = frozenset({COMPLETED, FAILED, CANCELLED})
REASON_EDITABLE_STATUSES: frozenset[str] = frozenset({FAILED, CANCELLED})

# `processing` is reserved: nothing in the portal moves a payment into it.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    PENDING: {PROCESSING, COMPLETED, FAILED, CANCELLED},
    PROCESSING: {COMPLETED, FAILED, CANCELLED},
    COMPLETED: set(),
    FAILED: set(),
    CANCELLED: set(),
}


def validate_transition(current: str, new: str) -> None:
    """Raise when a status transition is not allowed by the graph."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Invalid transition: {current} -> {new}")


def ensure_trashable(status: str, deleted: bool) -> None:
    if deleted:
        raise InvalidTransition("Payment is already in Trash.")
    if status not in TERMINAL_STATUSES:
        raise InvalidTransition("Only completed, cancelled, or rejected payments can be deleted.")


def ensure_restorable(deleted: bool) -> None:
    if not deleted:
        raise InvalidTransition("Payment is not in Trash.")


def ensure_reason_editable(status: str) -> None:
    if status not in REASON_EDITABLE_STATUSES:
        raise InvalidTransition("Reason can only be added to cancelled or rejected payments.")
