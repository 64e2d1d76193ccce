"""Employee review workflow: transitions, trash, collaboration and bulk actions."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from payportal.common.errors import (
    InvalidReasonCode,
    InvalidTransition,
    NotFound,
    StepUpRequired,
    ValidationFailed,
)
from payportal.services.review.schemas import MentionIn
from payportal.store.queries import parse_filters


def actions(review_service, payment_id):
    return [entry.action for entry in review_service.get_audit(payment_id)]


def listed_ids(review_service, employee, **raw_filters):
    items, _ = review_service.list_all(employee, parse_filters(**raw_filters), 1, 100)
    return {item.id for item in items}


def test_validate_completes_pending(review_service, employee, make_payment):
    """Validation completes the payment and leaves exactly one audit entry."""

    payment_id = make_payment()
    payment = review_service.validate(employee, payment_id)
    assert payment.status == "completed"
    assert payment.processed_at is not None
    assert payment.failure_reason is None
    assert [(e.action, e.actor_id, e.actor_name) for e in payment.audit_log] == [
        ("validate", "emp-1", "reviewer@bank.example")
    ]


def test_validate_processing(review_service, employee, make_payment):
    assert review_service.validate(employee, make_payment(status="processing")).status == "completed"


@pytest.mark.parametrize("status", ["completed", "failed", "cancelled"])
def test_validate_terminal_is_refused(review_service, employee, make_payment, status):
    payment_id = make_payment(status=status)
    with pytest.raises(InvalidTransition):
        review_service.validate(employee, payment_id)
    assert actions(review_service, payment_id) == []


def test_reject_stores_canonical_code(review_service, employee, make_payment):
    payment = review_service.reject(employee, make_payment(), "  Sanctions screening hit  ", "aml FLAG")
    assert payment.status == "failed"
    assert payment.reason_code == "AML flag"
    assert payment.failure_reason == "Sanctions screening hit"
    assert payment.processed_at is not None
    assert payment.audit_log[-1].action == "reject"


def test_reject_with_unknown_code_changes_nothing(review_service, employee, make_payment):
    """An unregistered reason code refuses the rejection before anything is written."""

    payment_id = make_payment()
    with pytest.raises(InvalidReasonCode):
        review_service.reject(employee, payment_id, "Looks suspicious", "Because I said so")
    payment = review_service.get_payment(payment_id)
    assert payment.status == "pending"
    assert payment.reason_code is None
    assert payment.audit_log == []


@pytest.mark.parametrize("reason", [None, "", "  ", "no"])
def test_reject_requires_reason(review_service, employee, make_payment, reason):
    payment_id = make_payment()
    with pytest.raises(ValidationFailed):
        review_service.reject(employee, payment_id, reason, "AML flag")
    assert review_service.get_payment(payment_id).status == "pending"


def test_completed_payment_cannot_be_rejected(review_service, employee, make_payment):
    payment_id = make_payment(status="completed")
    with pytest.raises(InvalidTransition):
        review_service.reject(employee, payment_id, "Too late now", "AML flag")
    assert review_service.get_payment(payment_id).status == "completed"


def test_cancel_requires_valid_code(review_service, employee, make_payment):
    payment_id = make_payment()
    with pytest.raises(InvalidReasonCode):
        review_service.cancel(employee, payment_id, "customer asked", None)
    payment = review_service.cancel(employee, payment_id, "   ", "Duplicate payment")
    assert payment.status == "cancelled"
    assert payment.failure_reason is None
    assert payment.reason_code == "Duplicate payment"
    assert payment.audit_log[-1].details == "reasonCode=Duplicate payment"


def test_cancel_terminal_is_refused(review_service, employee, make_payment):
    payment_id = make_payment(status="failed", reason_code="AML flag")
    with pytest.raises(InvalidTransition):
        review_service.cancel(employee, payment_id, None, "Funding issue")
    assert review_service.get_payment(payment_id).reason_code == "AML flag"


def test_update_reason_on_failed(review_service, employee, make_payment):
    payment_id = make_payment(status="failed", reason_code="AML flag", failure_reason="old")
    payment = review_service.update_reason(employee, payment_id, "Documents never arrived", "insufficient DOCS")
    assert payment.failure_reason == "Documents never arrived"
    assert payment.reason_code == "Insufficient docs"
    assert payment.status == "failed"
    assert actions(review_service, payment_id) == ["update_reason"]


def test_update_reason_keeps_code_when_omitted(review_service, employee, make_payment):
    payment_id = make_payment(status="cancelled", reason_code="Funding issue")
    payment = review_service.update_reason(employee, payment_id, "Account underfunded", None)
    assert payment.reason_code == "Funding issue"


def test_update_reason_with_invalid_code_changes_nothing(review_service, employee, make_payment):
    payment_id = make_payment(status="failed", reason_code="AML flag", failure_reason="original")
    with pytest.raises(InvalidReasonCode):
        review_service.update_reason(employee, payment_id, "New reason", "not a code")
    payment = review_service.get_payment(payment_id)
    assert (payment.failure_reason, payment.reason_code) == ("original", "AML flag")


@pytest.mark.parametrize("status", ["pending", "processing", "completed"])
def test_update_reason_requires_failed_or_cancelled(review_service, employee, make_payment, status):
    payment_id = make_payment(status=status)
    with pytest.raises(InvalidTransition):
        review_service.update_reason(employee, payment_id, "Some reason", None)


@pytest.mark.parametrize("bad_id", ["not-a-uuid", "", "123"])
def test_malformed_id_is_not_found(review_service, employee, bad_id):
    with pytest.raises(NotFound):
        review_service.validate(employee, bad_id)


def test_unknown_id_is_not_found(review_service):
    with pytest.raises(NotFound):
        review_service.get_payment(str(uuid4()))


def test_pending_payment_cannot_be_trashed(review_service, employee, make_payment):
    """Only terminal payments may go to Trash."""

    payment_id = make_payment()
    with pytest.raises(InvalidTransition):
        review_service.trash(employee, payment_id, confirmed=True)
    assert review_service.get_payment(payment_id).deleted_at is None
    assert actions(review_service, payment_id) == []


def test_trash_requires_step_up(review_service, employee, make_payment):
    payment_id = make_payment(status="completed")
    with pytest.raises(StepUpRequired):
        review_service.trash(employee, payment_id, confirmed=False)
    assert review_service.get_payment(payment_id).deleted_at is None


def test_trash_and_restore(review_service, employee, make_payment):
    payment_id = make_payment(status="completed")
    trashed = review_service.trash(employee, payment_id, confirmed=True)
    assert trashed.deleted_at is not None
    assert trashed.deleted_by_user_id == "emp-1"
    assert trashed.deleted_by_name == "reviewer@bank.example"
    assert trashed.status == "completed"
    assert payment_id not in listed_ids(review_service, employee)
    assert payment_id in listed_ids(review_service, employee, include_deleted="true")

    with pytest.raises(InvalidTransition):
        review_service.trash(employee, payment_id, confirmed=True)

    restored = review_service.restore(employee, payment_id)
    assert restored.deleted_at is None
    assert restored.deleted_by_user_id is None
    assert payment_id in listed_ids(review_service, employee)
    assert actions(review_service, payment_id) == ["trash", "restore"]


def test_restore_of_live_payment_is_refused(review_service, employee, make_payment):
    payment_id = make_payment(status="completed")
    with pytest.raises(InvalidTransition):
        review_service.restore(employee, payment_id)
    assert actions(review_service, payment_id) == []


@pytest.mark.parametrize("status", ["completed", "failed", "cancelled"])
@pytest.mark.parametrize("deleted", [True, False])
def test_status_and_trash_are_independent(review_service, employee, make_payment, hours_ago, status, deleted):
    """Trash hides a payment from default listings without touching its status."""

    payment_id = make_payment(status=status, deleted_at=hours_ago(1) if deleted else None)
    assert (payment_id in listed_ids(review_service, employee, status=status)) is not deleted
    assert payment_id in listed_ids(review_service, employee, status=status, include_deleted="true")
    assert review_service.get_payment(payment_id).status == status


def test_keyword_matches_name_or_reference(review_service, employee, make_payment):
    by_name = make_payment(recipient_name="Jane Roberts", reference="A-1")
    by_reference = make_payment(recipient_name="Someone Else", reference="roberts-invoice")
    other = make_payment(recipient_name="Bob Smith", reference="B-2")
    found = listed_ids(review_service, employee, keyword="Roberts")
    assert found == {by_name, by_reference}
    assert other not in found


def test_keyword_wildcards_are_literal(review_service, employee, make_payment):
    """LIKE wildcards in the keyword match only themselves."""

    make_payment(recipient_name="Jane Roberts")
    assert listed_ids(review_service, employee, keyword="%") == set()
    assert listed_ids(review_service, employee, keyword="_") == set()


def test_unknown_status_filter_is_ignored(review_service, employee, make_payment):
    payment_id = make_payment()
    assert payment_id in listed_ids(review_service, employee, status="bogus")


def test_date_range_includes_whole_end_day(review_service, employee, make_payment):
    jan_1 = make_payment(created_at=datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc))
    jan_2_late = make_payment(created_at=datetime(2026, 1, 2, 23, 30, tzinfo=timezone.utc))
    jan_3 = make_payment(created_at=datetime(2026, 1, 3, 0, 30, tzinfo=timezone.utc))
    found = listed_ids(review_service, employee, start_date="2026-01-02", end_date="2026-01-02")
    assert found == {jan_2_late}
    found = listed_ids(review_service, employee, start_date="2026-01-01", end_date="not-a-date")
    assert found == {jan_1, jan_2_late, jan_3}


def test_amount_range(review_service, employee, make_payment):
    small = make_payment(amount="10.00")
    large = make_payment(amount="5000.00")
    assert listed_ids(review_service, employee, min_amount="100") == {large}
    assert listed_ids(review_service, employee, max_amount="100") == {small}
    assert listed_ids(review_service, employee, min_amount="abc") == {small, large}


def test_pagination_total(review_service, employee, make_payment, hours_ago):
    for hours in range(15):
        make_payment(created_at=hours_ago(hours + 1))
    items, total = review_service.list_all(employee, parse_filters(), 2, 10)
    assert total == 15
    assert len(items) == 5


def test_assignment_and_assigned_to_me(review_service, employee, make_payment):
    payment_id = make_payment()
    make_payment()
    payment = review_service.assign(employee, payment_id, "emp-1", "Reviewer One")
    assert (payment.assigned_to_user_id, payment.assigned_to_name) == ("emp-1", "Reviewer One")
    assert listed_ids(review_service, employee, assigned_to="me") == {payment_id}

    payment = review_service.assign(employee, payment_id, "", None)
    assert payment.assigned_to_user_id is None
    audit = review_service.get_audit(payment_id)
    assert [(e.action, e.details) for e in audit] == [("assign", "to=emp-1"), ("unassign", None)]


def test_escalation_flag_and_filter(review_service, employee, make_payment):
    payment_id = make_payment()
    calm = make_payment()
    payment = review_service.escalate(employee, payment_id, True, "  needs compliance eyes  ")
    assert payment.escalated is True
    assert payment.escalated_at is not None
    assert payment.escalation_notes == "needs compliance eyes"
    assert listed_ids(review_service, employee, escalated="true") == {payment_id}
    assert listed_ids(review_service, employee, escalated="false") == {calm}

    payment = review_service.escalate(employee, payment_id, False)
    assert payment.escalated is False
    assert payment.escalated_at is None
    assert payment.escalation_notes is None
    assert actions(review_service, payment_id) == ["escalate", "deescalate"]


def test_deescalation_notes_replace_previous_ones(review_service, employee, make_payment):
    """Notes sent with a de-escalation are kept; the escalation timestamp is cleared."""

    payment_id = make_payment()
    review_service.escalate(employee, payment_id, True, "needs compliance eyes")
    payment = review_service.escalate(employee, payment_id, False, "cleared by compliance")
    assert payment.escalated is False
    assert payment.escalated_at is None
    assert payment.escalation_notes == "cleared by compliance"


def test_note_is_redacted_and_audited(review_service, employee, make_payment):
    payment_id = make_payment()
    payment = review_service.add_note(
        employee,
        payment_id,
        "  Customer sent GB29NWBK60161331926819 by mail  ",
        [MentionIn(user_id="emp-2", name="Second Reviewer")],
    )
    note = payment.notes[-1]
    assert note.text == "Customer sent [REDACTED-IBAN] by mail"
    assert note.author_id == "emp-1"
    assert [(m.user_id, m.name) for m in note.mentions] == [("emp-2", "Second Reviewer")]
    assert payment.audit_log[-1].action == "add_note"
    assert payment.audit_log[-1].details == f"length={len(note.text)}"


def test_blank_note_is_refused(review_service, employee, make_payment):
    payment_id = make_payment()
    with pytest.raises(ValidationFailed):
        review_service.add_note(employee, payment_id, "   ")
    assert review_service.get_payment(payment_id).notes == []


def test_overlong_note_is_refused(review_service, employee, make_payment):
    with pytest.raises(ValidationFailed):
        review_service.add_note(employee, make_payment(), "x" * 1001)


def test_notes_keep_insertion_order(review_service, employee, make_payment):
    payment_id = make_payment()
    for text in ("first", "second", "third"):
        review_service.add_note(employee, payment_id, text)
    assert [note.text for note in review_service.get_payment(payment_id).notes] == ["first", "second", "third"]


def test_partial_failure_is_reported_per_id(review_service, employee, make_payment):
    """One bad id never blocks the others; each outcome is reported in request order."""

    pending = make_payment()
    completed = make_payment(status="completed")
    missing = str(uuid4())
    results = review_service.bulk_action(
        employee,
        "reject",
        [pending, completed, missing, "not-an-id"],
        reason="Failed sanctions screening",
        reason_code="AML flag",
        confirmed=True,
    )
    assert [(r.id, r.ok, r.error) for r in results] == [
        (pending, True, None),
        (completed, False, "invalid_transition"),
        (missing, False, "not_found"),
        ("not-an-id", False, "invalid_id"),
    ]
    assert review_service.get_payment(pending).status == "failed"
    assert review_service.get_payment(completed).status == "completed"
    assert review_service.get_audit(pending)[-1].details == "bulk; reasonCode=AML flag"
    assert actions(review_service, completed) == []


def test_bulk_reason_code_and_reason_checks(review_service, employee, make_payment):
    payment_id = make_payment()
    results = review_service.bulk_action(employee, "cancel", [payment_id], reason_code="nope", confirmed=True)
    assert results[0].error == "invalid_reason_code"
    results = review_service.bulk_action(
        employee, "reject", [payment_id], reason="x", reason_code="AML flag", confirmed=True
    )
    assert results[0].error == "invalid_reason"
    assert review_service.get_payment(payment_id).status == "pending"


def test_bulk_trash_and_restore(review_service, employee, make_payment):
    done = make_payment(status="completed")
    open_ = make_payment()
    results = review_service.bulk_action(employee, "trash", [done, open_], confirmed=True)
    assert [(r.ok, r.error) for r in results] == [(True, None), (False, "invalid_transition")]
    assert review_service.get_audit(done)[-1].details == "bulk soft-delete"

    results = review_service.bulk_action(employee, "restore", [done, open_], confirmed=True)
    assert [(r.ok, r.error) for r in results] == [(True, None), (False, "invalid_transition")]
    assert review_service.get_payment(done).deleted_at is None


def test_bulk_validate(review_service, employee, make_payment):
    ids = [make_payment(), make_payment(status="processing")]
    results = review_service.bulk_action(employee, "validate", ids, confirmed=True)
    assert all(r.ok for r in results)
    assert {review_service.get_payment(i).status for i in ids} == {"completed"}


def test_bulk_requires_step_up(review_service, employee, make_payment):
    payment_id = make_payment(status="completed")
    with pytest.raises(StepUpRequired):
        review_service.bulk_action(employee, "trash", [payment_id], confirmed=False)
    assert review_service.get_payment(payment_id).deleted_at is None


@pytest.mark.parametrize("action, ids", [("archive", ["x"]), (None, ["x"]), ("trash", []), ("trash", ["x"] * 101)])
def test_bulk_request_shape(review_service, employee, action, ids):
    with pytest.raises(ValidationFailed):
        review_service.bulk_action(employee, action, ids, confirmed=True)


def bulk_items_counted(action: str, outcome: str) -> float:
    labels = {"service": "review", "action": action, "outcome": outcome}
    return REGISTRY.get_sample_value("bulk_action_items_total", labels) or 0.0


def test_bulk_metrics_count_every_item(review_service, employee, make_payment):
    """Every requested id is counted under its outcome, malformed ids included."""

    ok_before = bulk_items_counted("validate", "ok")
    invalid_before = bulk_items_counted("validate", "invalid_id")
    missing_before = bulk_items_counted("validate", "not_found")

    review_service.bulk_action(
        employee, "validate", [make_payment(), "bogus", "also-bogus", str(uuid4())], confirmed=True
    )

    assert bulk_items_counted("validate", "ok") - ok_before == 1
    assert bulk_items_counted("validate", "invalid_id") - invalid_before == 2
    assert bulk_items_counted("validate", "not_found") - missing_before == 1
