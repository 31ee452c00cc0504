"""Unit tests for the enrollment workflow."""

import pytest
from datetime import datetime, timedelta
from uuid import uuid4

from school_enrollment.core.exceptions import (
    InvalidPaymentTransition,
    InvalidScheduleParameters,
    InvalidStateTransition,
    MissingRequiredComment,
)
from school_enrollment.engine.config import EngineConfig
from school_enrollment.engine.payment_status import check_payment_transition
from school_enrollment.engine.workflow import (
    AUTO_APPROVAL_COMMENT,
    TERMINAL_STATUSES,
    EnrollmentWorkflow,
    next_status,
)
from school_enrollment.models.enums import (
    EnrollmentStatus,
    PaymentStatus,
    ReviewReason,
    WorkflowEvent,
)
from school_enrollment.schemas.enrollment import EnrollmentState

NOW = datetime(2025, 9, 1, 10, 0)
ACTOR = uuid4()


@pytest.fixture
def workflow():
    return EnrollmentWorkflow()


def _state(status=EnrollmentStatus.DRAFT, fee=900000, **kwargs):
    return EnrollmentState(id=uuid4(), status=status, original_fee=fee, **kwargs)


def _submitted(workflow, paid=100000, **kwargs):
    """Apply a submission and return the resulting state."""
    state = _state(**kwargs)
    t = workflow.submit(state, paid, NOW)
    return EnrollmentState(
        id=state.id,
        status=t.to_status,
        original_fee=state.original_fee,
        adjusted_fee=state.adjusted_fee,
        submitted_at=t.changes["submitted_at"],
        auto_approve_at=t.changes["auto_approve_at"],
        review_flagged=t.changes["review_flagged"],
    )


def test_low_initial_payment_needs_review(workflow):
    t = workflow.submit(_state(), 50000, NOW)
    assert t.to_status == EnrollmentStatus.NEEDS_REVIEW
    assert t.review_reason == ReviewReason.LOW_INITIAL_PAYMENT
    assert t.changes["review_flagged"] is True
    assert t.changes["auto_approve_at"] is None


def test_sufficient_payment_is_submitted(workflow):
    t = workflow.submit(_state(), 100000, NOW)
    assert t.to_status == EnrollmentStatus.SUBMITTED
    assert t.review_reason is None
    assert t.changes["auto_approve_at"] == NOW + timedelta(hours=72)
    assert t.changes["submitted_at"] == NOW


def test_adjusted_fee_needs_review_even_when_paid(workflow):
    t = workflow.submit(_state(adjusted_fee=700000), 900000, NOW)
    assert t.to_status == EnrollmentStatus.NEEDS_REVIEW
    assert t.review_reason == ReviewReason.FEE_ADJUSTED


def test_adjustment_equal_to_original_is_not_an_adjustment(workflow):
    t = workflow.submit(_state(adjusted_fee=900000), 100000, NOW)
    assert t.to_status == EnrollmentStatus.SUBMITTED


def test_minimum_payment_uses_effective_fee(workflow):
    assert workflow.minimum_initial_payment(900000) == 100000
    assert workflow.minimum_initial_payment(100) == 11


def test_custom_divisor_and_grace():
    workflow = EnrollmentWorkflow(EngineConfig(minimum_payment_divisor=3, auto_approve_grace=timedelta(hours=1)))
    t = workflow.submit(_state(fee=900), 299, NOW)
    assert t.to_status == EnrollmentStatus.NEEDS_REVIEW
    t = workflow.submit(_state(fee=900), 300, NOW)
    assert t.changes["auto_approve_at"] == NOW + timedelta(hours=1)


def test_auto_approve_after_grace(workflow):
    state = _submitted(workflow)
    assert not workflow.is_auto_approvable(state, NOW + timedelta(hours=71))
    later = NOW + timedelta(hours=72)
    assert workflow.is_auto_approvable(state, later)
    t = workflow.auto_approve(state, later)
    assert t.to_status == EnrollmentStatus.COMPLETED
    assert t.comment == AUTO_APPROVAL_COMMENT
    assert t.changes["approved_by"] is None


def test_auto_approve_before_deadline_refused(workflow):
    state = _submitted(workflow)
    with pytest.raises(InvalidStateTransition):
        workflow.auto_approve(state, NOW + timedelta(hours=1))


def test_needs_review_never_auto_approves(workflow):
    state = _submitted(workflow, paid=0)
    assert state.status == EnrollmentStatus.NEEDS_REVIEW
    assert not workflow.is_auto_approvable(state, NOW + timedelta(days=365))
    with pytest.raises(InvalidStateTransition):
        workflow.auto_approve(state, NOW + timedelta(days=365))


def test_flagged_submission_never_auto_approves(workflow):
    state = _state(
        status=EnrollmentStatus.SUBMITTED,
        review_flagged=True,
        auto_approve_at=NOW,
    )
    assert not workflow.is_auto_approvable(state, NOW + timedelta(days=1))


def test_approve_submitted_requires_comment(workflow):
    state = _submitted(workflow)
    with pytest.raises(MissingRequiredComment):
        workflow.approve(state, "   ", ACTOR, NOW)
    t = workflow.approve(state, "  Welcome  ", ACTOR, NOW)
    assert t.to_status == EnrollmentStatus.COMPLETED
    assert t.comment == "Welcome"
    assert t.changes["approved_by"] == ACTOR
    assert t.changes["status_changed_by"] == ACTOR


def test_approve_needs_review(workflow):
    state = _submitted(workflow, paid=0)
    t = workflow.approve(state, "Payment plan agreed with parents", ACTOR, NOW)
    assert t.to_status == EnrollmentStatus.COMPLETED


def test_reject_requires_reason(workflow):
    state = _submitted(workflow, paid=0)
    with pytest.raises(MissingRequiredComment):
        workflow.reject(state, None, ACTOR, NOW)
    t = workflow.reject(state, "Incomplete file", ACTOR, NOW)
    assert t.to_status == EnrollmentStatus.REJECTED


def test_cancel_only_from_draft(workflow):
    t = workflow.cancel(_state(), "Family moved", ACTOR, NOW)
    assert t.to_status == EnrollmentStatus.CANCELLED
    with pytest.raises(InvalidStateTransition):
        workflow.cancel(_submitted(workflow), "Family moved", ACTOR, NOW)


def test_state_checked_before_comment(workflow):
    with pytest.raises(InvalidStateTransition):
        workflow.approve(_state(status=EnrollmentStatus.DRAFT), None, ACTOR, NOW)


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
@pytest.mark.parametrize("event", list(WorkflowEvent))
def test_terminal_states_are_stable(status, event):
    with pytest.raises(InvalidStateTransition):
        next_status(status, event)


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_states_refuse_every_operation(workflow, status):
    state = _state(status=status)
    with pytest.raises(InvalidStateTransition):
        workflow.submit(state, 900000, NOW)
    with pytest.raises(InvalidStateTransition):
        workflow.approve(state, "ok", ACTOR, NOW)
    with pytest.raises(InvalidStateTransition):
        workflow.reject(state, "no", ACTOR, NOW)
    with pytest.raises(InvalidStateTransition):
        workflow.auto_approve(state, NOW)


def test_submit_twice_refused(workflow):
    with pytest.raises(InvalidStateTransition) as exc:
        workflow.submit(_submitted(workflow), 100000, NOW)
    assert exc.value.details == {"current": "submitted", "requested": "submit"}


@pytest.mark.parametrize("status,allowed", [
    (EnrollmentStatus.DRAFT, True),
    (EnrollmentStatus.CANCELLED, True),
    (EnrollmentStatus.SUBMITTED, False),
    (EnrollmentStatus.NEEDS_REVIEW, False),
    (EnrollmentStatus.COMPLETED, False),
    (EnrollmentStatus.REJECTED, False),
])
def test_delete_only_draft_or_cancelled(workflow, status, allowed):
    state = _state(status=status)
    if allowed:
        workflow.ensure_deletable(state)
    else:
        with pytest.raises(InvalidStateTransition):
            workflow.ensure_deletable(state)


def test_adjust_fee(workflow):
    changes = workflow.adjust_fee(_state(), 700000, "Sibling discount")
    assert changes == {"adjusted_fee": 700000, "adjustment_reason": "Sibling discount"}


def test_adjust_fee_requires_reason(workflow):
    with pytest.raises(MissingRequiredComment):
        workflow.adjust_fee(_state(), 700000, "")


def test_adjust_fee_back_to_original_clears(workflow):
    changes = workflow.adjust_fee(_state(adjusted_fee=700000), 900000, None)
    assert changes == {"adjusted_fee": None, "adjustment_reason": None}


def test_adjust_fee_rules(workflow):
    with pytest.raises(InvalidScheduleParameters):
        workflow.adjust_fee(_state(), -1, "typo")
    with pytest.raises(InvalidStateTransition):
        workflow.adjust_fee(_state(status=EnrollmentStatus.SUBMITTED), 700000, "late")


def test_draft_expiry(workflow):
    expires = workflow.draft_expires_at(NOW)
    assert expires == NOW + timedelta(days=10)
    state = _state(draft_expires_at=expires)
    assert not workflow.is_draft_expired(state, NOW + timedelta(days=9))
    assert workflow.is_draft_expired(state, expires)


@pytest.mark.parametrize("current,target", [
    (PaymentStatus.PENDING, PaymentStatus.CONFIRMED),
    (PaymentStatus.PENDING, PaymentStatus.REJECTED),
    (PaymentStatus.PENDING, PaymentStatus.FAILED),
    (PaymentStatus.CONFIRMED, PaymentStatus.REVERSED),
])
def test_payment_transitions_allowed(current, target):
    check_payment_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (PaymentStatus.CONFIRMED, PaymentStatus.PENDING),
    (PaymentStatus.REVERSED, PaymentStatus.CONFIRMED),
    (PaymentStatus.REJECTED, PaymentStatus.CONFIRMED),
    (PaymentStatus.FAILED, PaymentStatus.CONFIRMED),
    (PaymentStatus.PENDING, PaymentStatus.REVERSED),
])
def test_payment_transitions_refused(current, target):
    with pytest.raises(InvalidPaymentTransition):
        check_payment_transition(current, target)
