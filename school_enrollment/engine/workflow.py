"""Enrollment status workflow.

DRAFT -> SUBMITTED -> (NEEDS_REVIEW) -> COMPLETED | REJECTED, with DRAFT ->
CANCELLED as the only self-service exit. Every status change goes through
``TRANSITIONS``; anything not listed there is refused.

The workflow validates and describes a change (a ``Transition``); the
caller persists it with a compare-and-swap on the current status.
"""

from datetime import datetime
from typing import Dict, Optional, Tuple
from uuid import UUID

from school_enrollment.core.exceptions import (
    InvalidScheduleParameters,
    InvalidStateTransition,
    MissingRequiredComment,
)
from school_enrollment.engine.config import EngineConfig
from school_enrollment.models.enums import EnrollmentStatus, ReviewReason, WorkflowEvent
from school_enrollment.schemas.enrollment import EnrollmentState, Transition

S = EnrollmentStatus
E = WorkflowEvent

TRANSITIONS: Dict[Tuple[EnrollmentStatus, WorkflowEvent], EnrollmentStatus] = {
    (S.DRAFT, E.SUBMIT): S.SUBMITTED,
    (S.SUBMITTED, E.FLAG_FOR_REVIEW): S.NEEDS_REVIEW,
    (S.SUBMITTED, E.APPROVE): S.COMPLETED,
    (S.NEEDS_REVIEW, E.APPROVE): S.COMPLETED,
    # Flagged enrollments need a human decision: no NEEDS_REVIEW entry here
    (S.SUBMITTED, E.AUTO_APPROVE): S.COMPLETED,
    (S.SUBMITTED, E.REJECT): S.REJECTED,
    (S.NEEDS_REVIEW, E.REJECT): S.REJECTED,
    (S.DRAFT, E.CANCEL): S.CANCELLED,
}

TERMINAL_STATUSES = frozenset({S.COMPLETED, S.REJECTED, S.CANCELLED})
DELETABLE_STATUSES = frozenset({S.DRAFT, S.CANCELLED})

AUTO_APPROVAL_COMMENT = "Auto-approved after the review grace period"


def next_status(current: EnrollmentStatus, event: WorkflowEvent) -> EnrollmentStatus:
    """Look up the target state, refusing transitions the table does not list."""
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidStateTransition(current, event.value) from None


class EnrollmentWorkflow:
    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

    # Predicates

    def minimum_initial_payment(self, fee: int) -> int:
        """Smallest first payment that avoids review (one ninth by default)."""
        return fee // self.config.minimum_payment_divisor

    def review_reason(self, state: EnrollmentState, total_confirmed_paid: int) -> Optional[ReviewReason]:
        """Why a submission needs manual review, or None if it does not."""
        if state.fee_adjusted:
            return ReviewReason.FEE_ADJUSTED
        if total_confirmed_paid < self.minimum_initial_payment(state.effective_fee):
            return ReviewReason.LOW_INITIAL_PAYMENT
        return None

    def is_auto_approvable(self, state: EnrollmentState, now: datetime) -> bool:
        """
        True once an unflagged submission has sat past its deadline.
        Enrollments that were ever routed to review never qualify.
        """
        return (
            state.status == S.SUBMITTED
            and not state.review_flagged
            and state.auto_approve_at is not None
            and now >= state.auto_approve_at
        )

    def draft_expires_at(self, created_at: datetime) -> datetime:
        return created_at + self.config.draft_expiry

    def is_draft_expired(self, state: EnrollmentState, now: datetime) -> bool:
        return (
            state.status == S.DRAFT
            and state.draft_expires_at is not None
            and now >= state.draft_expires_at
        )

    # Transitions

    def submit(self, state: EnrollmentState, total_confirmed_paid: int, now: datetime) -> Transition:
        """
        Submit a draft. Review triggers are evaluated here, once, and the
        outcome is recorded on the enrollment.
        """
        to_status = next_status(state.status, E.SUBMIT)
        reason = self.review_reason(state, total_confirmed_paid)
        if reason is not None:
            to_status = next_status(to_status, E.FLAG_FOR_REVIEW)

        return Transition(
            event=E.SUBMIT,
            from_status=state.status,
            to_status=to_status,
            review_reason=reason,
            changes={
                "submitted_at": now,
                "auto_approve_at": None if reason else now + self.config.auto_approve_grace,
                "draft_expires_at": None,
                "review_flagged": reason is not None,
                "review_reason": reason,
            },
        )

    def approve(
        self,
        state: EnrollmentState,
        comment: Optional[str],
        actor_id: Optional[UUID],
        now: datetime,
    ) -> Transition:
        to_status = next_status(state.status, E.APPROVE)
        comment = self._require_comment(comment, "A comment is required when completing an enrollment")
        return Transition(
            event=E.APPROVE,
            from_status=state.status,
            to_status=to_status,
            comment=comment,
            changes={
                "approved_at": now,
                "approved_by": actor_id,
                "auto_approve_at": None,
                **self._status_stamp(comment, actor_id, now),
            },
        )

    def auto_approve(self, state: EnrollmentState, now: datetime) -> Transition:
        to_status = next_status(state.status, E.AUTO_APPROVE)
        if not self.is_auto_approvable(state, now):
            raise InvalidStateTransition(state.status, E.AUTO_APPROVE.value)
        return Transition(
            event=E.AUTO_APPROVE,
            from_status=state.status,
            to_status=to_status,
            comment=AUTO_APPROVAL_COMMENT,
            changes={
                "approved_at": now,
                "approved_by": None,
                "auto_approve_at": None,
                **self._status_stamp(AUTO_APPROVAL_COMMENT, None, now),
            },
        )

    def reject(
        self,
        state: EnrollmentState,
        reason: Optional[str],
        actor_id: Optional[UUID],
        now: datetime,
    ) -> Transition:
        to_status = next_status(state.status, E.REJECT)
        reason = self._require_comment(reason, "A reason is required when rejecting an enrollment")
        return Transition(
            event=E.REJECT,
            from_status=state.status,
            to_status=to_status,
            comment=reason,
            changes={
                "auto_approve_at": None,
                **self._status_stamp(reason, actor_id, now),
            },
        )

    def cancel(
        self,
        state: EnrollmentState,
        reason: Optional[str],
        actor_id: Optional[UUID],
        now: datetime,
    ) -> Transition:
        """Self-service cancellation; only drafts qualify."""
        to_status = next_status(state.status, E.CANCEL)
        reason = self._require_comment(reason, "A reason is required when cancelling an enrollment")
        return Transition(
            event=E.CANCEL,
            from_status=state.status,
            to_status=to_status,
            comment=reason,
            changes={
                "draft_expires_at": None,
                **self._status_stamp(reason, actor_id, now),
            },
        )

    def ensure_deletable(self, state: EnrollmentState) -> None:
        if state.status not in DELETABLE_STATUSES:
            raise InvalidStateTransition(state.status, E.DELETE.value)

    def adjust_fee(self, state: EnrollmentState, adjusted_fee: int, reason: Optional[str]) -> dict:
        """
        Column changes for a tuition adjustment. Drafts only, since review
        triggers are evaluated at submission. Adjusting back to the original
        fee clears the adjustment.
        """
        if state.status != S.DRAFT:
            raise InvalidStateTransition(state.status, "adjust the fee of")
        if adjusted_fee < 0:
            raise InvalidScheduleParameters("Fee cannot be negative", adjusted_fee=adjusted_fee)
        if adjusted_fee == state.original_fee:
            return {"adjusted_fee": None, "adjustment_reason": None}
        reason = self._require_comment(reason, "A reason is required when adjusting the fee")
        return {"adjusted_fee": adjusted_fee, "adjustment_reason": reason}

    # Helpers

    def _require_comment(self, text: Optional[str], message: str) -> str:
        cleaned = (text or "").strip()
        if len(cleaned) < self.config.min_comment_length:
            raise MissingRequiredComment(message, min_length=self.config.min_comment_length)
        return cleaned

    @staticmethod
    def _status_stamp(comment: Optional[str], actor_id: Optional[UUID], now: datetime) -> dict:
        return {
            "status_comment": comment,
            "status_changed_at": now,
            "status_changed_by": actor_id,
        }
