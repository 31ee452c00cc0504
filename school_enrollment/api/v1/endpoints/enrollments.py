"""Enrollment endpoints - admission, workflow and balances"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_enrollment.api import deps
from school_enrollment.engine.workflow import EnrollmentWorkflow
from school_enrollment.schemas.enrollment import (
    ApproveRequest,
    CancelRequest,
    EnrollmentCreate,
    EnrollmentDetail,
    EnrollmentSubmit,
    FeeAdjustment,
    RejectRequest,
)
from school_enrollment.schemas.payment import PaymentPreviewRequest
from school_enrollment.schemas.responses import SuccessResponse
from school_enrollment.services.enrollment_service import EnrollmentService

router = APIRouter()


def _detail(enrollment) -> EnrollmentDetail:
    return EnrollmentDetail.model_validate(enrollment)


@router.post("", response_model=SuccessResponse)
async def create_enrollment(
    enrollment_in: EnrollmentCreate,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
    workflow: EnrollmentWorkflow = Depends(deps.get_workflow),
) -> Any:
    """Open a draft enrollment. Runs the status, capacity, duplicate and grade checks."""
    enrollment = await EnrollmentService.create_enrollment(db, enrollment_in, actor.id, workflow)
    return SuccessResponse(data=_detail(enrollment), message="Enrollment created")


@router.get("/{enrollment_id}", response_model=SuccessResponse)
async def get_enrollment(
    enrollment_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
    return SuccessResponse(data=_detail(enrollment))


@router.patch("/{enrollment_id}/fee", response_model=SuccessResponse)
async def adjust_fee(
    enrollment_id: UUID,
    body: FeeAdjustment,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
    workflow: EnrollmentWorkflow = Depends(deps.get_workflow),
) -> Any:
    """Override the fee of a draft. A reason is required unless the override is cleared."""
    enrollment = await EnrollmentService.adjust_fee(db, enrollment_id, body, workflow)
    return SuccessResponse(data=_detail(enrollment), message="Fee updated")


@router.post("/{enrollment_id}/submit", response_model=SuccessResponse)
async def submit_enrollment(
    enrollment_id: UUID,
    body: Optional[EnrollmentSubmit] = None,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
    workflow: EnrollmentWorkflow = Depends(deps.get_workflow),
) -> Any:
    """
    Submit a draft. Generates the payment plan, records an optional initial
    payment and flags the enrollment for review when needed.
    """
    enrollment = await EnrollmentService.submit(
        db, enrollment_id, body or EnrollmentSubmit(), actor.id, workflow
    )
    return SuccessResponse(data=_detail(enrollment), message="Enrollment submitted")


@router.post("/{enrollment_id}/approve", response_model=SuccessResponse)
async def approve_enrollment(
    enrollment_id: UUID,
    body: Optional[ApproveRequest] = None,
    actor: deps.Actor = Depends(deps.require_approver),
    db: AsyncSession = Depends(deps.get_db),
    workflow: EnrollmentWorkflow = Depends(deps.get_workflow),
) -> Any:
    """Approve a submitted or flagged enrollment. Every approval needs a comment. Approver only."""
    comment = body.comment if body else None
    enrollment = await EnrollmentService.approve(db, enrollment_id, comment, actor.id, workflow)
    return SuccessResponse(data=_detail(enrollment), message="Enrollment approved")


@router.post("/{enrollment_id}/reject", response_model=SuccessResponse)
async def reject_enrollment(
    enrollment_id: UUID,
    body: RejectRequest,
    actor: deps.Actor = Depends(deps.require_approver),
    db: AsyncSession = Depends(deps.get_db),
    workflow: EnrollmentWorkflow = Depends(deps.get_workflow),
) -> Any:
    """Reject a submitted enrollment with a reason. Approver only."""
    enrollment = await EnrollmentService.reject(db, enrollment_id, body.reason, actor.id, workflow)
    return SuccessResponse(data=_detail(enrollment), message="Enrollment rejected")


@router.post("/{enrollment_id}/cancel", response_model=SuccessResponse)
async def cancel_enrollment(
    enrollment_id: UUID,
    body: CancelRequest,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
    workflow: EnrollmentWorkflow = Depends(deps.get_workflow),
) -> Any:
    """Cancel a draft enrollment with a reason. Only drafts can be cancelled."""
    enrollment = await EnrollmentService.cancel(db, enrollment_id, body.reason, actor.id, workflow)
    return SuccessResponse(data=_detail(enrollment), message="Enrollment cancelled")


@router.delete("/{enrollment_id}", response_model=SuccessResponse)
async def delete_enrollment(
    enrollment_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
    workflow: EnrollmentWorkflow = Depends(deps.get_workflow),
) -> Any:
    """Delete a draft or cancelled enrollment."""
    await EnrollmentService.delete_enrollment(db, enrollment_id, workflow)
    return SuccessResponse(message="Enrollment deleted")


@router.get("/{enrollment_id}/balance", response_model=SuccessResponse)
async def get_balance(
    enrollment_id: UUID,
    as_of: Optional[datetime] = Query(None),
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Waterfall allocation of confirmed payments over the payment plan."""
    summary = await EnrollmentService.get_balance(db, enrollment_id, as_of)
    return SuccessResponse(data=summary)


@router.post("/{enrollment_id}/payment-preview", response_model=SuccessResponse)
async def preview_payment(
    enrollment_id: UUID,
    body: PaymentPreviewRequest,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Which installments a payment of this amount would settle."""
    preview = await EnrollmentService.preview_payment(db, enrollment_id, body.amount)
    return SuccessResponse(data=preview)
