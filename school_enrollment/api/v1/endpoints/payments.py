"""Payment endpoints - recording and settling payments"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from school_enrollment.api import deps
from school_enrollment.schemas.payment import PaymentCreate, PaymentResponse, PaymentReverse
from school_enrollment.schemas.responses import SuccessResponse
from school_enrollment.services.payment_service import PaymentService

router = APIRouter()


@router.post("", response_model=SuccessResponse)
async def record_payment(
    payment_in: PaymentCreate,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Record a payment against an enrollment. Confirmed unless ``confirm`` is false."""
    payment = await PaymentService.record_payment(db, payment_in, actor.id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment recorded")


@router.post("/{payment_id}/confirm", response_model=SuccessResponse)
async def confirm_payment(
    payment_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    payment = await PaymentService.confirm_payment(db, payment_id, actor.id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment confirmed")


@router.post("/{payment_id}/reject", response_model=SuccessResponse)
async def reject_payment(
    payment_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    payment = await PaymentService.reject_payment(db, payment_id, actor.id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment rejected")


@router.post("/{payment_id}/fail", response_model=SuccessResponse)
async def fail_payment(
    payment_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    payment = await PaymentService.fail_payment(db, payment_id, actor.id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment marked as failed")


@router.post("/{payment_id}/reverse", response_model=SuccessResponse)
async def reverse_payment(
    payment_id: UUID,
    body: PaymentReverse,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Reverse a confirmed payment. It stops counting toward the balance."""
    payment = await PaymentService.reverse_payment(db, payment_id, body.reason, actor.id)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment reversed")
