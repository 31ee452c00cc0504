"""Payment Service - recording payments and keeping club months in sync"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_enrollment.core.exceptions import ConcurrentModification, MissingRequiredComment, NotFound
from school_enrollment.engine.allocation import allocate, monthly_lines, settling_payments, total_confirmed_paid
from school_enrollment.engine.payment_status import check_payment_transition
from school_enrollment.models.billing import Payment
from school_enrollment.models.enrollment import Enrollment, MonthlyPaymentRecord
from school_enrollment.models.enums import PaymentMethod, PaymentStatus
from school_enrollment.schemas.payment import MonthlyPeriod, PaymentCreate, PaymentRecord
from school_enrollment.utils.numbering import (
    NUMBER_ATTEMPTS,
    format_receipt_number,
    next_sequence,
    receipt_number_prefix,
)
from school_enrollment.utils.time import get_utc_now

logger = logging.getLogger(__name__)


class PaymentService:
    @staticmethod
    async def get_payment(db: AsyncSession, payment_id: UUID) -> Optional[Payment]:
        return await db.get(Payment, payment_id)

    @staticmethod
    async def list_payments(db: AsyncSession, enrollment_id: UUID) -> List[Payment]:
        result = await db.execute(
            select(Payment)
            .where(Payment.enrollment_id == enrollment_id)
            .order_by(Payment.recorded_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def payment_records(db: AsyncSession, enrollment_id: UUID) -> List[PaymentRecord]:
        payments = await PaymentService.list_payments(db, enrollment_id)
        return [PaymentRecord.model_validate(p) for p in payments]

    @staticmethod
    async def next_receipt_number(db: AsyncSession, method: PaymentMethod) -> str:
        year = get_utc_now().year
        prefix = receipt_number_prefix(method, year)
        last = await db.scalar(
            select(Payment.receipt_number)
            .where(Payment.receipt_number.like(f"{prefix}%"))
            .order_by(Payment.receipt_number.desc())
            .limit(1)
        )
        return format_receipt_number(method, year, next_sequence(last, prefix))

    @staticmethod
    async def record_payment(
        db: AsyncSession,
        data: PaymentCreate,
        actor_id: Optional[UUID],
        auto_commit: bool = True,
    ) -> Payment:
        """
        Record money received. Confirmed immediately unless ``data.confirm``
        is False, in which case it waits as PENDING.
        """
        enrollment = await db.get(Enrollment, data.enrollment_id)
        if enrollment is None:
            raise NotFound("Enrollment not found", enrollment_id=str(data.enrollment_id))

        now = get_utc_now()
        for attempt in range(1, NUMBER_ATTEMPTS + 1):
            payment = Payment(
                enrollment_id=data.enrollment_id,
                amount=data.amount,
                method=data.method,
                status=PaymentStatus.CONFIRMED if data.confirm else PaymentStatus.PENDING,
                receipt_number=await PaymentService.next_receipt_number(db, data.method),
                transaction_ref=data.transaction_ref,
                notes=data.notes,
                recorded_at=now,
                recorded_by=actor_id,
                confirmed_at=now if data.confirm else None,
                confirmed_by=actor_id if data.confirm else None,
            )
            try:
                async with db.begin_nested():
                    db.add(payment)
                    await db.flush()
                break
            except IntegrityError:
                logger.warning(
                    "Receipt number taken concurrently, retrying",
                    extra={"enrollment_id": data.enrollment_id, "method": data.method.value, "attempt": attempt},
                )
        else:
            raise ConcurrentModification(
                "Could not allocate a receipt number; retry",
                enrollment_id=str(data.enrollment_id),
                method=data.method.value,
            )

        if data.confirm:
            await PaymentService.sync_monthly_records(db, data.enrollment_id, settling_payment_id=payment.id)

        if auto_commit:
            await db.commit()
            await db.refresh(payment)

        logger.info(
            "Payment recorded",
            extra={
                "payment_id": payment.id,
                "enrollment_id": data.enrollment_id,
                "amount": data.amount,
                "status": payment.status.value,
            },
        )
        return payment

    @staticmethod
    async def _change_status(
        db: AsyncSession,
        payment_id: UUID,
        target: PaymentStatus,
        actor_id: Optional[UUID],
        reason: Optional[str] = None,
    ) -> Payment:
        payment = await db.get(Payment, payment_id)
        if payment is None:
            raise NotFound("Payment not found", payment_id=str(payment_id))

        current = payment.status
        check_payment_transition(current, target)

        now = get_utc_now()
        values = {"status": target}
        if target == PaymentStatus.CONFIRMED:
            values.update(confirmed_at=now, confirmed_by=actor_id)
        elif target == PaymentStatus.REVERSED:
            values.update(reversed_at=now, reversed_by=actor_id, reversal_reason=reason)

        result = await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == current)
            .values(**values)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ConcurrentModification(
                "Payment was changed by another request; reload and retry",
                payment_id=str(payment_id),
            )

        # Re-derive club month flags from the new payment set
        if payment.enrollment_id is not None and target in (PaymentStatus.CONFIRMED, PaymentStatus.REVERSED):
            await PaymentService.sync_monthly_records(
                db,
                payment.enrollment_id,
                settling_payment_id=payment_id if target == PaymentStatus.CONFIRMED else None,
            )

        await db.commit()
        await db.refresh(payment)
        logger.info(
            "Payment status changed",
            extra={
                "payment_id": payment_id,
                "enrollment_id": payment.enrollment_id,
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": actor_id,
            },
        )
        return payment

    @staticmethod
    async def confirm_payment(db: AsyncSession, payment_id: UUID, actor_id: Optional[UUID]) -> Payment:
        return await PaymentService._change_status(db, payment_id, PaymentStatus.CONFIRMED, actor_id)

    @staticmethod
    async def reject_payment(db: AsyncSession, payment_id: UUID, actor_id: Optional[UUID]) -> Payment:
        return await PaymentService._change_status(db, payment_id, PaymentStatus.REJECTED, actor_id)

    @staticmethod
    async def fail_payment(db: AsyncSession, payment_id: UUID, actor_id: Optional[UUID]) -> Payment:
        return await PaymentService._change_status(db, payment_id, PaymentStatus.FAILED, actor_id)

    @staticmethod
    async def reverse_payment(
        db: AsyncSession,
        payment_id: UUID,
        reason: Optional[str],
        actor_id: Optional[UUID],
    ) -> Payment:
        """Reverse a confirmed payment; it stops counting from now on."""
        cleaned = (reason or "").strip()
        if not cleaned:
            raise MissingRequiredComment("A reason is required when reversing a payment")
        return await PaymentService._change_status(
            db, payment_id, PaymentStatus.REVERSED, actor_id, reason=cleaned
        )

    @staticmethod
    async def sync_monthly_records(
        db: AsyncSession,
        enrollment_id: UUID,
        settling_payment_id: Optional[UUID] = None,
    ) -> List[MonthlyPaymentRecord]:
        """
        Re-flag club months as paid or unpaid from the waterfall.

        Months that become paid are linked to ``settling_payment_id``; months
        that stop being covered (after a reversal) lose their link. A month
        that stays covered after its payment was reversed is re-linked to the
        confirmed payment that now covers it.
        """
        result = await db.execute(
            select(MonthlyPaymentRecord).where(MonthlyPaymentRecord.enrollment_id == enrollment_id)
        )
        records = list(result.scalars().all())
        if not records:
            return records

        payments = await PaymentService.payment_records(db, enrollment_id)
        lines = monthly_lines(MonthlyPeriod.model_validate(r) for r in records)
        allocations = allocate(lines, total_confirmed_paid(payments))
        paid_ids = {a.line_id for a in allocations if a.fully_paid}
        settled_by = settling_payments(allocations, payments)
        counting_ids = {p.id for p in payments if p.status == PaymentStatus.CONFIRMED}

        for record in records:
            now_paid = record.id in paid_ids
            if now_paid and not record.is_paid:
                record.is_paid = True
                record.payment_id = settling_payment_id or settled_by.get(record.id)
            elif now_paid and record.payment_id not in counting_ids:
                # Still covered, but its settling payment was reversed
                record.payment_id = settled_by.get(record.id)
            elif not now_paid and record.is_paid:
                record.is_paid = False
                record.payment_id = None
        await db.flush()
        return records
