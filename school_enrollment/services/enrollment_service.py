"""Enrollment Service - admission, schedules and workflow persistence"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_enrollment.core.exceptions import (
    ConcurrentModification,
    EngineError,
    GradeNotEligible,
    NoGradePlacement,
    NotFound,
)
from school_enrollment.engine import allocation
from school_enrollment.engine.capacity import can_enroll, raise_for_decision
from school_enrollment.engine.eligibility import is_eligible
from school_enrollment.engine.schedule import monthly_periods, split_installments, spread_over_periods
from school_enrollment.engine.workflow import EnrollmentWorkflow, next_status
from school_enrollment.models.academic import Program
from school_enrollment.models.enrollment import (
    Enrollment,
    EnrollmentStatusLog,
    MonthlyPaymentRecord,
    PaymentScheduleLine,
)
from school_enrollment.models.enums import EnrollmentStatus, ErrorKind, ProgramKind, WorkflowEvent
from school_enrollment.schemas.enrollment import (
    EnrollmentCreate,
    EnrollmentState,
    EnrollmentSubmit,
    FeeAdjustment,
    ProgramSnapshot,
    Transition,
)
from school_enrollment.schemas.payment import (
    AllocationSummary,
    MonthlyPeriod,
    PaymentCreate,
    PaymentPreview,
    ScheduleLine,
)
from school_enrollment.services.eligibility_service import EligibilityService
from school_enrollment.services.notification_service import NotificationService
from school_enrollment.services.payment_service import PaymentService
from school_enrollment.utils.numbering import (
    NUMBER_ATTEMPTS,
    enrollment_number_prefix,
    format_enrollment_number,
    next_sequence,
)
from school_enrollment.utils.time import get_utc_now

logger = logging.getLogger(__name__)

# Statuses that hold a seat for capacity purposes
SEAT_HOLDING_STATUSES = (
    EnrollmentStatus.DRAFT,
    EnrollmentStatus.SUBMITTED,
    EnrollmentStatus.NEEDS_REVIEW,
    EnrollmentStatus.COMPLETED,
)

FINAL_NOTIFY_STATUSES = (EnrollmentStatus.COMPLETED, EnrollmentStatus.REJECTED)

NOTIFY_ADMISSION_KINDS = (
    ErrorKind.CAPACITY_EXCEEDED,
    ErrorKind.DUPLICATE_ACTIVE_ENROLLMENT,
    ErrorKind.DUPLICATE_NON_ACTIVE_ENROLLMENT,
)


class EnrollmentService:
    # Reads

    @staticmethod
    async def get_enrollment(db: AsyncSession, enrollment_id: UUID) -> Optional[Enrollment]:
        result = await db.execute(
            select(Enrollment)
            .options(
                selectinload(Enrollment.program),
                selectinload(Enrollment.schedule_lines),
                selectinload(Enrollment.monthly_records),
            )
            .where(Enrollment.id == enrollment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def require_enrollment(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
        enrollment = await EnrollmentService.get_enrollment(db, enrollment_id)
        if enrollment is None:
            raise NotFound("Enrollment not found", enrollment_id=str(enrollment_id))
        return enrollment

    @staticmethod
    async def count_seats_taken(db: AsyncSession, program_id: UUID) -> int:
        count = await db.scalar(
            select(func.count())
            .select_from(Enrollment)
            .where(
                Enrollment.program_id == program_id,
                Enrollment.status.in_(SEAT_HOLDING_STATUSES),
            )
        )
        return count or 0

    @staticmethod
    async def find_existing(db: AsyncSession, program_id: UUID, student_id: UUID) -> Optional[Enrollment]:
        result = await db.execute(
            select(Enrollment).where(
                Enrollment.program_id == program_id,
                Enrollment.student_id == student_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def resolve_grade(
        db: AsyncSession,
        program: Program,
        student_id: UUID,
        requested_grade_id: Optional[UUID],
    ) -> Optional[UUID]:
        """
        Grade used for eligibility.

        Academic programs place the student in the program's own grade. Clubs
        use the grade of the student's completed academic enrollment, which
        they must have.
        """
        if program.kind == ProgramKind.ACADEMIC:
            return program.grade_id or requested_grade_id

        grade_id = await db.scalar(
            select(Enrollment.grade_id)
            .join(Program, Program.id == Enrollment.program_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.status == EnrollmentStatus.COMPLETED,
                Enrollment.grade_id.is_not(None),
                Program.kind == ProgramKind.ACADEMIC,
            )
            .order_by(Enrollment.approved_at.desc())
            .limit(1)
        )
        if grade_id is None:
            raise NoGradePlacement(
                "Student must have a completed enrollment to join clubs",
                student_id=str(student_id),
            )
        return grade_id

    @staticmethod
    async def next_enrollment_number(db: AsyncSession) -> str:
        year = get_utc_now().year
        prefix = enrollment_number_prefix(year)
        last = await db.scalar(
            select(Enrollment.enrollment_number)
            .where(Enrollment.enrollment_number.like(f"{prefix}%"))
            .order_by(Enrollment.enrollment_number.desc())
            .limit(1)
        )
        return format_enrollment_number(year, next_sequence(last, prefix))

    # Admission

    @staticmethod
    async def create_enrollment(
        db: AsyncSession,
        data: EnrollmentCreate,
        actor_id: Optional[UUID],
        workflow: EnrollmentWorkflow,
    ) -> Enrollment:
        """
        Create a DRAFT enrollment after the admission checks.

        The program row is locked for the rest of the transaction so the seat
        count cannot change between the check and the insert.
        """
        result = await db.execute(
            select(Program).where(Program.id == data.program_id).with_for_update()
        )
        program = result.scalar_one_or_none()
        if program is None:
            raise NotFound("Program not found", program_id=str(data.program_id))

        snapshot = ProgramSnapshot.model_validate(program)
        seats_taken = await EnrollmentService.count_seats_taken(db, program.id)
        existing = await EnrollmentService.find_existing(db, program.id, data.student_id)
        decision = can_enroll(
            snapshot,
            seats_taken,
            EnrollmentState.model_validate(existing) if existing else None,
        )
        try:
            raise_for_decision(decision, snapshot)
        except EngineError as exc:
            await db.rollback()
            logger.warning(
                "Enrollment refused",
                extra={"program_id": data.program_id, "student_id": str(data.student_id), "reason": exc.kind.value},
            )
            if exc.kind in NOTIFY_ADMISSION_KINDS:
                NotificationService.admission_refused(exc, data.program_id, data.student_id)
            raise

        grade_id = await EnrollmentService.resolve_grade(db, program, data.student_id, data.grade_id)
        if grade_id is not None:
            rule = await EligibilityService.get_rule_data(db, program.id)
            if not is_eligible(rule, grade_id):
                await db.rollback()
                raise GradeNotEligible(
                    "Student's grade is not eligible for this program",
                    program_id=str(data.program_id),
                    grade_id=str(grade_id),
                )

        if program.kind == ProgramKind.CLUB and program.monthly_fee is not None and data.period_count:
            fee = program.monthly_fee * data.period_count
        else:
            fee = program.fee

        now = get_utc_now()
        for attempt in range(1, NUMBER_ATTEMPTS + 1):
            enrollment = Enrollment(
                enrollment_number=await EnrollmentService.next_enrollment_number(db),
                student_id=data.student_id,
                program_id=data.program_id,
                grade_id=grade_id,
                status=EnrollmentStatus.DRAFT,
                original_fee=fee,
                start_month=data.start_month,
                start_year=data.start_year,
                period_count=data.period_count,
                draft_expires_at=workflow.draft_expires_at(now),
                created_by=actor_id,
            )
            try:
                async with db.begin_nested():
                    db.add(enrollment)
                    await db.flush()
                break
            except IntegrityError:
                existing = await EnrollmentService.find_existing(db, data.program_id, data.student_id)
                if existing is not None:
                    # Lost a race on (program_id, student_id): report what won
                    existing_state = EnrollmentState.model_validate(existing)
                    await db.rollback()
                    raise_for_decision(can_enroll(snapshot, 0, existing_state), snapshot)
                logger.warning(
                    "Enrollment number taken concurrently, retrying",
                    extra={"program_id": data.program_id, "attempt": attempt},
                )
        else:
            await db.rollback()
            raise ConcurrentModification(
                "Could not allocate an enrollment number; retry",
                program_id=str(data.program_id),
            )

        await db.commit()
        logger.info(
            "Enrollment created",
            extra={"enrollment_id": enrollment.id, "program_id": program.id, "actor_id": actor_id},
        )
        return await EnrollmentService.require_enrollment(db, enrollment.id)

    @staticmethod
    async def adjust_fee(
        db: AsyncSession,
        enrollment_id: UUID,
        data: FeeAdjustment,
        workflow: EnrollmentWorkflow,
    ) -> Enrollment:
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        state = EnrollmentState.model_validate(enrollment)
        changes = workflow.adjust_fee(state, data.adjusted_fee, data.reason)

        result = await db.execute(
            update(Enrollment)
            .where(Enrollment.id == enrollment_id, Enrollment.status == state.status)
            .values(**changes)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ConcurrentModification(
                "Enrollment was changed by another request; reload and retry",
                enrollment_id=str(enrollment_id),
            )
        await db.commit()
        return await EnrollmentService._reload(db, enrollment)

    # Schedules

    @staticmethod
    async def generate_schedule(
        db: AsyncSession,
        enrollment: Enrollment,
        workflow: EnrollmentWorkflow,
    ) -> None:
        """
        Create the enrollment's payment plan: club months when the club bills
        monthly, otherwise tuition installments over the effective fee.
        Either way the plan sums to the effective fee.
        """
        program = enrollment.program
        periods = []
        if program.kind == ProgramKind.CLUB:
            periods = monthly_periods(
                program.monthly_fee,
                enrollment.start_month,
                enrollment.start_year,
                enrollment.period_count,
                existing_record_count=len(enrollment.monthly_records),
            )
            periods = spread_over_periods(periods, enrollment.effective_fee, workflow.config.remainder_policy)

        if periods:
            for period in periods:
                db.add(MonthlyPaymentRecord(
                    enrollment_id=enrollment.id,
                    month=period.month,
                    year=period.year,
                    amount=period.amount,
                    is_paid=False,
                ))
        else:
            count = program.installment_count
            if program.kind == ProgramKind.ACADEMIC and count is None:
                count = workflow.config.default_installment_count
            lines = split_installments(
                enrollment.effective_fee,
                count,
                workflow.config.remainder_policy,
                existing_line_count=len(enrollment.schedule_lines),
            )
            for line in lines:
                db.add(PaymentScheduleLine(
                    enrollment_id=enrollment.id,
                    sequence=line.sequence,
                    amount=line.amount,
                ))
        await db.flush()
        logger.info(
            "Payment schedule generated",
            extra={
                "enrollment_id": enrollment.id,
                "monthly_periods": len(periods),
            },
        )

    @staticmethod
    def schedule_of(enrollment: Enrollment) -> List[ScheduleLine]:
        if enrollment.monthly_records:
            return allocation.monthly_lines(MonthlyPeriod.model_validate(r) for r in enrollment.monthly_records)
        return [ScheduleLine.model_validate(line) for line in enrollment.schedule_lines]

    # Workflow

    @staticmethod
    async def _apply_transition(
        db: AsyncSession,
        enrollment: Enrollment,
        transition: Transition,
        actor_id: Optional[UUID],
    ) -> None:
        """Compare-and-swap the status, then append the audit row."""
        enrollment_id = enrollment.id
        result = await db.execute(
            update(Enrollment)
            .where(Enrollment.id == enrollment_id, Enrollment.status == transition.from_status)
            .values(status=transition.to_status, **transition.changes)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ConcurrentModification(
                "Enrollment was changed by another request; reload and retry",
                enrollment_id=str(enrollment_id),
                expected_status=transition.from_status.value,
            )
        db.add(EnrollmentStatusLog(
            enrollment_id=enrollment_id,
            from_status=transition.from_status,
            to_status=transition.to_status,
            comment=transition.comment or (transition.review_reason.value if transition.review_reason else None),
            changed_by=actor_id,
            changed_at=get_utc_now(),
        ))

    @staticmethod
    async def _reload(db: AsyncSession, enrollment: Enrollment) -> Enrollment:
        return await EnrollmentService.require_enrollment(db, enrollment.id)

    @staticmethod
    async def _finish(
        db: AsyncSession,
        enrollment: Enrollment,
        transition: Transition,
        actor_id: Optional[UUID],
    ) -> Enrollment:
        await EnrollmentService._apply_transition(db, enrollment, transition, actor_id)
        await db.commit()
        logger.info(
            "Enrollment transition applied",
            extra={
                "enrollment_id": enrollment.id,
                "event": transition.event.value,
                "from_status": transition.from_status.value,
                "to_status": transition.to_status.value,
                "actor_id": actor_id,
            },
        )
        if transition.to_status in FINAL_NOTIFY_STATUSES:
            NotificationService.enrollment_finalized(
                enrollment.id,
                enrollment.program_id,
                enrollment.student_id,
                transition.to_status,
                transition.comment,
            )
        return await EnrollmentService._reload(db, enrollment)

    @staticmethod
    async def submit(
        db: AsyncSession,
        enrollment_id: UUID,
        data: EnrollmentSubmit,
        actor_id: Optional[UUID],
        workflow: EnrollmentWorkflow,
    ) -> Enrollment:
        """
        Submit a draft: build its schedule, record any payment taken at the
        desk, then decide between SUBMITTED and NEEDS_REVIEW.
        """
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        state = EnrollmentState.model_validate(enrollment)
        next_status(state.status, WorkflowEvent.SUBMIT)

        await EnrollmentService.generate_schedule(db, enrollment, workflow)

        if data.initial_payment is not None:
            await PaymentService.record_payment(
                db,
                PaymentCreate(
                    enrollment_id=enrollment.id,
                    amount=data.initial_payment.amount,
                    method=data.initial_payment.method,
                    transaction_ref=data.initial_payment.transaction_ref,
                    confirm=True,
                ),
                actor_id,
                auto_commit=False,
            )

        payments = await PaymentService.payment_records(db, enrollment.id)
        transition = workflow.submit(state, allocation.total_confirmed_paid(payments), get_utc_now())
        return await EnrollmentService._finish(db, enrollment, transition, actor_id)

    @staticmethod
    async def approve(
        db: AsyncSession,
        enrollment_id: UUID,
        comment: Optional[str],
        actor_id: Optional[UUID],
        workflow: EnrollmentWorkflow,
    ) -> Enrollment:
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        transition = workflow.approve(EnrollmentState.model_validate(enrollment), comment, actor_id, get_utc_now())
        return await EnrollmentService._finish(db, enrollment, transition, actor_id)

    @staticmethod
    async def reject(
        db: AsyncSession,
        enrollment_id: UUID,
        reason: Optional[str],
        actor_id: Optional[UUID],
        workflow: EnrollmentWorkflow,
    ) -> Enrollment:
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        transition = workflow.reject(EnrollmentState.model_validate(enrollment), reason, actor_id, get_utc_now())
        return await EnrollmentService._finish(db, enrollment, transition, actor_id)

    @staticmethod
    async def cancel(
        db: AsyncSession,
        enrollment_id: UUID,
        reason: Optional[str],
        actor_id: Optional[UUID],
        workflow: EnrollmentWorkflow,
    ) -> Enrollment:
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        transition = workflow.cancel(EnrollmentState.model_validate(enrollment), reason, actor_id, get_utc_now())
        return await EnrollmentService._finish(db, enrollment, transition, actor_id)

    @staticmethod
    async def delete_enrollment(
        db: AsyncSession,
        enrollment_id: UUID,
        workflow: EnrollmentWorkflow,
    ) -> None:
        """
        Hard delete a DRAFT or CANCELLED enrollment. Schedule lines go with
        it; payments stay and lose their enrollment link.
        """
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        state = EnrollmentState.model_validate(enrollment)
        workflow.ensure_deletable(state)

        result = await db.execute(
            delete(Enrollment)
            .where(Enrollment.id == enrollment_id, Enrollment.status == state.status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ConcurrentModification(
                "Enrollment was changed by another request; reload and retry",
                enrollment_id=str(enrollment_id),
            )
        await db.commit()
        logger.info("Enrollment deleted", extra={"enrollment_id": enrollment_id})

    @staticmethod
    async def auto_approve_due(
        db: AsyncSession,
        workflow: EnrollmentWorkflow,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> List[UUID]:
        """
        Complete every unflagged submission whose grace period has passed.
        Returns the ids that were (or, with ``dry_run``, would be) approved.
        """
        now = now or get_utc_now()
        result = await db.execute(
            select(Enrollment.id)
            .where(
                Enrollment.status == EnrollmentStatus.SUBMITTED,
                Enrollment.review_flagged.is_(False),
                Enrollment.auto_approve_at.is_not(None),
                Enrollment.auto_approve_at <= now,
            )
            .order_by(Enrollment.auto_approve_at)
        )
        candidates = list(result.scalars().all())
        if dry_run:
            return candidates

        approved = []
        for enrollment_id in candidates:
            enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
            state = EnrollmentState.model_validate(enrollment)
            if not workflow.is_auto_approvable(state, now):
                continue
            try:
                await EnrollmentService._finish(db, enrollment, workflow.auto_approve(state, now), None)
            except ConcurrentModification:
                # An approver acted between the query and the update; their decision stands
                logger.warning("Auto-approval skipped, enrollment changed concurrently",
                               extra={"enrollment_id": enrollment_id})
                continue
            approved.append(enrollment_id)
        return approved

    # Balances

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        enrollment_id: UUID,
        as_of: Optional[datetime] = None,
    ) -> AllocationSummary:
        if as_of is not None and as_of.tzinfo is not None:
            # Stored timestamps are naive UTC
            as_of = as_of.astimezone(timezone.utc).replace(tzinfo=None)
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        payments = await PaymentService.payment_records(db, enrollment_id)
        return allocation.summarize(
            enrollment.effective_fee,
            EnrollmentService.schedule_of(enrollment),
            payments,
            as_of=as_of,
        )

    @staticmethod
    async def preview_payment(db: AsyncSession, enrollment_id: UUID, amount: int) -> PaymentPreview:
        enrollment = await EnrollmentService.require_enrollment(db, enrollment_id)
        payments = await PaymentService.payment_records(db, enrollment_id)
        return allocation.preview_payment(
            EnrollmentService.schedule_of(enrollment),
            allocation.total_confirmed_paid(payments),
            amount,
        )
