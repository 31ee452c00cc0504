"""Unit tests for EnrollmentService."""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_enrollment.core.exceptions import (
    CapacityExceeded,
    ConcurrentModification,
    GradeNotEligible,
    InvalidStateTransition,
    NoGradePlacement,
)
from school_enrollment.engine.workflow import EnrollmentWorkflow
from school_enrollment.models.academic import Program
from school_enrollment.models.enrollment import (
    Enrollment,
    EnrollmentStatusLog,
    MonthlyPaymentRecord,
    PaymentScheduleLine,
)
from school_enrollment.models.enums import (
    EnrollmentStatus,
    PaymentMethod,
    PaymentStatus,
    ProgramKind,
    ProgramStatus,
    ReviewReason,
    RuleType,
)
from school_enrollment.schemas.eligibility import EligibilityRuleData
from school_enrollment.schemas.enrollment import EnrollmentCreate, EnrollmentSubmit
from school_enrollment.schemas.payment import InitialPayment, PaymentRecord
from school_enrollment.services.enrollment_service import EnrollmentService

SERVICE = "school_enrollment.services.enrollment_service"


def _program(**kwargs):
    values = dict(
        id=uuid4(),
        name="7eme Annee",
        kind=ProgramKind.ACADEMIC,
        status=ProgramStatus.ACTIVE,
        capacity=30,
        grade_id=uuid4(),
        fee=900000,
        installment_count=9,
        monthly_fee=None,
    )
    values.update(kwargs)
    return Program(**values)


def _enrollment(status=EnrollmentStatus.SUBMITTED, **kwargs):
    values = dict(
        id=uuid4(),
        enrollment_number="ENR-2025-00001",
        student_id=uuid4(),
        program_id=uuid4(),
        status=status,
        original_fee=900000,
        adjusted_fee=None,
        review_flagged=False,
    )
    values.update(kwargs)
    return Enrollment(**values)


def _result(scalar=None, rowcount=1):
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.rowcount = rowcount
    return result


@pytest.mark.asyncio
async def test_create_enrollment_refused_when_full():
    db = AsyncMock(spec=AsyncSession)
    program = _program(capacity=30)
    db.execute.return_value = _result(program)
    data = EnrollmentCreate(program_id=program.id, student_id=uuid4())

    with patch(f"{SERVICE}.EnrollmentService.count_seats_taken", new_callable=AsyncMock) as mock_count, \
            patch(f"{SERVICE}.EnrollmentService.find_existing", new_callable=AsyncMock) as mock_existing, \
            patch(f"{SERVICE}.NotificationService.admission_refused") as mock_notify:
        mock_count.return_value = 30
        mock_existing.return_value = None

        with pytest.raises(CapacityExceeded):
            await EnrollmentService.create_enrollment(db, data, uuid4(), EnrollmentWorkflow())

        assert db.rollback.called
        assert not db.add.called
        assert mock_notify.called


@pytest.mark.asyncio
async def test_create_enrollment_refused_for_ineligible_grade():
    db = AsyncMock(spec=AsyncSession)
    program = _program()
    db.execute.return_value = _result(program)
    data = EnrollmentCreate(program_id=program.id, student_id=uuid4())
    rule = EligibilityRuleData(rule_type=RuleType.INCLUDE_ONLY, grade_ids=frozenset({uuid4()}))

    with patch(f"{SERVICE}.EnrollmentService.count_seats_taken", new_callable=AsyncMock) as mock_count, \
            patch(f"{SERVICE}.EnrollmentService.find_existing", new_callable=AsyncMock) as mock_existing, \
            patch(f"{SERVICE}.EligibilityService.get_rule_data", new_callable=AsyncMock) as mock_rule:
        mock_count.return_value = 0
        mock_existing.return_value = None
        mock_rule.return_value = rule

        with pytest.raises(GradeNotEligible):
            await EnrollmentService.create_enrollment(db, data, uuid4(), EnrollmentWorkflow())

        assert not db.add.called


@pytest.mark.asyncio
async def test_create_club_enrollment_bills_months():
    db = AsyncMock(spec=AsyncSession)
    program = _program(kind=ProgramKind.CLUB, grade_id=None, fee=0, installment_count=None, monthly_fee=50000)
    db.execute.return_value = _result(program)
    data = EnrollmentCreate(
        program_id=program.id, student_id=uuid4(), start_month=11, start_year=2024, period_count=3
    )
    actor_id = uuid4()

    with patch(f"{SERVICE}.EnrollmentService.count_seats_taken", new_callable=AsyncMock) as mock_count, \
            patch(f"{SERVICE}.EnrollmentService.find_existing", new_callable=AsyncMock) as mock_existing, \
            patch(f"{SERVICE}.EnrollmentService.resolve_grade", new_callable=AsyncMock) as mock_grade, \
            patch(f"{SERVICE}.EligibilityService.get_rule_data", new_callable=AsyncMock) as mock_rule, \
            patch(f"{SERVICE}.EnrollmentService.next_enrollment_number", new_callable=AsyncMock) as mock_number, \
            patch(f"{SERVICE}.EnrollmentService.require_enrollment", new_callable=AsyncMock) as mock_reload:
        mock_count.return_value = 4
        mock_existing.return_value = None
        mock_grade.return_value = uuid4()
        mock_rule.return_value = None
        mock_number.return_value = "ENR-2025-00007"
        mock_reload.return_value = "reloaded"

        result = await EnrollmentService.create_enrollment(db, data, actor_id, EnrollmentWorkflow())

        assert result == "reloaded"
        created = db.add.call_args[0][0]
        assert isinstance(created, Enrollment)
        assert created.status == EnrollmentStatus.DRAFT
        assert created.original_fee == 150000
        assert created.enrollment_number == "ENR-2025-00007"
        assert created.created_by == actor_id
        assert created.draft_expires_at is not None
        assert db.commit.called


@pytest.mark.asyncio
async def test_club_requires_grade_placement():
    db = AsyncMock(spec=AsyncSession)
    db.scalar.return_value = None
    program = _program(kind=ProgramKind.CLUB, grade_id=None)

    with pytest.raises(NoGradePlacement):
        await EnrollmentService.resolve_grade(db, program, uuid4(), None)


@pytest.mark.asyncio
async def test_academic_program_uses_its_grade():
    db = AsyncMock(spec=AsyncSession)
    program = _program()
    grade_id = await EnrollmentService.resolve_grade(db, program, uuid4(), uuid4())
    assert grade_id == program.grade_id
    assert not db.scalar.called


@pytest.mark.asyncio
async def test_approve_writes_status_and_audit_log():
    db = AsyncMock(spec=AsyncSession)
    enrollment = _enrollment(status=EnrollmentStatus.NEEDS_REVIEW, review_flagged=True)
    db.execute.return_value = _result(rowcount=1)
    actor_id = uuid4()

    with patch(f"{SERVICE}.EnrollmentService.require_enrollment", new_callable=AsyncMock) as mock_get, \
            patch(f"{SERVICE}.NotificationService.enrollment_finalized") as mock_notify:
        mock_get.return_value = enrollment

        await EnrollmentService.approve(db, enrollment.id, "Plan agreed", actor_id, EnrollmentWorkflow())

        log = db.add.call_args[0][0]
        assert isinstance(log, EnrollmentStatusLog)
        assert log.from_status == EnrollmentStatus.NEEDS_REVIEW
        assert log.to_status == EnrollmentStatus.COMPLETED
        assert log.comment == "Plan agreed"
        assert log.changed_by == actor_id
        assert db.commit.called
        mock_notify.assert_called_once()
        assert mock_notify.call_args[0][3] == EnrollmentStatus.COMPLETED


@pytest.mark.asyncio
async def test_approve_lost_race_raises_concurrent_modification():
    db = AsyncMock(spec=AsyncSession)
    enrollment = _enrollment(status=EnrollmentStatus.SUBMITTED)
    db.execute.return_value = _result(rowcount=0)

    with patch(f"{SERVICE}.EnrollmentService.require_enrollment", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = enrollment

        with pytest.raises(ConcurrentModification):
            await EnrollmentService.approve(db, enrollment.id, "ok", uuid4(), EnrollmentWorkflow())

        assert db.rollback.called
        assert not db.commit.called


@pytest.mark.asyncio
async def test_delete_refused_after_submission():
    db = AsyncMock(spec=AsyncSession)
    enrollment = _enrollment(status=EnrollmentStatus.SUBMITTED)

    with patch(f"{SERVICE}.EnrollmentService.require_enrollment", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = enrollment

        with pytest.raises(InvalidStateTransition):
            await EnrollmentService.delete_enrollment(db, enrollment.id, EnrollmentWorkflow())

        assert not db.execute.called


@pytest.mark.asyncio
async def test_auto_approve_dry_run_changes_nothing():
    db = AsyncMock(spec=AsyncSession)
    due = [uuid4(), uuid4()]
    result = MagicMock()
    result.scalars.return_value.all.return_value = due
    db.execute.return_value = result

    ids = await EnrollmentService.auto_approve_due(db, EnrollmentWorkflow(), dry_run=True)

    assert ids == due
    assert not db.commit.called


def _added(db, model):
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], model)]


@pytest.mark.asyncio
async def test_generate_schedule_bills_club_months():
    db = AsyncMock(spec=AsyncSession)
    program = _program(kind=ProgramKind.CLUB, grade_id=None, fee=0, installment_count=None, monthly_fee=50000)
    enrollment = _enrollment(
        status=EnrollmentStatus.DRAFT, program=program, original_fee=150000,
        start_month=11, start_year=2024, period_count=3,
    )

    await EnrollmentService.generate_schedule(db, enrollment, EnrollmentWorkflow())

    records = _added(db, MonthlyPaymentRecord)
    assert [(r.month, r.year, r.amount) for r in records] == [(11, 2024, 50000), (12, 2024, 50000), (1, 2025, 50000)]
    assert not _added(db, PaymentScheduleLine)
    assert db.flush.called


@pytest.mark.asyncio
async def test_generate_schedule_adjusted_club_fee_matches_months():
    db = AsyncMock(spec=AsyncSession)
    program = _program(kind=ProgramKind.CLUB, grade_id=None, fee=0, installment_count=None, monthly_fee=50000)
    enrollment = _enrollment(
        status=EnrollmentStatus.DRAFT, program=program, original_fee=150000, adjusted_fee=100000,
        start_month=11, start_year=2024, period_count=3,
    )

    await EnrollmentService.generate_schedule(db, enrollment, EnrollmentWorkflow())

    records = _added(db, MonthlyPaymentRecord)
    assert sum(r.amount for r in records) == enrollment.effective_fee
    assert [r.amount for r in records] == [33334, 33333, 33333]


@pytest.mark.asyncio
async def test_generate_schedule_academic_uses_default_installments():
    db = AsyncMock(spec=AsyncSession)
    program = _program(installment_count=None)
    enrollment = _enrollment(status=EnrollmentStatus.DRAFT, program=program, original_fee=900000)

    await EnrollmentService.generate_schedule(db, enrollment, EnrollmentWorkflow())

    lines = _added(db, PaymentScheduleLine)
    assert [line.amount for line in lines] == [300000, 300000, 300000]
    assert [line.sequence for line in lines] == [1, 2, 3]


async def _submit_with_payment(amount):
    db = AsyncMock(spec=AsyncSession)
    enrollment = _enrollment(status=EnrollmentStatus.DRAFT, program=_program(), original_fee=900000)
    data = EnrollmentSubmit(initial_payment=InitialPayment(amount=amount, method=PaymentMethod.CASH))

    with patch(f"{SERVICE}.EnrollmentService.require_enrollment", new_callable=AsyncMock) as mock_get, \
            patch(f"{SERVICE}.PaymentService.record_payment", new_callable=AsyncMock) as mock_record, \
            patch(f"{SERVICE}.PaymentService.payment_records", new_callable=AsyncMock) as mock_payments, \
            patch(f"{SERVICE}.EnrollmentService._finish", new_callable=AsyncMock) as mock_finish:
        mock_get.return_value = enrollment
        mock_payments.return_value = [PaymentRecord(amount=amount, status=PaymentStatus.CONFIRMED)]

        await EnrollmentService.submit(db, enrollment.id, data, uuid4(), EnrollmentWorkflow())

        payment = mock_record.call_args[0][1]
        assert payment.amount == amount
        assert payment.confirm is True
        assert mock_record.call_args.kwargs["auto_commit"] is False
        assert len(_added(db, PaymentScheduleLine)) == 9
        return mock_finish.call_args[0][2]


@pytest.mark.asyncio
async def test_submit_with_minimum_payment_waits_for_auto_approval():
    transition = await _submit_with_payment(100000)

    assert transition.to_status == EnrollmentStatus.SUBMITTED
    assert transition.changes["auto_approve_at"] is not None
    assert transition.changes["review_flagged"] is False


@pytest.mark.asyncio
async def test_submit_with_low_payment_needs_review():
    transition = await _submit_with_payment(99999)

    assert transition.to_status == EnrollmentStatus.NEEDS_REVIEW
    assert transition.review_reason == ReviewReason.LOW_INITIAL_PAYMENT
    assert transition.changes["auto_approve_at"] is None


@pytest.mark.asyncio
async def test_auto_approve_skips_concurrently_changed_enrollment():
    db = AsyncMock(spec=AsyncSession)
    now = datetime(2025, 1, 10)
    first = _enrollment(auto_approve_at=datetime(2025, 1, 1))
    second = _enrollment(auto_approve_at=datetime(2025, 1, 2))
    result = MagicMock()
    result.scalars.return_value.all.return_value = [first.id, second.id]
    db.execute.return_value = result

    with patch(f"{SERVICE}.EnrollmentService.require_enrollment", new_callable=AsyncMock) as mock_get, \
            patch(f"{SERVICE}.EnrollmentService._finish", new_callable=AsyncMock) as mock_finish:
        mock_get.side_effect = [first, second]
        mock_finish.side_effect = [ConcurrentModification("Enrollment was changed by another request"), second]

        approved = await EnrollmentService.auto_approve_due(db, EnrollmentWorkflow(), now=now)

    assert approved == [second.id]
    assert mock_finish.call_count == 2
    assert mock_finish.call_args[0][2].to_status == EnrollmentStatus.COMPLETED


@pytest.mark.asyncio
async def test_create_enrollment_retries_taken_number():
    db = AsyncMock(spec=AsyncSession)
    program = _program()
    db.execute.return_value = _result(program)
    db.flush.side_effect = [IntegrityError("INSERT INTO enrollments", {}, Exception("duplicate key")), None]
    data = EnrollmentCreate(program_id=program.id, student_id=uuid4())

    with patch(f"{SERVICE}.EnrollmentService.count_seats_taken", new_callable=AsyncMock) as mock_count, \
            patch(f"{SERVICE}.EnrollmentService.find_existing", new_callable=AsyncMock) as mock_existing, \
            patch(f"{SERVICE}.EligibilityService.get_rule_data", new_callable=AsyncMock) as mock_rule, \
            patch(f"{SERVICE}.EnrollmentService.next_enrollment_number", new_callable=AsyncMock) as mock_number, \
            patch(f"{SERVICE}.EnrollmentService.require_enrollment", new_callable=AsyncMock) as mock_reload:
        mock_count.return_value = 0
        mock_existing.return_value = None
        mock_rule.return_value = None
        mock_number.side_effect = ["ENR-2025-00007", "ENR-2025-00008"]
        mock_reload.return_value = "reloaded"

        result = await EnrollmentService.create_enrollment(db, data, uuid4(), EnrollmentWorkflow())

    assert result == "reloaded"
    assert [e.enrollment_number for e in _added(db, Enrollment)] == ["ENR-2025-00007", "ENR-2025-00008"]
    assert db.commit.called
    assert not db.rollback.called


@pytest.mark.asyncio
async def test_create_enrollment_gives_up_after_repeated_number_clashes():
    db = AsyncMock(spec=AsyncSession)
    program = _program()
    db.execute.return_value = _result(program)
    db.flush.side_effect = IntegrityError("INSERT INTO enrollments", {}, Exception("duplicate key"))
    data = EnrollmentCreate(program_id=program.id, student_id=uuid4())

    with patch(f"{SERVICE}.EnrollmentService.count_seats_taken", new_callable=AsyncMock) as mock_count, \
            patch(f"{SERVICE}.EnrollmentService.find_existing", new_callable=AsyncMock) as mock_existing, \
            patch(f"{SERVICE}.EligibilityService.get_rule_data", new_callable=AsyncMock) as mock_rule, \
            patch(f"{SERVICE}.EnrollmentService.next_enrollment_number", new_callable=AsyncMock) as mock_number:
        mock_count.return_value = 0
        mock_existing.return_value = None
        mock_rule.return_value = None
        mock_number.return_value = "ENR-2025-00007"

        with pytest.raises(ConcurrentModification):
            await EnrollmentService.create_enrollment(db, data, uuid4(), EnrollmentWorkflow())

    assert db.rollback.called
    assert not db.commit.called
