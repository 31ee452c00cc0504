"""Turning fees into payment schedules.

Two shapes exist: tuition split into a fixed number of installments, and
club fees billed month by month over a contiguous run of periods.
"""

from typing import List, Optional

from school_enrollment.core.exceptions import InvalidScheduleParameters, ScheduleAlreadyExists
from school_enrollment.models.enums import RemainderPolicy
from school_enrollment.schemas.payment import MonthlyPeriod, ScheduleLine
from school_enrollment.utils.time import next_period


def split_installments(
    total_fee: int,
    installment_count: Optional[int],
    policy: RemainderPolicy = RemainderPolicy.FIRST,
    existing_line_count: int = 0,
) -> List[ScheduleLine]:
    """
    Split ``total_fee`` into ordered installments that sum to it exactly.

    With ``RemainderPolicy.FIRST`` the leading installments take one extra
    unit each until the remainder is used up (100 over 3 -> 34, 33, 33);
    with ``RemainderPolicy.LAST`` the final installment takes all of it
    (100 over 3 -> 33, 33, 34). A ``None`` count is the continuous tuition
    model: one line for the whole fee.

    Raises:
        ScheduleAlreadyExists: the enrollment already has lines
        InvalidScheduleParameters: negative fee or non-positive count
    """
    if existing_line_count > 0:
        raise ScheduleAlreadyExists(
            "Enrollment already has a payment schedule; clear it before regenerating",
            existing_lines=existing_line_count,
        )
    if total_fee < 0:
        raise InvalidScheduleParameters("Fee cannot be negative", total_fee=total_fee)
    if installment_count is None:
        return [ScheduleLine(sequence=1, amount=total_fee)]
    if installment_count <= 0:
        raise InvalidScheduleParameters(
            "Installment count must be at least 1",
            installment_count=installment_count,
        )

    base, remainder = divmod(total_fee, installment_count)
    amounts = [base] * installment_count
    if policy == RemainderPolicy.FIRST:
        for i in range(remainder):
            amounts[i] += 1
    else:
        amounts[-1] += remainder

    return [
        ScheduleLine(sequence=i, amount=amount)
        for i, amount in enumerate(amounts, start=1)
    ]


def monthly_periods(
    monthly_fee: Optional[int],
    start_month: Optional[int],
    start_year: Optional[int],
    period_count: Optional[int],
    existing_record_count: int = 0,
) -> List[MonthlyPeriod]:
    """
    Club billing months starting at (``start_month``, ``start_year``).

    Returns an empty list when the club has no monthly fee or the
    enrollment has no billing period: nothing is tracked month by month.

    Raises:
        ScheduleAlreadyExists: the enrollment already has monthly records
        InvalidScheduleParameters: negative fee, bad month or non-positive count
    """
    if monthly_fee is None or start_month is None or start_year is None or period_count is None:
        return []
    if existing_record_count > 0:
        raise ScheduleAlreadyExists(
            "Enrollment already has monthly payment records; clear them before regenerating",
            existing_records=existing_record_count,
        )
    if monthly_fee < 0:
        raise InvalidScheduleParameters("Monthly fee cannot be negative", monthly_fee=monthly_fee)
    if period_count <= 0:
        raise InvalidScheduleParameters("Period count must be at least 1", period_count=period_count)
    if not 1 <= start_month <= 12:
        raise InvalidScheduleParameters("Start month must be between 1 and 12", start_month=start_month)

    periods = []
    month, year = start_month, start_year
    for _ in range(period_count):
        periods.append(MonthlyPeriod(month=month, year=year, amount=monthly_fee))
        month, year = next_period(month, year)
    return periods


def spread_over_periods(
    periods: List[MonthlyPeriod],
    total_fee: int,
    policy: RemainderPolicy = RemainderPolicy.FIRST,
) -> List[MonthlyPeriod]:
    """
    Re-price ``periods`` so they sum to ``total_fee``, splitting it the same
    way tuition installments are split. Used when a club fee was adjusted
    away from monthly fee x months.
    """
    if not periods or sum(p.amount for p in periods) == total_fee:
        return periods
    lines = split_installments(total_fee, len(periods), policy)
    return [
        MonthlyPeriod(month=period.month, year=period.year, amount=line.amount)
        for period, line in zip(periods, lines)
    ]
