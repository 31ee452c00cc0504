"""Payment waterfall allocation.

Paid money is one pool poured over the schedule in order: each line is
filled before the next one receives anything. Nothing here is stored; the
allocation is recomputed from the schedule and the payment list whenever it
is needed, so receipts and review screens always agree.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from school_enrollment.models.enums import PaymentStatus
from school_enrollment.schemas.payment import (
    AllocationSummary,
    LineAllocation,
    LineCoverage,
    MonthlyPeriod,
    PaymentPreview,
    PaymentRecord,
    ScheduleLine,
)


def _round_percent(part: int, whole: int) -> int:
    """round(100 * part / whole) with halves rounded up, in integer arithmetic"""
    return (200 * part + whole) // (2 * whole)


def _counts_toward_balance(payment: PaymentRecord, as_of: Optional[datetime]) -> bool:
    if as_of is None:
        return payment.status == PaymentStatus.CONFIRMED

    confirmed_by_then = payment.confirmed_at is None or payment.confirmed_at <= as_of
    if payment.status == PaymentStatus.CONFIRMED:
        return confirmed_by_then
    if payment.status == PaymentStatus.REVERSED:
        # A reversed payment counted until the moment it was reversed
        return (
            confirmed_by_then
            and payment.reversed_at is not None
            and as_of < payment.reversed_at
        )
    return False


def total_confirmed_paid(payments: Iterable[PaymentRecord], as_of: Optional[datetime] = None) -> int:
    """
    Sum of the payments that count toward the balance.

    Only confirmed payments count. With ``as_of`` the total is the one that
    held at that instant, so a payment reversed later still counts before
    its reversal.
    """
    return sum(p.amount for p in payments if _counts_toward_balance(p, as_of))


def allocate(schedule: Sequence[ScheduleLine], total_paid: int) -> List[LineAllocation]:
    """
    Pour ``total_paid`` over the schedule in sequence order.

    Each line receives ``min(pool, line.amount)``; lines after the pool runs
    dry receive 0. Ties on sequence keep input order.
    """
    pool = max(total_paid, 0)
    allocations = []
    for line in sorted(schedule, key=lambda l: l.sequence):
        allocated = min(pool, line.amount)
        pool -= allocated
        allocations.append(
            LineAllocation(
                line_id=line.id,
                sequence=line.sequence,
                amount=line.amount,
                allocated=allocated,
                fully_paid=allocated == line.amount,
            )
        )
    return allocations


def settling_payments(allocations: Sequence[LineAllocation], payments: Iterable[PaymentRecord]) -> Dict[UUID, UUID]:
    """
    For each fully paid line, the counting payment whose running total
    (in confirmation order) first covers it.
    """
    counting = sorted(
        (p for p in payments if p.id is not None and _counts_toward_balance(p, None)),
        key=lambda p: p.confirmed_at or datetime.max,
    )
    remaining = iter(counting)
    settled = {}
    current = None
    due = paid = 0
    for line in allocations:
        if not line.fully_paid:
            break
        due += line.amount
        while paid < due:
            current = next(remaining, None)
            if current is None:
                return settled
            paid += current.amount
        if current is not None and line.line_id is not None:
            settled[line.line_id] = current.id
    return settled


def monthly_lines(periods: Iterable[MonthlyPeriod]) -> List[ScheduleLine]:
    """Order club months chronologically and number them as schedule lines."""
    ordered = sorted(periods, key=lambda p: (p.year, p.month))
    return [
        ScheduleLine(id=p.id, sequence=i, amount=p.amount)
        for i, p in enumerate(ordered, start=1)
    ]


def remaining_balance(fee: int, total_paid: int) -> int:
    """Signed balance; negative means the student overpaid."""
    return fee - total_paid


def payment_percentage(fee: int, total_paid: int) -> int:
    """Share of the fee paid, as a whole percent. A zero fee counts as fully paid."""
    if fee <= 0:
        return 100
    return _round_percent(total_paid, fee)


def summarize(
    fee: int,
    schedule: Sequence[ScheduleLine],
    payments: Iterable[PaymentRecord],
    as_of: Optional[datetime] = None,
) -> AllocationSummary:
    total_paid = total_confirmed_paid(payments, as_of=as_of)
    balance = remaining_balance(fee, total_paid)
    return AllocationSummary(
        fee=fee,
        total_due=sum(line.amount for line in schedule),
        total_paid=total_paid,
        remaining_balance=balance,
        display_balance=max(balance, 0),
        overpayment=max(-balance, 0),
        payment_percentage=payment_percentage(fee, total_paid),
        is_fully_paid=balance <= 0,
        lines=allocate(schedule, total_paid),
    )


def preview_payment(
    schedule: Sequence[ScheduleLine],
    already_paid: int,
    amount: int,
) -> PaymentPreview:
    """
    Which lines a prospective payment of ``amount`` would settle.

    Only lines the new money touches are listed. ``percent_covered`` is the
    line's total coverage after the payment; money beyond the schedule is
    reported as ``excess``.
    """
    before = allocate(schedule, already_paid)
    after = allocate(schedule, already_paid + amount)

    lines = []
    for old, new in zip(before, after):
        applied = new.allocated - old.allocated
        if applied <= 0:
            continue
        lines.append(
            LineCoverage(
                line_id=new.line_id,
                sequence=new.sequence,
                applied=applied,
                percent_covered=_round_percent(new.allocated, new.amount) if new.amount else 100,
                fully_paid=new.fully_paid,
            )
        )

    covered = sum(line.applied for line in lines)
    return PaymentPreview(amount=amount, covered=covered, excess=amount - covered, lines=lines)
