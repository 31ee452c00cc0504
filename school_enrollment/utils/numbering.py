"""Human-readable document numbers for enrollments and receipts"""

from typing import Optional

from school_enrollment.models.enums import PaymentMethod

# Tries at a fresh number when a concurrent insert took the one we read
NUMBER_ATTEMPTS = 5

RECEIPT_PREFIXES = {
    PaymentMethod.CASH: "CASH",
    PaymentMethod.ORANGE_MONEY: "OM",
    PaymentMethod.BANK_TRANSFER: "BANK",
}


def format_enrollment_number(year: int, sequence: int) -> str:
    """ENR-2025-00001"""
    return f"ENR-{year}-{sequence:05d}"


def enrollment_number_prefix(year: int) -> str:
    return f"ENR-{year}-"


def format_receipt_number(method: PaymentMethod, year: int, sequence: int) -> str:
    """CASH-2025-00001 / OM-2025-00001"""
    return f"{RECEIPT_PREFIXES[method]}-{year}-{sequence:05d}"


def receipt_number_prefix(method: PaymentMethod, year: int) -> str:
    return f"{RECEIPT_PREFIXES[method]}-{year}-"


def next_sequence(last_number: Optional[str], prefix: str) -> int:
    """
    Sequence that follows ``last_number`` under ``prefix``.

    Numbers issued under another prefix (another year or method), or that
    do not end in digits, restart the sequence at 1.
    """
    if not last_number or not last_number.startswith(prefix):
        return 1
    tail = last_number[len(prefix):]
    if not tail.isdigit():
        return 1
    return int(tail) + 1
