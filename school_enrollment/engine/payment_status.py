"""Payment status moves.

Pending payments are settled one way or the other; a confirmed payment can
only be reversed. Rejected, failed and reversed payments are final.
"""

from typing import FrozenSet, Tuple

from school_enrollment.core.exceptions import InvalidPaymentTransition
from school_enrollment.models.enums import PaymentStatus

P = PaymentStatus

PAYMENT_TRANSITIONS: FrozenSet[Tuple[PaymentStatus, PaymentStatus]] = frozenset({
    (P.PENDING, P.CONFIRMED),
    (P.PENDING, P.REJECTED),
    (P.PENDING, P.FAILED),
    (P.CONFIRMED, P.REVERSED),
})


def check_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if (current, target) not in PAYMENT_TRANSITIONS:
        raise InvalidPaymentTransition(current, target)
