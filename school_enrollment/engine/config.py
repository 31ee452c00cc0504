"""Policy knobs for the enrollment engine"""

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from school_enrollment.config import settings
from school_enrollment.models.enums import RemainderPolicy


class EngineConfig(BaseModel):
    """
    Institution-specific business constants.

    Defaults reproduce the school's current rules: three installments with
    the first ones absorbing any remainder, a three-day auto-approval grace
    period and a first payment of at least one ninth of the tuition.
    """
    auto_approve_grace: timedelta = timedelta(hours=72)
    minimum_payment_divisor: int = Field(9, ge=1)
    remainder_policy: RemainderPolicy = RemainderPolicy.FIRST
    default_installment_count: int = Field(3, ge=1)
    min_comment_length: int = Field(1, ge=1)
    draft_expiry: timedelta = timedelta(days=10)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_settings(cls) -> "EngineConfig":
        return cls(
            auto_approve_grace=timedelta(hours=settings.AUTO_APPROVE_GRACE_HOURS),
            minimum_payment_divisor=settings.MINIMUM_PAYMENT_DIVISOR,
            remainder_policy=RemainderPolicy(settings.INSTALLMENT_REMAINDER_POLICY),
            default_installment_count=settings.DEFAULT_INSTALLMENT_COUNT,
            min_comment_length=settings.MIN_COMMENT_LENGTH,
            draft_expiry=timedelta(days=settings.DRAFT_EXPIRY_DAYS),
        )
