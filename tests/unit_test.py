"""Unit tests that do not require a running API or external services."""
from school_enrollment.config import settings
from school_enrollment.engine.config import EngineConfig
from school_enrollment.models.enums import RemainderPolicy


def test_settings_load():
    """Settings load from environment (e.g. CI env vars)."""
    assert settings.API_V1_PREFIX == "/api/v1"
    assert settings.APP_NAME == "School Enrollment Backend"


def test_environment_flag():
    """Environment flags reflect ENVIRONMENT value."""
    assert settings.ENVIRONMENT.lower() in ("development", "test", "production")
    assert settings.is_development == (settings.ENVIRONMENT.lower() == "development")
    assert settings.is_production == (settings.ENVIRONMENT.lower() == "production")


def test_approver_roles_parsed_to_list():
    assert isinstance(settings.APPROVER_ROLES, list)
    assert all(role == role.strip() and role for role in settings.APPROVER_ROLES)


def test_engine_config_from_settings():
    config = EngineConfig.from_settings()
    assert config.auto_approve_grace.total_seconds() == settings.AUTO_APPROVE_GRACE_HOURS * 3600
    assert config.minimum_payment_divisor == settings.MINIMUM_PAYMENT_DIVISOR
    assert config.remainder_policy == RemainderPolicy(settings.INSTALLMENT_REMAINDER_POLICY)
    assert config.draft_expiry.days == settings.DRAFT_EXPIRY_DAYS
