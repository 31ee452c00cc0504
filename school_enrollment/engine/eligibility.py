"""Grade eligibility for programs"""

from typing import Optional
from uuid import UUID

from school_enrollment.models.enums import RuleType
from school_enrollment.schemas.eligibility import EligibilityRuleData


def is_eligible(rule: Optional[EligibilityRuleData], grade_id: UUID) -> bool:
    """
    Decide whether a student in ``grade_id`` may join a program.

    A missing rule allows every grade, and so does a restrictive rule saved
    with no grades (the admin API refuses to store one, but older rows may
    exist).
    """
    if rule is None or rule.rule_type == RuleType.ALL_GRADES:
        return True
    if not rule.grade_ids:
        return True
    if rule.rule_type == RuleType.INCLUDE_ONLY:
        return grade_id in rule.grade_ids
    if rule.rule_type == RuleType.EXCLUDE_ONLY:
        return grade_id not in rule.grade_ids
    raise ValueError(f"Unknown eligibility rule type: {rule.rule_type!r}")
