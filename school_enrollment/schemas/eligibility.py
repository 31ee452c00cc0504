from typing import FrozenSet, List
from uuid import UUID
from pydantic import BaseModel, ConfigDict, model_validator

from school_enrollment.models.enums import RuleType


class EligibilityRuleData(BaseModel):
    """
    Grade restriction as the evaluator sees it.
    Builds straight from an ``EligibilityRule`` row via ``model_validate``.
    """
    rule_type: RuleType = RuleType.ALL_GRADES
    grade_ids: FrozenSet[UUID] = frozenset()

    model_config = ConfigDict(from_attributes=True, frozen=True)


class EligibilityRuleUpdate(BaseModel):
    rule_type: RuleType
    grade_ids: List[UUID] = []

    @model_validator(mode="after")
    def check_grades(self) -> "EligibilityRuleUpdate":
        if self.rule_type == RuleType.ALL_GRADES:
            # All grades needs no list; anything sent is dropped
            self.grade_ids = []
        elif not self.grade_ids:
            raise ValueError(
                "At least one grade must be selected for include_only or exclude_only rules"
            )
        else:
            self.grade_ids = list(dict.fromkeys(self.grade_ids))
        return self


class EligibilityRuleResponse(BaseModel):
    program_id: UUID
    rule_type: RuleType
    grade_ids: List[UUID] = []


class EligibilityCheckResponse(BaseModel):
    program_id: UUID
    grade_id: UUID
    eligible: bool
