"""Eligibility Service - grade restrictions on programs"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_enrollment.core.exceptions import NotFound
from school_enrollment.engine.eligibility import is_eligible
from school_enrollment.models.academic import EligibilityRule, Grade, Program
from school_enrollment.models.enums import RuleType
from school_enrollment.schemas.eligibility import (
    EligibilityRuleData,
    EligibilityRuleResponse,
    EligibilityRuleUpdate,
)

logger = logging.getLogger(__name__)


class EligibilityService:
    @staticmethod
    async def get_rule(db: AsyncSession, program_id: UUID) -> Optional[EligibilityRule]:
        result = await db.execute(
            select(EligibilityRule)
            .options(selectinload(EligibilityRule.grades))
            .where(EligibilityRule.program_id == program_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_rule_data(db: AsyncSession, program_id: UUID) -> Optional[EligibilityRuleData]:
        rule = await EligibilityService.get_rule(db, program_id)
        if rule is None:
            return None
        return EligibilityRuleData.model_validate(rule)

    @staticmethod
    def to_response(program_id: UUID, rule: Optional[EligibilityRule]) -> EligibilityRuleResponse:
        if rule is None:
            return EligibilityRuleResponse(program_id=program_id, rule_type=RuleType.ALL_GRADES)
        return EligibilityRuleResponse(
            program_id=program_id,
            rule_type=rule.rule_type,
            grade_ids=sorted(rule.grade_ids, key=str),
        )

    @staticmethod
    async def set_rule(
        db: AsyncSession,
        program_id: UUID,
        data: EligibilityRuleUpdate,
    ) -> EligibilityRuleResponse:
        """
        Create, replace or remove a program's rule.
        ALL_GRADES is stored as the absence of a rule.
        """
        program = await db.get(Program, program_id)
        if program is None:
            raise NotFound("Program not found", program_id=str(program_id))

        if data.rule_type == RuleType.ALL_GRADES:
            await db.execute(delete(EligibilityRule).where(EligibilityRule.program_id == program_id))
            await db.commit()
            logger.info("Eligibility rule removed", extra={"program_id": program_id})
            return EligibilityService.to_response(program_id, None)

        result = await db.execute(select(Grade).where(Grade.id.in_(data.grade_ids)))
        grades = list(result.scalars().all())
        if len(grades) != len(data.grade_ids):
            found = {g.id for g in grades}
            raise NotFound(
                "Some grades not found",
                grade_ids=[str(g) for g in data.grade_ids if g not in found],
            )

        rule = await EligibilityService.get_rule(db, program_id)
        if rule is None:
            rule = EligibilityRule(program_id=program_id, rule_type=data.rule_type, grades=grades)
            db.add(rule)
        else:
            rule.rule_type = data.rule_type
            rule.grades = grades

        await db.commit()
        logger.info(
            "Eligibility rule saved",
            extra={"program_id": program_id, "rule_type": data.rule_type.value, "grade_count": len(grades)},
        )
        return EligibilityService.to_response(program_id, rule)

    @staticmethod
    async def check(db: AsyncSession, program_id: UUID, grade_id: UUID) -> bool:
        rule = await EligibilityService.get_rule_data(db, program_id)
        return is_eligible(rule, grade_id)
