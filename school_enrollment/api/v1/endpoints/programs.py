"""Program endpoints - eligibility rules"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_enrollment.api import deps
from school_enrollment.core.exceptions import NotFound
from school_enrollment.models.academic import Program
from school_enrollment.schemas.eligibility import EligibilityCheckResponse, EligibilityRuleUpdate
from school_enrollment.schemas.responses import SuccessResponse
from school_enrollment.services.eligibility_service import EligibilityService

router = APIRouter()


@router.get("/{program_id}/eligibility-rule", response_model=SuccessResponse)
async def get_eligibility_rule(
    program_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Get a program's grade restriction. No rule means all grades."""
    if await db.get(Program, program_id) is None:
        raise NotFound("Program not found", program_id=str(program_id))
    rule = await EligibilityService.get_rule(db, program_id)
    return SuccessResponse(data=EligibilityService.to_response(program_id, rule))


@router.put("/{program_id}/eligibility-rule", response_model=SuccessResponse)
async def set_eligibility_rule(
    program_id: UUID,
    rule_in: EligibilityRuleUpdate,
    actor: deps.Actor = Depends(deps.require_approver),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Replace a program's grade restriction. ALL_GRADES removes it."""
    rule = await EligibilityService.set_rule(db, program_id, rule_in)
    return SuccessResponse(data=rule, message="Eligibility rule saved")


@router.get("/{program_id}/eligibility", response_model=SuccessResponse)
async def check_eligibility(
    program_id: UUID,
    grade_id: UUID = Query(...),
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Whether students of a grade may enroll in the program."""
    eligible = await EligibilityService.check(db, program_id, grade_id)
    return SuccessResponse(
        data=EligibilityCheckResponse(program_id=program_id, grade_id=grade_id, eligible=eligible)
    )
