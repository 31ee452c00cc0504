"""API Dependencies"""

from typing import List, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from school_enrollment.config import settings
from school_enrollment.core.security import decode_token
from school_enrollment.database import get_db  # noqa: F401  re-exported for endpoints
from school_enrollment.engine.config import EngineConfig
from school_enrollment.engine.workflow import EnrollmentWorkflow

# Security scheme for bearer token
security = HTTPBearer()


class Actor(BaseModel):
    """Who is acting, as asserted by the identity provider's token"""
    id: UUID
    roles: List[str] = []

    def has_any_role(self, roles: List[str]) -> bool:
        return any(role in self.roles for role in roles)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """
    Get the acting user from the JWT token.

    The actor id is also stored on ``request.state`` so the timing
    middleware can log it.

    Raises:
        HTTPException: If the token is invalid
    """
    payload = decode_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Could not validate credentials")

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    actor_id_str: Optional[str] = payload.get("sub")
    if not actor_id_str:
        raise _unauthorized("Could not validate credentials")

    try:
        actor_id = UUID(actor_id_str)
    except ValueError:
        raise _unauthorized("Invalid user ID")

    roles = payload.get("roles") or []
    actor = Actor(id=actor_id, roles=[str(r) for r in roles])
    request.state.actor_id = str(actor.id)
    return actor


async def require_approver(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Require a role allowed to approve or reject enrollments.

    Raises:
        HTTPException: If the actor holds none of the approver roles
    """
    if not actor.has_any_role(settings.APPROVER_ROLES):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )
    return actor


def get_workflow() -> EnrollmentWorkflow:
    return EnrollmentWorkflow(EngineConfig.from_settings())
