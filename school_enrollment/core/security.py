"""Token handling for the identity provider.

Tokens are minted upstream; this service only decodes them to learn who is
acting and which roles they hold. ``create_access_token`` exists for scripts
and tests that need to impersonate an operator.
"""

from datetime import timedelta
from typing import Optional, Sequence

from jose import JWTError, jwt

from school_enrollment.config import settings
from school_enrollment.utils.time import get_utc_now

DEFAULT_TOKEN_LIFETIME = timedelta(minutes=15)


def create_access_token(
    subject: str,
    roles: Sequence[str] = (),
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token for an actor.

    Args:
        subject: Actor ID (stored in ``sub``)
        roles: Role names granted to the actor
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    expire = get_utc_now() + (expires_delta or DEFAULT_TOKEN_LIFETIME)
    to_encode = {
        "sub": subject,
        "roles": list(roles),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        return None
