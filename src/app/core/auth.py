"""
Authentication and Authorization Module

FastAPI dependencies for the admission office endpoints.
Validates JWT bearer tokens with the utilities in security.py and enforces
the admissions_staff role.

SECURITY NOTE:
- Development mode test tokens are ONLY accepted when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production to disable them
"""

import logging
import os
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.security import decode_token

logger = logging.getLogger(__name__)

STAFF_ROLE = "admissions_staff"

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for admission office staff",
)


@dataclass
class StaffUser:
    """
    An authenticated admission office staff member, populated from JWT claims.

    Attributes:
        id: Staff member's unique identifier (UUID)
        email: Staff member's email address
        role: Role claim (must be 'admissions_staff')
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: str
    name: str | None = None

    def __str__(self) -> str:
        return f"StaffUser(id={self.id}, email={self.email}, role={self.role})"


def _is_dev_mode_safe() -> bool:
    """True only if settings and the raw environment both say development."""
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var not in ("production", "staging")
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()

_DEV_STAFF = StaffUser(
    id=UUID("00000000-0000-0000-0000-000000000001"),
    email="registrar@ptc.dev",
    role=STAFF_ROLE,
    name="Development Registrar",
)


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _validate_jwt_token(token: str) -> StaffUser:
    """
    Validate a JWT and extract the staff claims.

    Raises:
        HTTPException 401: If token is invalid, expired or not an access token
    """
    if _DEVELOPMENT_MODE and token == "dev-token":
        logger.debug("Development mode: Using test token")
        return _DEV_STAFF

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    token_type = payload.get("type", "access")
    if token_type != "access":
        logger.warning(f"Invalid token type: {token_type}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        return StaffUser(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            name=payload.get("name"),
        )

    except (ValueError, KeyError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_staff_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> StaffUser:
    """
    FastAPI dependency returning the authenticated staff member.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
        HTTPException 403: If the user is not admissions staff
    """
    user = await _validate_jwt_token(credentials.credentials)

    if user.role != STAFF_ROLE:
        logger.warning(
            f"Access denied: User {user.id} ({user.email}) has role '{user.role}', "
            f"but '{STAFF_ROLE}' is required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "STAFF_ACCESS_REQUIRED",
                "message": "Admission office access is required for this endpoint.",
            },
        )

    logger.debug(f"Authenticated staff: {user.id} ({user.email})")
    return user


__all__ = [
    "STAFF_ROLE",
    "StaffUser",
    "get_current_staff_user",
]
