"""JWT authentication and role checks for FastAPI.

Validates Bearer tokens from the Authorization header and turns the claims
into an ``AuthenticatedUser``. Role gates for RFQ management and BOM editing
are configured in settings.
"""

import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from partsource.config import settings
from partsource.exceptions import ForbiddenException, UnauthorizedException

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    id: uuid.UUID
    email: str
    role: str
    full_name: str | None = None

    @property
    def can_manage_rfqs(self) -> bool:
        return self.role.upper() in settings.rfq_manager_roles_set

    @property
    def can_edit_bom(self) -> bool:
        return self.role.upper() in settings.bom_editor_roles_set


def _decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises UnauthorizedException on failure."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    if credentials is None:
        raise UnauthorizedException("Authentication required")

    payload = _decode_token(credentials.credentials)

    try:
        user = AuthenticatedUser(
            id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            role=payload.get("role", "MEMBER"),
            full_name=payload.get("name"),
        )
    except (KeyError, ValueError) as exc:
        raise UnauthorizedException("Token is missing required claims") from exc

    request.state.user = user
    return user


async def require_rfq_manager(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    """Dependency for endpoints that create, restructure or send RFQs."""
    if not user.can_manage_rfqs:
        raise ForbiddenException("This action requires an RFQ manager role")
    return user


async def require_bom_editor(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.can_edit_bom:
        raise ForbiddenException("Editing bills of materials is not allowed for this role")
    return user
