"""
Authentication dependencies for FastAPI endpoints.

Bearer tokens are Supabase access tokens, verified with auth.get_user().
Admin routes additionally require account_type == admin on the caller's
profile.
"""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from jobradar.dependencies import get_profile_repository
from jobradar.models.profile import AccountType

logger = structlog.get_logger(__name__)

# auto_error=False so a missing header answers 401 rather than FastAPI's 403.
_bearer_scheme = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """Represents a verified authenticated user."""

    id: str
    email: str | None = None


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """
    FastAPI dependency that verifies a JWT Bearer token via Supabase.

    Raises:
        HTTPException 401: Header missing, token invalid or expired, or user not found.
        HTTPException 503: Supabase client not configured.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")

    supabase = getattr(request.app.state, "supabase", None)
    if supabase is None:
        raise HTTPException(status_code=503, detail="Authentication service unavailable")

    token = credentials.credentials
    try:
        response = await supabase.auth.get_user(token)
        user = response.user if response else None
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid authentication token")
        return AuthenticatedUser(id=str(user.id), email=user.email)
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("auth_token_verification_failed", error=str(e))
        raise HTTPException(status_code=401, detail="Invalid authentication token")


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


async def require_admin(request: Request, user: CurrentUser) -> AuthenticatedUser:
    """
    FastAPI dependency that admits only admin accounts.

    Raises:
        HTTPException 403: Caller has no profile or is not an admin.
    """
    repository = get_profile_repository(request)
    profile = await repository.get_profile(user.id)
    if profile is None or profile.account_type != AccountType.ADMIN:
        logger.warning("admin_access_denied", user_id=user.id)
        raise HTTPException(status_code=403, detail="Unauthorized: Admin access required")
    return user


AdminUser = Annotated[AuthenticatedUser, Depends(require_admin)]
