"""
API route dependencies.
"""

from typing import Annotated, Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.core.auth import decode_token, is_token_expired
from mediavault.db.database import get_db_session
from mediavault.services.auth_service import AuthService
from mediavault.services.email_service import EmailService, get_email_service


# Bearer tokens are optional: browser clients authenticate with the session cookie
optional_security = HTTPBearer(auto_error=False)

SESSION_USER_KEY = "user_id"


class RequestContext(BaseModel):
    """Identity and roles of the caller, resolved once per request."""

    user_id: str
    username: str
    email: str
    email_verified: bool
    roles: list[str] = []

    def has_role(self, role: str) -> bool:
        return role in self.roles


def _bearer_user_id(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if not credentials:
        return None
    token_data = decode_token(credentials.credentials)
    if not token_data or is_token_expired(token_data) or token_data.token_type != "access":
        return None
    return token_data.user_id


async def get_request_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    session: AsyncSession = Depends(get_db_session),
) -> RequestContext:
    """
    Dependency resolving the authenticated caller.

    A valid bearer access token wins; otherwise the signed session cookie
    is used.
    """
    user_id = _bearer_user_id(credentials) or request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    auth_service = AuthService(session)
    user = await auth_service.get_user_by_id(user_id)

    if not user or not user.is_active:
        request.session.clear()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or deactivated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return RequestContext(
        user_id=user.id,
        username=user.username,
        email=user.email,
        email_verified=user.email_verified,
        roles=await auth_service.get_user_roles(user.id),
    )


def require_role(role: str) -> Callable:
    """Build a dependency that admits only callers holding ``role``."""

    async def check_role(context: RequestContext = Depends(get_request_context)) -> RequestContext:
        if not context.has_role(role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"The '{role}' role is required",
            )
        return context

    return check_role


# Dependency annotations
SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
ContextDep = Annotated[RequestContext, Depends(get_request_context)]
AdminDep = Annotated[RequestContext, Depends(require_role("admin"))]
MedicalDep = Annotated[RequestContext, Depends(require_role("medical"))]
EmailServiceDep = Annotated[EmailService, Depends(get_email_service)]
