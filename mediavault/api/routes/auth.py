"""
Authentication endpoints: registration, login, email verification and
password reset.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Query, Request, status
from pydantic import BaseModel, EmailStr, Field

from mediavault.api.deps import SESSION_USER_KEY, ContextDep, EmailServiceDep, SessionDep
from mediavault.core.auth import create_access_token
from mediavault.models.schemas import SuccessResponse
from mediavault.services.auth_service import AuthService
from mediavault.services.token_service import TokenPurpose, TokenService

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_REQUESTED_MESSAGE = (
    "If an account exists with that email, you will receive a password reset link shortly."
)
RESEND_REQUESTED_MESSAGE = (
    "If an unverified account exists with that email, a new verification link has been sent."
)


# Request/Response Models
class RegisterRequest(BaseModel):
    """Registration request."""

    email: EmailStr
    username: str = Field(
        ...,
        pattern=r"^[a-zA-Z0-9_]{3,50}$",
        description="3-50 letters, digits or underscores",
    )
    password: str = Field(..., description="Minimum 8 characters")


class LoginRequest(BaseModel):
    """Login request."""

    emailOrUsername: str = Field(..., min_length=1)
    password: str


class EmailRequest(BaseModel):
    """Request carrying only an email address."""

    email: EmailStr


class PasswordResetConfirmRequest(BaseModel):
    """New password submission for a reset token."""

    token: str
    newPassword: str


class UserResponse(BaseModel):
    """User information response."""

    id: str
    email: str
    username: str
    emailVerified: bool
    roles: list[str] = []


class RegisterResponse(BaseModel):
    user: UserResponse
    message: str


class LoginResponse(BaseModel):
    """Login result. The session cookie is set as well."""

    user: UserResponse
    emailVerified: bool
    accessToken: str
    tokenType: str = "bearer"
    warning: str | None = None


class TokenValidationResponse(BaseModel):
    valid: bool = True


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    session: SessionDep,
    background_tasks: BackgroundTasks,
    email_service: EmailServiceDep,
):
    """
    Register a new account.

    The account starts unverified; a verification link is emailed.
    """
    auth = AuthService(session)
    user, token = await auth.register(
        email=request.email,
        username=request.username,
        password=request.password,
    )
    background_tasks.add_task(
        email_service.send_verification_email, user.email, user.username, token
    )
    return RegisterResponse(
        user=UserResponse(
            id=user.id,
            email=user.email,
            username=user.username,
            emailVerified=user.email_verified,
        ),
        message="Registration successful. Please check your email to verify your account.",
    )


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, http_request: Request, session: SessionDep):
    """
    Login with email or username and password.

    Starts a cookie session and also returns a bearer access token for API
    clients. Unverified accounts may log in but receive a warning.
    """
    auth = AuthService(session)
    result = await auth.login(request.emailOrUsername, request.password)
    user = result.user

    http_request.session.clear()
    http_request.session.update(
        {
            SESSION_USER_KEY: user.id,
            "username": user.username,
            "email": user.email,
            "email_verified": user.email_verified,
        }
    )

    return LoginResponse(
        user=UserResponse(
            id=user.id,
            email=user.email,
            username=user.username,
            emailVerified=user.email_verified,
            roles=await auth.get_user_roles(user.id),
        ),
        emailVerified=result.email_verified,
        accessToken=create_access_token(user.id, user.email),
        warning=None if result.email_verified else "Please verify your email address.",
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout(http_request: Request):
    """End the cookie session."""
    http_request.session.clear()
    return SuccessResponse(message="Logged out.")


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(context: ContextDep):
    """Get the authenticated user's profile and roles."""
    return UserResponse(
        id=context.user_id,
        email=context.email,
        username=context.username,
        emailVerified=context.email_verified,
        roles=context.roles,
    )


@router.get("/verify-email", response_model=SuccessResponse)
async def verify_email(
    http_request: Request,
    session: SessionDep,
    token: str = Query(..., min_length=1),
):
    """
    Verify an email address from the emailed link.

    An expired link fails with error code ``token_expired`` so clients can
    offer to resend it.
    """
    auth = AuthService(session)
    user = await auth.verify_email(token)

    if http_request.session.get(SESSION_USER_KEY) == user.id:
        http_request.session["email_verified"] = True

    return SuccessResponse(message="Email verified successfully. You can now log in.")


@router.post("/resend-verification", response_model=SuccessResponse)
async def resend_verification(
    request: EmailRequest,
    session: SessionDep,
    background_tasks: BackgroundTasks,
    email_service: EmailServiceDep,
):
    """Send a fresh verification link, invalidating earlier ones."""
    auth = AuthService(session)
    issued = await auth.resend_verification(request.email)
    if issued is not None:
        user, token = issued
        background_tasks.add_task(
            email_service.send_verification_email, user.email, user.username, token
        )
    return SuccessResponse(message=RESEND_REQUESTED_MESSAGE)


@router.post("/password-reset/request", response_model=SuccessResponse)
async def request_password_reset(
    request: EmailRequest,
    session: SessionDep,
    background_tasks: BackgroundTasks,
    email_service: EmailServiceDep,
):
    """
    Request a password reset link.

    The response is identical whether or not the account exists.
    """
    auth = AuthService(session)
    issued = await auth.request_password_reset(request.email)
    if issued is not None:
        user, token = issued
        background_tasks.add_task(
            email_service.send_password_reset_email, user.email, user.username, token
        )
    return SuccessResponse(message=RESET_REQUESTED_MESSAGE)


@router.get("/password-reset/validate", response_model=TokenValidationResponse)
async def validate_password_reset_token(
    session: SessionDep,
    token: str = Query(..., min_length=1),
):
    """Check a reset link before showing the new-password form."""
    await TokenService(session).validate(token, TokenPurpose.PASSWORD_RESET)
    return TokenValidationResponse()


@router.post("/password-reset/confirm", response_model=SuccessResponse)
async def confirm_password_reset(
    request: PasswordResetConfirmRequest,
    http_request: Request,
    session: SessionDep,
):
    """Set a new password using a reset token."""
    auth = AuthService(session)
    await auth.reset_password(request.token, request.newPassword)
    http_request.session.clear()
    return SuccessResponse(message="Your password has been reset. You can now log in.")
