from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.api.auth_utils import client_ip, constant_time_verify, enforce_login_limits, record_login_attempt
from loanportal.core.limiter import limiter
from loanportal.core.security import create_access_token, get_password_hash, password_problems
from loanportal.core.settings import settings
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
    UserOut,
)
from loanportal.schemas.common import MessageResponse
from loanportal.services import users as user_service
from loanportal.services.audit import record_audit_log

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    user = await user_service.register_user(db, payload)
    message = (
        user_service.DSA_PENDING_MESSAGE
        if user.role == "dsa"
        else user_service.USER_REGISTERED_MESSAGE
    )
    return RegisterResponse(message=message, user=UserOut.model_validate(user))


async def _login(db: AsyncSession, request: Request, email: str, password: str) -> TokenResponse:
    email = email.lower().strip()
    await enforce_login_limits(client_ip(request), email)

    user = await user_service.get_user_by_email(db, email)
    if not user or not constant_time_verify(user.hashed_password if user else None, password):
        await record_login_attempt(email, success=False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

    await record_login_attempt(email, success=True)
    user = await user_service.record_login(db, user)
    token = create_access_token(str(user.id), role=user.role)
    return TokenResponse(
        access_token=token,
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserOut.model_validate(user),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    return await _login(db, request, credentials.email, credentials.password)


@router.post("/login/form", response_model=TokenResponse, include_in_schema=False)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def login_form(
    request: Request,
    form: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """OAuth2 password flow for the interactive docs."""
    return await _login(db, request, form.username, form.password)


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user: User = Depends(deps.get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    if not constant_time_verify(current_user.hashed_password, payload.current_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="New password must differ from current password")
    problems = password_problems(payload.new_password)
    if problems:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="; ".join(problems))

    current_user.hashed_password = get_password_hash(payload.new_password)
    db.add(current_user)
    record_audit_log(
        db,
        actor_id=current_user.id,
        action="user.password_changed",
        resource_type="user",
        resource_id=str(current_user.id),
    )
    await db.commit()
    return MessageResponse(message="Password updated")


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
@limiter.limit("5/minute")
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ForgotPasswordResponse:
    """Same answer whether or not the email is registered."""
    token = await user_service.request_password_reset(db, payload.email)
    return ForgotPasswordResponse(
        message=user_service.PASSWORD_RESET_REQUESTED_MESSAGE,
        reset_token=token if settings.expose_reset_token else None,
    )


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("5/minute")
async def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await user_service.reset_password(db, payload.token, payload.password)
    return MessageResponse(message="Password reset successful. You can now login with your new password.")
