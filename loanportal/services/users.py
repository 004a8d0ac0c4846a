from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from loanportal.core.roles import Role
from loanportal.core.security import (
    PASSWORD_RESET_TOKEN_TYPE,
    create_password_reset_token,
    decode_token,
    get_password_hash,
    password_fingerprint,
    password_problems,
)
from loanportal.models.application_assignment import ApplicationAssignment
from loanportal.models.loan_application import LoanApplication
from loanportal.models.user import User
from loanportal.schemas.auth import RegisterRequest
from loanportal.schemas.users import ProfileUpdate, UserStatusFilter
from loanportal.services import activity, authz
from loanportal.services.audit import model_snapshot, record_audit_log
from loanportal.services.identifiers import generate_dsa_id

logger = logging.getLogger(__name__)

_SENSITIVE_FIELDS = {"hashed_password", "aadhar_number", "pan_number"}

DSA_PENDING_MESSAGE = "Registration successful. Your DSA account is pending admin verification."
USER_REGISTERED_MESSAGE = "Registration successful"
PASSWORD_RESET_REQUESTED_MESSAGE = "If an account with this email exists, you will receive a password reset link."
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token"


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower().strip()))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, payload: RegisterRequest) -> User:
    problems = password_problems(payload.password)
    if problems:
        raise BadRequestError("Password does not meet requirements", details={"password": problems})

    existing = (
        await db.execute(select(User).where(or_(User.email == payload.email, User.phone == payload.phone)))
    ).scalars().first()
    if existing is not None:
        field = "email" if existing.email == payload.email else "phone"
        raise ConflictError(f"A user with this {field} already exists", details={"field": field})

    is_dsa = payload.role == Role.DSA.value
    bank_name = payload.bank_name.value if is_dsa and payload.bank_name else None
    user = User(
        email=payload.email,
        phone=payload.phone,
        hashed_password=get_password_hash(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role=payload.role,
        bank_name=bank_name,
        dsa_id=generate_dsa_id(bank_name) if is_dsa else None,
        specialization=["education"] if is_dsa else [],
        is_active=True,
        is_verified=not is_dsa,
    )
    db.add(user)
    await db.flush()
    record_audit_log(
        db,
        actor_id=user.id,
        action="user.registered",
        resource_type="user",
        resource_id=str(user.id),
        new_value=model_snapshot(user, exclude=_SENSITIVE_FIELDS),
    )
    await db.commit()
    await db.refresh(user)
    logger.info("User registered", extra={"user_id": str(user.id), "role": user.role})
    return user


async def record_login(db: AsyncSession, user: User) -> User:
    user.last_login_at = datetime.now(timezone.utc)
    if user.role == Role.DSA.value:
        activity.record_dsa_activity(db, dsa_id=user.id, activity_type="login")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def request_password_reset(db: AsyncSession, email: str) -> str | None:
    """Issue a reset token for an active account; ``None`` when there is nothing to reset."""
    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or inactive account")
        return None
    logger.info("Password reset requested", extra={"user_id": str(user.id)})
    return create_password_reset_token(str(user.id), user.hashed_password)


async def reset_password(db: AsyncSession, token: str, new_password: str) -> User:
    try:
        claims = decode_token(token, expected_type=PASSWORD_RESET_TOKEN_TYPE)
    except ValueError as exc:
        raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE) from exc
    problems = password_problems(new_password)
    if problems:
        raise BadRequestError("Password does not meet requirements", details={"password": problems})

    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE) from exc
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    # a token stops working once the password it was issued against has changed
    if user is None or not user.is_active or claims.get("pwd") != password_fingerprint(user.hashed_password):
        raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

    user.hashed_password = get_password_hash(new_password)
    db.add(user)
    record_audit_log(
        db,
        actor_id=user.id,
        action="user.password_reset",
        resource_type="user",
        resource_id=str(user.id),
    )
    await db.commit()
    logger.info("Password reset completed", extra={"user_id": str(user.id)})
    return user


async def update_profile(db: AsyncSession, user: User, payload: ProfileUpdate) -> User:
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        return user
    if "phone" in updates and updates["phone"] != user.phone:
        clash = (
            await db.execute(select(User.id).where(User.phone == updates["phone"], User.id != user.id))
        ).scalar_one_or_none()
        if clash is not None:
            raise ConflictError("A user with this phone already exists", details={"field": "phone"})

    old_value = model_snapshot(user, exclude=_SENSITIVE_FIELDS)
    for field, value in updates.items():
        setattr(user, field, value)
    record_audit_log(
        db,
        actor_id=user.id,
        action="user.profile_updated",
        resource_type="user",
        resource_id=str(user.id),
        old_value=old_value,
        new_value=model_snapshot(user, exclude=_SENSITIVE_FIELDS),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_profile_for(db: AsyncSession, viewer: User, user_id: UUID) -> User:
    """Admins see everyone; DSAs see applicants of applications assigned to them."""
    if str(viewer.id) == str(user_id):
        return viewer
    role = authz.role_of(viewer)
    target = await get_user(db, user_id)
    if role is Role.ADMIN:
        return target
    if role is Role.DSA and target.role == Role.USER.value:
        stmt = (
            select(func.count())
            .select_from(LoanApplication)
            .join(ApplicationAssignment, ApplicationAssignment.loan_application_id == LoanApplication.id)
            .where(LoanApplication.user_id == target.id, ApplicationAssignment.dsa_id == viewer.id)
        )
        if int((await db.execute(stmt)).scalar_one() or 0) > 0:
            return target
    raise ForbiddenError("You do not have access to this profile")


_STATUS_CONDITIONS = {
    UserStatusFilter.ACTIVE: lambda: User.is_active.is_(True),
    UserStatusFilter.INACTIVE: lambda: User.is_active.is_(False),
    UserStatusFilter.VERIFIED: lambda: User.is_verified.is_(True),
    UserStatusFilter.UNVERIFIED: lambda: User.is_verified.is_(False),
}


async def list_users(
    db: AsyncSession,
    *,
    role: str | None = None,
    search: str | None = None,
    status: UserStatusFilter | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[User], int]:
    conditions = []
    if role:
        conditions.append(User.role == role)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
                User.dsa_id.ilike(pattern),
            )
        )
    if status is not None:
        conditions.append(_STATUS_CONDITIONS[status]())
    total = int((await db.execute(select(func.count()).select_from(User).where(*conditions))).scalar_one() or 0)
    stmt = (
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all()), total


async def set_verification(db: AsyncSession, user: User, is_verified: bool, *, actor: User) -> User:
    old_value = {"is_verified": user.is_verified}
    user.is_verified = is_verified
    if is_verified:
        user.verified_by = actor.id
        user.verified_at = datetime.now(timezone.utc)
    else:
        user.verified_by = None
        user.verified_at = None
    record_audit_log(
        db,
        actor_id=actor.id,
        action="user.verification_changed",
        resource_type="user",
        resource_id=str(user.id),
        old_value=old_value,
        new_value={"is_verified": is_verified},
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def set_active(db: AsyncSession, user: User, is_active: bool, *, actor: User) -> User:
    if str(user.id) == str(actor.id) and not is_active:
        raise BadRequestError("Admins cannot deactivate their own account")
    old_value = {"is_active": user.is_active}
    user.is_active = is_active
    record_audit_log(
        db,
        actor_id=actor.id,
        action="user.status_changed",
        resource_type="user",
        resource_id=str(user.id),
        old_value=old_value,
        new_value={"is_active": is_active},
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user
