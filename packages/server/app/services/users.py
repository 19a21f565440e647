"""
User service: registration, password login sessions, payment history.
"""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import create_jwt, hash_password, verify_password
from app.models.payment import Payment
from app.models.user import User, UserSession
from hearth_shared.schemas.common import UserRole
from hearth_shared.schemas.users import LoginRequest, RegisterRequest

log = structlog.get_logger()


async def register_user(req: RegisterRequest, session: AsyncSession) -> User:
    """Create a member account. Emails are stored lower-cased."""
    email = req.email.lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    if req.username:
        result = await session.execute(select(User).where(User.username == req.username))
        if result.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="Username already taken")

    user = User(
        id=uuid.uuid4(),
        email=email,
        name=req.name,
        username=req.username,
        password_hash=hash_password(req.password),
        role=UserRole.MEMBER,
    )
    session.add(user)
    await session.flush()
    log.info("user.registered", user_id=str(user.id))
    return user


async def login(req: LoginRequest, session: AsyncSession) -> tuple[User, str, datetime]:
    """Check credentials, issue a JWT and record the login session."""
    result = await session.execute(select(User).where(User.email == req.email.lower()))
    user = result.scalar_one_or_none()
    if not user or not user.password_hash or not verify_password(req.password, user.password_hash):
        log.info("user.login_failed", email=req.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token, jti, expires_at = create_jwt(user.id, UserRole(user.role).value)
    session.add(UserSession(user_id=user.id, jti=jti, expires=expires_at))
    await session.flush()
    log.info("user.logged_in", user_id=str(user.id))
    return user, token, expires_at


async def list_payments(session: AsyncSession, user_id: uuid.UUID) -> list[Payment]:
    result = await session.execute(
        select(Payment)
        .where(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc())
    )
    return list(result.scalars().all())
