"""
Authentication endpoints.

POST /api/v1/auth/register - Email/password registration
POST /api/v1/auth/login    - Issue a JWT session (bearer token + cookies)
POST /api/v1/auth/logout   - Revoke the current session
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    authorization_header,
    decode_jwt,
    extract_token,
    generate_csrf_token,
    revoke_jwt,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.services import users as user_service
from hearth_shared.schemas.users import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserResponse,
)

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

COOKIE_KWARGS = {
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=settings.session_cookie_name, value=token, httponly=True, **COOKIE_KWARGS)
    # JS must read this one
    response.set_cookie(key=settings.csrf_cookie_name, value=csrf, httponly=False, **COOKIE_KWARGS)


@router.post("/register", response_model=UserResponse, status_code=201, tags=["Authentication"])
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.register_user(body, session)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResponse, tags=["Authentication"])
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password. The token is returned and also set as a cookie."""
    user, token, expires_at = await user_service.login(body, session)
    _set_session_cookies(response, token, generate_csrf_token())
    return LoginResponse(
        user=UserResponse.model_validate(user),
        access_token=token,
        expires_at=expires_at,
    )


@router.post("/logout", tags=["Authentication"])
async def logout(
    request: Request,
    response: Response,
    authorization: Optional[str] = Depends(authorization_header),
):
    """Invalidate the current session. Always succeeds."""
    token = extract_token(request, authorization)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = {}  # already invalid, just clear cookies
        jti = payload.get("jti")
        if jti:
            remaining = int(payload.get("exp", 0) - datetime.now(timezone.utc).timestamp())
            await revoke_jwt(jti, ttl_seconds=max(remaining, 1))
            log.info("auth.logout", user_id=payload.get("sub"))

    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.csrf_cookie_name, path="/")
    return {"message": "Logged out"}
