# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication API routes: sign-up, sign-in, sign-out, session, email verification."""

import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from outlinehub_server.api.schemas import (
    SessionResponse,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    SignUpResponse,
    SuccessResponse,
    UserResponse,
    VerifyEmailResponse,
)
from outlinehub_server.auth import (
    clear_session_cookie,
    create_access_token,
    get_optional_user,
    hash_password,
    set_session_cookie,
    verify_password,
)
from outlinehub_server.config import settings
from outlinehub_server.database import get_db
from outlinehub_server.models import User, VerificationToken
from outlinehub_server.models.timestamp import as_utc, utcnow
from outlinehub_server.rate_limit import rate_limit_auth_dep
from outlinehub_server.services import email as email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def _get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


@router.post("/sign-up", response_model=SignUpResponse, dependencies=[Depends(rate_limit_auth_dep)])
async def sign_up(
    data: SignUpRequest,
    db: AsyncSession = Depends(get_db),
) -> SignUpResponse:
    """Create an account. When verification is required, a link is emailed and sign-in waits for it."""
    email = data.email.strip().lower()
    if await _get_user_by_email(db, email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )
    name = (data.name or "").strip() or email.split("@")[0]
    requires_verification = settings.require_email_verification
    user = User(
        email=email,
        name=name,
        password_hash=hash_password(data.password),
        email_verified=not requires_verification,
    )
    db.add(user)
    token: str | None = None
    if requires_verification:
        token = secrets.token_urlsafe(32)
        db.add(
            VerificationToken(
                identifier=email,
                value=token,
                expires_at=utcnow() + timedelta(hours=settings.verification_expire_hours),
            )
        )
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent sign-up for the same address won the unique index
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )
    await db.refresh(user)
    logger.info("User %s signed up", user.id)

    if token:
        try:
            await email_service.send_verification_email(email, token, name)
        except Exception:
            logger.exception("Failed to send verification email to %s", email)
        message = "Account created successfully. Please check your email to verify your account."
    else:
        message = "Account created successfully."
    return SignUpResponse(
        message=message,
        user=UserResponse.model_validate(user),
        requires_verification=requires_verification,
    )


@router.post("/sign-in", response_model=SignInResponse, dependencies=[Depends(rate_limit_auth_dep)])
async def sign_in(
    data: SignInRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> SignInResponse:
    """Authenticate, return a JWT and set the session cookie."""
    user = await _get_user_by_email(db, data.email.strip().lower())
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if settings.require_email_verification and not user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email address before signing in",
        )
    token = create_access_token({"sub": str(user.id)})
    set_session_cookie(response, token)
    return SignInResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/sign-out", response_model=SuccessResponse)
async def sign_out(response: Response) -> SuccessResponse:
    """Clear the session cookie. Bearer tokens simply expire."""
    clear_session_cookie(response)
    return SuccessResponse()


@router.get("/session", response_model=SessionResponse)
async def get_session(
    user: User | None = Depends(get_optional_user),
) -> SessionResponse:
    """Current session user, or null when signed out."""
    if user is None:
        return SessionResponse(user=None)
    return SessionResponse(user=UserResponse.model_validate(user))


@router.get("/verify-email", response_model=VerifyEmailResponse, dependencies=[Depends(rate_limit_auth_dep)])
async def verify_email(
    token: str | None = Query(None, description="Verification token from email link"),
    db: AsyncSession = Depends(get_db),
) -> VerifyEmailResponse:
    """Consume a verification token. The token is deleted whatever the outcome."""
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Verification token is required")
    result = await db.execute(select(VerificationToken).where(VerificationToken.value == token))
    vt = result.scalar_one_or_none()
    if not vt:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification token")

    if as_utc(vt.expires_at) < utcnow():
        await db.delete(vt)
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Verification token has expired. Please request a new one.",
        )

    result = await db.execute(select(User).where(User.email == vt.identifier))
    user = result.scalar_one_or_none()
    if not user:
        await db.delete(vt)
        await db.commit()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    await db.delete(vt)
    if user.email_verified:
        await db.commit()
        return VerifyEmailResponse(message="Email is already verified", already_verified=True)
    user.email_verified = True
    await db.commit()
    logger.info("User %s verified their email", user.id)
    return VerifyEmailResponse(message="Email verified successfully. You can now sign in.")
