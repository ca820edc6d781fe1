from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from reportmaker.billing.plans import Entitlements, effective_plan_key, resolve_entitlements
from reportmaker.core.clock import utcnow
from reportmaker.core.config import settings
from reportmaker.core.database import get_session
from reportmaker.models.profile import Profile

logger = logging.getLogger(__name__)

# Tokens are minted by the hosted auth provider; we only verify them.
bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify the provider-issued JWT and return its claims.

    Raises JWTError on a bad signature, expiry or audience mismatch.
    """
    kwargs: dict[str, Any] = {"algorithms": [settings.AUTH_JWT_ALGORITHM]}
    if settings.AUTH_JWT_AUDIENCE:
        kwargs["audience"] = settings.AUTH_JWT_AUDIENCE
    else:
        kwargs["options"] = {"verify_aud": False}
    return jwt.decode(token, settings.AUTH_JWT_SECRET, **kwargs)


def get_or_create_profile(session: Session, user_id: str, email: Optional[str] = None) -> Profile:
    """Return the profile row for ``user_id``, creating it on first sign-in."""
    profile = session.get(Profile, user_id)
    if profile is not None:
        return profile

    profile = Profile(id=user_id, email=email)
    session.add(profile)
    try:
        session.commit()
    except IntegrityError:
        # Another request created it first
        session.rollback()
        existing = session.get(Profile, user_id)
        if existing is None:
            raise
        return existing
    logger.info("event=profile.created user_id=%s", user_id)
    session.refresh(profile)
    return profile


async def get_current_user(
    session: Session = Depends(get_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Profile:
    """Decode the bearer JWT and return the caller's profile or raise 401."""
    if credentials is None or not credentials.credentials:
        raise _credentials_exception()
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as exc:
        logger.info("event=auth.rejected reason=%s", type(exc).__name__)
        raise _credentials_exception()

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise _credentials_exception()

    email = payload.get("email") if isinstance(payload.get("email"), str) else None
    profile = get_or_create_profile(session, user_id, email)
    if email and profile.email != email:
        profile.email = email
        profile.updated_at = utcnow()
        session.add(profile)
        session.commit()
    return profile


def get_entitlements(current_user: Profile = Depends(get_current_user)) -> Entitlements:
    """Entitlements for this request, derived from the stored plan only."""
    plan_key = effective_plan_key(
        current_user.plan,
        override=settings.PLAN_OVERRIDE,
        production=settings.is_production,
    )
    return resolve_entitlements(plan_key)


__all__ = [
    "bearer_scheme",
    "decode_access_token",
    "get_or_create_profile",
    "get_current_user",
    "get_entitlements",
]
