"""
Caller identity resolution and ownership guard

Tokens are issued by the user service; this service only checks the
signature and expiry and reads the ``sub``, ``email`` and ``name`` claims.
The resolved identity is handed to service calls as an explicit argument.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
import structlog

from campaign_hub.core.config import get_settings
from campaign_hub.core.errors import ForbiddenError, UnauthenticatedError
from campaign_hub.database.database import get_db
from campaign_hub.services.users import UserDirectory

logger = structlog.get_logger(__name__)
settings = get_settings()
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerIdentity:
    id: str
    email: str
    name: str


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(seconds=settings.jwt_expiration)

    to_encode.update({"exp": expire, "iat": now})

    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict:
    """Decode and validate JWT token; expiry is enforced by jose"""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("JWT decode error", error=str(e))
        raise UnauthenticatedError("Invalid or expired token")


def identity_from_token(token: str) -> CallerIdentity:
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthenticatedError("Token has no subject")
    return CallerIdentity(
        id=str(user_id),
        email=payload.get("email", ""),
        name=payload.get("name") or payload.get("email") or "Unknown User",
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db),
) -> CallerIdentity:
    """Resolve the caller (required) and record them in the local user directory"""
    if not credentials:
        raise UnauthenticatedError("Authentication required")

    identity = identity_from_token(credentials.credentials)
    await UserDirectory.remember(db, identity)
    return identity


def ensure_owner(campaign, caller_id: str) -> None:
    """Owner-only guard; callers run it after the existence check"""
    if campaign.user_id != caller_id:
        logger.warning(
            "Ownership check failed",
            campaign_id=campaign.id,
            owner_id=campaign.user_id,
            caller_id=caller_id
        )
        raise ForbiddenError("You can only modify your own campaigns")
