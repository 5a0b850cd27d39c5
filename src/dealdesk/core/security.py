"""JWT verification and the authenticated Actor.

Tokens are issued by the firm's identity provider; this service only
verifies them and turns their claims into an Actor that is stamped on
audit entries and checked by the deal permission rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from jose import JWTError, jwt

from src.dealdesk.config import get_settings

SYSTEM_ACTOR_NAME = "System"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation."""

    user_id: str | None = None
    name: str = SYSTEM_ACTOR_NAME
    email: str | None = None
    access_level: str = "standard"

    @property
    def is_admin(self) -> bool:
        return self.access_level == "admin"

    @property
    def display_name(self) -> str:
        return self.name.strip() if self.name and self.name.strip() else SYSTEM_ACTOR_NAME


SYSTEM_ACTOR = Actor(access_level="admin")


# ── JWT Token Creation ────────────────────────────────────────────────────────


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token.

    Used by scripts and tests; production tokens come from the identity provider.
    The data dict should contain at minimum:
    - sub: user_id (str)
    - name: display name (str)
    """
    settings = get_settings()
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access",
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# ── JWT Token Verification ────────────────────────────────────────────────────


def verify_token(token: str, token_type: str = "access") -> dict:
    """Decode and validate a JWT token.

    Raises:
        HTTPException(401): If the token is invalid, expired, or wrong type.
    """
    settings = get_settings()
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise credentials_exception
    if payload.get("type") != token_type:
        raise credentials_exception
    if not payload.get("sub"):
        raise credentials_exception
    return payload


def actor_from_claims(payload: dict) -> Actor:
    """Build an Actor from verified token claims."""
    return Actor(
        user_id=str(payload["sub"]),
        name=payload.get("name") or SYSTEM_ACTOR_NAME,
        email=payload.get("email"),
        access_level=payload.get("access_level", "standard"),
    )
