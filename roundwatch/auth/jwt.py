"""
JWT Token Management.

HS256 access tokens carrying user_id, organization_id and role. The
role in the token is informational; identity checks re-read the user.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from jose import JWTError, jwt

from roundwatch.config import settings


class TokenError(Exception):
    """Raised when token creation or validation fails."""

    pass


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    organization_id: str
    role: str


def create_access_token(
    user_id: str,
    organization_id: str,
    role: str = "participant",
    expires_delta: timedelta | None = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    issued = datetime.utcnow()
    claims = {
        "user_id": str(user_id),
        "organization_id": str(organization_id),
        "role": role,
        "iat": issued,
        "exp": issued + expires_delta,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenClaims:
    """
    Verify signature and expiry, then read the claims.

    Raises TokenError when the token is malformed, expired, signed with
    another key, or its user_id is not a UUID.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise TokenError(f"Invalid token: {e}") from e

    try:
        user_id = uuid.UUID(str(payload["user_id"]))
    except (KeyError, ValueError) as e:
        raise TokenError("Token missing a valid user_id claim") from e

    return TokenClaims(
        user_id=user_id,
        organization_id=str(payload.get("organization_id", "")),
        role=str(payload.get("role", "participant")),
    )
