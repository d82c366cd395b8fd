"""
Identity verification for live connections and HTTP requests.

Exchanges a bearer credential for a verified user and organization.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from roundwatch.auth.jwt import TokenError, decode_token
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.errors import ConnectionRejected

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: uuid.UUID
    organization_id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class IdentityVerifier:
    """Turns a bearer token into an Identity or a ConnectionRejected."""

    def __init__(self, repository: ReminderRepository):
        self.repository = repository

    async def verify(self, token: Optional[str]) -> Identity:
        if not token:
            raise ConnectionRejected(ConnectionRejected.NO_CREDENTIAL)

        try:
            claims = decode_token(token)
        except TokenError as e:
            logger.info("credential_rejected", error=str(e))
            raise ConnectionRejected(ConnectionRejected.INVALID_CREDENTIAL) from e

        user = await self.repository.user_by_id(claims.user_id)
        if user is None:
            raise ConnectionRejected(ConnectionRejected.IDENTITY_NOT_FOUND)

        return Identity(
            user_id=user.id,
            organization_id=user.organization_id,
            role=user.role or "participant",
        )
