"""
FastAPI dependencies for authentication and shared components.

The channel registry and reminder service live on app.state; they are
built once in the application lifespan.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from roundwatch.auth.identity import Identity
from roundwatch.errors import ConnectionRejected
from roundwatch.reminders.service import ReminderService
from roundwatch.services.channels import ChannelRegistry

_bearer = HTTPBearer(auto_error=False)


def get_reminder_service(request: Request) -> ReminderService:
    return request.app.state.reminder_service


def get_channel_registry(request: Request) -> ChannelRegistry:
    return request.app.state.channel_registry


async def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Identity:
    """Verify the Bearer token and return the caller's identity."""
    registry = get_channel_registry(request)
    token = credentials.credentials if credentials else None
    try:
        return await registry.verifier.verify(token)
    except ConnectionRejected as e:
        raise HTTPException(status_code=401, detail=e.reason) from e
