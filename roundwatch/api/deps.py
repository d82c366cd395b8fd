"""
FastAPI dependencies for API routes.

Re-exports auth dependencies for convenience.
"""

from roundwatch.auth.dependencies import (
    get_channel_registry,
    get_identity,
    get_reminder_service,
)

__all__ = ["get_channel_registry", "get_identity", "get_reminder_service"]
