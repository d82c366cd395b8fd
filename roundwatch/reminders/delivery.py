"""
Reminder delivery — persist first, then publish best-effort.

The message row is the durable artifact. The live event is a notification
of its creation; publish failures are logged and never reach the caller.
"""

from typing import Optional

import structlog

from roundwatch.db.models import Message, Team
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.errors import ResolutionError
from roundwatch.reminders.composer import REMINDER_PREFIX
from roundwatch.reminders.schemas import ReminderMessage, SystemSender, UserSender
from roundwatch.services.channels import ChannelRegistry
from roundwatch.services.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)


def to_reminder_message(message: Message) -> ReminderMessage:
    sender = (
        UserSender(user_id=message.sender_id)
        if message.sender_id is not None
        else SystemSender()
    )
    return ReminderMessage(
        id=message.id,
        team_id=message.team_id,
        organization_id=message.organization_id,
        sender=sender,
        content=message.content,
        created_at=message.created_at,
    )


class ReminderDelivery:
    def __init__(
        self,
        repository: ReminderRepository,
        registry: Optional[ChannelRegistry] = None,
        clock: Optional[Clock] = None,
    ):
        self.repository = repository
        self.registry = registry
        self.clock = clock or SystemClock()

    async def resolve_organization(self, team: Team):
        if team.organization_id is None:
            raise ResolutionError("organization", f"team {team.id}")
        organization = await self.repository.organization_by_id(team.organization_id)
        if organization is None:
            raise ResolutionError("organization", team.organization_id)
        return organization

    async def deliver(self, team: Team, organization_id, text: str) -> ReminderMessage:
        """Persist a system reminder for the team, then publish it."""
        message = await self.repository.create_message(
            team_id=team.id,
            organization_id=organization_id,
            content=f"{REMINDER_PREFIX}{text}",
            sender=SystemSender(),
            created_at=self.clock.now(),
        )
        reminder = to_reminder_message(message)
        self.publish(reminder)
        return reminder

    def publish(self, reminder: ReminderMessage) -> None:
        if self.registry is None:
            return
        try:
            self.registry.emit_message(
                reminder.organization_id,
                reminder.team_id,
                {"eventType": "new_message", "message": reminder.model_dump(mode="json")},
            )
        except Exception as e:
            logger.warning("reminder_publish_failed", team_id=str(reminder.team_id), error=str(e))
