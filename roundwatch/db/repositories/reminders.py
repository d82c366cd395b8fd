"""
Reminder repository — the exact lookups the round/reminder subsystem needs.

Each method opens its own short-lived session, so per-team reads inside a
sweep are independent and no transaction spans the whole pass.
"""

import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roundwatch.db.models import (
    Hackathon,
    HackathonRole,
    Message,
    Organization,
    Round,
    Submission,
    Team,
    User,
    hackathon_rounds,
)
from roundwatch.reminders.schemas import Sender, UserSender


class ReminderRepository:
    """Round, team, submission and message access for reminders."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Rounds & hackathons ────────────────────────────────────────────

    async def round_by_id(self, round_id: uuid.UUID) -> Optional[Round]:
        async with self._session_factory() as session:
            return await session.get(Round, round_id)

    async def hackathon_containing_round(self, round_id: uuid.UUID) -> Optional[Hackathon]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Hackathon)
                .join(hackathon_rounds, hackathon_rounds.c.hackathon_id == Hackathon.id)
                .where(hackathon_rounds.c.round_id == round_id)
            )
            return result.scalars().first()

    async def rounds_with_dates(self) -> Sequence[Round]:
        """Every round with a start date or an end date."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Round)
                .where(or_(Round.start_date.is_not(None), Round.end_date.is_not(None)))
                .order_by(Round.created_at, Round.id)
            )
            return result.scalars().all()

    async def active_rounds_with_deadline(self) -> Sequence[Round]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Round)
                .where(Round.is_active.is_(True), Round.end_date.is_not(None))
                .order_by(Round.end_date, Round.id)
            )
            return result.scalars().all()

    async def set_round_active(self, round_id: uuid.UUID, is_active: bool) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Round)
                .where(Round.id == round_id)
                .values(is_active=is_active, updated_at=datetime.utcnow())
            )
            await session.commit()

    # ── Teams ──────────────────────────────────────────────────────────

    async def teams_for_hackathon(self, hackathon_id: uuid.UUID) -> Sequence[Team]:
        """Teams in enumeration order (creation time, then id)."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Team)
                .where(Team.hackathon_id == hackathon_id)
                .order_by(Team.created_at, Team.id)
            )
            return result.scalars().all()

    async def team_by_id(self, team_id: uuid.UUID) -> Optional[Team]:
        async with self._session_factory() as session:
            result = await session.execute(select(Team).where(Team.id == team_id))
            return result.scalar_one_or_none()

    async def hackathon_by_id(self, hackathon_id: uuid.UUID) -> Optional[Hackathon]:
        async with self._session_factory() as session:
            return await session.get(Hackathon, hackathon_id)

    async def organization_by_id(self, organization_id: uuid.UUID) -> Optional[Organization]:
        async with self._session_factory() as session:
            return await session.get(Organization, organization_id)

    async def user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def is_hackathon_organizer(self, user_id: uuid.UUID, hackathon_id: uuid.UUID) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(HackathonRole)
                .where(
                    HackathonRole.user_id == user_id,
                    HackathonRole.hackathon_id == hackathon_id,
                    HackathonRole.role == "organizer",
                )
            )
            return result.scalar_one() > 0

    # ── Submissions & activity ─────────────────────────────────────────

    async def submission_for(self, team_id: uuid.UUID, round_id: uuid.UUID) -> Optional[Submission]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Submission).where(
                    Submission.team_id == team_id,
                    Submission.round_id == round_id,
                )
            )
            return result.scalar_one_or_none()

    async def submissions_for_team(
        self, team_id: uuid.UUID
    ) -> list[tuple[Submission, Optional[datetime]]]:
        """Every submission of a team, paired with its round's end date."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Submission, Round.end_date)
                .outerjoin(Round, Round.id == Submission.round_id)
                .where(Submission.team_id == team_id)
                .order_by(Submission.created_at)
            )
            return [(row[0], row[1]) for row in result.all()]

    async def count_recent_messages(self, team_id: uuid.UUID, since: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(Message)
                .where(Message.team_id == team_id, Message.created_at >= since)
            )
            return result.scalar_one()

    # ── Messages ───────────────────────────────────────────────────────

    async def create_message(
        self,
        team_id: uuid.UUID,
        organization_id: uuid.UUID,
        content: str,
        sender: Sender,
        created_at: Optional[datetime] = None,
    ) -> Message:
        """Persist a chat message and commit before returning it."""
        message = Message(
            team_id=team_id,
            organization_id=organization_id,
            content=content,
            sender_id=sender.user_id if isinstance(sender, UserSender) else None,
            is_ai=not isinstance(sender, UserSender),
            created_at=created_at or datetime.utcnow(),
        )
        async with self._session_factory() as session:
            session.add(message)
            await session.commit()
            await session.refresh(message)
        return message
