"""
Test fixtures for roundwatch tests.

Provides:
- Async in-memory SQLite engine per test (tables from ORM metadata)
- Session factory + reminder repository bound to it
- A FixedClock pinned to a known instant
- A Factory for organizations, users, hackathons, rounds, teams,
  submissions and messages
- Fake oracles for the scoring engine and the composer
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from roundwatch.auth.jwt import create_access_token
from roundwatch.db.engine import create_tables
from roundwatch.db.models import (  # noqa: F401 (registers all models)
    Hackathon,
    HackathonRole,
    Message,
    Organization,
    Round,
    Submission,
    Team,
    User,
    hackathon_rounds,
    team_members,
)
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.errors import OracleError
from roundwatch.services.clock import FixedClock

# In-memory SQLite; StaticPool keeps every session on the one connection
TEST_DB_URL = "sqlite+aiosqlite://"

NOW = datetime(2025, 3, 10, 12, 0, 0)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def repository(session_factory) -> ReminderRepository:
    return ReminderRepository(session_factory)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# ── Factories ──────────────────────────────────────────────────────────


class Factory:
    """Creates committed rows. created_at values increase per call."""

    def __init__(self, session_factory, clock: FixedClock):
        self.session_factory = session_factory
        self.clock = clock
        self._tick = 0

    def _next_created_at(self) -> datetime:
        self._tick += 1
        return self.clock.now() - timedelta(days=30) + timedelta(seconds=self._tick)

    async def _save(self, obj):
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            return obj

    async def organization(self, name: str = "Acme Events") -> Organization:
        return await self._save(Organization(name=name))

    async def user(self, organization: Organization, role: str = "participant",
                   name: Optional[str] = None) -> User:
        suffix = uuid.uuid4().hex[:8]
        return await self._save(User(
            organization_id=organization.id,
            email=f"{role}-{suffix}@test.com",
            name=name or f"Test {role.capitalize()}",
            role=role,
        ))

    async def hackathon(self, organization: Organization, title: str = "Spring Hack") -> Hackathon:
        return await self._save(Hackathon(organization_id=organization.id, title=title))

    async def organizer(self, hackathon: Hackathon, user: User) -> HackathonRole:
        return await self._save(HackathonRole(user_id=user.id, hackathon_id=hackathon.id, role="organizer"))

    async def round(
        self,
        hackathon: Optional[Hackathon],
        name: str = "Round 1",
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        is_active: bool = True,
        manually_deactivated: bool = False,
    ) -> Round:
        round_ = await self._save(Round(
            name=name,
            description="Build something",
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
            manually_deactivated=manually_deactivated,
            created_at=self._next_created_at(),
        ))
        if hackathon is not None:
            async with self.session_factory() as session:
                await session.execute(
                    hackathon_rounds.insert().values(hackathon_id=hackathon.id, round_id=round_.id)
                )
                await session.commit()
        return round_

    async def team(
        self,
        hackathon: Hackathon,
        name: str = "Team",
        organization: Optional[Organization] = None,
        members: tuple[User, ...] = (),
        mentor: Optional[User] = None,
    ) -> Team:
        team = await self._save(Team(
            name=name,
            hackathon_id=hackathon.id,
            organization_id=organization.id if organization else None,
            mentor_id=mentor.id if mentor else None,
            created_at=self._next_created_at(),
        ))
        if members:
            async with self.session_factory() as session:
                await session.execute(
                    team_members.insert(),
                    [{"team_id": team.id, "user_id": m.id} for m in members],
                )
                await session.commit()
        return team

    async def submission(self, team: Team, round_: Round, created_at: Optional[datetime] = None,
                         link: Optional[str] = "https://example.com/demo") -> Submission:
        return await self._save(Submission(
            team_id=team.id,
            round_id=round_.id,
            link=link,
            created_at=created_at or self.clock.now(),
        ))

    async def messages(self, team: Team, count: int, created_at: Optional[datetime] = None) -> None:
        async with self.session_factory() as session:
            for _ in range(count):
                session.add(Message(
                    team_id=team.id,
                    organization_id=team.organization_id,
                    content="working on it",
                    created_at=created_at or self.clock.now() - timedelta(hours=1),
                ))
            await session.commit()


@pytest.fixture
def factory(session_factory, clock) -> Factory:
    return Factory(session_factory, clock)


def token_for(user: User) -> str:
    return create_access_token(
        user_id=str(user.id),
        organization_id=str(user.organization_id),
        role=user.role,
    )


# ── Fake oracles ───────────────────────────────────────────────────────


class FakeOracle:
    """Stands in for LLMGateway. Records every call."""

    def __init__(self, json_result=None, text: str = "", available: bool = True, error: Exception = None):
        self.json_result = json_result
        self.text = text
        self.available = available
        self.error = error
        self.json_calls = 0
        self.text_calls = 0

    async def generate_json(self, system: str, user_message: str, **kwargs) -> dict:
        self.json_calls += 1
        if self.error is not None:
            raise self.error
        if self.json_result is None:
            raise OracleError("Oracle returned no content")
        return self.json_result

    async def generate(self, system: str, user_message: str, **kwargs) -> str:
        self.text_calls += 1
        if self.error is not None:
            raise self.error
        return self.text
