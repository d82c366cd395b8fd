"""
Roundwatch SQLAlchemy Models.

Only the records the round/reminder subsystem reads or writes. Timestamps
are naive UTC. Uses compatibility types for SQLite (dev) + PostgreSQL (prod).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roundwatch.db.compat import GUID
from roundwatch.db.engine import Base


def _genuuid():
    return uuid.uuid4()


# ──────────────────────────────────────────────────────────────────────────────
# Association tables
# ──────────────────────────────────────────────────────────────────────────────

# A round belongs to exactly one hackathon, hence the unique round_id.
hackathon_rounds = Table(
    "hackathon_rounds",
    Base.metadata,
    Column("hackathon_id", GUID(), ForeignKey("hackathons.id", ondelete="CASCADE"), primary_key=True),
    Column("round_id", GUID(), ForeignKey("rounds.id", ondelete="CASCADE"), primary_key=True, unique=True),
)

team_members = Table(
    "team_members",
    Base.metadata,
    Column("team_id", GUID(), ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", GUID(), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


# ──────────────────────────────────────────────────────────────────────────────
# Tenant & identity
# ──────────────────────────────────────────────────────────────────────────────


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    organization_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("organizations.id"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default="participant")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# ──────────────────────────────────────────────────────────────────────────────
# Hackathons & rounds
# ──────────────────────────────────────────────────────────────────────────────


class Hackathon(Base):
    __tablename__ = "hackathons"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    organization_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("organizations.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    rounds: Mapped[list["Round"]] = relationship(secondary=hackathon_rounds, back_populates="hackathon_list")


class HackathonRole(Base):
    """Per-hackathon role assignment (organizer, judge, mentor)."""

    __tablename__ = "hackathon_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "hackathon_id", "role", name="uq_hackathon_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("hackathons.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)


class Round(Base):
    """
    A time-boxed phase of a hackathon.

    is_active is derived from the dates by the lifecycle evaluator, but an
    organizer may also flip it directly. manually_deactivated records the
    latter so the evaluator can optionally leave such rounds alone.
    """

    __tablename__ = "rounds"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hide_scores: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manually_deactivated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    hackathon_list: Mapped[list[Hackathon]] = relationship(secondary=hackathon_rounds, back_populates="rounds")


# ──────────────────────────────────────────────────────────────────────────────
# Teams, submissions, chat
# ──────────────────────────────────────────────────────────────────────────────


class Team(Base):
    __tablename__ = "teams"
    __table_args__ = (
        Index("ix_teams_hackathon_id", "hackathon_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hackathon_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("hackathons.id"), nullable=False)
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID(), ForeignKey("organizations.id"))
    leader_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID(), ForeignKey("users.id"))
    mentor_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID(), ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    members: Mapped[list[User]] = relationship(secondary=team_members, lazy="selectin")


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("team_id", "round_id", name="uq_submission_team_round"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    team_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("teams.id"), nullable=False)
    round_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("rounds.id"), nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(2048))
    file: Mapped[Optional[str]] = mapped_column(String(2048))
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    feedback: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Message(Base):
    """Team chat message. sender_id is NULL for system (AI) messages."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_team_created", "team_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    team_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("teams.id"), nullable=False)
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID(), ForeignKey("users.id"))
    is_ai: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    organization_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("organizations.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
