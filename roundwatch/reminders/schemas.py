"""
Reminder domain schemas.

RiskAssessment is ephemeral: produced on every evaluation, never stored.
ReminderMessage mirrors the persisted chat message with a typed sender.
"""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


# ── Enums ──────────────────────────────────────────────────────────────


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


class AssessmentSource(StrEnum):
    HEURISTIC = "heuristic"
    ORACLE = "oracle"
    DEFAULT = "default"             # Insufficient data (no deadline, no team)


# ── Risk assessment ────────────────────────────────────────────────────


class RiskAssessment(BaseModel):
    """Likelihood that a team misses a round deadline."""
    risk_score: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    reasons: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    predicted_probability: float = Field(ge=0, le=100)
    source: AssessmentSource = AssessmentSource.HEURISTIC

    @property
    def is_elevated(self) -> bool:
        return self.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)


class TeamSummary(BaseModel):
    id: uuid.UUID
    name: str
    member_ids: list[uuid.UUID] = Field(default_factory=list)


class AtRiskTeam(BaseModel):
    team: TeamSummary
    assessment: RiskAssessment


class RoundSummary(BaseModel):
    id: uuid.UUID
    name: str
    end_date: Optional[datetime] = None


class AtRiskReport(BaseModel):
    round: RoundSummary
    threshold: float
    at_risk_teams: list[AtRiskTeam]


# ── Messages ───────────────────────────────────────────────────────────


class UserSender(BaseModel):
    kind: Literal["user"] = "user"
    user_id: uuid.UUID


class SystemSender(BaseModel):
    kind: Literal["system"] = "system"


Sender = Annotated[Union[UserSender, SystemSender], Field(discriminator="kind")]


class ReminderMessage(BaseModel):
    """A persisted team chat message created by a reminder."""
    id: uuid.UUID
    team_id: uuid.UUID
    organization_id: uuid.UUID
    sender: Sender
    content: str
    created_at: datetime


# ── Sweep ──────────────────────────────────────────────────────────────


class LifecycleSummary(BaseModel):
    examined: int = 0
    activated: int = 0
    deactivated: int = 0
    failed: int = 0


class SweepReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    lifecycle: LifecycleSummary = Field(default_factory=LifecycleSummary)
    reminders_enabled: bool = True
    rounds_processed: int = 0
    rounds_skipped: int = 0
    reminders_sent: int = 0
    reminders_failed: int = 0
