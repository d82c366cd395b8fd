"""
Risk Scoring Engine — likelihood that a team misses a round deadline.

Two paths:
1. Heuristic (always computed): time + submission + activity + history points
2. Oracle (optional): structured LLM assessment seeded with the same
   signals, validated against the heuristic

Any oracle failure (unavailable, timeout, malformed JSON) falls back to the
heuristic. The engine is a pure query: it never writes.

Heuristic points:
    Time remaining   <0d: 40   <1d: 35   <2d: 25   <3d: 15   <7d: 10
    Submission       none: 30  present but <1d left: 10
    Chat activity    0 msgs/window: 20   1-2 msgs: 10
    On-time history  <50%: 10  <75%: 5
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog

from roundwatch.config import settings
from roundwatch.db.models import Hackathon, Round, Team
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.errors import OracleError
from roundwatch.reminders.schemas import AssessmentSource, RiskAssessment, RiskLevel
from roundwatch.services.clock import Clock, SystemClock
from roundwatch.services.llm_gateway import LLMGateway

logger = structlog.get_logger(__name__)

ORACLE_SYSTEM_PROMPT = (
    "You are an expert at analyzing project deadlines and team performance. "
    "Return only valid JSON with the specified structure."
)


@dataclass(frozen=True)
class SeverityBands:
    critical: float = 75.0
    high: float = 50.0
    medium: float = 25.0

    @classmethod
    def from_settings(cls) -> "SeverityBands":
        return cls(
            critical=settings.severity_critical_threshold,
            high=settings.severity_high_threshold,
            medium=settings.severity_medium_threshold,
        )


@dataclass(frozen=True)
class RiskContext:
    """Signals gathered for one team/round pair."""
    team_name: str
    hackathon_title: str
    round_name: str
    round_description: str
    deadline: datetime
    hours_remaining: float
    has_submission: bool
    submission_created_at: Optional[datetime]
    team_size: int
    recent_activity: int
    on_time_count: int
    history_count: int

    @property
    def days_remaining(self) -> float:
        return self.hours_remaining / 24

    @property
    def on_time_rate(self) -> float:
        """Percentage of past submissions made on time; 100 with no history."""
        if self.history_count == 0:
            return 100.0
        # Halves round up
        return math.floor(self.on_time_count * 100 / self.history_count + 0.5)


# ── Heuristic ──────────────────────────────────────────────────────────


def time_points(days_remaining: float) -> int:
    if days_remaining < 0:
        return 40
    if days_remaining < 1:
        return 35
    if days_remaining < 2:
        return 25
    if days_remaining < 3:
        return 15
    if days_remaining < 7:
        return 10
    return 0


def submission_points(has_submission: bool, days_remaining: float) -> int:
    if not has_submission:
        return 30
    if days_remaining < 1:
        return 10
    return 0


def activity_points(recent_activity: int) -> int:
    if recent_activity == 0:
        return 20
    if recent_activity < 3:
        return 10
    return 0


def history_points(on_time_rate: float) -> int:
    if on_time_rate < 50:
        return 10
    if on_time_rate < 75:
        return 5
    return 0


def heuristic_score(ctx: RiskContext) -> float:
    score = (
        time_points(ctx.days_remaining)
        + submission_points(ctx.has_submission, ctx.days_remaining)
        + activity_points(ctx.recent_activity)
        + history_points(ctx.on_time_rate)
    )
    return clamp(score)


def risk_level_for(score: float, bands: SeverityBands = SeverityBands()) -> RiskLevel:
    if score >= bands.critical:
        return RiskLevel.CRITICAL
    if score >= bands.high:
        return RiskLevel.HIGH
    if score >= bands.medium:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def default_reasons(ctx: RiskContext) -> list[str]:
    reasons = []
    if ctx.days_remaining < 1:
        reasons.append("Deadline is very close (less than 1 day remaining)")
    if not ctx.has_submission:
        reasons.append("No submission has been made yet")
    if ctx.recent_activity == 0:
        reasons.append("No recent team activity in chat")
    if ctx.on_time_rate < 50 and ctx.history_count > 0:
        reasons.append("Low historical on-time submission rate")
    return reasons or ["Unable to determine specific risk factors"]


def default_recommendations(ctx: RiskContext) -> list[str]:
    recommendations = []
    if not ctx.has_submission:
        recommendations.append("Submit a working draft early and refine it before the deadline")
    if ctx.days_remaining < 2:
        recommendations.append("Agree on the minimum deliverable and focus the team on it")
    if ctx.recent_activity < 3:
        recommendations.append("Schedule a short team check-in to split the remaining work")
    if ctx.on_time_rate < 75:
        recommendations.append("Set an internal deadline a few hours before the official one")
    return recommendations or ["Keep up the pace and double-check the submission requirements"]


def heuristic_assessment(ctx: RiskContext, bands: SeverityBands = SeverityBands()) -> RiskAssessment:
    score = heuristic_score(ctx)
    return RiskAssessment(
        risk_score=score,
        risk_level=risk_level_for(score, bands),
        reasons=default_reasons(ctx),
        recommendations=default_recommendations(ctx),
        predicted_probability=score,
        source=AssessmentSource.HEURISTIC,
    )


def insufficient_data_assessment() -> RiskAssessment:
    return RiskAssessment(
        risk_score=50,
        risk_level=RiskLevel.MEDIUM,
        reasons=["Insufficient data for analysis"],
        recommendations=["Monitor team progress closely"],
        predicted_probability=50,
        source=AssessmentSource.DEFAULT,
    )


# ── Oracle validation ──────────────────────────────────────────────────


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(min(high, max(low, value)))


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _as_text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def validate_oracle_assessment(
    data: dict,
    ctx: RiskContext,
    heuristic: RiskAssessment,
    bands: SeverityBands = SeverityBands(),
) -> RiskAssessment:
    """
    Coerce an oracle answer into a valid RiskAssessment.

    The heuristic score is the floor; the level is never lower than the
    level of the final score.
    """
    score = _as_number(data.get("riskScore"))
    score = heuristic.risk_score if score is None else clamp(score)
    score = max(score, heuristic.risk_score)

    try:
        level = RiskLevel(str(data.get("riskLevel", "")).strip().lower())
    except ValueError:
        level = None
    floor_level = risk_level_for(score, bands)
    if level is None or level.rank < floor_level.rank:
        level = floor_level

    probability = _as_number(data.get("predictedProbability"))
    probability = score if probability is None else clamp(probability)

    return RiskAssessment(
        risk_score=score,
        risk_level=level,
        reasons=_as_text_list(data.get("reasons")) or default_reasons(ctx),
        recommendations=_as_text_list(data.get("recommendations")) or default_recommendations(ctx),
        predicted_probability=probability,
        source=AssessmentSource.ORACLE,
    )


def build_risk_prompt(ctx: RiskContext) -> str:
    submitted_at = (
        ctx.submission_created_at.strftime("%Y-%m-%d %H:%M UTC")
        if ctx.has_submission and ctx.submission_created_at
        else "N/A"
    )
    return f"""Analyze the risk of a hackathon team missing their submission deadline.

Team Context:
- Team: {ctx.team_name}
- Hackathon: {ctx.hackathon_title}
- Round: {ctx.round_name}
- Round Description: {ctx.round_description or "N/A"}

Deadline Information:
- Deadline: {ctx.deadline.strftime("%Y-%m-%d %H:%M UTC")}
- Days Remaining: {round(ctx.days_remaining, 1)}
- Hours Remaining: {round(ctx.hours_remaining, 1)}

Current Status:
- Has Submission: {"Yes" if ctx.has_submission else "No"}
- Submission Created: {submitted_at}
- Team Size: {ctx.team_size} members
- Recent Chat Activity (last {settings.activity_window_days} days): {ctx.recent_activity} messages
- Historical On-Time Rate: {ctx.on_time_rate:.0f}% ({ctx.on_time_count}/{ctx.history_count} submissions on time)

Risk Factors to Consider:
1. Time remaining (less time = higher risk)
2. Submission status (no submission = higher risk)
3. Team activity (low activity = higher risk)
4. Historical performance (low on-time rate = higher risk)
5. Team size (very small teams might struggle)

Return ONLY a valid JSON object in this exact format:
{{
  "riskScore": 0-100,
  "riskLevel": "low" | "medium" | "high" | "critical",
  "reasons": ["reason1", "reason2", "reason3"],
  "recommendations": ["recommendation1", "recommendation2"],
  "predictedProbability": 0-100
}}

Be specific and actionable in your analysis."""


# ── Engine ─────────────────────────────────────────────────────────────


class RiskScoringEngine:
    """Gathers signals for a team/round pair and scores them."""

    def __init__(
        self,
        repository: ReminderRepository,
        oracle: Optional[LLMGateway] = None,
        clock: Optional[Clock] = None,
        bands: Optional[SeverityBands] = None,
        activity_window_days: Optional[int] = None,
    ):
        self.repository = repository
        self.oracle = oracle
        self.clock = clock or SystemClock()
        self.bands = bands or SeverityBands.from_settings()
        self.activity_window_days = activity_window_days or settings.activity_window_days

    async def build_context(
        self,
        team_id: uuid.UUID,
        round_id: uuid.UUID,
        team: Optional[Team] = None,
        round_: Optional[Round] = None,
        hackathon: Optional[Hackathon] = None,
    ) -> Optional[RiskContext]:
        """Collect signals. None when the team, the round, or its deadline is missing."""
        team = team or await self.repository.team_by_id(team_id)
        round_ = round_ or await self.repository.round_by_id(round_id)
        if team is None or round_ is None or round_.end_date is None:
            return None

        hackathon = hackathon or await self.repository.hackathon_by_id(team.hackathon_id)
        now = self.clock.now()

        submission = await self.repository.submission_for(team.id, round_.id)
        has_submission = bool(submission and (submission.link or submission.file))

        recent_activity = await self.repository.count_recent_messages(
            team.id, now - timedelta(days=self.activity_window_days)
        )

        history = await self.repository.submissions_for_team(team.id)
        on_time_count = sum(
            1 for sub, deadline in history
            if deadline is None or sub.created_at <= deadline
        )

        return RiskContext(
            team_name=team.name,
            hackathon_title=hackathon.title if hackathon else "",
            round_name=round_.name,
            round_description=round_.description or "",
            deadline=round_.end_date,
            hours_remaining=(round_.end_date - now).total_seconds() / 3600,
            has_submission=has_submission,
            submission_created_at=submission.created_at if submission else None,
            team_size=len(team.members),
            recent_activity=recent_activity,
            on_time_count=on_time_count,
            history_count=len(history),
        )

    async def assess(
        self,
        team_id: uuid.UUID,
        round_id: uuid.UUID,
        team: Optional[Team] = None,
        round_: Optional[Round] = None,
        hackathon: Optional[Hackathon] = None,
    ) -> RiskAssessment:
        ctx = await self.build_context(team_id, round_id, team=team, round_=round_, hackathon=hackathon)
        if ctx is None:
            logger.info("risk_insufficient_data", team_id=str(team_id), round_id=str(round_id))
            return insufficient_data_assessment()
        return await self.assess_context(ctx)

    async def assess_context(self, ctx: RiskContext) -> RiskAssessment:
        heuristic = heuristic_assessment(ctx, self.bands)
        if self.oracle is None or not self.oracle.available:
            return heuristic

        try:
            data = await self.oracle.generate_json(
                system=ORACLE_SYSTEM_PROMPT,
                user_message=build_risk_prompt(ctx),
            )
            return validate_oracle_assessment(data, ctx, heuristic, self.bands)
        except OracleError as e:
            logger.warning("oracle_assessment_fallback", team=ctx.team_name, error=str(e))
            return heuristic
        except Exception as e:
            logger.error("oracle_assessment_error", team=ctx.team_name, error=str(e))
            return heuristic
