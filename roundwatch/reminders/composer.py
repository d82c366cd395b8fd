"""
Reminder Composer — short, encouraging deadline reminder for a team.

Oracle text when the oracle is available, otherwise a template built from
the assessment. A failed oracle call falls back to a fixed generic line, as
do disabled reminders and unexpected errors. compose() never raises.
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog

from roundwatch.config import settings
from roundwatch.db.models import Round, Team
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.reminders.schemas import RiskAssessment
from roundwatch.reminders.scoring import RiskScoringEngine
from roundwatch.services.clock import Clock, SystemClock
from roundwatch.services.llm_gateway import LLMGateway

logger = structlog.get_logger(__name__)

GENERIC_REMINDER = "Don't forget to submit your work before the deadline!"
REMINDER_PREFIX = "⏰ Reminder: "

COMPOSER_SYSTEM_PROMPT = (
    "You are a helpful assistant that generates friendly reminder messages "
    "for hackathon teams. Be encouraging and supportive."
)


def format_deadline(deadline: datetime) -> str:
    return deadline.strftime("%b %d, %Y at %H:%M UTC")


def format_time_left(hours_remaining: float) -> str:
    if hours_remaining <= 0:
        return "the deadline has passed"
    if hours_remaining < 24:
        hours = max(1, round(hours_remaining))
        return f"about {hours} hour{'s' if hours != 1 else ''} left"
    days = round(hours_remaining / 24, 1)
    return f"about {days:g} day{'s' if days != 1 else ''} left"


def template_reminder(team_name: str, round_name: str, deadline: datetime,
                      hours_remaining: float, assessment: RiskAssessment) -> str:
    """Deadline sentence, encouragement, and the top recommendation when risk is elevated."""
    parts = [
        f"{team_name}, the {round_name} deadline is {format_deadline(deadline)} "
        f"({format_time_left(hours_remaining)})."
    ]
    parts.append("You've got this, keep the momentum going as a team!")
    if assessment.is_elevated and assessment.recommendations:
        tip = assessment.recommendations[0].rstrip(".")
        parts.append(f"Tip: {tip}.")
    return " ".join(parts)


def build_reminder_prompt(team_name: str, round_name: str, deadline: datetime,
                          hours_remaining: float, assessment: RiskAssessment) -> str:
    reasons = "\n".join(f"- {r}" for r in assessment.reasons)
    recommendations = "\n".join(f"- {r}" for r in assessment.recommendations)
    return f"""Generate a friendly, encouraging reminder message for a hackathon team about their upcoming deadline.

Team: {team_name}
Round: {round_name}
Deadline: {format_deadline(deadline)}
Time Remaining: {round(hours_remaining / 24, 1)} days ({round(hours_remaining, 1)} hours)
Risk Level: {assessment.risk_level.value}
Risk Score: {assessment.risk_score:.0f}/100

Key Points:
{reasons}

Recommendations:
{recommendations}

Generate a brief, friendly reminder message (2-3 sentences max) that:
1. Reminds them of the deadline
2. Is encouraging and supportive
3. Mentions key recommendations if risk is high
4. Uses a warm, team-oriented tone

Return ONLY the message text, no explanations."""


class ReminderComposer:
    def __init__(
        self,
        repository: ReminderRepository,
        engine: RiskScoringEngine,
        oracle: Optional[LLMGateway] = None,
        clock: Optional[Clock] = None,
        ai_enabled: Optional[bool] = None,
    ):
        self.repository = repository
        self.engine = engine
        self.oracle = oracle
        self.clock = clock or SystemClock()
        self.ai_enabled = settings.ai_enabled if ai_enabled is None else ai_enabled

    async def compose(
        self,
        team_id: uuid.UUID,
        round_id: uuid.UUID,
        team: Optional[Team] = None,
        round_: Optional[Round] = None,
    ) -> str:
        """Reminder text (without the prefix). Always returns usable text."""
        if not self.ai_enabled:
            return GENERIC_REMINDER

        try:
            team = team or await self.repository.team_by_id(team_id)
            round_ = round_ or await self.repository.round_by_id(round_id)
            if team is None or round_ is None or round_.end_date is None:
                return GENERIC_REMINDER

            assessment = await self.engine.assess(team.id, round_.id, team=team, round_=round_)
            hours_remaining = (round_.end_date - self.clock.now()).total_seconds() / 3600

            if self.oracle is not None and self.oracle.available:
                text = await self.oracle.generate(
                    system=COMPOSER_SYSTEM_PROMPT,
                    user_message=build_reminder_prompt(
                        team.name, round_.name, round_.end_date, hours_remaining, assessment
                    ),
                    max_tokens=150,
                    temperature=0.7,
                )
                text = (text or "").strip()
                if text:
                    return text
                logger.warning("reminder_oracle_failed", team_id=str(team.id))
                return GENERIC_REMINDER

            return template_reminder(
                team.name, round_.name, round_.end_date, hours_remaining, assessment
            )
        except Exception as e:
            logger.error("reminder_compose_failed", team_id=str(team_id), error=str(e))
            return GENERIC_REMINDER
