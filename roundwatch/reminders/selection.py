"""
At-Risk Selection & Ranking.

Scores every team of a round's hackathon, keeps those at or above the
threshold, and ranks them by descending risk. Ties keep enumeration order.
"""

import asyncio
import uuid
from typing import Optional

import structlog

from roundwatch.config import settings
from roundwatch.db.models import Hackathon, Round, Team
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.reminders.schemas import AtRiskTeam, RiskAssessment, TeamSummary
from roundwatch.reminders.scoring import RiskScoringEngine

logger = structlog.get_logger(__name__)


def team_summary(team: Team) -> TeamSummary:
    return TeamSummary(
        id=team.id,
        name=team.name,
        member_ids=[member.id for member in team.members],
    )


def rank_at_risk(
    scored: list[tuple[Team, RiskAssessment]],
    threshold: float,
) -> list[AtRiskTeam]:
    """Filter by threshold and sort descending; sorted() is stable."""
    kept = [(team, a) for team, a in scored if a.risk_score >= threshold]
    kept = sorted(kept, key=lambda item: item[1].risk_score, reverse=True)
    return [AtRiskTeam(team=team_summary(team), assessment=a) for team, a in kept]


class AtRiskSelector:
    def __init__(
        self,
        repository: ReminderRepository,
        engine: RiskScoringEngine,
        concurrency: Optional[int] = None,
    ):
        self.repository = repository
        self.engine = engine
        self.concurrency = max(1, concurrency or settings.sweep_concurrency)

    async def select(
        self,
        round_id: uuid.UUID,
        threshold: Optional[float] = None,
        round_: Optional[Round] = None,
        hackathon: Optional[Hackathon] = None,
    ) -> list[AtRiskTeam]:
        """
        Ranked at-risk teams for a round.

        Returns [] when the round or its hackathon cannot be resolved, or
        when enumeration itself fails.
        """
        if threshold is None:
            threshold = settings.risk_threshold

        try:
            round_ = round_ or await self.repository.round_by_id(round_id)
            if round_ is None:
                logger.info("at_risk_round_not_found", round_id=str(round_id))
                return []

            hackathon = hackathon or await self.repository.hackathon_containing_round(round_.id)
            if hackathon is None:
                logger.info("at_risk_hackathon_not_found", round_id=str(round_id))
                return []

            teams = await self.repository.teams_for_hackathon(hackathon.id)
        except Exception as e:
            logger.error("at_risk_enumeration_failed", round_id=str(round_id), error=str(e))
            return []

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _score(team: Team) -> RiskAssessment:
            async with semaphore:
                return await self.engine.assess(
                    team.id, round_.id, team=team, round_=round_, hackathon=hackathon
                )

        results = await asyncio.gather(*(_score(team) for team in teams), return_exceptions=True)

        scored: list[tuple[Team, RiskAssessment]] = []
        for team, result in zip(teams, results):
            if isinstance(result, BaseException):
                logger.error("team_scoring_failed", team_id=str(team.id), error=str(result))
                continue
            scored.append((team, result))

        at_risk = rank_at_risk(scored, threshold)
        logger.info(
            "at_risk_selection_completed",
            round_id=str(round_.id),
            teams=len(teams),
            at_risk=len(at_risk),
            threshold=threshold,
        )
        return at_risk
