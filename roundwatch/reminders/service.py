"""
Reminder Service — the operations exposed to controllers and the scheduler.

    get_risk_assessment(team_id, round_id)   → RiskAssessment
    get_at_risk_teams(round_id, threshold)   → [AtRiskTeam]
    send_reminder_now(team_id, round_id)     → ReminderMessage
    run_scheduled_sweep()                    → None

Manual paths serve a single user request, so an unknown team or round
raises ResolutionError instead of being skipped.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roundwatch.auth.identity import IdentityVerifier
from roundwatch.config import settings
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.errors import ResolutionError
from roundwatch.reminders.composer import ReminderComposer
from roundwatch.reminders.delivery import ReminderDelivery
from roundwatch.reminders.schemas import (
    AtRiskReport,
    AtRiskTeam,
    ReminderMessage,
    RiskAssessment,
    RoundSummary,
    SweepReport,
)
from roundwatch.reminders.scoring import RiskScoringEngine
from roundwatch.reminders.selection import AtRiskSelector
from roundwatch.reminders.sweep import SweepOrchestrator
from roundwatch.services.channels import ChannelRegistry
from roundwatch.services.clock import Clock, SystemClock
from roundwatch.services.llm_gateway import LLMGateway

logger = structlog.get_logger(__name__)


class ReminderService:
    def __init__(
        self,
        repository: ReminderRepository,
        engine: RiskScoringEngine,
        selector: AtRiskSelector,
        composer: ReminderComposer,
        delivery: ReminderDelivery,
        orchestrator: SweepOrchestrator,
    ):
        self.repository = repository
        self.engine = engine
        self.selector = selector
        self.composer = composer
        self.delivery = delivery
        self.orchestrator = orchestrator

    @classmethod
    def build(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        registry: Optional[ChannelRegistry] = None,
        oracle: Optional[LLMGateway] = None,
        clock: Optional[Clock] = None,
        concurrency: Optional[int] = None,
    ) -> "ReminderService":
        """Wire the components from settings. Without a registry, one is created for this process."""
        clock = clock or SystemClock()
        oracle = oracle or LLMGateway()
        repository = ReminderRepository(session_factory)
        if registry is None:
            registry = ChannelRegistry(
                IdentityVerifier(repository),
                queue_size=settings.event_queue_size,
                keepalive_seconds=settings.event_keepalive_seconds,
            )
        engine = RiskScoringEngine(repository, oracle=oracle, clock=clock)
        selector = AtRiskSelector(repository, engine, concurrency=concurrency)
        composer = ReminderComposer(repository, engine, oracle=oracle, clock=clock)
        delivery = ReminderDelivery(repository, registry=registry, clock=clock)
        orchestrator = SweepOrchestrator(
            repository, selector, composer, delivery, clock=clock, concurrency=concurrency
        )
        return cls(repository, engine, selector, composer, delivery, orchestrator)

    async def get_risk_assessment(self, team_id: uuid.UUID, round_id: uuid.UUID) -> RiskAssessment:
        team = await self.repository.team_by_id(team_id)
        if team is None:
            raise ResolutionError("team", team_id)
        round_ = await self.repository.round_by_id(round_id)
        if round_ is None:
            raise ResolutionError("round", round_id)
        return await self.engine.assess(team.id, round_.id, team=team, round_=round_)

    async def get_at_risk_teams(
        self, round_id: uuid.UUID, threshold: Optional[float] = None
    ) -> list[AtRiskTeam]:
        return await self.selector.select(round_id, threshold)

    async def at_risk_report(
        self, round_id: uuid.UUID, threshold: Optional[float] = None
    ) -> AtRiskReport:
        """At-risk list with its round summary; unknown round raises."""
        round_ = await self.repository.round_by_id(round_id)
        if round_ is None:
            raise ResolutionError("round", round_id)
        if threshold is None:
            threshold = settings.risk_threshold
        teams = await self.selector.select(round_.id, threshold, round_=round_)
        return AtRiskReport(
            round=RoundSummary(id=round_.id, name=round_.name, end_date=round_.end_date),
            threshold=threshold,
            at_risk_teams=teams,
        )

    async def send_reminder_now(self, team_id: uuid.UUID, round_id: uuid.UUID) -> ReminderMessage:
        team = await self.repository.team_by_id(team_id)
        if team is None:
            raise ResolutionError("team", team_id)
        round_ = await self.repository.round_by_id(round_id)
        if round_ is None:
            raise ResolutionError("round", round_id)

        organization = await self.delivery.resolve_organization(team)
        text = await self.composer.compose(team.id, round_.id, team=team, round_=round_)
        reminder = await self.delivery.deliver(team, organization.id, text)
        logger.info("manual_reminder_sent", team_id=str(team.id), round_id=str(round_.id))
        return reminder

    async def run_sweep(self) -> SweepReport:
        return await self.orchestrator.run_sweep()

    async def run_scheduled_sweep(self) -> None:
        await self.orchestrator.run_scheduled_sweep()
