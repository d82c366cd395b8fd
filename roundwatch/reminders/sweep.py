"""
Sweep Orchestrator — the scheduled reminder pass.

Steps:
1. Reconcile every dated round's active flag with its schedule
2. Stop here if reminder generation is globally disabled
3. For each active round with a deadline: select at-risk teams, compose,
   persist and publish one reminder per team

Error isolation: a failing round or team is logged and skipped; the rest
of the pass continues. Skipped items wait for the next scheduled run.
"""

import asyncio
import uuid
from typing import Optional

import structlog

from roundwatch.config import settings
from roundwatch.db.models import Round
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.errors import ResolutionError
from roundwatch.reminders.composer import ReminderComposer
from roundwatch.reminders.delivery import ReminderDelivery
from roundwatch.reminders.lifecycle import (
    LifecycleDecision,
    RoundSchedule,
    evaluate_round,
)
from roundwatch.reminders.schemas import AtRiskTeam, LifecycleSummary, SweepReport
from roundwatch.reminders.selection import AtRiskSelector
from roundwatch.services.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)


class SweepOrchestrator:
    def __init__(
        self,
        repository: ReminderRepository,
        selector: AtRiskSelector,
        composer: ReminderComposer,
        delivery: ReminderDelivery,
        clock: Optional[Clock] = None,
        ai_enabled: Optional[bool] = None,
        respect_manual_deactivation: Optional[bool] = None,
        threshold: Optional[float] = None,
        concurrency: Optional[int] = None,
    ):
        self.repository = repository
        self.selector = selector
        self.composer = composer
        self.delivery = delivery
        self.clock = clock or SystemClock()
        self.ai_enabled = settings.ai_enabled if ai_enabled is None else ai_enabled
        self.respect_manual_deactivation = (
            settings.lifecycle_respect_manual_deactivation
            if respect_manual_deactivation is None
            else respect_manual_deactivation
        )
        self.threshold = settings.risk_threshold if threshold is None else threshold
        self.concurrency = max(1, concurrency or settings.sweep_concurrency)

    # ── Entry points ───────────────────────────────────────────────────

    async def run_scheduled_sweep(self) -> None:
        """Scheduler entry point. Never raises."""
        try:
            await self.run_sweep()
        except Exception as e:
            logger.error("sweep_failed", error=str(e))

    async def run_sweep(self) -> SweepReport:
        """One full pass. Returns a report for administrative callers."""
        report = SweepReport(started_at=self.clock.now(), reminders_enabled=self.ai_enabled)
        logger.info("sweep_started", at=report.started_at.isoformat())

        report.lifecycle = await self.reconcile_rounds()

        if not self.ai_enabled:
            logger.info("sweep_reminders_disabled", msg="AI is disabled, skipping reminder check")
            report.finished_at = self.clock.now()
            return report

        try:
            rounds = await self.repository.active_rounds_with_deadline()
        except Exception as e:
            logger.error("active_rounds_query_failed", error=str(e))
            rounds = []

        if not rounds:
            logger.info("sweep_no_active_rounds")

        for round_ in rounds:
            try:
                await self._process_round(round_, report)
            except Exception as e:
                report.rounds_skipped += 1
                logger.error("round_processing_failed", round_id=str(round_.id), error=str(e))

        report.finished_at = self.clock.now()
        logger.info(
            "sweep_completed",
            activated=report.lifecycle.activated,
            deactivated=report.lifecycle.deactivated,
            rounds_processed=report.rounds_processed,
            rounds_skipped=report.rounds_skipped,
            reminders_sent=report.reminders_sent,
            reminders_failed=report.reminders_failed,
        )
        return report

    async def process_round_now(self, round_id: uuid.UUID) -> SweepReport:
        """Reminder step for a single round, outside the schedule."""
        report = SweepReport(started_at=self.clock.now(), reminders_enabled=self.ai_enabled)
        round_ = await self.repository.round_by_id(round_id)
        if round_ is None or not self.ai_enabled:
            report.rounds_skipped += 1
        else:
            await self._process_round(round_, report)
        report.finished_at = self.clock.now()
        return report

    # ── Step 1: lifecycle ──────────────────────────────────────────────

    async def reconcile_rounds(self) -> LifecycleSummary:
        summary = LifecycleSummary()
        now = self.clock.now()
        try:
            rounds = await self.repository.rounds_with_dates()
        except Exception as e:
            logger.error("round_status_query_failed", error=str(e))
            return summary

        for round_ in rounds:
            summary.examined += 1
            decision = evaluate_round(
                RoundSchedule(
                    start_date=round_.start_date,
                    end_date=round_.end_date,
                    is_active=round_.is_active,
                    manually_deactivated=round_.manually_deactivated,
                ),
                now,
                respect_manual_deactivation=self.respect_manual_deactivation,
            )
            if decision is LifecycleDecision.UNCHANGED:
                continue

            activate = decision is LifecycleDecision.ACTIVATE
            try:
                await self.repository.set_round_active(round_.id, activate)
            except Exception as e:
                summary.failed += 1
                logger.error("round_status_update_failed", round_id=str(round_.id), error=str(e))
                continue

            if activate:
                summary.activated += 1
                logger.info("round_activated", round_id=str(round_.id), round_name=round_.name)
            else:
                summary.deactivated += 1
                logger.info("round_deactivated", round_id=str(round_.id), round_name=round_.name)

        logger.info(
            "round_status_update_completed",
            examined=summary.examined,
            activated=summary.activated,
            deactivated=summary.deactivated,
            failed=summary.failed,
        )
        return summary

    # ── Step 3: reminders ──────────────────────────────────────────────

    async def _process_round(self, round_: Round, report: SweepReport) -> None:
        if round_.end_date is None or round_.end_date < self.clock.now():
            report.rounds_skipped += 1
            logger.info("round_skipped", round_id=str(round_.id), reason="past_end_date")
            return

        hackathon = await self.repository.hackathon_containing_round(round_.id)
        if hackathon is None:
            report.rounds_skipped += 1
            logger.error("round_skipped", round_id=str(round_.id), reason="hackathon_not_found")
            return

        at_risk = await self.selector.select(
            round_.id, self.threshold, round_=round_, hackathon=hackathon
        )
        report.rounds_processed += 1
        if not at_risk:
            logger.info("round_no_at_risk_teams", round_id=str(round_.id), round_name=round_.name)
            return

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _guarded(item: AtRiskTeam) -> None:
            async with semaphore:
                await self._remind_team(item, round_, report)

        await asyncio.gather(*(_guarded(item) for item in at_risk))

    async def _remind_team(self, item: AtRiskTeam, round_: Round, report: SweepReport) -> None:
        team_id = item.team.id
        try:
            team = await self.repository.team_by_id(team_id)
            if team is None:
                raise ResolutionError("team", team_id)
            organization = await self.delivery.resolve_organization(team)
            text = await self.composer.compose(team.id, round_.id, team=team, round_=round_)
            if not text:
                raise ValueError("Empty reminder text")
            await self.delivery.deliver(team, organization.id, text)
        except Exception as e:
            report.reminders_failed += 1
            logger.error("reminder_failed", team_id=str(team_id), round_id=str(round_.id), error=str(e))
            return

        report.reminders_sent += 1
        logger.info(
            "reminder_sent",
            team_id=str(team_id),
            team_name=item.team.name,
            risk_score=item.assessment.risk_score,
        )
