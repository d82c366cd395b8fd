"""
Tests for the Sweep Orchestrator.

Covers:
- Lifecycle reconciliation inside the sweep
- One reminder per at-risk team, none for safe teams
- Global reminder switch
- Rounds whose deadline already passed
- Failure isolation between teams
- Repeated sweeps send repeated reminders
- Live event for a connected organization member
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from roundwatch.auth.identity import IdentityVerifier
from roundwatch.db.models import Message, Round
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.reminders.composer import ReminderComposer
from roundwatch.reminders.delivery import ReminderDelivery
from roundwatch.reminders.scoring import RiskScoringEngine, SeverityBands
from roundwatch.reminders.selection import AtRiskSelector
from roundwatch.reminders.sweep import SweepOrchestrator
from roundwatch.services.channels import ChannelRegistry
from tests.conftest import NOW, token_for


def _orchestrator(repository: ReminderRepository, clock, registry=None, composer=None,
                  ai_enabled=True, respect_manual_deactivation=False):
    engine = RiskScoringEngine(repository, clock=clock, bands=SeverityBands(), activity_window_days=7)
    selector = AtRiskSelector(repository, engine, concurrency=1)
    composer = composer or ReminderComposer(repository, engine, clock=clock, ai_enabled=ai_enabled)
    delivery = ReminderDelivery(repository, registry=registry, clock=clock)
    return SweepOrchestrator(
        repository,
        selector,
        composer,
        delivery,
        clock=clock,
        ai_enabled=ai_enabled,
        respect_manual_deactivation=respect_manual_deactivation,
        threshold=50,
        concurrency=1,
    )


class ScriptedComposer:
    """Raises for the named teams, returns fixed text for the rest."""

    def __init__(self, failing: set[uuid.UUID]):
        self.failing = failing

    async def compose(self, team_id, round_id, team=None, round_=None):
        if team_id in self.failing:
            raise RuntimeError("composer crashed")
        return "Keep going!"


async def _messages(session_factory, team_id=None):
    async with session_factory() as session:
        query = select(Message)
        if team_id is not None:
            query = query.where(Message.team_id == team_id)
        return (await session.execute(query)).scalars().all()


async def _round_state(session_factory, round_id):
    async with session_factory() as session:
        return (await session.get(Round, round_id)).is_active


async def _live_round(factory):
    """Active round ending in 12 hours with one silent and one busy team."""
    org = await factory.organization()
    hackathon = await factory.hackathon(org)
    round_ = await factory.round(hackathon, start_date=NOW - timedelta(days=3),
                                 end_date=NOW + timedelta(hours=12))
    silent = await factory.team(hackathon, name="Silent", organization=org)
    busy = await factory.team(hackathon, name="Busy", organization=org)
    await factory.submission(busy, round_)
    await factory.messages(busy, 5)
    return org, hackathon, round_, silent, busy


# ── Lifecycle ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_sweep_reconciles_round_states(factory, repository, clock, session_factory):
    org = await factory.organization()
    hackathon = await factory.hackathon(org)
    ended = await factory.round(hackathon, name="Ended", end_date=NOW - timedelta(days=2), is_active=True)
    starting = await factory.round(hackathon, name="Starting", start_date=NOW - timedelta(days=1),
                                   end_date=NOW + timedelta(days=3), is_active=False)
    undated = await factory.round(hackathon, name="Undated", is_active=False)

    report = await _orchestrator(repository, clock).run_sweep()

    assert report.lifecycle.examined == 2
    assert report.lifecycle.activated == 1
    assert report.lifecycle.deactivated == 1
    assert await _round_state(session_factory, ended.id) is False
    assert await _round_state(session_factory, starting.id) is True
    assert await _round_state(session_factory, undated.id) is False


@pytest.mark.asyncio
async def test_manual_deactivation_switch(factory, repository, clock, session_factory):
    org = await factory.organization()
    hackathon = await factory.hackathon(org)
    paused = await factory.round(hackathon, start_date=NOW - timedelta(days=1),
                                 end_date=NOW + timedelta(days=3), is_active=False,
                                 manually_deactivated=True)

    await _orchestrator(repository, clock, respect_manual_deactivation=True).reconcile_rounds()
    assert await _round_state(session_factory, paused.id) is False

    await _orchestrator(repository, clock).reconcile_rounds()
    assert await _round_state(session_factory, paused.id) is True


# ── Reminders ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_sweep_reminds_only_at_risk_teams(factory, repository, clock, session_factory):
    _, _, _, silent, busy = await _live_round(factory)

    report = await _orchestrator(repository, clock).run_sweep()

    assert report.rounds_processed == 1
    assert report.reminders_sent == 1
    assert report.reminders_failed == 0

    reminders = [m for m in await _messages(session_factory) if m.is_ai]
    assert len(reminders) == 1
    assert reminders[0].team_id == silent.id
    assert reminders[0].content.startswith("⏰ Reminder: ")
    assert reminders[0].sender_id is None


@pytest.mark.asyncio
async def test_each_sweep_sends_a_new_reminder(factory, repository, clock, session_factory):
    _, _, _, silent, _ = await _live_round(factory)
    orchestrator = _orchestrator(repository, clock)

    await orchestrator.run_sweep()
    clock.advance(minutes=5)
    await orchestrator.run_sweep()

    assert len(await _messages(session_factory, silent.id)) == 2


@pytest.mark.asyncio
async def test_reminders_disabled_still_runs_lifecycle(factory, repository, clock, session_factory):
    org, hackathon, _, _, _ = await _live_round(factory)
    ended = await factory.round(hackathon, name="Ended", end_date=NOW - timedelta(days=2))

    report = await _orchestrator(repository, clock, ai_enabled=False).run_sweep()

    assert report.reminders_enabled is False
    assert report.lifecycle.deactivated == 1
    assert report.reminders_sent == 0
    assert await _round_state(session_factory, ended.id) is False
    assert [m for m in await _messages(session_factory) if m.is_ai] == []


@pytest.mark.asyncio
async def test_round_past_deadline_today_is_skipped(factory, repository, clock, session_factory):
    org = await factory.organization()
    hackathon = await factory.hackathon(org)
    # Still active (end of day not reached) but the deadline itself has passed
    await factory.round(hackathon, end_date=NOW - timedelta(hours=2))
    await factory.team(hackathon, name="Late", organization=org)

    report = await _orchestrator(repository, clock).run_sweep()

    assert report.rounds_skipped == 1
    assert report.rounds_processed == 0
    assert await _messages(session_factory) == []


@pytest.mark.asyncio
async def test_round_without_hackathon_is_skipped(factory, repository, clock):
    await factory.round(None, end_date=NOW + timedelta(days=1))
    report = await _orchestrator(repository, clock).run_sweep()
    assert report.rounds_skipped == 1


@pytest.mark.asyncio
async def test_failing_team_does_not_stop_the_others(factory, repository, clock, session_factory):
    org = await factory.organization()
    hackathon = await factory.hackathon(org)
    await factory.round(hackathon, end_date=NOW + timedelta(hours=12))
    doomed = await factory.team(hackathon, name="Doomed", organization=org)
    fine = await factory.team(hackathon, name="Fine", organization=org)

    orchestrator = _orchestrator(repository, clock, composer=ScriptedComposer({doomed.id}))
    report = await orchestrator.run_sweep()

    assert report.reminders_sent == 1
    assert report.reminders_failed == 1
    stored = await _messages(session_factory)
    assert [m.team_id for m in stored] == [fine.id]


@pytest.mark.asyncio
async def test_team_without_organization_is_counted_as_failed(factory, repository, clock, session_factory):
    org = await factory.organization()
    hackathon = await factory.hackathon(org)
    await factory.round(hackathon, end_date=NOW + timedelta(hours=12))
    await factory.team(hackathon, name="Orphan")
    housed = await factory.team(hackathon, name="Housed", organization=org)

    report = await _orchestrator(repository, clock).run_sweep()

    assert report.reminders_failed == 1
    assert report.reminders_sent == 1
    assert [m.team_id for m in await _messages(session_factory)] == [housed.id]


@pytest.mark.asyncio
async def test_sweep_publishes_live_event(factory, repository, clock):
    org, _, _, silent, _ = await _live_round(factory)
    organizer = await factory.user(org, role="organizer")
    registry = ChannelRegistry(IdentityVerifier(repository))
    connection = await registry.connect(token_for(organizer))

    await _orchestrator(repository, clock, registry=registry).run_sweep()

    event = connection.queue.get_nowait()
    assert event["type"] == "team_message"
    assert event["teamId"] == str(silent.id)
    assert event["message"]["content"].startswith("⏰ Reminder: ")


@pytest.mark.asyncio
async def test_scheduled_sweep_never_raises(repository, clock):
    orchestrator = _orchestrator(repository, clock)

    async def _explode():
        raise RuntimeError("database unreachable")

    orchestrator.run_sweep = _explode
    assert await orchestrator.run_scheduled_sweep() is None


@pytest.mark.asyncio
async def test_process_round_now(factory, repository, clock, session_factory):
    _, _, round_, silent, _ = await _live_round(factory)

    report = await _orchestrator(repository, clock).process_round_now(round_.id)

    assert report.reminders_sent == 1
    assert len(await _messages(session_factory, silent.id)) == 1
