"""
Tests for the manual ReminderService paths.
"""

import uuid
from datetime import timedelta

import pytest

from roundwatch.errors import ResolutionError
from roundwatch.reminders.schemas import AssessmentSource, RiskLevel, SystemSender
from roundwatch.reminders.service import ReminderService
from roundwatch.services.llm_gateway import LLMGateway
from tests.conftest import NOW


@pytest.fixture
def service(session_factory, clock) -> ReminderService:
    return ReminderService.build(
        session_factory,
        oracle=LLMGateway(api_key="", enabled=False),
        clock=clock,
        concurrency=1,
    )


async def _setup(factory, end_date=NOW + timedelta(hours=12), with_org=True):
    org = await factory.organization()
    hackathon = await factory.hackathon(org)
    round_ = await factory.round(hackathon, name="Round 1", end_date=end_date)
    team = await factory.team(hackathon, name="Night Owls", organization=org if with_org else None)
    return round_, team


@pytest.mark.asyncio
async def test_get_risk_assessment(factory, service):
    round_, team = await _setup(factory)
    assessment = await service.get_risk_assessment(team.id, round_.id)
    assert assessment.risk_score == 85
    assert assessment.risk_level is RiskLevel.CRITICAL


@pytest.mark.asyncio
async def test_get_risk_assessment_unknown_team(factory, service):
    round_, _ = await _setup(factory)
    with pytest.raises(ResolutionError) as exc:
        await service.get_risk_assessment(uuid.uuid4(), round_.id)
    assert exc.value.entity == "team"


@pytest.mark.asyncio
async def test_get_risk_assessment_unknown_round(factory, service):
    _, team = await _setup(factory)
    with pytest.raises(ResolutionError) as exc:
        await service.get_risk_assessment(team.id, uuid.uuid4())
    assert exc.value.entity == "round"


@pytest.mark.asyncio
async def test_get_risk_assessment_round_without_deadline(factory, service):
    round_, team = await _setup(factory, end_date=None)
    assessment = await service.get_risk_assessment(team.id, round_.id)
    assert assessment.source is AssessmentSource.DEFAULT
    assert assessment.risk_score == 50


@pytest.mark.asyncio
async def test_get_at_risk_teams_unknown_round(service):
    assert await service.get_at_risk_teams(uuid.uuid4()) == []


@pytest.mark.asyncio
async def test_at_risk_report(factory, service):
    round_, team = await _setup(factory)
    report = await service.at_risk_report(round_.id, threshold=50)

    assert report.round.id == round_.id
    assert report.round.name == "Round 1"
    assert report.threshold == 50
    assert [item.team.id for item in report.at_risk_teams] == [team.id]


@pytest.mark.asyncio
async def test_at_risk_report_unknown_round(service):
    with pytest.raises(ResolutionError):
        await service.at_risk_report(uuid.uuid4())


@pytest.mark.asyncio
async def test_send_reminder_now(factory, service):
    round_, team = await _setup(factory)
    reminder = await service.send_reminder_now(team.id, round_.id)

    assert reminder.team_id == team.id
    assert reminder.sender == SystemSender()
    assert reminder.content.startswith("⏰ Reminder: Night Owls, the Round 1 deadline is")


@pytest.mark.asyncio
async def test_send_reminder_now_without_organization(factory, service):
    round_, team = await _setup(factory, with_org=False)
    with pytest.raises(ResolutionError) as exc:
        await service.send_reminder_now(team.id, round_.id)
    assert exc.value.entity == "organization"


@pytest.mark.asyncio
async def test_send_reminder_now_unknown_round(factory, service):
    _, team = await _setup(factory)
    with pytest.raises(ResolutionError):
        await service.send_reminder_now(team.id, uuid.uuid4())
