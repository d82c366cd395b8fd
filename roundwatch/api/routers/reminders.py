"""
Smart Reminder API Endpoints.

GET  /api/v1/reminders/team/{team_id}/round/{round_id}        — risk for one team
GET  /api/v1/reminders/round/{round_id}/at-risk?threshold=50   — ranked at-risk teams
POST /api/v1/reminders/team/{team_id}/round/{round_id}/send   — send a reminder now
POST /api/v1/reminders/sweep                                  — run one sweep now (admin)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from roundwatch.api.deps import get_identity, get_reminder_service
from roundwatch.auth.identity import Identity
from roundwatch.errors import ResolutionError
from roundwatch.reminders.schemas import (
    AtRiskReport,
    ReminderMessage,
    RiskAssessment,
    SweepReport,
)
from roundwatch.reminders.service import ReminderService

router = APIRouter(prefix="/api/v1/reminders", tags=["reminders"])


async def _require_organizer(service: ReminderService, identity: Identity, hackathon_id: uuid.UUID) -> None:
    if identity.is_admin:
        return
    if await service.repository.is_hackathon_organizer(identity.user_id, hackathon_id):
        return
    raise HTTPException(status_code=403, detail="Access denied. Organizer or admin only.")


@router.get("/team/{team_id}/round/{round_id}", response_model=RiskAssessment)
async def analyze_team_risk(
    team_id: uuid.UUID,
    round_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    service: ReminderService = Depends(get_reminder_service),
):
    """Risk of a team missing a round deadline (members, mentor, organizers, admins)."""
    team = await service.repository.team_by_id(team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")

    is_member = any(member.id == identity.user_id for member in team.members)
    is_mentor = team.mentor_id == identity.user_id
    if not (is_member or is_mentor):
        await _require_organizer(service, identity, team.hackathon_id)

    try:
        return await service.get_risk_assessment(team_id, round_id)
    except ResolutionError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/round/{round_id}/at-risk", response_model=AtRiskReport)
async def get_at_risk_teams(
    round_id: uuid.UUID,
    threshold: Optional[float] = Query(default=None, ge=0, le=100),
    identity: Identity = Depends(get_identity),
    service: ReminderService = Depends(get_reminder_service),
):
    """All teams of the round's hackathon at or above the threshold, riskiest first."""
    hackathon = await service.repository.hackathon_containing_round(round_id)
    if hackathon is None:
        raise HTTPException(status_code=404, detail="Hackathon not found")
    await _require_organizer(service, identity, hackathon.id)

    try:
        return await service.at_risk_report(round_id, threshold)
    except ResolutionError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/team/{team_id}/round/{round_id}/send", response_model=ReminderMessage)
async def send_reminder(
    team_id: uuid.UUID,
    round_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    service: ReminderService = Depends(get_reminder_service),
):
    """Compose, persist and publish a reminder for one team."""
    team = await service.repository.team_by_id(team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    await _require_organizer(service, identity, team.hackathon_id)

    try:
        return await service.send_reminder_now(team_id, round_id)
    except ResolutionError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/sweep", response_model=SweepReport)
async def run_sweep(
    identity: Identity = Depends(get_identity),
    service: ReminderService = Depends(get_reminder_service),
):
    """Run the scheduled sweep immediately."""
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return await service.run_sweep()
