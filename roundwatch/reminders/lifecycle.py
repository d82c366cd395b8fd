"""
Round Lifecycle Evaluator.

Pure function of a round's schedule and the current time. Dates are naive
UTC; the end date counts until the last instant of its day and the start
date from the first instant of its day.
"""

from dataclasses import dataclass
from datetime import datetime, time
from enum import StrEnum
from typing import Optional


class LifecycleDecision(StrEnum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class RoundSchedule:
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    is_active: bool
    manually_deactivated: bool = False


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def evaluate_round(
    schedule: RoundSchedule,
    now: datetime,
    respect_manual_deactivation: bool = False,
) -> LifecycleDecision:
    """
    Decide the target active state of a round.

    1. Active round whose end date's day is over → deactivate.
    2. Inactive round whose start day has arrived and whose end date
       (compared as-is) has not passed → activate.
    3. Otherwise unchanged.

    With respect_manual_deactivation, rule 2 skips rounds an organizer
    switched off by hand.
    """
    if schedule.end_date is not None and schedule.is_active:
        if now > end_of_day(schedule.end_date):
            return LifecycleDecision.DEACTIVATE

    if schedule.start_date is not None and not schedule.is_active:
        if respect_manual_deactivation and schedule.manually_deactivated:
            return LifecycleDecision.UNCHANGED
        if now >= start_of_day(schedule.start_date):
            if schedule.end_date is None or schedule.end_date >= now:
                return LifecycleDecision.ACTIVATE

    return LifecycleDecision.UNCHANGED


def target_state(decision: LifecycleDecision, current: bool) -> bool:
    if decision is LifecycleDecision.ACTIVATE:
        return True
    if decision is LifecycleDecision.DEACTIVATE:
        return False
    return current
