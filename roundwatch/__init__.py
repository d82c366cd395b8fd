"""
Roundwatch — round lifecycle and deadline-risk reminders for hackathons.

Architecture:
    roundwatch/
    ├── api/             # FastAPI routers (reminders, live event stream)
    ├── auth/            # JWT decoding, live-connection identity check
    ├── db/              # SQLAlchemy models, engine, reminder repository
    ├── middleware/      # Error handling
    ├── reminders/       # Lifecycle, risk scoring, selection, composer, sweep
    └── services/        # Oracle gateway, channel registry, clock, scheduler

Module Boundaries:
    - The sweep never raises to its trigger; every skipped item is logged
    - Risk assessments are recomputed on every call, never stored
    - Only the reminder message is durable; the live event is best-effort
    - The oracle is advisory: every oracle path has a heuristic fallback

Data Flow:
    Scheduler → Sweep → Lifecycle (per round) → At-Risk Selection (per round)
    → Risk Engine (per team) → Composer → Message row → Channel Registry

Version: 1.0.0
"""

__version__ = "1.0.0"
