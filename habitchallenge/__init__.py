"""
Habit Challenge — Group Habit Commitments with Leader-Reviewed Proof
======================================================================
Users form or join challenges, submit daily proof-of-completion logs, and
challenge leaders review both membership applications and submitted logs.
A scheduler drives the challenge lifecycle and sends daily nudges.

Package layout::

    habitchallenge/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Invite-code alphabet, capacity bounds, day windows
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session helper, async bridge
    │   ├── models.py      # All ORM models + status enums
    │   └── seed.py        # Demo users for local development
    ├── engine/
    │   ├── errors.py      # Error taxonomy shared by every service
    │   ├── transitions.py # One-directional status transition tables
    │   ├── clock.py       # Injectable clock
    │   ├── invite.py      # Invite-code generation
    │   └── stats.py       # Streak / achievement / participation maths
    ├── services/
    │   ├── challenge_service.py      # Membership engine
    │   ├── challenge_log_service.py  # Log submission + review
    │   ├── stats_service.py          # Read-side statistics
    │   ├── notification_service.py   # Notification sink + feed
    │   ├── scheduler_service.py      # Daily jobs
    │   └── user_service.py           # Identity records
    ├── worker/
    │   ├── __main__.py    # python -m habitchallenge.worker
    │   └── scheduler.py   # APScheduler daily cron jobs
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # JWT secret check + token helpers
        ├── deps.py        # Dependency providers + caller identity
        ├── errors.py      # Error taxonomy → HTTP status
        └── routes/        # Challenges, logs, notifications, users
"""

__version__ = "0.1.0"
