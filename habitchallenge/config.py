"""
habitchallenge.config — YAML Configuration Loader
==================================================

Reads ``config.yaml`` for infrastructure settings: the local timezone that
defines "today" for every date rule, the scheduler's daily run times, and a
few operational knobs.  Secrets (``DATABASE_URL``, ``JWT_SECRET``) stay in
the environment and are loaded with python-dotenv by the entry points.

Usage::

    from habitchallenge.config import load_config

    cfg = load_config()               # reads ./config.yaml by default
    print(cfg.timezone)               # "Asia/Seoul"
    print(cfg.schedule.daily_reminder)  # datetime.time(20, 0)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from pathlib import Path

import yaml


def parse_hhmm(value: str) -> time:
    """Parse ``"HH:MM"`` into a :class:`datetime.time`.

    Raises
    ------
    ValueError
        If *value* is not a valid 24-hour ``HH:MM`` string.
    """
    try:
        hour_str, minute_str = str(value).strip().split(":")
        return time(int(hour_str), int(minute_str))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid HH:MM time: {value!r}") from exc


# ---------------------------------------------------------------------------
# Typed settings objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class JobSchedule:
    """Local wall-clock times at which each daily job fires."""

    daily_reminder: time = time(20, 0)
    approval_summary: time = time(9, 0)
    challenge_start: time = time(10, 0)
    challenge_end: time = time(23, 0)


@dataclass(frozen=True, slots=True)
class HabitConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    app_name: str
    timezone: str
    api_port: int

    schedule: JobSchedule = field(default_factory=JobSchedule)

    # Bounded retry for invite-code collisions
    invite_code_attempts: int = 5

    # Insert the development users on startup
    seed_demo_data: bool = False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> HabitConfig:
    """Read *path* and return a :class:`HabitConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    sched_raw: dict = raw.get("schedule") or {}
    schedule = JobSchedule(
        daily_reminder=parse_hhmm(sched_raw.get("daily_reminder", "20:00")),
        approval_summary=parse_hhmm(sched_raw.get("approval_summary", "09:00")),
        challenge_start=parse_hhmm(sched_raw.get("challenge_start", "10:00")),
        challenge_end=parse_hhmm(sched_raw.get("challenge_end", "23:00")),
    )

    return HabitConfig(
        app_name=raw["app_name"],
        timezone=raw["timezone"],
        api_port=int(raw["api_port"]),
        schedule=schedule,
        invite_code_attempts=int(raw.get("invite_code_attempts", 5)),
        seed_demo_data=bool(raw.get("seed_demo_data", False)),
    )
