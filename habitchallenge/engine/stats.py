"""
habitchallenge.engine.stats — Streaks, Achievement Rates & Participation
=========================================================================

Derived, read-only statistics over challenge logs.  The service layer loads
rows and reduces them to :class:`LogSnapshot` tuples; everything here is a
single linear scan over those snapshots.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from habitchallenge.database.models import LogStatus


# ---------------------------------------------------------------------------
# Inputs / outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LogSnapshot:
    """The three log columns the statistics need."""

    user_id: int
    created_at: datetime
    status: str

    @property
    def approved(self) -> bool:
        return self.status == LogStatus.APPROVED


@dataclass(frozen=True, slots=True)
class MemberStats:
    member_id: int
    streak: int
    achievement_rate: float
    total_submissions: int
    approved_submissions: int
    last_submission_date: datetime | None


@dataclass(frozen=True, slots=True)
class DailyParticipation:
    """One day of the participation-rate series.

    ``participated`` is only populated when the series was requested for a
    specific user; otherwise it stays ``None``.
    """

    date: date
    participation_rate: float
    submissions: int
    user_count: int
    participated: bool | None = None


# ---------------------------------------------------------------------------
# Per-member figures
# ---------------------------------------------------------------------------
def compute_streak(approved_times: Iterable[datetime]) -> int:
    """Length of the trailing run of consecutive approved days.

    Times are sorted ascending and scanned once.  A second log on the same
    calendar day changes nothing, the following day extends the run and any
    larger gap restarts it at 1.

    >>> from datetime import datetime as dt
    >>> compute_streak([dt(2024, 1, 1), dt(2024, 1, 2), dt(2024, 1, 3), dt(2024, 1, 5)])
    1
    """
    streak = 0
    last_day: date | None = None
    for ts in sorted(approved_times):
        day = ts.date()
        if last_day is None:
            streak = 1
        elif day == last_day:
            continue
        elif day - last_day == timedelta(days=1):
            streak += 1
        else:
            streak = 1
        last_day = day
    return streak


def achievement_rate(approved: int, total: int) -> float:
    """``approved / total × 100``; 0.0 when nothing was submitted."""
    if total == 0:
        return 0.0
    return approved / total * 100


def build_member_stats(member_id: int, logs: Sequence[LogSnapshot]) -> MemberStats:
    """Reduce one member's logs (any status) to a :class:`MemberStats`."""
    approved_times = [log.created_at for log in logs if log.approved]
    total = len(logs)
    approved = len(approved_times)
    return MemberStats(
        member_id=member_id,
        streak=compute_streak(approved_times),
        achievement_rate=achievement_rate(approved, total),
        total_submissions=total,
        approved_submissions=approved,
        last_submission_date=max((log.created_at for log in logs), default=None),
    )


# ---------------------------------------------------------------------------
# Per-day participation series
# ---------------------------------------------------------------------------
def date_range(start: date, end: date) -> list[date]:
    """Inclusive list of days from *start* to *end* (empty if end < start)."""
    days = (end - start).days
    return [start + timedelta(days=i) for i in range(days + 1)]


def build_participation_series(
    days: Iterable[date],
    logs: Sequence[LogSnapshot],
    member_ids: set[int],
    requester_id: int | None,
    user_filter: int | None = None,
) -> list[DailyParticipation]:
    """Compute the per-day participation figures.

    Parameters
    ----------
    days : Calendar days to report, in order.
    logs : Every log of the challenge in the period, any status.
    member_ids : Ids of the currently JOINED members.
    requester_id : The caller; ``submissions`` counts this user's logs.
    user_filter : Optional user whose participation is reported per day.
    """
    by_day: dict[date, list[LogSnapshot]] = {}
    for log in logs:
        by_day.setdefault(log.created_at.date(), []).append(log)

    member_count = len(member_ids)
    series: list[DailyParticipation] = []
    for day in days:
        day_logs = by_day.get(day, [])
        submitters = {log.user_id for log in day_logs}
        active_submitters = submitters & member_ids
        rate = len(active_submitters) / member_count * 100 if member_count else 0.0
        series.append(
            DailyParticipation(
                date=day,
                participation_rate=rate,
                submissions=sum(1 for log in day_logs if log.user_id == requester_id),
                user_count=member_count,
                participated=(user_filter in submitters) if user_filter is not None else None,
            )
        )
    return series
