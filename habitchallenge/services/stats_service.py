"""
habitchallenge.services.stats_service — Statistics Engine
==========================================================

Loads the rows a statistic needs and hands them to the pure functions in
:mod:`habitchallenge.engine.stats`.  Both reads require the requester to be
able to see the challenge; a hidden challenge is reported as not found.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from habitchallenge.constants import day_window
from habitchallenge.database.engine import get_session
from habitchallenge.database.models import ChallengeLog
from habitchallenge.engine import errors
from habitchallenge.engine.stats import (
    DailyParticipation,
    LogSnapshot,
    MemberStats,
    build_member_stats,
    build_participation_series,
    date_range,
)
from habitchallenge.services.challenge_service import joined_member_ids, load_visible_challenge

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from habitchallenge.engine.clock import Clock

logger = logging.getLogger(__name__)


def _snapshots(session: Session, challenge_id: int, *conditions) -> list[LogSnapshot]:
    rows = session.execute(
        select(ChallengeLog.user_id, ChallengeLog.created_at, ChallengeLog.status)
        .where(ChallengeLog.challenge_id == challenge_id, *conditions)
        .order_by(ChallengeLog.created_at, ChallengeLog.id)
    ).all()
    return [LogSnapshot(user_id=r.user_id, created_at=r.created_at, status=r.status) for r in rows]


class StatsService:
    def __init__(self, engine: Engine, clock: Clock) -> None:
        self.engine = engine
        self.clock = clock

    def member_stats(self, challenge_id: int, requester_id: int | None) -> list[MemberStats]:
        """One :class:`MemberStats` per JOINED member, in join order."""
        with get_session(self.engine) as session:
            load_visible_challenge(session, requester_id, challenge_id)
            members = joined_member_ids(session, challenge_id)
            logs = _snapshots(session, challenge_id)

        by_user: dict[int, list[LogSnapshot]] = {member: [] for member in members}
        for log in logs:
            if log.user_id in by_user:
                by_user[log.user_id].append(log)
        return [build_member_stats(member, by_user[member]) for member in members]

    def participation_series(
        self,
        challenge_id: int,
        requester_id: int | None,
        *,
        user_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[DailyParticipation]:
        """Per-day participation rate between *start_date* and *end_date*.

        The range defaults to the challenge's start date through the earlier
        of its end date and today.  ``submissions`` counts the requester's
        own logs for the day, whichever *user_id* is being inspected.
        """
        if start_date is not None and end_date is not None and end_date < start_date:
            raise errors.ValidationError("end_date must not precede start_date")

        with get_session(self.engine) as session:
            challenge = load_visible_challenge(session, requester_id, challenge_id)
            first = start_date or challenge.start_date
            last = end_date or min(challenge.end_date, self.clock.today())
            days = date_range(first, last)
            if not days:
                return []

            window_start, _ = day_window(days[0])
            _, window_end = day_window(days[-1])
            members = set(joined_member_ids(session, challenge_id))
            logs = _snapshots(
                session,
                challenge_id,
                ChallengeLog.created_at >= window_start,
                ChallengeLog.created_at < window_end,
            )

        return build_participation_series(
            days,
            logs,
            members,
            requester_id=requester_id,
            user_filter=user_id,
        )
