"""
habitchallenge.services.scheduler_service — Daily Scheduled Jobs
=================================================================

The four jobs the worker fires once a day:

* :meth:`SchedulerService.send_daily_reminders` — nudge JOINED members of
  ACTIVE challenges who have not logged today.
* :meth:`SchedulerService.send_approval_summaries` — tell each leader how
  many logs are waiting for review.
* :meth:`SchedulerService.start_due_challenges` — RECRUITING → ACTIVE on
  the start date.
* :meth:`SchedulerService.complete_due_challenges` — → COMPLETED on the end
  date.

Each challenge is processed in its own transaction.  A failure is logged
and the run moves on to the next challenge.  Every job returns a summary
dict, e.g. ``{"challenges": 3, "notified": 7, "failed": 0}``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from habitchallenge.constants import day_window
from habitchallenge.database.engine import get_session
from habitchallenge.database.models import (
    Challenge,
    ChallengeLog,
    ChallengeStatus,
    LogStatus,
)
from habitchallenge.engine.transitions import transition
from habitchallenge.services.challenge_service import joined_member_ids, load_challenge

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from habitchallenge.engine.clock import Clock
    from habitchallenge.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class SchedulerService:
    def __init__(self, engine: Engine, notifier: NotificationService, clock: Clock) -> None:
        self.engine = engine
        self.notifier = notifier
        self.clock = clock

    # -------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------
    def send_daily_reminders(self) -> dict[str, int]:
        today = self.clock.today()
        start, end = day_window(today)

        def remind(session: Session, challenge: Challenge) -> int:
            submitted = set(
                session.scalars(
                    select(ChallengeLog.user_id).where(
                        ChallengeLog.challenge_id == challenge.id,
                        ChallengeLog.created_at >= start,
                        ChallengeLog.created_at < end,
                    )
                ).all()
            )
            notified = 0
            for user_id in joined_member_ids(session, challenge.id):
                if user_id not in submitted:
                    self.notifier.notify_daily_reminder(session, user_id, challenge)
                    notified += 1
            return notified

        ids = self._challenge_ids(Challenge.status == ChallengeStatus.ACTIVE.value)
        return self._run("daily reminder", ids, remind)

    def send_approval_summaries(self) -> dict[str, int]:
        def summarise(session: Session, challenge: Challenge) -> int:
            pending = session.scalar(
                select(func.count())
                .select_from(ChallengeLog)
                .where(
                    ChallengeLog.challenge_id == challenge.id,
                    ChallengeLog.status == LogStatus.PENDING.value,
                )
            ) or 0
            if pending == 0:
                return 0
            self.notifier.notify_approval_summary(session, challenge.leader_id, challenge, pending)
            return 1

        ids = self._challenge_ids(Challenge.status == ChallengeStatus.ACTIVE.value)
        return self._run("approval summary", ids, summarise)

    def start_due_challenges(self) -> dict[str, int]:
        """Activate every RECRUITING challenge whose start date is today,
        full or not."""
        def start(session: Session, challenge: Challenge) -> int:
            transition(challenge, ChallengeStatus.ACTIVE)
            challenge.updated_at = self.clock.now()
            audience = self._audience(session, challenge)
            for user_id in audience:
                self.notifier.notify_challenge_started(session, user_id, challenge)
            logger.info("Challenge %d started", challenge.id)
            return len(audience)

        ids = self._challenge_ids(
            Challenge.start_date == self.clock.today(),
            Challenge.status == ChallengeStatus.RECRUITING.value,
        )
        return self._run("challenge start", ids, start)

    def complete_due_challenges(self) -> dict[str, int]:
        def complete(session: Session, challenge: Challenge) -> int:
            transition(challenge, ChallengeStatus.COMPLETED)
            challenge.updated_at = self.clock.now()
            audience = self._audience(session, challenge)
            for user_id in audience:
                self.notifier.notify_challenge_ended(session, user_id, challenge)
            logger.info("Challenge %d completed", challenge.id)
            return len(audience)

        ids = self._challenge_ids(
            Challenge.end_date == self.clock.today(),
            Challenge.status != ChallengeStatus.COMPLETED.value,
        )
        return self._run("challenge end", ids, complete)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _challenge_ids(self, *conditions) -> list[int]:
        with get_session(self.engine) as session:
            return list(
                session.scalars(
                    select(Challenge.id).where(*conditions).order_by(Challenge.id)
                ).all()
            )

    @staticmethod
    def _audience(session: Session, challenge: Challenge) -> list[int]:
        """JOINED members, plus the leader when they are not one of them."""
        members = joined_member_ids(session, challenge.id)
        if challenge.leader_id not in members:
            members.append(challenge.leader_id)
        return members

    def _run(
        self,
        job: str,
        challenge_ids: list[int],
        handler: Callable[[Session, Challenge], int],
    ) -> dict[str, int]:
        notified = 0
        failed = 0
        for challenge_id in challenge_ids:
            try:
                with get_session(self.engine) as session:
                    challenge = load_challenge(session, challenge_id, lock=True)
                    notified += handler(session, challenge)
            except Exception:
                failed += 1
                logger.exception("%s job failed for challenge %d", job.capitalize(), challenge_id)

        summary = {"challenges": len(challenge_ids), "notified": notified, "failed": failed}
        logger.info(
            "%s job done — %d challenges, %d notified, %d failed",
            job.capitalize(), summary["challenges"], notified, failed,
        )
        return summary
