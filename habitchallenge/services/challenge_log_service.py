"""
habitchallenge.services.challenge_log_service — Check-in Submission & Review
=============================================================================

JOINED members submit proof-of-completion logs; the challenge leader
approves or rejects each one exactly once.  Both directions notify the
other party through the notification sink.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from habitchallenge.constants import DEFAULT_PAGE_SIZE
from habitchallenge.database.engine import get_session
from habitchallenge.database.models import Challenge, ChallengeLog, LogStatus
from habitchallenge.engine import errors
from habitchallenge.engine.transitions import transition
from habitchallenge.services.challenge_service import (
    is_active_member,
    load_challenge,
    load_user,
    visible_challenges_clause,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from habitchallenge.engine.clock import Clock
    from habitchallenge.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class ChallengeLogService:
    def __init__(self, engine: Engine, notifier: NotificationService, clock: Clock) -> None:
        self.engine = engine
        self.notifier = notifier
        self.clock = clock

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def create_log(
        self, user_id: int, challenge_id: int, content: str, image_url: str | None = None
    ) -> ChallengeLog:
        """Submit a PENDING log.  Only JOINED members may submit."""
        if not content or not content.strip():
            raise errors.ValidationError("A check-in needs content")

        with get_session(self.engine) as session:
            challenge = load_challenge(session, challenge_id)
            if not is_active_member(session, user_id, challenge_id):
                raise errors.ForbiddenError("Only active members can submit check-ins")
            author = load_user(session, user_id)

            now = self.clock.now()
            log = ChallengeLog(
                user_id=user_id,
                challenge_id=challenge_id,
                content=content,
                image_url=image_url,
                status=LogStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            session.add(log)
            session.flush()
            self.notifier.notify_new_log(
                session, challenge.leader_id, author.nickname, challenge, log.id
            )

        logger.info("User %d submitted log %d to challenge %d", user_id, log.id, challenge_id)
        return log

    # -------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------
    def approve_log(self, log_id: int, actor_id: int, comment: str | None = None) -> ChallengeLog:
        """Approve a PENDING log; *comment* is optional."""
        return self._review(log_id, actor_id, LogStatus.APPROVED, comment)

    def reject_log(self, log_id: int, actor_id: int, comment: str) -> ChallengeLog:
        """Reject a PENDING log; a non-blank *comment* is required."""
        return self._review(log_id, actor_id, LogStatus.REJECTED, comment)

    def _review(
        self, log_id: int, actor_id: int, decision: LogStatus, comment: str | None
    ) -> ChallengeLog:
        with get_session(self.engine) as session:
            log = session.scalar(
                select(ChallengeLog).where(ChallengeLog.id == log_id).with_for_update()
            )
            if log is None:
                raise errors.NotFoundError(f"Challenge log {log_id} not found")
            challenge = load_challenge(session, log.challenge_id)
            if challenge.leader_id != actor_id:
                raise errors.ForbiddenError("Only the challenge leader can review check-ins")

            if log.status != LogStatus.PENDING:
                raise errors.InvalidStateError(f"Challenge log {log_id} has already been reviewed")
            if decision == LogStatus.REJECTED and (not comment or not comment.strip()):
                raise errors.ValidationError("A rejection needs a comment")

            transition(log, decision)
            log.rejection_comment = comment
            log.updated_at = self.clock.now()

            if decision == LogStatus.APPROVED:
                self.notifier.notify_log_approved(session, log.user_id, challenge, log.id)
            else:
                self.notifier.notify_log_rejected(session, log.user_id, challenge, log.id, comment)

        logger.info("Log %d %s by leader %d", log_id, decision.value.lower(), actor_id)
        return log

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_log(self, log_id: int) -> ChallengeLog:
        with get_session(self.engine) as session:
            log = session.get(ChallengeLog, log_id)
            if log is None:
                raise errors.NotFoundError(f"Challenge log {log_id} not found")
            return log

    def list_logs(
        self,
        *,
        challenge_id: int | None = None,
        user_id: int | None = None,
        status: LogStatus | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        viewer_id: int | None = None,
    ) -> tuple[int, list[ChallengeLog]]:
        """Return ``(total, page_items)`` newest first.

        Logs of private challenges are only listed for *viewer_id* when
        they lead or belong to that challenge.
        """
        conditions = [visible_challenges_clause(viewer_id)]
        if challenge_id is not None:
            conditions.append(ChallengeLog.challenge_id == challenge_id)
        if user_id is not None:
            conditions.append(ChallengeLog.user_id == user_id)
        if status is not None:
            conditions.append(ChallengeLog.status == LogStatus(status).value)

        with get_session(self.engine) as session:
            total = session.scalar(
                select(func.count())
                .select_from(ChallengeLog)
                .join(Challenge, Challenge.id == ChallengeLog.challenge_id)
                .where(*conditions)
            ) or 0
            items = session.scalars(
                select(ChallengeLog)
                .join(Challenge, Challenge.id == ChallengeLog.challenge_id)
                .where(*conditions)
                .order_by(ChallengeLog.created_at.desc(), ChallengeLog.id.desc())
                .offset((max(page, 1) - 1) * page_size)
                .limit(page_size)
            ).all()
        return total, list(items)

    def list_pending_logs(self, challenge_id: int) -> list[ChallengeLog]:
        """PENDING logs oldest first, i.e. review order."""
        with get_session(self.engine) as session:
            return list(
                session.scalars(
                    select(ChallengeLog)
                    .where(
                        ChallengeLog.challenge_id == challenge_id,
                        ChallengeLog.status == LogStatus.PENDING.value,
                    )
                    .order_by(ChallengeLog.created_at, ChallengeLog.id)
                ).all()
            )

    def list_approved_logs(self, challenge_id: int) -> list[ChallengeLog]:
        with get_session(self.engine) as session:
            return list(
                session.scalars(
                    select(ChallengeLog)
                    .where(
                        ChallengeLog.challenge_id == challenge_id,
                        ChallengeLog.status == LogStatus.APPROVED.value,
                    )
                    .order_by(ChallengeLog.created_at, ChallengeLog.id)
                ).all()
            )
