"""
habitchallenge.services.notification_service — Notification Sink & Feed
========================================================================

Two halves share this module:

* **Sink** — :meth:`NotificationService.notify` and the typed ``notify_*``
  helpers.  Callers pass the session of the operation they are running so
  the notification commits with it.  Each write sits in its own SAVEPOINT;
  a failed write is logged and swallowed, so the calling operation never
  observes a notification outcome.
* **Feed** — the read side a user sees: listing, unread counts, and the
  ``is_read`` false → true transition.

Usage::

    notifier = NotificationService(engine, clock)

    with get_session(engine) as session:
        ...
        notifier.notify_new_application(session, leader_id, "Mason", challenge, app_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from habitchallenge.constants import DEFAULT_PAGE_SIZE
from habitchallenge.database.engine import get_session
from habitchallenge.database.models import Challenge, Notification, NotificationType
from habitchallenge.engine import errors

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from habitchallenge.engine.clock import Clock

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, engine: Engine, clock: Clock) -> None:
        self.engine = engine
        self.clock = clock

    # -------------------------------------------------------------------
    # Sink
    # -------------------------------------------------------------------
    def notify(
        self,
        session: Session,
        user_id: int,
        kind: NotificationType,
        title: str,
        message: str,
        related_id: int | str | None = None,
        action_url: str | None = None,
    ) -> Notification | None:
        """Write one notification inside *session*.

        Returns the new row, or ``None`` if the write failed.
        """
        try:
            with session.begin_nested():
                note = Notification(
                    user_id=user_id,
                    type=kind.value,
                    title=title,
                    message=message,
                    related_id=str(related_id) if related_id is not None else None,
                    action_url=action_url,
                    is_read=False,
                    created_at=self.clock.now(),
                )
                session.add(note)
        except SQLAlchemyError:
            logger.exception("Failed to write %s notification for user %d", kind, user_id)
            return None
        logger.debug("Notification %s → user %d", kind, user_id)
        return note

    def notify_log_approved(self, session: Session, user_id: int, challenge: Challenge, log_id: int):
        return self.notify(
            session, user_id, NotificationType.CHALLENGE_APPROVED,
            "Check-in approved",
            f"Your check-in for '{challenge.name}' was approved.",
            related_id=log_id,
            action_url=f"/challenges/{challenge.id}",
        )

    def notify_log_rejected(
        self, session: Session, user_id: int, challenge: Challenge, log_id: int, reason: str
    ):
        return self.notify(
            session, user_id, NotificationType.CHALLENGE_REJECTED,
            "Check-in rejected",
            f"Your check-in for '{challenge.name}' was rejected. Reason: {reason}",
            related_id=log_id,
            action_url=f"/challenges/{challenge.id}",
        )

    def notify_group_joined(self, session: Session, user_id: int, challenge: Challenge):
        return self.notify(
            session, user_id, NotificationType.GROUP_JOINED,
            "Joined group",
            f"You joined '{challenge.name}'.",
            related_id=challenge.id,
            action_url=f"/challenges/{challenge.id}",
        )

    def notify_challenge_started(self, session: Session, user_id: int, challenge: Challenge):
        return self.notify(
            session, user_id, NotificationType.GROUP_STARTED,
            "Challenge started",
            f"'{challenge.name}' has started! Submit your first check-in.",
            related_id=challenge.id,
            action_url=f"/challenges/{challenge.id}",
        )

    def notify_challenge_ended(self, session: Session, user_id: int, challenge: Challenge):
        return self.notify(
            session, user_id, NotificationType.GROUP_ENDED,
            "Challenge ended",
            f"'{challenge.name}' has ended. Take a look at the results.",
            related_id=challenge.id,
            action_url=f"/challenges/{challenge.id}/results",
        )

    def notify_application_approved(
        self, session: Session, user_id: int, challenge: Challenge, application_id: int
    ):
        return self.notify(
            session, user_id, NotificationType.APPLICATION_APPROVED,
            "Application approved",
            f"Your application to '{challenge.name}' was approved. You can take part now!",
            related_id=application_id,
            action_url=f"/challenges/{challenge.id}",
        )

    def notify_application_rejected(
        self, session: Session, user_id: int, challenge: Challenge, application_id: int, reason: str
    ):
        return self.notify(
            session, user_id, NotificationType.APPLICATION_REJECTED,
            "Application rejected",
            f"Your application to '{challenge.name}' was rejected. Reason: {reason}",
            related_id=application_id,
            action_url="/applications",
        )

    def notify_new_log(
        self, session: Session, leader_id: int, author_name: str, challenge: Challenge, log_id: int
    ):
        return self.notify(
            session, leader_id, NotificationType.NEW_CHALLENGE_LOG,
            "New check-in",
            f"{author_name} uploaded a new check-in to '{challenge.name}'.",
            related_id=log_id,
            action_url=f"/manage/{challenge.id}",
        )

    def notify_new_application(
        self, session: Session, leader_id: int, applicant_name: str, challenge: Challenge,
        application_id: int,
    ):
        return self.notify(
            session, leader_id, NotificationType.NEW_APPLICATION,
            "New application",
            f"{applicant_name} applied to join '{challenge.name}'.",
            related_id=application_id,
            action_url=f"/challenges/{challenge.id}/applications",
        )

    def notify_daily_reminder(self, session: Session, user_id: int, challenge: Challenge):
        return self.notify(
            session, user_id, NotificationType.DAILY_REMINDER,
            "Check-in reminder",
            f"You have not submitted today's check-in for '{challenge.name}' yet.",
            related_id=challenge.id,
            action_url=f"/challenges/{challenge.id}/upload",
        )

    def notify_approval_summary(
        self, session: Session, leader_id: int, challenge: Challenge, pending_count: int
    ):
        return self.notify(
            session, leader_id, NotificationType.DAILY_APPROVAL_SUMMARY,
            "Check-ins awaiting review",
            f"'{challenge.name}' has {pending_count} check-in(s) waiting for your review.",
            related_id=challenge.id,
            action_url=f"/manage/{challenge.id}",
        )

    def notify_system(
        self, session: Session, user_id: int, title: str, message: str,
        action_url: str | None = None,
    ):
        return self.notify(
            session, user_id, NotificationType.SYSTEM, title, message, action_url=action_url
        )

    # -------------------------------------------------------------------
    # Feed
    # -------------------------------------------------------------------
    def list_notifications(
        self,
        user_id: int,
        *,
        is_read: bool | None = None,
        kind: NotificationType | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[int, list[Notification]]:
        """Return ``(total, page_items)`` newest first."""
        conditions = [Notification.user_id == user_id]
        if is_read is not None:
            conditions.append(Notification.is_read.is_(is_read))
        if kind is not None:
            conditions.append(Notification.type == kind.value)

        with get_session(self.engine) as session:
            total = session.scalar(
                select(func.count()).select_from(Notification).where(*conditions)
            ) or 0
            items = session.scalars(
                select(Notification)
                .where(*conditions)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .offset((max(page, 1) - 1) * page_size)
                .limit(page_size)
            ).all()
        return total, list(items)

    def count_unread(self, user_id: int) -> int:
        with get_session(self.engine) as session:
            return session.scalar(
                select(func.count())
                .select_from(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            ) or 0

    def mark_as_read(self, user_id: int, notification_id: int) -> Notification:
        with get_session(self.engine) as session:
            note = _owned_notification(session, user_id, notification_id)
            note.is_read = True
            return note

    def mark_all_read(self, user_id: int) -> int:
        """Flip every unread notification of *user_id*; return how many."""
        with get_session(self.engine) as session:
            result = session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True)
            )
            count = result.rowcount or 0
        logger.info("Marked %d notifications read for user %d", count, user_id)
        return count

    def delete_notification(self, user_id: int, notification_id: int) -> None:
        with get_session(self.engine) as session:
            session.delete(_owned_notification(session, user_id, notification_id))


def _owned_notification(session: Session, user_id: int, notification_id: int) -> Notification:
    note = session.get(Notification, notification_id)
    if note is None:
        raise errors.NotFoundError(f"Notification {notification_id} not found")
    if note.user_id != user_id:
        raise errors.ForbiddenError("Notification belongs to another user")
    return note
