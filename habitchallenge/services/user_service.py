"""
habitchallenge.services.user_service — Identity Records
========================================================

The core only ever needs a user id and a display nickname.  Credentials
belong to the auth collaborator; this service just keeps the rows every
other table points at.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from habitchallenge.constants import DEFAULT_PAGE_SIZE
from habitchallenge.database.engine import get_session
from habitchallenge.database.models import User
from habitchallenge.engine import errors

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from habitchallenge.engine.clock import Clock

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, engine: Engine, clock: Clock) -> None:
        self.engine = engine
        self.clock = clock

    def create_user(
        self, email: str, login_id: str, nickname: str, avatar_url: str | None = None
    ) -> User:
        """Insert a user; duplicate email, login id or nickname → ConflictError."""
        try:
            with get_session(self.engine) as session:
                clash = session.scalar(
                    select(User).where(
                        or_(
                            User.email == email,
                            User.login_id == login_id,
                            User.nickname == nickname,
                        )
                    )
                )
                if clash is not None:
                    raise errors.ConflictError("Email, login id or nickname already in use")
                user = User(
                    email=email,
                    login_id=login_id,
                    nickname=nickname,
                    avatar_url=avatar_url,
                    is_active=True,
                    created_at=self.clock.now(),
                )
                session.add(user)
                session.flush()
        except IntegrityError as exc:
            raise errors.ConflictError("Email, login id or nickname already in use") from exc

        logger.info("Created user %d (%s)", user.id, nickname)
        return user

    def get_user(self, user_id: int) -> User:
        with get_session(self.engine) as session:
            user = session.get(User, user_id)
            if user is None:
                raise errors.NotFoundError(f"User {user_id} not found")
            return user

    def list_users(
        self, *, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[int, list[User]]:
        """Return ``(total, page_items)`` in signup order."""
        with get_session(self.engine) as session:
            total = session.scalar(select(func.count()).select_from(User)) or 0
            items = session.scalars(
                select(User)
                .order_by(User.id)
                .offset((max(page, 1) - 1) * page_size)
                .limit(page_size)
            ).all()
        return total, list(items)

    def update_user(
        self,
        user_id: int,
        actor_id: int,
        *,
        nickname: str | None = None,
        email: str | None = None,
    ) -> User:
        """Change the nickname and/or email of *user_id*.

        Users may only edit themselves.  A nickname or email already held by
        someone else raises :class:`ConflictError`; keeping the current value
        is not a clash.
        """
        if actor_id != user_id:
            raise errors.ForbiddenError("Users can only edit their own profile")
        if nickname is not None and not nickname.strip():
            raise errors.ValidationError("Nickname cannot be blank")

        try:
            with get_session(self.engine) as session:
                user = session.get(User, user_id, with_for_update=True)
                if user is None:
                    raise errors.NotFoundError(f"User {user_id} not found")

                if nickname is not None and nickname != user.nickname:
                    if self._taken(session, User.nickname == nickname, user_id):
                        raise errors.ConflictError(f"Nickname {nickname!r} already in use")
                    user.nickname = nickname
                if email is not None and email != user.email:
                    if self._taken(session, User.email == email, user_id):
                        raise errors.ConflictError(f"Email {email!r} already in use")
                    user.email = email
                session.flush()
        except IntegrityError as exc:
            raise errors.ConflictError("Nickname or email already in use") from exc

        logger.info("User %d updated their profile", user_id)
        return user

    @staticmethod
    def _taken(session, condition, user_id: int) -> bool:
        return session.scalar(
            select(User.id).where(condition, User.id != user_id)
        ) is not None
