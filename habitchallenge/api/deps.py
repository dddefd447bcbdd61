"""
habitchallenge.api.deps — FastAPI dependency injection
=======================================================
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from habitchallenge.api import auth
from habitchallenge.config import HabitConfig, load_config
from habitchallenge.database.engine import create_db_engine
from habitchallenge.engine.clock import Clock, SystemClock
from habitchallenge.services.challenge_log_service import ChallengeLogService
from habitchallenge.services.challenge_service import ChallengeService
from habitchallenge.services.notification_service import NotificationService
from habitchallenge.services.stats_service import StatsService
from habitchallenge.services.user_service import UserService


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> HabitConfig:
    return load_config()


def get_clock(config: HabitConfig = Depends(get_config)) -> Clock:
    return SystemClock(config.timezone)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
def get_notification_service(
    engine: Engine = Depends(get_engine),
    clock: Clock = Depends(get_clock),
) -> NotificationService:
    return NotificationService(engine, clock)


def get_challenge_service(
    engine: Engine = Depends(get_engine),
    notifier: NotificationService = Depends(get_notification_service),
    clock: Clock = Depends(get_clock),
    config: HabitConfig = Depends(get_config),
) -> ChallengeService:
    return ChallengeService(
        engine, notifier, clock, invite_code_attempts=config.invite_code_attempts
    )


def get_log_service(
    engine: Engine = Depends(get_engine),
    notifier: NotificationService = Depends(get_notification_service),
    clock: Clock = Depends(get_clock),
) -> ChallengeLogService:
    return ChallengeLogService(engine, notifier, clock)


def get_stats_service(
    engine: Engine = Depends(get_engine),
    clock: Clock = Depends(get_clock),
) -> StatsService:
    return StatsService(engine, clock)


def get_user_service(
    engine: Engine = Depends(get_engine),
    clock: Clock = Depends(get_clock),
) -> UserService:
    return UserService(engine, clock)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
def get_optional_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> int | None:
    """Caller's user id, or ``None`` for anonymous reads.  A malformed or
    invalid token is still a 401."""
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid authorization header")
    token = authorization.split(" ", 1)[1]
    try:
        return auth.decode_user_id(token)
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def get_current_user_id(
    user_id: int | None = Depends(get_optional_user_id),
) -> int:
    """Validate the Bearer JWT and return the caller's id. Raises 401 if absent."""
    if user_id is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return user_id
