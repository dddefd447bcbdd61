"""
habitchallenge.engine.transitions — Status Transition Tables
=============================================================

Each status enum is a one-directional state machine.  The allowed moves are
listed explicitly; anything else raises :class:`InvalidStateError`.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum

from habitchallenge.database.models import (
    ApplicationStatus,
    ChallengeStatus,
    LogStatus,
    ParticipationStatus,
)
from habitchallenge.engine.errors import InvalidStateError

CHALLENGE_TRANSITIONS: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.RECRUITING: frozenset({ChallengeStatus.ACTIVE, ChallengeStatus.COMPLETED}),
    ChallengeStatus.ACTIVE: frozenset({ChallengeStatus.COMPLETED}),
    ChallengeStatus.COMPLETED: frozenset(),
}

PARTICIPATION_TRANSITIONS: dict[ParticipationStatus, frozenset[ParticipationStatus]] = {
    ParticipationStatus.JOINED: frozenset({ParticipationStatus.LEFT}),
    ParticipationStatus.LEFT: frozenset(),
}

APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

LOG_TRANSITIONS: dict[LogStatus, frozenset[LogStatus]] = {
    LogStatus.PENDING: frozenset({LogStatus.APPROVED, LogStatus.REJECTED}),
    LogStatus.APPROVED: frozenset(),
    LogStatus.REJECTED: frozenset(),
}

_TABLES: dict[type[enum.Enum], dict] = {
    ChallengeStatus: CHALLENGE_TRANSITIONS,
    ParticipationStatus: PARTICIPATION_TRANSITIONS,
    ApplicationStatus: APPLICATION_TRANSITIONS,
    LogStatus: LOG_TRANSITIONS,
}


def can_transition(current: enum.StrEnum, target: enum.StrEnum) -> bool:
    """Return ``True`` if *current* → *target* is in the table for its enum."""
    table = _TABLES[type(target)]
    return target in table[type(target)(current)]


def transition(entity, target: enum.StrEnum) -> None:
    """Move ``entity.status`` to *target* or raise :class:`InvalidStateError`.

    ``entity.status`` may hold the enum member or its string value (the
    column stores strings).
    """
    current = type(target)(entity.status)
    if not can_transition(current, target):
        raise InvalidStateError(
            f"{type(entity).__name__} cannot move from {current.value} to {target.value}"
        )
    entity.status = target.value
