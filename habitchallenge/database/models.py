"""
habitchallenge.database.models — SQLAlchemy 2.0 Data Models
============================================================

Tables:
- users                  — Identity records referenced by every other table
- challenges             — Group habit commitments with capacity + lifecycle
- participations         — One membership row per (user, challenge), ever
- challenge_applications — One join request per (user, challenge), ever
- challenge_logs         — Proof-of-completion submissions awaiting review
- notifications          — Per-user notification feed

Rows reference each other by integer foreign key only.  Services resolve
those ids with explicit lookups, so there is no ORM relationship graph to
keep consistent.
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Habit Challenge ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ChallengeCategory(enum.StrEnum):
    HEALTH = "HEALTH"
    STUDY = "STUDY"
    HABIT = "HABIT"
    HOBBY = "HOBBY"
    SOCIAL = "SOCIAL"
    BUSINESS = "BUSINESS"


class ChallengeDifficulty(enum.StrEnum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ChallengeStatus(enum.StrEnum):
    """RECRUITING → ACTIVE → COMPLETED."""
    RECRUITING = "RECRUITING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class LeaderRole(enum.StrEnum):
    """Whether the leader also takes part as a member."""
    PARTICIPANT = "PARTICIPANT"
    MANAGER = "MANAGER"


class ParticipationStatus(enum.StrEnum):
    JOINED = "JOINED"
    LEFT = "LEFT"


class ApplicationStatus(enum.StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LogStatus(enum.StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class NotificationType(enum.StrEnum):
    """Closed set of events that produce a notification."""
    CHALLENGE_APPROVED = "CHALLENGE_APPROVED"
    CHALLENGE_REJECTED = "CHALLENGE_REJECTED"
    GROUP_JOINED = "GROUP_JOINED"
    GROUP_STARTED = "GROUP_STARTED"
    GROUP_ENDED = "GROUP_ENDED"
    APPLICATION_APPROVED = "APPLICATION_APPROVED"
    APPLICATION_REJECTED = "APPLICATION_REJECTED"
    NEW_CHALLENGE_LOG = "NEW_CHALLENGE_LOG"
    NEW_APPLICATION = "NEW_APPLICATION"
    DAILY_REMINDER = "DAILY_REMINDER"
    DAILY_APPROVAL_SUMMARY = "DAILY_APPROVAL_SUMMARY"
    SYSTEM = "SYSTEM"


# ---------------------------------------------------------------------------
# Users: identity supplied by the auth collaborator
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    login_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    nickname: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} nickname={self.nickname!r}>"


# ---------------------------------------------------------------------------
# Challenges: group habit commitments
# ---------------------------------------------------------------------------
class Challenge(Base):
    """A group habit commitment.

    ``leader_id`` is fixed at creation.  ``invite_code`` is present iff
    ``is_private``.  Member counts are never stored here; they are always
    derived from JOINED participation rows.
    """
    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # days, informational
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    max_members: Mapped[int] = mapped_column(Integer, nullable=False)
    leader_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChallengeStatus.RECRUITING.value
    )
    cover_image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    reward: Mapped[str | None] = mapped_column(String(500), default=None)
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    invite_code: Mapped[str | None] = mapped_column(String(8), unique=True, default=None)
    leader_role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LeaderRole.PARTICIPANT.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_challenges_status", "status"),
        Index("ix_challenges_start_date", "start_date"),
        Index("ix_challenges_end_date", "end_date"),
        Index("ix_challenges_leader", "leader_id"),
    )

    def __repr__(self) -> str:
        return f"<Challenge id={self.id} name={self.name!r} status={self.status}>"


# ---------------------------------------------------------------------------
# Participation: a user's membership in one challenge
# ---------------------------------------------------------------------------
class Participation(Base):
    __tablename__ = "participations"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ParticipationStatus.JOINED.value
    )
    join_reason: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_participations_user_challenge"),
        Index("ix_participations_challenge_status", "challenge_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ParticipationStatus.JOINED

    def __repr__(self) -> str:
        return (
            f"<Participation user={self.user_id} "
            f"challenge={self.challenge_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# ChallengeApplication: leader-reviewed join request
# ---------------------------------------------------------------------------
class ChallengeApplication(Base):
    __tablename__ = "challenge_applications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApplicationStatus.PENDING.value
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_applications_user_challenge"),
        Index("ix_applications_challenge_status", "challenge_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ChallengeApplication id={self.id} user={self.user_id} "
            f"challenge={self.challenge_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# ChallengeLog: one proof-of-completion submission
# ---------------------------------------------------------------------------
class ChallengeLog(Base):
    __tablename__ = "challenge_logs"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(String(2000), nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LogStatus.PENDING.value
    )
    rejection_comment: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_challenge_logs_challenge_status", "challenge_id", "status"),
        Index("ix_challenge_logs_user_challenge_time", "user_id", "challenge_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ChallengeLog id={self.id} user={self.user_id} status={self.status}>"


# ---------------------------------------------------------------------------
# Notification: per-user feed entry
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    related_id: Mapped[str | None] = mapped_column(String(50), default=None)
    action_url: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_notifications_user_time", "user_id", "created_at"),
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.type}>"
