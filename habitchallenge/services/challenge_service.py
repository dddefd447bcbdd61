"""
habitchallenge.services.challenge_service — Membership Engine
==============================================================

Owns challenge creation and edits, joining (directly, by invite code, or
through a leader-approved application), leaving, and the visibility rule
applied to every read.

Every public method is one transaction.  Mutations read the challenge row
with ``FOR UPDATE`` first, so the "count JOINED rows, then insert" sequence
cannot interleave with another join on the same challenge.  Each rule check
fails fast with a kind from :mod:`habitchallenge.engine.errors`; the
rollback in :func:`~habitchallenge.database.engine.get_session` guarantees
no partial state survives a failure.

Usage::

    service = ChallengeService(engine, notifier, clock)
    challenge = service.create_challenge(leader_id, ChallengeDraft(...))
    service.join_challenge(user_id, challenge.id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from habitchallenge.constants import (
    APPROVAL_JOIN_REASON,
    DEFAULT_PAGE_SIZE,
    LEADER_JOIN_REASON,
    MAX_MEMBERS,
    MIN_MEMBERS,
    paginate,
)
from habitchallenge.database.engine import get_session
from habitchallenge.database.models import (
    ApplicationStatus,
    Challenge,
    ChallengeApplication,
    ChallengeCategory,
    ChallengeDifficulty,
    ChallengeStatus,
    LeaderRole,
    Participation,
    ParticipationStatus,
    User,
)
from habitchallenge.engine import errors
from habitchallenge.engine.invite import generate_invite_code, is_valid_invite_code
from habitchallenge.engine.transitions import transition

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from habitchallenge.engine.clock import Clock
    from habitchallenge.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class ChallengeDraft:
    """Fields a leader supplies when creating a challenge."""

    name: str
    description: str
    category: ChallengeCategory
    difficulty: ChallengeDifficulty
    duration: int
    start_date: date
    end_date: date
    max_members: int
    is_private: bool = False
    leader_role: LeaderRole = LeaderRole.PARTICIPANT
    cover_image_url: str | None = None
    reward: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ChallengePatch:
    """Partial edit: ``None`` keeps the stored value.

    Leader, privacy, invite code, leader role and status are deliberately
    absent; they cannot be changed through an edit.
    """

    name: str | None = None
    description: str | None = None
    category: ChallengeCategory | None = None
    difficulty: ChallengeDifficulty | None = None
    duration: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    max_members: int | None = None
    cover_image_url: str | None = None
    reward: str | None = None
    tags: list[str] | None = None


# ---------------------------------------------------------------------------
# Session-level helpers (shared with the log, stats and scheduler services)
# ---------------------------------------------------------------------------
def load_challenge(session: Session, challenge_id: int, *, lock: bool = False) -> Challenge:
    """Fetch a challenge or raise NotFoundError; ``lock`` adds FOR UPDATE."""
    stmt = select(Challenge).where(Challenge.id == challenge_id)
    if lock:
        stmt = stmt.with_for_update()
    challenge = session.scalar(stmt)
    if challenge is None:
        raise errors.NotFoundError(f"Challenge {challenge_id} not found")
    return challenge


def load_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise errors.NotFoundError(f"User {user_id} not found")
    return user


def count_joined(session: Session, challenge_id: int) -> int:
    """Live count of JOINED participations; never cached."""
    return session.scalar(
        select(func.count())
        .select_from(Participation)
        .where(
            Participation.challenge_id == challenge_id,
            Participation.status == ParticipationStatus.JOINED.value,
        )
    ) or 0


def get_participation(session: Session, user_id: int, challenge_id: int) -> Participation | None:
    return session.scalar(
        select(Participation).where(
            Participation.user_id == user_id,
            Participation.challenge_id == challenge_id,
        )
    )


def joined_member_ids(session: Session, challenge_id: int) -> list[int]:
    return list(
        session.scalars(
            select(Participation.user_id)
            .where(
                Participation.challenge_id == challenge_id,
                Participation.status == ParticipationStatus.JOINED.value,
            )
            .order_by(Participation.created_at, Participation.id)
        ).all()
    )


def is_active_member(session: Session, user_id: int, challenge_id: int) -> bool:
    participation = get_participation(session, user_id, challenge_id)
    return participation is not None and participation.is_active


def can_view(session: Session, viewer_id: int | None, challenge: Challenge) -> bool:
    """Public → everyone; private → the leader and JOINED members only."""
    if not challenge.is_private:
        return True
    if viewer_id is None:
        return False
    if challenge.leader_id == viewer_id:
        return True
    return is_active_member(session, viewer_id, challenge.id)


def visible_challenges_clause(viewer_id: int | None):
    """SQL form of :func:`can_view` for filtering rows joined to ``challenges``."""
    if viewer_id is None:
        return Challenge.is_private.is_(False)
    joined = select(Participation.challenge_id).where(
        Participation.user_id == viewer_id,
        Participation.status == ParticipationStatus.JOINED.value,
    )
    return or_(
        Challenge.is_private.is_(False),
        Challenge.leader_id == viewer_id,
        Challenge.id.in_(joined),
    )


def find_by_invite_code(session: Session, invite_code: str, lock: bool = False) -> Challenge:
    """Codes are matched case-insensitively; a malformed code matches nothing."""
    code = invite_code.strip().upper()
    challenge = None
    if is_valid_invite_code(code):
        stmt = select(Challenge).where(Challenge.invite_code == code)
        challenge = session.scalar(stmt.with_for_update() if lock else stmt)
    if challenge is None:
        raise errors.NotFoundError(f"No challenge with invite code {invite_code}")
    return challenge


def load_visible_challenge(session: Session, viewer_id: int | None, challenge_id: int) -> Challenge:
    """Like :func:`load_challenge`, but a hidden challenge is reported as absent."""
    challenge = load_challenge(session, challenge_id)
    if not can_view(session, viewer_id, challenge):
        raise errors.NotFoundError(f"Challenge {challenge_id} not found")
    return challenge


def validate_schedule(start_date: date, end_date: date, max_members: int, today: date) -> None:
    if start_date < today:
        raise errors.ValidationError("Start date cannot be in the past")
    if end_date <= start_date:
        raise errors.ValidationError("End date must be after the start date")
    if not MIN_MEMBERS <= max_members <= MAX_MEMBERS:
        raise errors.ValidationError(
            f"max_members must be between {MIN_MEMBERS} and {MAX_MEMBERS}"
        )


def _ensure_leader(challenge: Challenge, user_id: int, action: str) -> None:
    if challenge.leader_id != user_id:
        raise errors.ForbiddenError(f"Only the challenge leader can {action}")


def _ensure_recruiting(challenge: Challenge) -> None:
    if challenge.status != ChallengeStatus.RECRUITING:
        raise errors.InvalidStateError(
            f"Challenge {challenge.id} is {challenge.status}, not recruiting"
        )


def _ensure_capacity(session: Session, challenge: Challenge) -> None:
    if count_joined(session, challenge.id) >= challenge.max_members:
        raise errors.CapacityExceededError(f"Challenge {challenge.id} is full")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class ChallengeService:
    def __init__(
        self,
        engine: Engine,
        notifier: NotificationService,
        clock: Clock,
        *,
        invite_code_attempts: int = 5,
    ) -> None:
        self.engine = engine
        self.notifier = notifier
        self.clock = clock
        self.invite_code_attempts = invite_code_attempts

    # -------------------------------------------------------------------
    # Creation / edits
    # -------------------------------------------------------------------
    def create_challenge(self, leader_id: int, draft: ChallengeDraft) -> Challenge:
        """Create a RECRUITING challenge led by *leader_id*.

        A PARTICIPANT leader is auto-joined; a private challenge gets a
        fresh invite code.
        """
        validate_schedule(draft.start_date, draft.end_date, draft.max_members, self.clock.today())

        try:
            with get_session(self.engine) as session:
                load_user(session, leader_id)
                now = self.clock.now()
                challenge = Challenge(
                    name=draft.name,
                    description=draft.description,
                    category=ChallengeCategory(draft.category).value,
                    difficulty=ChallengeDifficulty(draft.difficulty).value,
                    duration=draft.duration,
                    start_date=draft.start_date,
                    end_date=draft.end_date,
                    max_members=draft.max_members,
                    leader_id=leader_id,
                    status=ChallengeStatus.RECRUITING.value,
                    cover_image_url=draft.cover_image_url,
                    reward=draft.reward,
                    tags=list(draft.tags),
                    is_private=draft.is_private,
                    invite_code=self._unused_invite_code(session) if draft.is_private else None,
                    leader_role=LeaderRole(draft.leader_role).value,
                    created_at=now,
                    updated_at=now,
                )
                session.add(challenge)
                session.flush()

                if challenge.leader_role == LeaderRole.PARTICIPANT:
                    session.add(
                        Participation(
                            user_id=leader_id,
                            challenge_id=challenge.id,
                            status=ParticipationStatus.JOINED.value,
                            join_reason=LEADER_JOIN_REASON,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    session.flush()
        except IntegrityError as exc:
            raise errors.ConflictError("Invite code collision, please retry") from exc

        logger.info(
            "Challenge %d %r created by user %d (private=%s)",
            challenge.id, challenge.name, leader_id, challenge.is_private,
        )
        return challenge

    def _unused_invite_code(self, session: Session) -> str:
        for _ in range(self.invite_code_attempts):
            code = generate_invite_code()
            taken = session.scalar(select(Challenge.id).where(Challenge.invite_code == code))
            if taken is None:
                return code
            logger.warning("Invite code collision on %s, regenerating", code)
        raise errors.ConflictError("Could not allocate a unique invite code")

    def update_challenge(self, leader_id: int, challenge_id: int, patch: ChallengePatch) -> Challenge:
        """Apply *patch* field by field; the resulting dates and capacity are
        re-validated with the creation rules."""
        with get_session(self.engine) as session:
            challenge = load_challenge(session, challenge_id, lock=True)
            _ensure_leader(challenge, leader_id, "edit it")

            start = patch.start_date if patch.start_date is not None else challenge.start_date
            end = patch.end_date if patch.end_date is not None else challenge.end_date
            max_members = patch.max_members if patch.max_members is not None else challenge.max_members
            validate_schedule(start, end, max_members, self.clock.today())
            joined = count_joined(session, challenge_id)
            if max_members < joined:
                raise errors.ValidationError(
                    f"max_members cannot drop below the {joined} current members"
                )

            if patch.name is not None:
                challenge.name = patch.name
            if patch.description is not None:
                challenge.description = patch.description
            if patch.category is not None:
                challenge.category = ChallengeCategory(patch.category).value
            if patch.difficulty is not None:
                challenge.difficulty = ChallengeDifficulty(patch.difficulty).value
            if patch.duration is not None:
                challenge.duration = patch.duration
            if patch.cover_image_url is not None:
                challenge.cover_image_url = patch.cover_image_url
            if patch.reward is not None:
                challenge.reward = patch.reward
            if patch.tags is not None:
                challenge.tags = list(patch.tags)
            challenge.start_date = start
            challenge.end_date = end
            challenge.max_members = max_members
            challenge.updated_at = self.clock.now()

        logger.info("Challenge %d updated by leader %d", challenge_id, leader_id)
        return challenge

    # -------------------------------------------------------------------
    # Joining / leaving
    # -------------------------------------------------------------------
    def join_challenge(self, user_id: int, challenge_id: int, reason: str | None = None) -> Challenge:
        """Join a RECRUITING challenge directly."""
        try:
            with get_session(self.engine) as session:
                challenge = load_challenge(session, challenge_id, lock=True)
                self._admit(session, user_id, challenge, reason)
        except IntegrityError as exc:
            raise errors.ConflictError("Already a participant of this challenge") from exc
        logger.info("User %d joined challenge %d", user_id, challenge_id)
        return challenge

    def join_by_invite_code(
        self, user_id: int, invite_code: str, reason: str | None = None
    ) -> Challenge:
        """Join a private challenge; holding the code replaces visibility."""
        try:
            with get_session(self.engine) as session:
                challenge = find_by_invite_code(session, invite_code, lock=True)
                if not challenge.is_private:
                    raise errors.ValidationError("Public challenges cannot be joined by invite code")
                self._admit(session, user_id, challenge, reason)
        except IntegrityError as exc:
            raise errors.ConflictError("Already a participant of this challenge") from exc
        logger.info("User %d joined challenge %d by invite code", user_id, challenge.id)
        return challenge

    def _admit(self, session: Session, user_id: int, challenge: Challenge, reason: str | None) -> None:
        _ensure_recruiting(challenge)
        if get_participation(session, user_id, challenge.id) is not None:
            raise errors.ConflictError("Already a participant of this challenge")
        _ensure_capacity(session, challenge)
        load_user(session, user_id)

        now = self.clock.now()
        session.add(
            Participation(
                user_id=user_id,
                challenge_id=challenge.id,
                status=ParticipationStatus.JOINED.value,
                join_reason=reason,
                created_at=now,
                updated_at=now,
            )
        )
        session.flush()
        self.notifier.notify_group_joined(session, user_id, challenge)

    def leave_challenge(self, user_id: int, challenge_id: int) -> Challenge:
        """Move the caller's participation to LEFT; terminal for the pair."""
        with get_session(self.engine) as session:
            challenge = load_challenge(session, challenge_id, lock=True)
            if challenge.leader_id == user_id:
                raise errors.ForbiddenError("The leader cannot leave their own challenge")
            participation = get_participation(session, user_id, challenge_id)
            if participation is None:
                raise errors.NotFoundError("Not a participant of this challenge")
            transition(participation, ParticipationStatus.LEFT)
            participation.updated_at = self.clock.now()
        logger.info("User %d left challenge %d", user_id, challenge_id)
        return challenge

    # -------------------------------------------------------------------
    # Applications
    # -------------------------------------------------------------------
    def apply_to_challenge(self, user_id: int, challenge_id: int, reason: str) -> ChallengeApplication:
        """File the single application allowed per (user, challenge)."""
        if not reason or not reason.strip():
            raise errors.ValidationError("An application needs a reason")

        try:
            with get_session(self.engine) as session:
                challenge = load_challenge(session, challenge_id, lock=True)
                _ensure_recruiting(challenge)
                if get_participation(session, user_id, challenge_id) is not None:
                    raise errors.ConflictError("Already a participant of this challenge")
                existing = session.scalar(
                    select(ChallengeApplication.id).where(
                        ChallengeApplication.user_id == user_id,
                        ChallengeApplication.challenge_id == challenge_id,
                    )
                )
                if existing is not None:
                    raise errors.ConflictError("Already applied to this challenge")
                _ensure_capacity(session, challenge)
                applicant = load_user(session, user_id)

                now = self.clock.now()
                application = ChallengeApplication(
                    user_id=user_id,
                    challenge_id=challenge_id,
                    reason=reason,
                    status=ApplicationStatus.PENDING.value,
                    created_at=now,
                    updated_at=now,
                )
                session.add(application)
                session.flush()
                self.notifier.notify_new_application(
                    session, challenge.leader_id, applicant.nickname, challenge, application.id
                )
        except IntegrityError as exc:
            raise errors.ConflictError("Already applied to this challenge") from exc

        logger.info("User %d applied to challenge %d", user_id, challenge_id)
        return application

    def update_application_status(
        self,
        leader_id: int,
        challenge_id: int,
        application_id: int,
        decision: ApplicationStatus,
        rejection_reason: str | None = None,
    ) -> ChallengeApplication:
        """Approve or reject a PENDING application.

        Approval re-checks capacity at decision time and creates the
        applicant's participation; rejection requires a reason.
        """
        try:
            with get_session(self.engine) as session:
                challenge = load_challenge(session, challenge_id, lock=True)
                _ensure_leader(challenge, leader_id, "review applications")

                application = session.get(ChallengeApplication, application_id)
                if application is None:
                    raise errors.NotFoundError(f"Application {application_id} not found")
                if application.challenge_id != challenge_id:
                    raise errors.ConflictError("Application belongs to a different challenge")
                if application.status != ApplicationStatus.PENDING:
                    raise errors.InvalidStateError("Application has already been reviewed")

                decision = ApplicationStatus(decision)
                if decision == ApplicationStatus.PENDING:
                    raise errors.ValidationError("PENDING is not a valid decision")

                now = self.clock.now()
                if decision == ApplicationStatus.APPROVED:
                    if get_participation(session, application.user_id, challenge_id) is None:
                        _ensure_capacity(session, challenge)
                        session.add(
                            Participation(
                                user_id=application.user_id,
                                challenge_id=challenge_id,
                                status=ParticipationStatus.JOINED.value,
                                join_reason=APPROVAL_JOIN_REASON,
                                created_at=now,
                                updated_at=now,
                            )
                        )
                        session.flush()
                    transition(application, ApplicationStatus.APPROVED)
                    application.reviewed_at = now
                    application.updated_at = now
                    self.notifier.notify_application_approved(
                        session, application.user_id, challenge, application.id
                    )
                else:
                    if not rejection_reason or not rejection_reason.strip():
                        raise errors.ValidationError("A rejection needs a reason")
                    transition(application, ApplicationStatus.REJECTED)
                    application.reviewed_at = now
                    application.rejection_reason = rejection_reason
                    application.updated_at = now
                    self.notifier.notify_application_rejected(
                        session, application.user_id, challenge, application.id, rejection_reason
                    )
        except IntegrityError as exc:
            raise errors.ConflictError("Applicant is already a participant") from exc

        logger.info(
            "Application %d for challenge %d %s by leader %d",
            application_id, challenge_id, decision.value.lower(), leader_id,
        )
        return application

    def list_applications(
        self, leader_id: int, challenge_id: int, status: ApplicationStatus | None = None
    ) -> list[ChallengeApplication]:
        with get_session(self.engine) as session:
            challenge = load_challenge(session, challenge_id)
            _ensure_leader(challenge, leader_id, "view applications")
            stmt = select(ChallengeApplication).where(ChallengeApplication.challenge_id == challenge_id)
            if status is not None:
                stmt = stmt.where(ChallengeApplication.status == ApplicationStatus(status).value)
            return list(
                session.scalars(
                    stmt.order_by(ChallengeApplication.created_at.desc(), ChallengeApplication.id.desc())
                ).all()
            )

    def list_user_applications(
        self, user_id: int, status: ApplicationStatus | None = None
    ) -> list[ChallengeApplication]:
        with get_session(self.engine) as session:
            stmt = select(ChallengeApplication).where(ChallengeApplication.user_id == user_id)
            if status is not None:
                stmt = stmt.where(ChallengeApplication.status == ApplicationStatus(status).value)
            return list(
                session.scalars(
                    stmt.order_by(ChallengeApplication.created_at.desc(), ChallengeApplication.id.desc())
                ).all()
            )

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def can_view(self, viewer_id: int | None, challenge_id: int) -> bool:
        with get_session(self.engine) as session:
            return can_view(session, viewer_id, load_challenge(session, challenge_id))

    def get_challenge(self, viewer_id: int | None, challenge_id: int) -> Challenge:
        with get_session(self.engine) as session:
            return load_visible_challenge(session, viewer_id, challenge_id)

    def get_challenge_by_invite_code(self, invite_code: str) -> Challenge:
        with get_session(self.engine) as session:
            return find_by_invite_code(session, invite_code)

    def list_challenges(
        self,
        viewer_id: int | None,
        *,
        category: ChallengeCategory | None = None,
        status: ChallengeStatus | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[int, list[Challenge]]:
        """Newest first; every returned row passes :func:`can_view`."""
        stmt = select(Challenge)
        if category is not None:
            stmt = stmt.where(Challenge.category == ChallengeCategory(category).value)
        if status is not None:
            stmt = stmt.where(Challenge.status == ChallengeStatus(status).value)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(Challenge.name.ilike(pattern), Challenge.description.ilike(pattern))
            )
        stmt = stmt.order_by(Challenge.created_at.desc(), Challenge.id.desc())

        with get_session(self.engine) as session:
            joined = self._joined_challenge_ids(session, viewer_id)
            visible = [
                c for c in session.scalars(stmt).all()
                if _visible_to(c, viewer_id, joined)
            ]
        return len(visible), paginate(visible, page, page_size)

    def list_user_challenges(
        self,
        target_user_id: int,
        viewer_id: int | None,
        *,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[int, list[Challenge]]:
        """Challenges *target_user_id* leads or has JOINED, as *viewer_id* sees them."""
        with get_session(self.engine) as session:
            target_joined = self._joined_challenge_ids(session, target_user_id)
            rows = session.scalars(
                select(Challenge)
                .where(or_(Challenge.leader_id == target_user_id, Challenge.id.in_(target_joined)))
                .order_by(Challenge.created_at.desc(), Challenge.id.desc())
            ).all()
            viewer_joined = self._joined_challenge_ids(session, viewer_id)
            visible = [c for c in rows if _visible_to(c, viewer_id, viewer_joined)]
        return len(visible), paginate(visible, page, page_size)

    @staticmethod
    def _joined_challenge_ids(session: Session, user_id: int | None) -> set[int]:
        if user_id is None:
            return set()
        return set(
            session.scalars(
                select(Participation.challenge_id).where(
                    Participation.user_id == user_id,
                    Participation.status == ParticipationStatus.JOINED.value,
                )
            ).all()
        )

    def get_members(self, challenge_id: int, viewer_id: int | None = None) -> list[User]:
        """JOINED members in join order.  A private roster is hidden like the challenge."""
        with get_session(self.engine) as session:
            load_visible_challenge(session, viewer_id, challenge_id)
            return list(
                session.scalars(
                    select(User)
                    .join(Participation, Participation.user_id == User.id)
                    .where(
                        Participation.challenge_id == challenge_id,
                        Participation.status == ParticipationStatus.JOINED.value,
                    )
                    .order_by(Participation.created_at, Participation.id)
                ).all()
            )

    def get_member_count(self, challenge_id: int) -> int:
        with get_session(self.engine) as session:
            return count_joined(session, challenge_id)

    def is_member(self, user_id: int, challenge_id: int) -> bool:
        with get_session(self.engine) as session:
            return is_active_member(session, user_id, challenge_id)


def _visible_to(challenge: Challenge, viewer_id: int | None, joined_ids: set[int]) -> bool:
    """:func:`can_view` against a pre-fetched set of the viewer's JOINED ids."""
    if not challenge.is_private:
        return True
    if viewer_id is None:
        return False
    return challenge.leader_id == viewer_id or challenge.id in joined_ids
