"""
habitchallenge.api.routes.challenges — Challenge & membership endpoints
========================================================================
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from habitchallenge.api.deps import (
    get_challenge_service,
    get_current_user_id,
    get_optional_user_id,
    get_stats_service,
)
from habitchallenge.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from habitchallenge.database.models import (
    ApplicationStatus,
    Challenge,
    ChallengeApplication,
    ChallengeCategory,
    ChallengeDifficulty,
    ChallengeStatus,
    LeaderRole,
    User,
)
from habitchallenge.services.challenge_service import (
    ChallengeDraft,
    ChallengePatch,
    ChallengeService,
)
from habitchallenge.services.stats_service import StatsService

router = APIRouter(tags=["challenges"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class ChallengeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: ChallengeCategory
    difficulty: ChallengeDifficulty
    duration: int = Field(ge=1)
    start_date: date
    end_date: date
    max_members: int
    is_private: bool = False
    leader_role: LeaderRole = LeaderRole.PARTICIPANT
    cover_image_url: str | None = None
    reward: str | None = None
    tags: list[str] = Field(default_factory=list)


class ChallengeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    category: ChallengeCategory | None = None
    difficulty: ChallengeDifficulty | None = None
    duration: int | None = Field(default=None, ge=1)
    start_date: date | None = None
    end_date: date | None = None
    max_members: int | None = None
    cover_image_url: str | None = None
    reward: str | None = None
    tags: list[str] | None = None


class JoinRequest(BaseModel):
    reason: str | None = None


class InviteJoinRequest(BaseModel):
    invite_code: str
    reason: str | None = None


class ApplicationCreate(BaseModel):
    reason: str


class ApplicationDecision(BaseModel):
    status: ApplicationStatus
    rejection_reason: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _challenge_dict(c: Challenge, member_count: int, viewer_id: int | None = None) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "category": c.category,
        "difficulty": c.difficulty,
        "duration": c.duration,
        "start_date": c.start_date.isoformat(),
        "end_date": c.end_date.isoformat(),
        "max_members": c.max_members,
        "current_members": member_count,
        "leader_id": c.leader_id,
        "status": c.status,
        "cover_image_url": c.cover_image_url,
        "reward": c.reward,
        "tags": list(c.tags or []),
        "is_private": c.is_private,
        # Only the leader sees the code; everyone else joins with it.
        "invite_code": c.invite_code if viewer_id == c.leader_id else None,
        "leader_role": c.leader_role,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


def _application_dict(a: ChallengeApplication) -> dict:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "challenge_id": a.challenge_id,
        "reason": a.reason,
        "status": a.status,
        "reviewed_at": a.reviewed_at.isoformat() if a.reviewed_at else None,
        "rejection_reason": a.rejection_reason,
        "created_at": a.created_at.isoformat() if a.created_at else None,
    }


def _member_dict(u: User) -> dict:
    return {"id": u.id, "nickname": u.nickname, "avatar_url": u.avatar_url}


def _page(service: ChallengeService, total: int, items: list[Challenge], page: int,
          page_size: int, viewer_id: int | None) -> dict:
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "items": [
            _challenge_dict(c, service.get_member_count(c.id), viewer_id) for c in items
        ],
    }


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
@router.get("/challenges")
def list_challenges(
    category: ChallengeCategory | None = None,
    status: ChallengeStatus | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer_id: int | None = Depends(get_optional_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Paginated challenge list, newest first, hidden private rows removed."""
    total, items = service.list_challenges(
        viewer_id, category=category, status=status, search=search,
        page=page, page_size=page_size,
    )
    return _page(service, total, items, page, page_size, viewer_id)


@router.post("/challenges", status_code=201)
def create_challenge(
    body: ChallengeCreate,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    challenge = service.create_challenge(user_id, ChallengeDraft(**body.model_dump()))
    return _challenge_dict(challenge, service.get_member_count(challenge.id), user_id)


@router.get("/challenges/invite/{invite_code}")
def get_challenge_by_invite_code(
    invite_code: str,
    viewer_id: int | None = Depends(get_optional_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Preview a private challenge; the code itself grants visibility."""
    challenge = service.get_challenge_by_invite_code(invite_code)
    return _challenge_dict(challenge, service.get_member_count(challenge.id), viewer_id)


@router.post("/challenges/join-by-code")
def join_by_invite_code(
    body: InviteJoinRequest,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    challenge = service.join_by_invite_code(user_id, body.invite_code, body.reason)
    return _challenge_dict(challenge, service.get_member_count(challenge.id), user_id)


@router.get("/challenges/{challenge_id}")
def get_challenge(
    challenge_id: int,
    viewer_id: int | None = Depends(get_optional_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    challenge = service.get_challenge(viewer_id, challenge_id)
    return _challenge_dict(challenge, service.get_member_count(challenge_id), viewer_id)


@router.put("/challenges/{challenge_id}")
def update_challenge(
    challenge_id: int,
    body: ChallengeUpdate,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    challenge = service.update_challenge(user_id, challenge_id, ChallengePatch(**body.model_dump()))
    return _challenge_dict(challenge, service.get_member_count(challenge_id), user_id)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
@router.put("/challenges/{challenge_id}/join")
def join_challenge(
    challenge_id: int,
    body: JoinRequest | None = None,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    reason = body.reason if body else None
    challenge = service.join_challenge(user_id, challenge_id, reason)
    return _challenge_dict(challenge, service.get_member_count(challenge_id), user_id)


@router.put("/challenges/{challenge_id}/leave")
def leave_challenge(
    challenge_id: int,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    challenge = service.leave_challenge(user_id, challenge_id)
    return _challenge_dict(challenge, service.get_member_count(challenge_id), user_id)


@router.get("/challenges/{challenge_id}/members")
def get_members(
    challenge_id: int,
    viewer_id: int | None = Depends(get_optional_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    return [_member_dict(u) for u in service.get_members(challenge_id, viewer_id)]


@router.get("/users/me/challenges")
def list_my_challenges(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Challenges the caller leads or has joined, private ones included."""
    total, items = service.list_user_challenges(
        user_id, user_id, page=page, page_size=page_size
    )
    return _page(service, total, items, page, page_size, user_id)


@router.get("/users/{user_id}/challenges")
def list_user_challenges(
    user_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer_id: int | None = Depends(get_optional_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    total, items = service.list_user_challenges(
        user_id, viewer_id, page=page, page_size=page_size
    )
    return _page(service, total, items, page, page_size, viewer_id)


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------
@router.post("/challenges/{challenge_id}/apply", status_code=201)
def apply_to_challenge(
    challenge_id: int,
    body: ApplicationCreate,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    return _application_dict(service.apply_to_challenge(user_id, challenge_id, body.reason))


@router.get("/challenges/{challenge_id}/applications")
def list_applications(
    challenge_id: int,
    status: ApplicationStatus | None = None,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    return [
        _application_dict(a) for a in service.list_applications(user_id, challenge_id, status)
    ]


@router.put("/challenges/{challenge_id}/applications/{application_id}/status")
def update_application_status(
    challenge_id: int,
    application_id: int,
    body: ApplicationDecision,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    application = service.update_application_status(
        user_id, challenge_id, application_id, body.status, body.rejection_reason
    )
    return _application_dict(application)


@router.get("/me/applications")
def list_my_applications(
    status: ApplicationStatus | None = None,
    user_id: int = Depends(get_current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    return [_application_dict(a) for a in service.list_user_applications(user_id, status)]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
@router.get("/challenges/{challenge_id}/members/stats")
def get_member_stats(
    challenge_id: int,
    user_id: int = Depends(get_current_user_id),
    stats: StatsService = Depends(get_stats_service),
):
    return [asdict(s) for s in stats.member_stats(challenge_id, user_id)]


@router.get("/challenges/{challenge_id}/participation")
def get_participation(
    challenge_id: int,
    user_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    requester_id: int = Depends(get_current_user_id),
    stats: StatsService = Depends(get_stats_service),
):
    """Per-day participation rate; ``participated`` is set when ``user_id`` is given."""
    series = stats.participation_series(
        challenge_id, requester_id, user_id=user_id, start_date=start_date, end_date=end_date
    )
    return [asdict(day) for day in series]
