"""
habitchallenge.api.routes.challenge_logs — Check-in submission & review
========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from habitchallenge.api.deps import (
    get_challenge_service,
    get_current_user_id,
    get_log_service,
    get_optional_user_id,
)
from habitchallenge.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from habitchallenge.database.models import ChallengeLog, LogStatus
from habitchallenge.services.challenge_log_service import ChallengeLogService
from habitchallenge.services.challenge_service import ChallengeService

router = APIRouter(tags=["challenge-logs"])


class LogCreate(BaseModel):
    challenge_id: int
    content: str = Field(min_length=1, max_length=2000)
    image_url: str | None = None


class LogReview(BaseModel):
    comment: str | None = None


def _log_dict(log: ChallengeLog) -> dict:
    return {
        "id": log.id,
        "user_id": log.user_id,
        "challenge_id": log.challenge_id,
        "content": log.content,
        "image_url": log.image_url,
        "status": log.status,
        "rejection_comment": log.rejection_comment,
        "created_at": log.created_at.isoformat() if log.created_at else None,
        "updated_at": log.updated_at.isoformat() if log.updated_at else None,
    }


@router.get("/challenge-logs")
def list_logs(
    challenge_id: int | None = None,
    user_id: int | None = None,
    status: LogStatus | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer_id: int | None = Depends(get_optional_user_id),
    logs: ChallengeLogService = Depends(get_log_service),
    challenges: ChallengeService = Depends(get_challenge_service),
):
    """Paginated logs, newest first."""
    if challenge_id is not None:
        challenges.get_challenge(viewer_id, challenge_id)
    total, items = logs.list_logs(
        challenge_id=challenge_id, user_id=user_id, status=status,
        page=page, page_size=page_size, viewer_id=viewer_id,
    )
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "items": [_log_dict(log) for log in items],
    }


@router.post("/challenge-logs", status_code=201)
def create_log(
    body: LogCreate,
    user_id: int = Depends(get_current_user_id),
    logs: ChallengeLogService = Depends(get_log_service),
):
    return _log_dict(logs.create_log(user_id, body.challenge_id, body.content, body.image_url))


@router.get("/challenge-logs/{log_id}")
def get_log(
    log_id: int,
    viewer_id: int | None = Depends(get_optional_user_id),
    logs: ChallengeLogService = Depends(get_log_service),
    challenges: ChallengeService = Depends(get_challenge_service),
):
    log = logs.get_log(log_id)
    challenges.get_challenge(viewer_id, log.challenge_id)
    return _log_dict(log)


@router.put("/challenge-logs/{log_id}/approve")
def approve_log(
    log_id: int,
    body: LogReview | None = None,
    user_id: int = Depends(get_current_user_id),
    logs: ChallengeLogService = Depends(get_log_service),
):
    comment = body.comment if body else None
    return _log_dict(logs.approve_log(log_id, user_id, comment))


@router.put("/challenge-logs/{log_id}/reject")
def reject_log(
    log_id: int,
    body: LogReview,
    user_id: int = Depends(get_current_user_id),
    logs: ChallengeLogService = Depends(get_log_service),
):
    return _log_dict(logs.reject_log(log_id, user_id, body.comment or ""))
