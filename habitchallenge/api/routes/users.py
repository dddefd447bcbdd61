"""
habitchallenge.api.routes.users — Identity records
===================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from habitchallenge.api.deps import get_current_user_id, get_user_service
from habitchallenge.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from habitchallenge.database.models import User
from habitchallenge.services.user_service import UserService

router = APIRouter(tags=["users"])


class UserUpdate(BaseModel):
    nickname: str | None = Field(default=None, min_length=1, max_length=50)
    email: str | None = Field(default=None, min_length=3, max_length=255)


def _user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "login_id": user.login_id,
        "email": user.email,
        "nickname": user.nickname,
        "avatar_url": user.avatar_url,
    }


@router.get("/me")
@router.get("/users/me")
def me(
    user_id: int = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
):
    """Return the authenticated caller's profile."""
    return _user_dict(users.get_user(user_id))


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    users: UserService = Depends(get_user_service),
):
    total, items = users.list_users(page=page, page_size=page_size)
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "items": [_user_dict(u) for u in items],
    }


@router.get("/users/{user_id}")
def get_user(user_id: int, users: UserService = Depends(get_user_service)):
    return _user_dict(users.get_user(user_id))


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdate,
    actor_id: int = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
):
    """Edit your own nickname or email."""
    return _user_dict(
        users.update_user(user_id, actor_id, nickname=body.nickname, email=body.email)
    )
