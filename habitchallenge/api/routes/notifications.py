"""
habitchallenge.api.routes.notifications — The caller's notification feed
=========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from habitchallenge.api.deps import get_current_user_id, get_notification_service
from habitchallenge.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from habitchallenge.database.models import Notification, NotificationType
from habitchallenge.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "is_read": n.is_read,
        "related_id": n.related_id,
        "action_url": n.action_url,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


@router.get("")
def list_notifications(
    is_read: bool | None = None,
    type: NotificationType | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user_id: int = Depends(get_current_user_id),
    feed: NotificationService = Depends(get_notification_service),
):
    total, items = feed.list_notifications(
        user_id, is_read=is_read, kind=type, page=page, page_size=page_size
    )
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "items": [_notification_dict(n) for n in items],
    }


@router.get("/unread-count")
def unread_count(
    user_id: int = Depends(get_current_user_id),
    feed: NotificationService = Depends(get_notification_service),
):
    return {"count": feed.count_unread(user_id)}


@router.put("/mark-all-read")
def mark_all_read(
    user_id: int = Depends(get_current_user_id),
    feed: NotificationService = Depends(get_notification_service),
):
    return {"updated": feed.mark_all_read(user_id)}


@router.put("/{notification_id}/read")
def mark_as_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    feed: NotificationService = Depends(get_notification_service),
):
    return _notification_dict(feed.mark_as_read(user_id, notification_id))


@router.delete("/{notification_id}", status_code=204)
def delete_notification(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    feed: NotificationService = Depends(get_notification_service),
):
    feed.delete_notification(user_id, notification_id)
