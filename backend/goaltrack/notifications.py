from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from .auth import get_current_user_id
from .database import get_store
from .errors import AppError, http_error
from .services.notifications_service import list_notifications, mark_notification_read
from .store import EntityStore

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: Literal["goal_update", "insight", "reminder"]
    read: bool
    created_at: datetime


@router.get("", response_model=list[NotificationResponse])
async def list_notifications_endpoint(
    unread_only: bool = Query(default=False),
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> list[NotificationResponse]:
    rows = await list_notifications(store, user_id, unread_only=unread_only)
    return [NotificationResponse.model_validate(row) for row in rows]


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read_endpoint(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> NotificationResponse:
    try:
        row = await mark_notification_read(store, user_id, notification_id)
    except AppError as exc:
        raise http_error(exc) from exc

    return NotificationResponse.model_validate(row)
