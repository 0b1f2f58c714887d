"""Notification rows emitted by goal/ledger/insight writes, plus user-scoped reads."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from ..errors import Forbidden

if TYPE_CHECKING:
    from ..store import EntityStore
else:
    EntityStore = Any

NotificationType = Literal["goal_update", "insight", "reminder"]
VALID_NOTIFICATION_TYPES: set[str] = {"goal_update", "insight", "reminder"}


def build_notification(
    user_id: int,
    title: str,
    message: str,
    notification_type: NotificationType = "goal_update",
) -> dict[str, Any]:
    """Build an unread notification row ready to be staged in a unit of work."""
    if notification_type not in VALID_NOTIFICATION_TYPES:
        raise ValueError(f"Unsupported notification type: {notification_type}")

    return {
        "user_id": user_id,
        "title": title,
        "message": message,
        "type": notification_type,
        "read": False,
    }


async def list_notifications(
    store: EntityStore,
    user_id: int,
    *,
    unread_only: bool = False,
) -> list[dict[str, Any]]:
    """Newest-first notifications for one user."""
    if unread_only:
        return await store.notifications.list(user_id=user_id, read=False)
    return await store.notifications.list(user_id=user_id)


async def mark_notification_read(
    store: EntityStore,
    user_id: int,
    notification_id: int,
) -> dict[str, Any]:
    notification = await store.notifications.get(notification_id)
    if notification["user_id"] != user_id:
        raise Forbidden("Unauthorized access to this notification")

    return await store.notifications.update(notification_id, {"read": True})
