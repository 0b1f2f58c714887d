"""Goal insight generation and user-scoped insight reads."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..ai.advice_provider import AdviceProvider, goal_snapshot
from ..errors import AppError
from .goals_service import get_goal
from .notifications_service import build_notification

if TYPE_CHECKING:
    from ..store import EntityStore
else:
    EntityStore = Any

logger = logging.getLogger(__name__)


async def create_goal_insight(
    store: EntityStore,
    provider: AdviceProvider,
    user_id: int,
    goal_id: int,
) -> dict[str, Any]:
    """Ask the provider (or its fallback) about one goal and store the result."""
    goal = await get_goal(store, user_id, goal_id)
    advice = await provider.insight_for_goal(goal_snapshot(goal))

    async with store.atomic() as unit:
        insight = unit.create(
            store.insights,
            {
                "user_id": user_id,
                "goal_id": goal_id,
                "title": advice["title"],
                "content": advice["content"],
                "category": advice["category"],
                "source": advice["source"],
                "read": False,
            },
        )
        unit.create(
            store.notifications,
            build_notification(user_id, "New Financial Insight", insight["title"], "insight"),
        )

    return insight


async def record_goal_insight(
    store: EntityStore,
    provider: AdviceProvider,
    user_id: int,
    goal_id: int,
) -> None:
    """Background follow-up to goal creation. Failures are logged, never raised."""
    try:
        insight = await create_goal_insight(store, provider, user_id, goal_id)
    except AppError as exc:
        # e.g. the goal was deleted before this task ran
        logger.warning("Skipped insight for goal %s: %s", goal_id, exc.message)
        return

    logger.info("Stored %s insight %s for goal %s", insight["source"], insight["id"], goal_id)


async def list_insights(store: EntityStore, user_id: int) -> list[dict[str, Any]]:
    return await store.insights.list(user_id=user_id)


async def list_goal_insights(
    store: EntityStore,
    user_id: int,
    goal_id: int,
) -> list[dict[str, Any]]:
    await get_goal(store, user_id, goal_id)
    return await store.insights.list(goal_id=goal_id)
