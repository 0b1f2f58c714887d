"""Service layer for goal CRUD and computed progress fields."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any

from ..errors import Conflict, Forbidden, ValidationError
from .notifications_service import build_notification

if TYPE_CHECKING:
    from ..store import EntityStore
else:
    EntityStore = Any

logger = logging.getLogger(__name__)

VALID_STATUSES: set[str] = {"in_progress", "on_track", "needs_attention", "completed"}
MONEY_QUANT = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Normalize money values to 2-decimal precision."""
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _normalize_amount(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return quantize_amount(Decimal(str(value)))


def _today() -> date:
    """Wrapper for deterministic tests."""
    return date.today()


def progress_pct(current_amount: Decimal, target_amount: Decimal) -> int:
    """Whole-percent progress, rounded half-up and clamped to 0..100."""
    if target_amount <= Decimal("0.00"):
        return 0
    ratio = (current_amount / target_amount) * Decimal("100")
    pct = int(ratio.to_integral_value(rounding=ROUND_HALF_UP))
    return max(0, min(pct, 100))


def _validate_goal_state(goal_data: dict[str, Any]) -> dict[str, Any]:
    """
    Validate merged goal state.

    Rules:
    - name and category are required
    - target_amount > 0
    - start_date strictly before target_date (a past target_date is allowed)
    - status is one of the known values; it is never derived from amounts
    """
    name = str(goal_data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    category = str(goal_data.get("category") or "").strip()
    if not category:
        raise ValidationError("category is required")

    if goal_data.get("target_amount") is None:
        raise ValidationError("target_amount is required")
    target_amount = _normalize_amount(goal_data["target_amount"])
    if target_amount <= Decimal("0.00"):
        raise ValidationError("target_amount must be greater than 0")

    start_date = goal_data.get("start_date")
    target_date = goal_data.get("target_date")
    if start_date is None or target_date is None:
        raise ValidationError("start_date and target_date are required")
    if start_date >= target_date:
        raise ValidationError("start_date must be before target_date")

    status = str(goal_data.get("status") or "in_progress").strip().lower()
    if status not in VALID_STATUSES:
        raise ValidationError(
            "status must be one of: in_progress, on_track, needs_attention, completed")

    description = goal_data.get("description")
    if isinstance(description, str):
        description = description.strip() or None

    return {
        "name": name,
        "description": description,
        "category": category,
        "target_amount": target_amount,
        "start_date": start_date,
        "target_date": target_date,
        "status": status,
        "automated": bool(goal_data.get("automated", False)),
    }


def _compute_goal_metrics(goal_row: dict[str, Any]) -> dict[str, Any]:
    """Attach progress and remaining amount to one goal row."""
    target_amount = _normalize_amount(goal_row["target_amount"])
    current_amount = _normalize_amount(goal_row["current_amount"])

    return {
        **goal_row,
        "target_amount": target_amount,
        "current_amount": current_amount,
        "progress_pct": progress_pct(current_amount, target_amount),
        "remaining_amount": quantize_amount(max(target_amount - current_amount, Decimal("0.00"))),
    }


async def _owned_goal_row(store: EntityStore, user_id: int, goal_id: int) -> dict[str, Any]:
    goal = await store.goals.get(goal_id)
    if goal["user_id"] != user_id:
        raise Forbidden("Unauthorized access to this goal")
    return goal


async def create_goal(
    store: EntityStore,
    user_id: int,
    data: dict[str, Any],
) -> dict[str, Any]:
    """
    Create one goal and its creation notification in a single atomic step.

    A nonzero `current_amount` is accepted as-is and kept as `opening_amount`
    so the goal can still be reconciled against its transactions.
    """
    normalized = _validate_goal_state(data)
    opening_amount = _normalize_amount(data.get("current_amount"))

    async with store.atomic() as unit:
        goal = unit.create(
            store.goals,
            {
                "user_id": user_id,
                **normalized,
                "current_amount": opening_amount,
                "opening_amount": opening_amount,
            },
        )
        unit.create(
            store.notifications,
            build_notification(
                user_id,
                "New Goal Created",
                f"You've set up a new goal: {goal['name']}",
            ),
        )

    logger.info("Created goal %s for user %s", goal["id"], user_id)
    return _compute_goal_metrics(goal)


async def list_goals(
    store: EntityStore,
    user_id: int,
    status: str = "all",
) -> list[dict[str, Any]]:
    """List goals for the user in creation order, optionally filtered by one status."""
    query_status = status.strip().lower()
    if query_status != "all" and query_status not in VALID_STATUSES:
        raise ValidationError(
            "status must be one of: in_progress, on_track, needs_attention, completed, all")

    if query_status == "all":
        rows = await store.goals.list(user_id=user_id)
    else:
        rows = await store.goals.list(user_id=user_id, status=query_status)

    return [_compute_goal_metrics(row) for row in rows]


async def get_goal(
    store: EntityStore,
    user_id: int,
    goal_id: int,
) -> dict[str, Any]:
    """Fetch one goal owned by the user, including computed fields."""
    row = await _owned_goal_row(store, user_id, goal_id)
    return _compute_goal_metrics(row)


async def update_goal(
    store: EntityStore,
    user_id: int,
    goal_id: int,
    patch: dict[str, Any],
) -> dict[str, Any]:
    """Apply a partial update. Amounts only move through the ledger."""
    if "current_amount" in patch or "opening_amount" in patch:
        raise ValidationError("current_amount can only change through transactions")

    async with store.atomic() as unit:
        existing = unit.get(store.goals, goal_id)
        if existing["user_id"] != user_id:
            raise Forbidden("Unauthorized access to this goal")

        merged = {key: patch.get(key, existing.get(key)) for key in (
            "name",
            "description",
            "category",
            "target_amount",
            "start_date",
            "target_date",
            "status",
            "automated",
        )}
        normalized = _validate_goal_state(merged)
        row = unit.update(store.goals, goal_id, normalized)

    return _compute_goal_metrics(row)


async def delete_goal(
    store: EntityStore,
    user_id: int,
    goal_id: int,
) -> None:
    """Hard-delete one goal; refused while any transaction still references it."""
    await _owned_goal_row(store, user_id, goal_id)

    async with store.entity_lock("goals", goal_id):
        linked = await store.transactions.list(goal_id=goal_id, limit=1)
        if linked:
            raise Conflict("Goal has linked transactions and cannot be deleted")
        await store.goals.delete(goal_id)
    store.release_entity_lock("goals", goal_id)

    logger.info("Deleted goal %s for user %s", goal_id, user_id)
