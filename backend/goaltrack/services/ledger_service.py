"""
Ledger engine: applies transactions to goals.

A goal-linked transaction, the goal's new `current_amount` and the
`goal_update` notification are written as one atomic unit while holding the
goal's lock, so concurrent deposits/withdrawals never interleave their
read-modify-write of the balance.

Policy:
- withdrawals larger than the balance are accepted (the balance goes negative)
- goal status is informational and is not re-derived from the new balance
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from ..config import settings
from ..errors import Forbidden, NotFound, ValidationError
from .goals_service import _normalize_amount, get_goal, quantize_amount
from .notifications_service import build_notification

if TYPE_CHECKING:
    from ..store import EntityStore
else:
    EntityStore = Any

logger = logging.getLogger(__name__)

VALID_TYPES: set[str] = {"deposit", "withdrawal"}
REQUIRED_TEXT_FIELDS = ("description", "category", "account")
MAX_LIST_LIMIT = 100


def _validate_transaction(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize one inbound transaction or raise `ValidationError`."""
    cleaned: dict[str, Any] = {}
    for field in REQUIRED_TEXT_FIELDS:
        value = str(data.get(field) or "").strip()
        if not value:
            raise ValidationError(f"{field} is required")
        cleaned[field] = value

    raw_amount = data.get("amount")
    if raw_amount is None:
        raise ValidationError("amount is required")
    try:
        amount = _normalize_amount(raw_amount)
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("amount must be a number") from exc
    if amount <= Decimal("0.00"):
        raise ValidationError("amount must be greater than 0")

    transaction_type = str(data.get("type") or "").strip().lower()
    if transaction_type not in VALID_TYPES:
        raise ValidationError("type must be one of: deposit, withdrawal")

    occurred_on = data.get("occurred_on")
    if isinstance(occurred_on, datetime):
        occurred_on = occurred_on.date()
    if not isinstance(occurred_on, date):
        raise ValidationError("occurred_on is required")

    return {
        **cleaned,
        "goal_id": data.get("goal_id"),
        "amount": amount,
        "type": transaction_type,
        "occurred_on": occurred_on,
    }


def signed_amount(transaction: dict[str, Any]) -> Decimal:
    """Deposit counts positive, withdrawal negative."""
    amount = _normalize_amount(transaction["amount"])
    return amount if transaction["type"] == "deposit" else -amount


def goal_update_message(amount: Decimal, transaction_type: str, goal_name: str) -> str:
    action = "added to" if transaction_type == "deposit" else "withdrawn from"
    return f"{settings.currency_symbol}{quantize_amount(amount):.2f} {action} your {goal_name} goal"


async def apply_transaction(
    store: EntityStore,
    user_id: int,
    data: dict[str, Any],
) -> dict[str, Any]:
    """
    Persist one transaction and, when it targets a goal, move the goal balance.

    Raises `ValidationError` for bad input, `NotFound` for an unknown goal and
    `Forbidden` when the goal belongs to someone else. Nothing is written
    when any of these is raised.
    """
    normalized = _validate_transaction(data)
    row = {"user_id": user_id, **normalized}
    goal_id = normalized["goal_id"]

    if goal_id is None:
        transaction = await store.transactions.create(row)
        logger.info("Recorded general %s %s for user %s", transaction["type"], transaction["id"], user_id)
        return transaction

    # only existing goals get a lock entry
    await store.goals.get(goal_id)

    try:
        async with store.entity_lock("goals", goal_id):
            async with store.atomic() as unit:
                goal = unit.get(store.goals, goal_id)
                if goal["user_id"] != user_id:
                    raise Forbidden("Unauthorized access to this goal")

                transaction = unit.create(store.transactions, row)
                next_amount = quantize_amount(
                    _normalize_amount(goal["current_amount"]) + signed_amount(transaction))
                unit.update(store.goals, goal_id, {"current_amount": next_amount})
                unit.create(
                    store.notifications,
                    build_notification(
                        goal["user_id"],
                        "Goal Updated",
                        goal_update_message(transaction["amount"], transaction["type"], goal["name"]),
                    ),
                )
    except NotFound:
        # goal deleted while this call waited for its lock
        store.release_entity_lock("goals", goal_id)
        raise

    logger.info(
        "Applied %s %s to goal %s (balance %s)",
        transaction["type"],
        transaction["id"],
        goal_id,
        next_amount,
    )
    return transaction


async def ledger_balance(store: EntityStore, goal_id: int) -> Decimal:
    """Recompute a goal balance from its opening amount and transaction history."""
    goal = await store.goals.get(goal_id)
    transactions = await store.transactions.list(goal_id=goal_id)
    total = sum((signed_amount(row) for row in transactions), _normalize_amount(goal.get("opening_amount")))
    return quantize_amount(total)


async def list_transactions(
    store: EntityStore,
    user_id: int,
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Most recent transactions for the user, newest `occurred_on` first."""
    safe_limit = max(1, min(int(limit), MAX_LIST_LIMIT))
    return await store.transactions.list(user_id=user_id, limit=safe_limit)


async def list_goal_transactions(
    store: EntityStore,
    user_id: int,
    goal_id: int,
) -> list[dict[str, Any]]:
    await get_goal(store, user_id, goal_id)
    return await store.transactions.list(goal_id=goal_id)
