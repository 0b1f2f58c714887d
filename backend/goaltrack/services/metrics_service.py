from __future__ import annotations
"""
Dashboard metrics aggregated from the goal ledger.

Design goals:
- goals are the source of truth for savings (`current_amount`), not raw transactions
- deterministic output for a given store state and date
- money-safe arithmetic with Decimal and 2-decimal quantization
"""

from datetime import date
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any

from ..config import settings
from .goals_service import (
    _compute_goal_metrics,
    _normalize_amount,
    _today,
    quantize_amount,
)
from .ledger_service import signed_amount

if TYPE_CHECKING:
    from ..store import EntityStore
else:
    EntityStore = Any


def _month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def _previous_month_start(month_start: date) -> date:
    if month_start.month == 1:
        return date(month_start.year - 1, 12, 1)
    return date(month_start.year, month_start.month - 1, 1)


def health_status_for_score(score: int) -> str:
    """Map the 0..100 health score to a dashboard label."""
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Needs Attention"


def describe_savings_change(current_net: Decimal, previous_net: Decimal) -> str:
    """Short month-over-month label like '12% from last month'."""
    if previous_net <= Decimal("0.00"):
        if current_net > Decimal("0.00"):
            return "New savings this month"
        return "No change from last month"

    delta = current_net - previous_net
    if delta == Decimal("0.00"):
        return "No change from last month"

    pct = int(((abs(delta) * Decimal("100")) / previous_net).to_integral_value(rounding=ROUND_FLOOR))
    sign = "" if delta > Decimal("0.00") else "-"
    return f"{sign}{pct}% from last month"


def build_dashboard_metrics(
    goals: list[dict[str, Any]],
    transactions: list[dict[str, Any]],
    *,
    today: date,
    monthly_budget: Decimal,
) -> dict[str, Any]:
    """
    Pure aggregation over one user's goal and transaction rows.

    Only transactions dated on or before `today` count toward the month
    windows. `budget_remaining` subtracts every deposit of the current month,
    goal-less ones included: the budget caps all money set aside, not only
    goal contributions. `savings_increase` compares goal-linked net flows.
    """
    total_savings = sum(
        (_normalize_amount(goal["current_amount"]) for goal in goals),
        Decimal("0.00"),
    )
    active_goals_count = sum(1 for goal in goals if goal["status"] == "in_progress")
    completed_goals_count = sum(1 for goal in goals if goal["status"] == "completed")

    if goals:
        progress_total = sum(_compute_goal_metrics(goal)["progress_pct"] for goal in goals)
        health_score = int(
            (Decimal(progress_total) / Decimal(len(goals))).to_integral_value(rounding=ROUND_HALF_UP))
    else:
        health_score = 0

    month_start = _month_start(today)
    previous_month_start = _previous_month_start(month_start)
    current_net = Decimal("0.00")
    previous_net = Decimal("0.00")
    month_deposits = Decimal("0.00")

    for row in transactions:
        occurred_on = row["occurred_on"]
        if occurred_on > today:
            continue
        if occurred_on >= month_start:
            if row["type"] == "deposit":
                month_deposits += _normalize_amount(row["amount"])
            if row.get("goal_id") is not None:
                current_net += signed_amount(row)
        elif occurred_on >= previous_month_start and row.get("goal_id") is not None:
            previous_net += signed_amount(row)

    normalized_budget = quantize_amount(monthly_budget)
    budget_remaining = quantize_amount(max(normalized_budget - month_deposits, Decimal("0.00")))

    return {
        "total_savings": quantize_amount(total_savings),
        "savings_increase": describe_savings_change(current_net, previous_net),
        "active_goals_count": active_goals_count,
        "completed_goals_count": completed_goals_count,
        "monthly_budget": normalized_budget,
        "budget_remaining": budget_remaining,
        "financial_health_score": health_score,
        "financial_health_status": health_status_for_score(health_score),
    }


async def compute_dashboard_metrics(store: EntityStore, user_id: int) -> dict[str, Any]:
    """Scan the user's goals (and this/last month's transactions) into dashboard metrics."""
    goals = await store.goals.list(user_id=user_id)
    transactions = await store.transactions.list(user_id=user_id)
    return build_dashboard_metrics(
        goals,
        transactions,
        today=_today(),
        monthly_budget=settings.monthly_budget_amount,
    )
