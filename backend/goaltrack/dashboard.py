from __future__ import annotations
"""
Dashboard API router.

Fetch and display:

- savings metrics derived from the goal ledger
- goals, the 5 most recent transactions and unread notifications
- four financial tips (model-generated or the static fallback set)
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_serializer

from .ai.advice_provider import AdviceProvider, get_advice_provider, goal_snapshot
from .auth import get_current_user_id
from .database import get_store
from .goals import GoalResponse
from .notifications import NotificationResponse
from .services.goals_service import list_goals
from .services.ledger_service import list_transactions
from .services.metrics_service import compute_dashboard_metrics
from .services.notifications_service import list_notifications
from .store import EntityStore
from .transactions import TransactionResponse

router = APIRouter(tags=["dashboard"])

RECENT_TRANSACTIONS_LIMIT = 5


def _money(value: Decimal) -> str:
    """Serialize Decimal values to fixed 2-decimal amount strings."""
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class DashboardMetricsResponse(BaseModel):
    """Per-request summary; never persisted."""
    total_savings: Decimal
    savings_increase: str
    active_goals_count: int
    completed_goals_count: int
    monthly_budget: Decimal
    budget_remaining: Decimal
    financial_health_score: int
    financial_health_status: str

    @field_serializer("total_savings", "monthly_budget", "budget_remaining")
    def serialize_decimal(self, value: Decimal) -> str:
        return _money(value)


class AdviceItem(BaseModel):
    """One dashboard tip card."""
    title: str
    content: str
    category: str
    icon: Literal["savings", "account_balance", "trending_up", "credit_card"]


class TipItem(AdviceItem):
    id: int


class FinancialTipsResponse(BaseModel):
    tips: list[TipItem]


class DashboardResponse(BaseModel):
    """Full dashboard response contract expected by frontend."""
    metrics: DashboardMetricsResponse
    goals: list[GoalResponse]
    transactions: list[TransactionResponse]
    unread_notifications: list[NotificationResponse]
    financial_advice: list[AdviceItem]


async def _portfolio_advice(provider: AdviceProvider, goals: list[dict], metrics: dict) -> list[dict]:
    return await provider.advice_for_portfolio(
        [goal_snapshot(goal) for goal in goals],
        metrics["total_savings"],
        metrics["active_goals_count"],
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
    provider: AdviceProvider = Depends(get_advice_provider),
) -> DashboardResponse:
    """
    Return everything the dashboard page renders in one call.

    Example response (abridged):
    {
      "metrics": {
        "total_savings": "1250.00",
        "savings_increase": "12% from last month",
        "active_goals_count": 2,
        "completed_goals_count": 0,
        "monthly_budget": "3200.00",
        "budget_remaining": "2700.00",
        "financial_health_score": 41,
        "financial_health_status": "Fair"
      },
      "goals": [...],
      "transactions": [...],
      "unread_notifications": [...],
      "financial_advice": [
        {"title": "Spending Optimization", "content": "...", "category": "budgeting", "icon": "savings"}
      ]
    }
    """
    metrics = await compute_dashboard_metrics(store, user_id)
    goals = await list_goals(store, user_id)
    transactions = await list_transactions(store, user_id, limit=RECENT_TRANSACTIONS_LIMIT)
    unread = await list_notifications(store, user_id, unread_only=True)
    advice = await _portfolio_advice(provider, goals, metrics)

    return DashboardResponse(
        metrics=DashboardMetricsResponse(**metrics),
        goals=[GoalResponse(**goal) for goal in goals],
        transactions=[TransactionResponse.model_validate(row) for row in transactions],
        unread_notifications=[NotificationResponse.model_validate(row) for row in unread],
        financial_advice=[AdviceItem(**item) for item in advice],
    )


@router.get("/financial-tips", response_model=FinancialTipsResponse)
async def financial_tips(
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
    provider: AdviceProvider = Depends(get_advice_provider),
) -> FinancialTipsResponse:
    """Four personalised tips, numbered 1..4 for stable client-side keys."""
    metrics = await compute_dashboard_metrics(store, user_id)
    goals = await list_goals(store, user_id)
    advice = await _portfolio_advice(provider, goals, metrics)

    return FinancialTipsResponse(
        tips=[TipItem(id=index, **item) for index, item in enumerate(advice, start=1)],
    )
