"""Prompt builders for goal insights and dashboard tips."""

from __future__ import annotations

from datetime import date
from typing import Any

INSIGHT_CATEGORIES_TEXT = '"saving", "investing", "budgeting", "debt", "income", "general"'
ADVICE_ICONS_TEXT = '"savings", "account_balance", "trending_up", "credit_card"'


def build_goal_insight_prompt(
    snapshot: dict[str, Any],
    *,
    today: date,
    currency_symbol: str,
) -> str:
    """One actionable tip for a single goal."""
    days_left = (snapshot["target_date"] - today).days
    description = snapshot.get("description") or "N/A"

    return f"""
You are a personal financial advisor. Give ONE specific, actionable insight for this savings goal.

Goal name: {snapshot["name"]}
Category: {snapshot["category"]}
Description: {description}
Target amount: {currency_symbol}{snapshot["target_amount"]}
Current amount: {currency_symbol}{snapshot["current_amount"]}
Progress: {snapshot["progress_pct"]}%
Days remaining: {days_left}

Use only the information above. Keep it practical and tailored to this goal.

Return only a JSON object with these fields:
- "title": a short, attention-grabbing title (max 10 words)
- "content": the advice itself (max 40 words)
- "category": one of {INSIGHT_CATEGORIES_TEXT}
""".strip()


def build_portfolio_advice_prompt(
    goals: list[dict[str, Any]],
    *,
    total_savings: Any,
    active_goals_count: int,
    currency_symbol: str,
) -> str:
    """Four dashboard tips covering the user's whole goal portfolio."""
    goal_lines = "\n".join(
        f"- {goal['name']} ({goal['category']}): "
        f"{currency_symbol}{goal['current_amount']}/{currency_symbol}{goal['target_amount']} "
        f"({goal['progress_pct']}% complete)"
        for goal in goals
    ) or "- (no goals yet)"

    return f"""
You are a personal financial advisor. Give 4 different financial tips for this user.

Total savings: {currency_symbol}{total_savings}
Active goals: {active_goals_count}

Goals:
{goal_lines}

Cover different areas such as spending optimization, interest rates, investment opportunities and general financial health.

Return only a JSON array of 4 objects, each with:
- "title": a short, attention-grabbing title (max 10 words)
- "content": the advice itself (max 40 words)
- "category": one of {INSIGHT_CATEGORIES_TEXT}
- "icon": one of {ADVICE_ICONS_TEXT}
""".strip()
