"""
Advice provider: goal insights and dashboard tips with deterministic fallbacks.

Callers get an answer every time. Any provider problem (no API key, timeout,
HTTP failure, malformed output) is logged and replaced by the fallback for
that call; nothing is raised past this module.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Protocol

from .gemini_client import GeminiClient
from .prompt import build_goal_insight_prompt, build_portfolio_advice_prompt
from ..config import settings
from ..errors import ProviderUnavailable
from ..services.goals_service import _normalize_amount, _today

logger = logging.getLogger(__name__)

INSIGHT_CATEGORIES: set[str] = {"saving", "investing", "budgeting", "debt", "income", "general"}
ADVICE_ICONS: set[str] = {"savings", "account_balance", "trending_up", "credit_card"}
PORTFOLIO_ADVICE_SIZE = 4

DEFAULT_PORTFOLIO_ADVICE: tuple[dict[str, str], ...] = (
    {
        "title": "Spending Optimization",
        "content": "Review your monthly subscriptions and cancel the ones you no longer use, then move the savings into your goals.",
        "category": "budgeting",
        "icon": "savings",
    },
    {
        "title": "Interest Rate Alert",
        "content": "Keep your emergency fund in a high-yield savings account or term deposit so it earns more while staying safe.",
        "category": "saving",
        "icon": "account_balance",
    },
    {
        "title": "Investment Opportunity",
        "content": "A small fixed monthly amount in a diversified index fund can grow substantially over ten years.",
        "category": "investing",
        "icon": "trending_up",
    },
    {
        "title": "Tax Saving Tips",
        "content": "Use tax-advantaged savings and retirement accounts available to you to keep more of what you earn.",
        "category": "general",
        "icon": "credit_card",
    },
)


class AdviceClient(Protocol):
    async def generate_json(self, prompt: str, *, max_output_tokens: int = 512) -> Any:
        ...


def fallback_goal_insight(
    progress: int,
    target_amount: Decimal,
    current_amount: Decimal,
    currency_symbol: str = "$",
) -> dict[str, str]:
    """Pick a canned insight from the progress band: <30, 30..59, >=60."""
    if progress < 30:
        return {
            "title": "Boost your early momentum",
            "content": "Consider increasing your monthly contribution by 10% to build momentum toward your goal.",
            "category": "saving",
            "source": "fallback",
        }
    if progress < 60:
        return {
            "title": "Stay on track with automation",
            "content": "Setting up automatic transfers can help ensure consistent progress toward your goal.",
            "category": "saving",
            "source": "fallback",
        }

    remaining = max(_normalize_amount(target_amount) - _normalize_amount(current_amount), Decimal("0.00"))
    return {
        "title": "Final stretch strategy",
        "content": (
            f"You're only {currency_symbol}{remaining:.2f} away from your goal! "
            "Consider a one-time deposit to finish early."
        ),
        "category": "general",
        "source": "fallback",
    }


def default_portfolio_advice() -> list[dict[str, str]]:
    return [dict(item) for item in DEFAULT_PORTFOLIO_ADVICE]


def _clean_text(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return " ".join(value.split())


def _normalize_advice_item(raw: dict[str, Any]) -> dict[str, str]:
    category = _clean_text(raw.get("category")).lower()
    icon = _clean_text(raw.get("icon")).lower()
    return {
        "title": _clean_text(raw.get("title")) or "Financial Tip",
        "content": _clean_text(raw.get("content")) or "Regularly review your financial goals and adjust as needed.",
        "category": category if category in INSIGHT_CATEGORIES else "general",
        "icon": icon if icon in ADVICE_ICONS else "savings",
    }


def _extract_items(payload: Any) -> list[Any]:
    """Accept a bare JSON array or an object wrapping one (e.g. {"tips": [...]})."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for value in payload.values():
            if isinstance(value, list):
                return value
    raise ValueError("Advice payload does not contain a list")


def fit_portfolio_advice(items: list[Any]) -> list[dict[str, str]]:
    """Normalize provider items and truncate/pad to exactly four tips."""
    normalized = [_normalize_advice_item(item) for item in items if isinstance(item, dict)]
    fitted = normalized[:PORTFOLIO_ADVICE_SIZE]
    if len(fitted) < PORTFOLIO_ADVICE_SIZE:
        fitted.extend(default_portfolio_advice()[len(fitted):])
    return fitted


def goal_snapshot(goal: dict[str, Any]) -> dict[str, Any]:
    """Provider-facing view of one goal row with computed progress."""
    return {
        "name": goal["name"],
        "category": goal["category"],
        "description": goal.get("description"),
        "target_amount": _normalize_amount(goal["target_amount"]),
        "current_amount": _normalize_amount(goal["current_amount"]),
        "start_date": goal["start_date"],
        "target_date": goal["target_date"],
        "progress_pct": goal["progress_pct"],
    }


class AdviceProvider:
    """Bounded, failure-contained access to the live advice model."""

    def __init__(
        self,
        client: AdviceClient | None,
        *,
        timeout_seconds: float,
        currency_symbol: str = "$",
    ) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.currency_symbol = currency_symbol

    async def _ask(self, prompt: str, *, max_output_tokens: int) -> Any:
        if self.client is None:
            raise ProviderUnavailable("GEMINI_API_KEY is not configured")

        return await asyncio.wait_for(
            self.client.generate_json(prompt, max_output_tokens=max_output_tokens),
            timeout=self.timeout_seconds,
        )

    async def insight_for_goal(self, snapshot: dict[str, Any]) -> dict[str, str]:
        """Return {title, content, category, source} for one goal snapshot."""
        fallback = fallback_goal_insight(
            snapshot["progress_pct"],
            snapshot["target_amount"],
            snapshot["current_amount"],
            self.currency_symbol,
        )
        try:
            payload = await self._ask(
                build_goal_insight_prompt(snapshot, today=_today(), currency_symbol=self.currency_symbol),
                max_output_tokens=250,
            )
            if not isinstance(payload, dict):
                raise ValueError("Insight payload is not an object")

            title = _clean_text(payload.get("title"))
            content = _clean_text(payload.get("content"))
            if not title or not content:
                raise ValueError("Insight payload is missing title or content")

            category = _clean_text(payload.get("category")).lower()
            return {
                "title": title,
                "content": content,
                "category": category if category in INSIGHT_CATEGORIES else fallback["category"],
                "source": "ai",
            }
        except ProviderUnavailable as exc:
            logger.info("Goal insight provider unavailable, using fallback: %s", exc.message)
            return fallback
        except Exception as exc:
            logger.warning("Goal insight provider failed, using fallback: %r", exc)
            return fallback

    async def advice_for_portfolio(
        self,
        goals: list[dict[str, Any]],
        total_savings: Decimal,
        active_goals_count: int,
    ) -> list[dict[str, str]]:
        """Return exactly four {title, content, category, icon} tips."""
        try:
            payload = await self._ask(
                build_portfolio_advice_prompt(
                    goals,
                    total_savings=total_savings,
                    active_goals_count=active_goals_count,
                    currency_symbol=self.currency_symbol,
                ),
                max_output_tokens=800,
            )
            return fit_portfolio_advice(_extract_items(payload))
        except ProviderUnavailable as exc:
            logger.info("Portfolio advice provider unavailable, using fallback: %s", exc.message)
            return default_portfolio_advice()
        except Exception as exc:
            logger.warning("Portfolio advice provider failed, using fallback: %r", exc)
            return default_portfolio_advice()


def get_advice_provider() -> AdviceProvider:
    client: GeminiClient | None = None
    if settings.gemini_api_key:
        client = GeminiClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
        )

    return AdviceProvider(
        client,
        timeout_seconds=settings.advice_timeout_seconds,
        currency_symbol=settings.currency_symbol,
    )
