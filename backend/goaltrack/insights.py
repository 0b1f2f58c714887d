from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .ai.advice_provider import AdviceProvider, get_advice_provider
from .auth import get_current_user_id
from .database import get_store
from .errors import AppError, http_error
from .services.insights_service import create_goal_insight, list_goal_insights, list_insights
from .store import EntityStore

router = APIRouter(tags=["insights"])


class InsightResponse(BaseModel):
    id: int
    user_id: int
    goal_id: int | None
    title: str
    content: str
    category: str
    source: Literal["ai", "fallback"]
    read: bool
    created_at: datetime


@router.get("/insights", response_model=list[InsightResponse])
async def list_insights_endpoint(
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> list[InsightResponse]:
    rows = await list_insights(store, user_id)
    return [InsightResponse.model_validate(row) for row in rows]


@router.get("/goals/{goal_id}/insights", response_model=list[InsightResponse])
async def list_goal_insights_endpoint(
    goal_id: int,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> list[InsightResponse]:
    try:
        rows = await list_goal_insights(store, user_id, goal_id)
    except AppError as exc:
        raise http_error(exc) from exc

    return [InsightResponse.model_validate(row) for row in rows]


@router.post("/goals/{goal_id}/insights", response_model=InsightResponse, status_code=201)
async def create_goal_insight_endpoint(
    goal_id: int,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
    provider: AdviceProvider = Depends(get_advice_provider),
) -> InsightResponse:
    """Generate a fresh insight for one goal on demand (fallback when the model is unavailable)."""
    try:
        row = await create_goal_insight(store, provider, user_id, goal_id)
    except AppError as exc:
        raise http_error(exc) from exc

    return InsightResponse.model_validate(row)
