"""Goals router: CRUD endpoints with computed progress fields."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .ai.advice_provider import AdviceProvider, get_advice_provider
from .auth import get_current_user_id
from .database import get_store
from .errors import AppError, http_error
from .services.goals_service import (
    create_goal,
    delete_goal,
    get_goal,
    list_goals,
    update_goal,
)
from .services.insights_service import record_goal_insight
from .store import EntityStore

GoalStatus = Literal["in_progress", "on_track", "needs_attention", "completed"]
GoalStatusFilter = Literal["in_progress", "on_track", "needs_attention", "completed", "all"]

router = APIRouter(prefix="/goals", tags=["goals"])


def _money(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class GoalCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    category: str = Field(min_length=1, max_length=60)
    target_amount: Decimal = Field(gt=Decimal("0"), max_digits=12, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"), max_digits=12, decimal_places=2)
    start_date: date
    target_date: date
    status: GoalStatus = "in_progress"
    automated: bool = False


class GoalUpdateRequest(BaseModel):
    # no current_amount: balances only move through transactions
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    category: str | None = Field(default=None, min_length=1, max_length=60)
    target_amount: Decimal | None = Field(default=None, gt=Decimal("0"), max_digits=12, decimal_places=2)
    start_date: date | None = None
    target_date: date | None = None
    status: GoalStatus | None = None
    automated: bool | None = None


class GoalResponse(BaseModel):
    id: int
    user_id: int
    name: str
    description: str | None
    category: str
    target_amount: Decimal
    current_amount: Decimal
    start_date: date
    target_date: date
    status: GoalStatus
    automated: bool
    created_at: datetime
    progress_pct: int
    remaining_amount: Decimal

    @field_serializer("target_amount", "current_amount", "remaining_amount")
    def serialize_decimal(self, value: Decimal) -> str:
        return _money(value)


@router.post("", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
async def create_goal_endpoint(
    payload: GoalCreateRequest,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
    provider: AdviceProvider = Depends(get_advice_provider),
) -> GoalResponse:
    """
    Create one savings goal for the current user.

    The goal insight is produced after the response is sent, so a slow or
    failing advice provider never delays or fails goal creation.
    """
    try:
        goal = await create_goal(store, user_id, payload.model_dump())
    except AppError as exc:
        raise http_error(exc) from exc

    background_tasks.add_task(record_goal_insight, store, provider, user_id, goal["id"])
    return GoalResponse(**goal)


@router.get("", response_model=list[GoalResponse])
async def list_goals_endpoint(
    status: GoalStatusFilter = Query(default="all"),
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> list[GoalResponse]:
    """List current user's goals in creation order, optionally filtered by status."""
    try:
        rows = await list_goals(store, user_id, status=status)
    except AppError as exc:
        raise http_error(exc) from exc

    return [GoalResponse(**row) for row in rows]


@router.get("/{goal_id}", response_model=GoalResponse)
async def get_goal_endpoint(
    goal_id: int,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> GoalResponse:
    try:
        row = await get_goal(store, user_id, goal_id)
    except AppError as exc:
        raise http_error(exc) from exc

    return GoalResponse(**row)


@router.patch("/{goal_id}", response_model=GoalResponse)
async def update_goal_endpoint(
    goal_id: int,
    payload: GoalUpdateRequest,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> GoalResponse:
    """Partially update one goal (everything except the balance)."""
    patch_data: dict[str, Any] = payload.model_dump(exclude_unset=True)
    if not patch_data:
        raise HTTPException(status_code=400, detail="At least one field must be provided")

    try:
        row = await update_goal(store, user_id, goal_id, patch_data)
    except AppError as exc:
        raise http_error(exc) from exc

    return GoalResponse(**row)


@router.delete("/{goal_id}")
async def delete_goal_endpoint(
    goal_id: int,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> dict[str, str]:
    """Delete one goal that has no transactions recorded against it."""
    try:
        await delete_goal(store, user_id, goal_id)
    except AppError as exc:
        raise http_error(exc) from exc

    return {"message": "Goal deleted successfully"}
