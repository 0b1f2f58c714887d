from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_serializer, field_validator

from .auth import get_current_user_id
from .database import get_store
from .errors import AppError, http_error
from .services.ledger_service import (
    apply_transaction,
    list_goal_transactions,
    list_transactions,
)
from .store import EntityStore

router = APIRouter(tags=["transactions"])

TransactionType = Literal["deposit", "withdrawal"]
Amount = Annotated[Decimal, Field(gt=Decimal("0"), max_digits=12, decimal_places=2)]


class TransactionCreate(BaseModel):
    goal_id: int | None = None
    description: str = Field(min_length=1, max_length=200)
    amount: Amount
    type: TransactionType
    category: str = Field(min_length=1, max_length=60)
    account: str = Field(min_length=1, max_length=80)
    occurred_on: date

    @field_validator("description", "category", "account", mode="before")
    @classmethod
    def clean_text(cls, value: str | None) -> str | None:
        if isinstance(value, str):
            return value.strip()

        return value


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    goal_id: int | None
    description: str
    amount: Decimal
    type: TransactionType
    category: str
    account: str
    occurred_on: date
    created_at: datetime

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return _money(value)


def _money(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    payload: TransactionCreate,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> TransactionResponse:
    """Record a deposit/withdrawal; goal-linked ones move the goal balance."""
    try:
        row = await apply_transaction(store, user_id, payload.model_dump())
    except AppError as exc:
        raise http_error(exc) from exc

    return TransactionResponse.model_validate(row)


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions_endpoint(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> list[TransactionResponse]:
    rows = await list_transactions(store, user_id, limit=limit)
    return [TransactionResponse.model_validate(row) for row in rows]


@router.get("/goals/{goal_id}/transactions", response_model=list[TransactionResponse])
async def list_goal_transactions_endpoint(
    goal_id: int,
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> list[TransactionResponse]:
    try:
        rows = await list_goal_transactions(store, user_id, goal_id)
    except AppError as exc:
        raise http_error(exc) from exc

    return [TransactionResponse.model_validate(row) for row in rows]
