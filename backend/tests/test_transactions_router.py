from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal

from fastapi import FastAPI
from fastapi.testclient import TestClient

import goaltrack.transactions as transactions_router
from goaltrack.handlers import register_exception_handlers
from goaltrack.services import goals_service


def _app_with_overrides(store, user_id=1):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(transactions_router.router)
    app.dependency_overrides[transactions_router.get_store] = lambda: store
    app.dependency_overrides[transactions_router.get_current_user_id] = lambda: user_id
    return app


def _create_goal(store, user_id=1):
    goal = asyncio.run(goals_service.create_goal(
        store,
        user_id,
        {
            "name": "Laptop",
            "category": "Tech",
            "target_amount": Decimal("2000.00"),
            "start_date": date(2026, 1, 1),
            "target_date": date(2026, 6, 1),
        },
    ))
    return goal["id"]


def _payload(goal_id, **overrides):
    payload = {
        "goal_id": goal_id,
        "description": "Paycheck transfer",
        "amount": "500.00",
        "type": "deposit",
        "category": "Income",
        "account": "Checking",
        "occurred_on": "2026-02-15",
    }
    payload.update(overrides)
    return payload


def test_create_transaction_moves_goal_balance(store) -> None:
    goal_id = _create_goal(store)

    with TestClient(_app_with_overrides(store)) as client:
        response = client.post("/transactions", json=_payload(goal_id))

    assert response.status_code == 201
    body = response.json()
    assert body["amount"] == "500.00"
    assert body["goal_id"] == goal_id
    assert body["occurred_on"] == "2026-02-15"
    assert asyncio.run(store.goals.get(goal_id))["current_amount"] == Decimal("500.00")


def test_create_transaction_rejects_non_positive_amount(store) -> None:
    goal_id = _create_goal(store)

    with TestClient(_app_with_overrides(store)) as client:
        response = client.post("/transactions", json=_payload(goal_id, amount="0"))

    assert response.status_code == 400
    assert asyncio.run(store.transactions.list()) == []


def test_create_transaction_on_foreign_goal_is_forbidden(store) -> None:
    goal_id = _create_goal(store, user_id=2)

    with TestClient(_app_with_overrides(store, user_id=1)) as client:
        response = client.post("/transactions", json=_payload(goal_id))

    assert response.status_code == 403


def test_create_transaction_on_missing_goal_is_404(store) -> None:
    with TestClient(_app_with_overrides(store)) as client:
        response = client.post("/transactions", json=_payload(77))

    assert response.status_code == 404


def test_list_transactions_newest_first_with_limit(store) -> None:
    with TestClient(_app_with_overrides(store)) as client:
        for day in (3, 20, 11):
            client.post("/transactions", json=_payload(None, occurred_on=f"2026-02-{day:02d}"))
        response = client.get("/transactions", params={"limit": 2})
        too_big = client.get("/transactions", params={"limit": 500})

    assert [row["occurred_on"] for row in response.json()] == ["2026-02-20", "2026-02-11"]
    assert too_big.status_code == 400


def test_list_goal_transactions(store) -> None:
    goal_id = _create_goal(store)

    with TestClient(_app_with_overrides(store)) as client:
        client.post("/transactions", json=_payload(goal_id))
        client.post("/transactions", json=_payload(None))
        response = client.get(f"/goals/{goal_id}/transactions")

    assert response.status_code == 200
    assert [row["goal_id"] for row in response.json()] == [goal_id]

    with TestClient(_app_with_overrides(store, user_id=2)) as client:
        assert client.get(f"/goals/{goal_id}/transactions").status_code == 403
