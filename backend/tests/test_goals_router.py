from __future__ import annotations

import asyncio
from datetime import date

from fastapi import FastAPI
from fastapi.testclient import TestClient

import goaltrack.goals as goals_router
from goaltrack.ai.advice_provider import AdviceProvider
from goaltrack.handlers import register_exception_handlers
from goaltrack.services import ledger_service


def _goal_payload(**overrides):
    payload = {
        "name": "Trip",
        "category": "Travel",
        "target_amount": "1000.00",
        "start_date": "2026-01-01",
        "target_date": "2026-08-01",
    }
    payload.update(overrides)
    return payload


def _app_with_overrides(store, user_id=1):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(goals_router.router)
    app.dependency_overrides[goals_router.get_store] = lambda: store
    app.dependency_overrides[goals_router.get_advice_provider] = lambda: AdviceProvider(None, timeout_seconds=1)
    if user_id is not None:
        app.dependency_overrides[goals_router.get_current_user_id] = lambda: user_id
    return app


def test_goals_auth_required(store) -> None:
    app = _app_with_overrides(store, user_id=None)

    with TestClient(app) as client:
        response = client.get("/goals")

    assert response.status_code == 401


def test_create_goal_endpoint_success(store) -> None:
    app = _app_with_overrides(store)

    with TestClient(app) as client:
        response = client.post("/goals", json=_goal_payload(current_amount="250.00"))

    assert response.status_code == 201
    payload = response.json()
    assert payload["id"] == 1
    assert payload["name"] == "Trip"
    assert payload["target_amount"] == "1000.00"
    assert payload["current_amount"] == "250.00"
    assert payload["remaining_amount"] == "750.00"
    assert payload["progress_pct"] == 25
    assert payload["status"] == "in_progress"


def test_create_goal_schedules_fallback_insight(store) -> None:
    app = _app_with_overrides(store)

    with TestClient(app) as client:
        response = client.post("/goals", json=_goal_payload())

    assert response.status_code == 201
    insights = asyncio.run(store.insights.list(user_id=1))
    assert len(insights) == 1
    assert insights[0]["goal_id"] == response.json()["id"]
    assert insights[0]["source"] == "fallback"

    titles = {row["title"] for row in asyncio.run(store.notifications.list(user_id=1))}
    assert titles == {"New Goal Created", "New Financial Insight"}


def test_create_goal_with_bad_dates_returns_400(store) -> None:
    app = _app_with_overrides(store)

    with TestClient(app) as client:
        response = client.post("/goals", json=_goal_payload(start_date="2026-09-01"))

    assert response.status_code == 400
    assert asyncio.run(store.goals.list()) == []


def test_create_goal_with_invalid_body_returns_400(store) -> None:
    app = _app_with_overrides(store)

    with TestClient(app) as client:
        response = client.post("/goals", json=_goal_payload(target_amount="-5"))

    assert response.status_code == 400
    assert response.json()["detail"] == "Validation error"


def test_list_goals_only_returns_own_goals(store) -> None:
    with TestClient(_app_with_overrides(store, user_id=1)) as client:
        client.post("/goals", json=_goal_payload(name="Mine"))
    with TestClient(_app_with_overrides(store, user_id=2)) as client:
        client.post("/goals", json=_goal_payload(name="Theirs", status="completed"))
        response = client.get("/goals")
        filtered = client.get("/goals", params={"status": "in_progress"})

    assert [goal["name"] for goal in response.json()] == ["Theirs"]
    assert filtered.json() == []


def test_get_goal_returns_404_for_missing(store) -> None:
    with TestClient(_app_with_overrides(store)) as client:
        response = client.get("/goals/99")

    assert response.status_code == 404


def test_get_goal_of_other_user_is_forbidden(store) -> None:
    with TestClient(_app_with_overrides(store, user_id=1)) as client:
        goal_id = client.post("/goals", json=_goal_payload()).json()["id"]
    with TestClient(_app_with_overrides(store, user_id=2)) as client:
        response = client.get(f"/goals/{goal_id}")

    assert response.status_code == 403


def test_patch_goal_updates_fields(store) -> None:
    with TestClient(_app_with_overrides(store)) as client:
        goal_id = client.post("/goals", json=_goal_payload()).json()["id"]
        response = client.patch(f"/goals/{goal_id}", json={"name": "Japan Trip", "automated": True})

    assert response.status_code == 200
    assert response.json()["name"] == "Japan Trip"
    assert response.json()["automated"] is True


def test_patch_goal_empty_or_balance_is_rejected(store) -> None:
    with TestClient(_app_with_overrides(store)) as client:
        goal_id = client.post("/goals", json=_goal_payload()).json()["id"]
        empty = client.patch(f"/goals/{goal_id}", json={})
        balance = client.patch(f"/goals/{goal_id}", json={"current_amount": "900.00"})

    assert empty.status_code == 400
    assert balance.status_code == 400


def test_delete_goal(store) -> None:
    with TestClient(_app_with_overrides(store)) as client:
        goal_id = client.post("/goals", json=_goal_payload()).json()["id"]
        response = client.delete(f"/goals/{goal_id}")
        missing = client.get(f"/goals/{goal_id}")

    assert response.status_code == 200
    assert response.json() == {"message": "Goal deleted successfully"}
    assert missing.status_code == 404


def test_delete_goal_with_transactions_returns_409(store) -> None:
    with TestClient(_app_with_overrides(store)) as client:
        goal_id = client.post("/goals", json=_goal_payload()).json()["id"]

    asyncio.run(ledger_service.apply_transaction(
        store,
        1,
        {
            "goal_id": goal_id,
            "description": "Deposit",
            "amount": "100.00",
            "type": "deposit",
            "category": "Savings",
            "account": "Checking",
            "occurred_on": date(2026, 2, 1),
        },
    ))

    with TestClient(_app_with_overrides(store)) as client:
        response = client.delete(f"/goals/{goal_id}")

    assert response.status_code == 409
