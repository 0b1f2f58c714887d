from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal

from fastapi import FastAPI
from fastapi.testclient import TestClient

import goaltrack.insights as insights_router
import goaltrack.notifications as notifications_router
from goaltrack.ai.advice_provider import AdviceProvider
from goaltrack.auth import get_current_user_id
from goaltrack.database import get_store
from goaltrack.services import goals_service


class StaticClient:
    async def generate_json(self, prompt, *, max_output_tokens=512):
        return {"title": "Round up purchases", "content": "Send spare change to this goal.", "category": "saving"}


def _app_with_overrides(store, user_id=1, client=None):
    app = FastAPI()
    app.include_router(notifications_router.router)
    app.include_router(insights_router.router)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_current_user_id] = lambda: user_id
    app.dependency_overrides[insights_router.get_advice_provider] = (
        lambda: AdviceProvider(client, timeout_seconds=1))
    return app


def _create_goal(store, user_id=1):
    goal = asyncio.run(goals_service.create_goal(
        store,
        user_id,
        {
            "name": "Wedding",
            "category": "Life",
            "target_amount": Decimal("5000.00"),
            "start_date": date(2026, 1, 1),
            "target_date": date(2027, 1, 1),
        },
    ))
    return goal["id"]


def test_notifications_unread_filter_and_mark_read(store) -> None:
    _create_goal(store)
    _create_goal(store)

    with TestClient(_app_with_overrides(store)) as client:
        notifications = client.get("/notifications").json()
        marked = client.patch(f"/notifications/{notifications[0]['id']}/read")
        unread = client.get("/notifications", params={"unread_only": True}).json()

    assert len(notifications) == 2
    assert marked.status_code == 200
    assert marked.json()["read"] is True
    assert [row["id"] for row in unread] == [notifications[1]["id"]]


def test_mark_other_users_notification_is_forbidden(store) -> None:
    _create_goal(store, user_id=2)

    with TestClient(_app_with_overrides(store, user_id=1)) as client:
        response = client.patch("/notifications/1/read")
        missing = client.patch("/notifications/99/read")

    assert response.status_code == 403
    assert missing.status_code == 404


def test_generate_goal_insight_from_model(store) -> None:
    goal_id = _create_goal(store)

    with TestClient(_app_with_overrides(store, client=StaticClient())) as client:
        created = client.post(f"/goals/{goal_id}/insights")
        listed = client.get(f"/goals/{goal_id}/insights")
        everything = client.get("/insights")

    assert created.status_code == 201
    body = created.json()
    assert body["title"] == "Round up purchases"
    assert body["source"] == "ai"
    assert body["read"] is False
    assert [row["id"] for row in listed.json()] == [body["id"]]
    assert len(everything.json()) == 1

    notifications = asyncio.run(store.notifications.list(user_id=1, type="insight"))
    assert notifications[0]["title"] == "New Financial Insight"
    assert notifications[0]["message"] == "Round up purchases"


def test_generate_goal_insight_without_model_uses_fallback(store) -> None:
    goal_id = _create_goal(store)

    with TestClient(_app_with_overrides(store)) as client:
        created = client.post(f"/goals/{goal_id}/insights")

    assert created.status_code == 201
    assert created.json()["source"] == "fallback"
    assert created.json()["title"] == "Boost your early momentum"


def test_goal_insights_are_owner_scoped(store) -> None:
    goal_id = _create_goal(store, user_id=2)

    with TestClient(_app_with_overrides(store, user_id=1)) as client:
        created = client.post(f"/goals/{goal_id}/insights")
        listed = client.get(f"/goals/{goal_id}/insights")
        missing = client.get("/goals/404/insights")

    assert created.status_code == 403
    assert listed.status_code == 403
    assert missing.status_code == 404
    assert asyncio.run(store.insights.list()) == []
