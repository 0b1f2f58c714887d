"""Create the demo account used by the frontend's "try it" login."""

import logging
from typing import Any

from .auth import register_user
from .store import EntityStore

logger = logging.getLogger(__name__)

DEMO_USER: dict[str, Any] = {
    "username": "demo",
    "password": "password",
    "full_name": "Alex Morgan",
    "email": "demo@example.com",
    "profile_image": None,
}


async def seed_demo_user(store: EntityStore) -> dict[str, Any]:
    existing = await store.users.find_one(username=DEMO_USER["username"])
    if existing is not None:
        return existing

    user = await register_user(store, DEMO_USER)
    logger.info("Seeded demo user id=%s", user["id"])
    return user
