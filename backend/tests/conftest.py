from __future__ import annotations

import os

# Settings require JWT config at import time.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("GEMINI_API_KEY", "")

import pytest

from goaltrack.store import MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
