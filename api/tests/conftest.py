from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

os.environ.setdefault("HF_OTEL_ENABLED", "false")
os.environ.setdefault("HF_STORE_BACKEND", "memory")

from hirefeed.core.auth import Role, Viewer
from hirefeed.schemas.posts import POSTS_COLLECTION, format_timestamp
from hirefeed.services.store import InMemoryDocumentStore

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ALICE = Viewer(id="alice", display_name="alice", role=Role.SEEKER)
BOB = Viewer(id="bob", display_name="bob", role=Role.SEEKER)
ACME = Viewer(id="acme", display_name="Acme Corp", role=Role.EMPLOYER)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def seed_post(store: InMemoryDocumentStore) -> Callable[..., str]:
    def _seed(
        post_id: str,
        *,
        owner: Viewer = ACME,
        caption: str = "We are hiring",
        applicable: bool = False,
        minutes: int = 0,
        **extra: Any,
    ) -> str:
        document: dict[str, Any] = {
            "userId": owner.id,
            "username": owner.display_name,
            "userType": owner.role.value,
            "caption": caption,
            "createdAt": format_timestamp(BASE_TIME + timedelta(minutes=minutes)),
            "likes": [],
            "comments": [],
            "applicable": applicable,
            "applications": [],
        }
        document.update(extra)
        return asyncio.run(store.create(POSTS_COLLECTION, document, document_id=post_id))

    return _seed


def fixed_clock(start: datetime = BASE_TIME) -> Callable[[], datetime]:
    ticks = iter(range(10_000))

    def _now() -> datetime:
        return start + timedelta(seconds=next(ticks))

    return _now
