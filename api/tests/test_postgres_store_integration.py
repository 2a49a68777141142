from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest

from conftest import ACME, ALICE, BOB, fixed_clock
from hirefeed.core.auth import Role, Viewer
from hirefeed.schemas.posts import POSTS_COLLECTION
from hirefeed.services.engagement import EngagementEngine
from hirefeed.services.notifications import applications_for
from hirefeed.services.repository import SCHEMA_SQL, PostgresDocumentStore
from hirefeed.services.store import ArrayUnion, StoreConflictError, StoreNotFoundError

T = TypeVar("T")


@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.getenv("HF_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("integration tests require HF_DATABASE_URL or DATABASE_URL")
    return url


@pytest.fixture(autouse=True)
def reset_tables(database_url: str) -> None:
    _run(_truncate_documents(database_url))


def test_crud_and_query_order(database_url: str) -> None:
    async def scenario(store: PostgresDocumentStore) -> None:
        await store.create(POSTS_COLLECTION, {"userId": "acme", "createdAt": "2024-05-01T12:00:00.000000Z"}, "old")
        await store.create(POSTS_COLLECTION, {"userId": "acme", "createdAt": "2024-05-02T12:00:00.000000Z"}, "new")
        await store.create(POSTS_COLLECTION, {"userId": "bob", "createdAt": "2024-05-03T12:00:00.000000Z"}, "bob")

        with pytest.raises(StoreConflictError):
            await store.create(POSTS_COLLECTION, {}, "old")
        with pytest.raises(StoreNotFoundError):
            await store.merge_update(POSTS_COLLECTION, "missing", {"caption": "x"})

        rows = await store.query(
            POSTS_COLLECTION,
            where={"userId": "acme"},
            order_by="createdAt",
            descending=True,
        )
        assert [row.id for row in rows] == ["new", "old"]

        page = await store.query(POSTS_COLLECTION, order_by="createdAt", descending=True, limit=1, offset=1)
        assert [row.id for row in page] == ["new"]

        await store.merge_update(POSTS_COLLECTION, "old", {"caption": "edited"})
        document = await store.get(POSTS_COLLECTION, "old")
        assert document is not None
        assert document.data["caption"] == "edited"
        assert document.data["userId"] == "acme"

    _run(_with_store(database_url, scenario))


def test_keyed_union_keeps_first_entry(database_url: str) -> None:
    async def scenario(store: PostgresDocumentStore) -> None:
        await store.create(POSTS_COLLECTION, {"applications": [{"userId": "alice", "appliedAt": "t0"}]}, "job")
        await store.merge_update(
            POSTS_COLLECTION,
            "job",
            {"applications": ArrayUnion(({"userId": "alice", "appliedAt": "t1"}, {"userId": "bob"}), key="userId")},
        )
        document = await store.get(POSTS_COLLECTION, "job")
        assert document is not None
        assert document.data["applications"] == [{"userId": "alice", "appliedAt": "t0"}, {"userId": "bob"}]

    _run(_with_store(database_url, scenario))


def test_concurrent_engagement_loses_nothing(database_url: str) -> None:
    seekers = [Viewer(id=f"seeker-{index}", display_name=f"seeker-{index}", role=Role.SEEKER) for index in range(8)]

    async def scenario(store: PostgresDocumentStore) -> None:
        engine = EngagementEngine(store, clock=fixed_clock())
        post = await engine.create_post(ACME, caption="Platform engineer", image_url=None, applicable=True)

        await asyncio.gather(*(engine.toggle_like(post.id, seeker) for seeker in seekers))
        await asyncio.gather(*(engine.add_comment(post.id, seeker, f"hi from {seeker.id}") for seeker in seekers))
        await asyncio.gather(
            engine.apply_to_post(post.id, ALICE),
            engine.apply_to_post(post.id, ALICE),
            engine.apply_to_post(post.id, BOB),
        )

        document = await store.get(POSTS_COLLECTION, post.id)
        assert document is not None
        assert sorted(document.data["likes"]) == sorted(seeker.id for seeker in seekers)
        assert len(document.data["comments"]) == len(seekers)
        assert sorted(entry["userId"] for entry in document.data["applications"]) == ["alice", "bob"]

        views = await applications_for(store, ACME.id)
        assert sorted(view.applicant_id for view in views) == ["alice", "bob"]

    _run(_with_store(database_url, scenario))


def test_mixed_timestamp_order_prefix_search_and_change_counts(database_url: str) -> None:
    async def scenario(store: PostgresDocumentStore) -> None:
        await store.create(POSTS_COLLECTION, {"createdAt": "2024-05-01T12:00:00.000000Z"}, "iso")
        await store.create(POSTS_COLLECTION, {"createdAt": 1714566600}, "epoch")
        await store.create(POSTS_COLLECTION, {"caption": "no timestamp"}, "missing")

        rows = await store.query(POSTS_COLLECTION, order_by="createdAt", descending=True)
        assert [row.id for row in rows] == ["epoch", "iso", "missing"]

        for user_id, username in [("u1", "alice"), ("u2", "alicia"), ("u3", "al_x"), ("u4", "bob")]:
            await store.create("users", {"username": username}, user_id)
        matches = await store.query("users", starts_with={"username": "ali"}, order_by="username")
        assert [row.id for row in matches] == ["u1", "u2"]
        underscored = await store.query("users", starts_with={"username": "al_"})
        assert [row.id for row in underscored] == ["u3"]

        added = await store.merge_update(
            POSTS_COLLECTION, "iso", {"applications": ArrayUnion(({"userId": "alice"},), key="userId")}
        )
        repeated = await store.merge_update(
            POSTS_COLLECTION, "iso", {"applications": ArrayUnion(({"userId": "alice"},), key="userId")}
        )
        assert added == {"applications": 1}
        assert repeated == {"applications": 0}

    _run(_with_store(database_url, scenario))


async def _with_store(database_url: str, scenario: Callable[[PostgresDocumentStore], Awaitable[None]]) -> None:
    store = PostgresDocumentStore(database_url=database_url, min_pool_size=1, max_pool_size=4)
    try:
        await scenario(store)
    finally:
        await store.close()


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


async def _truncate_documents(database_url: str) -> None:
    conn = await asyncpg.connect(database_url)
    try:
        await conn.execute(SCHEMA_SQL)
        await conn.execute("truncate table documents restart identity")
    finally:
        await conn.close()

