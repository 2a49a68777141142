from __future__ import annotations

from typing import Any

from hirefeed.schemas.users import USERS_COLLECTION, UserProfileOut, normalize_user_profile
from hirefeed.services.store import StoreNotFoundError


async def get_user_profile(store: Any, user_id: str) -> UserProfileOut:
    document = await store.get(USERS_COLLECTION, user_id)
    if document is None:
        raise StoreNotFoundError(f"user not found: {user_id}")
    return normalize_user_profile(document.id, document.data)


async def search_users_by_username(store: Any, prefix: str, *, limit: int | None = None) -> list[UserProfileOut]:
    """Case-sensitive prefix match on ``username``, ordered by username."""
    documents = await store.query(
        USERS_COLLECTION,
        starts_with={"username": prefix},
        order_by="username",
        limit=limit,
    )
    return [normalize_user_profile(document.id, document.data) for document in documents]


async def find_users_by_username(store: Any, username: str) -> list[UserProfileOut]:
    documents = await store.query(USERS_COLLECTION, where={"username": username})
    return [normalize_user_profile(document.id, document.data) for document in documents]
