"""Employer-facing application notifications.

Ordering is part of the contract and has to be chosen explicitly:

``stored``
    Posts in feed order (newest post first, ties by store insertion), and
    each post's applications in the order they were persisted.
``newest_first``
    The flattened list sorted by ``applied_at`` descending. The sort is
    stable, so equal timestamps keep their ``stored`` order.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from hirefeed.schemas.notifications import ApplicationOrder, ApplicationView
from hirefeed.schemas.posts import POSTS_COLLECTION, Post, normalize_post
from hirefeed.services.feed import FEED_ORDER_FIELD


def flatten_applications(posts: Iterable[Post], *, order: ApplicationOrder = "stored") -> list[ApplicationView]:
    views = [
        ApplicationView(
            applicant_id=application.user_id,
            applicant_username=application.username,
            applied_at=application.applied_at,
            post_id=post.id,
            post_caption=post.caption,
        )
        for post in posts
        for application in post.applications
    ]
    if order == "newest_first":
        views.sort(key=lambda view: view.applied_at, reverse=True)
    return views


async def applications_for(
    store: Any,
    employer_id: str,
    *,
    order: ApplicationOrder = "stored",
) -> list[ApplicationView]:
    # An employer without posts simply has no notifications.
    documents = await store.query(
        POSTS_COLLECTION,
        where={"userId": employer_id},
        order_by=FEED_ORDER_FIELD,
        descending=True,
    )
    posts = [normalize_post(document.id, document.data) for document in documents]
    return flatten_applications(posts, order=order)
