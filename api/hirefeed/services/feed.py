from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from hirefeed.core.auth import Viewer
from hirefeed.schemas.feed import CommentOut, ViewPost
from hirefeed.schemas.posts import POSTS_COLLECTION, Comment, Post, normalize_post
from hirefeed.services.engagement import PostNotFoundError

INLINE_COMMENT_LIMIT = 2
FEED_ORDER_FIELD = "createdAt"


def can_apply(post: Post, viewer: Viewer | None) -> bool:
    if viewer is None or not viewer.is_seeker:
        return False
    return post.accepts_applications and viewer.id not in post.applicant_ids


def project_post(post: Post, viewer: Viewer | None) -> ViewPost:
    comment_count = len(post.comments)
    return ViewPost(
        id=post.id,
        user_id=post.user_id,
        username=post.username,
        user_type=post.user_type,
        caption=post.caption,
        image_url=post.image_url,
        created_at=post.created_at,
        applicable=post.applicable,
        like_count=len(post.likes),
        comment_count=comment_count,
        liked_by_viewer=viewer is not None and post.is_liked_by(viewer.id),
        can_apply=can_apply(post, viewer),
        recent_comments=[comment_out(item) for item in post.comments[-INLINE_COMMENT_LIMIT:]],
        has_more_comments=comment_count > INLINE_COMMENT_LIMIT,
    )


def project_feed(posts: Iterable[Post], viewer: Viewer | None) -> list[ViewPost]:
    """Join posts with the viewer. Input order is kept; ordering belongs to the store query."""
    return [project_post(post, viewer) for post in posts]


def comment_out(comment: Comment) -> CommentOut:
    return CommentOut(
        id=comment.id,
        user_id=comment.user_id,
        username=comment.username,
        text=comment.text,
        created_at=comment.created_at,
    )


class FeedReader:
    """Read paths over the posts collection. Every document goes through ``normalize_post``."""

    def __init__(self, store: Any) -> None:
        self.store = store

    async def list_feed(self, *, limit: int, offset: int = 0) -> list[Post]:
        documents = await self.store.query(
            POSTS_COLLECTION,
            order_by=FEED_ORDER_FIELD,
            descending=True,
            limit=limit,
            offset=offset,
        )
        return [normalize_post(document.id, document.data) for document in documents]

    async def get_post(self, post_id: str) -> Post:
        document = await self.store.get(POSTS_COLLECTION, post_id)
        if document is None:
            raise PostNotFoundError(f"post not found: {post_id}")
        return normalize_post(document.id, document.data)

    async def list_posts_by_owner(self, user_id: str) -> list[Post]:
        documents = await self.store.query(
            POSTS_COLLECTION,
            where={"userId": user_id},
            order_by=FEED_ORDER_FIELD,
            descending=True,
        )
        return [normalize_post(document.id, document.data) for document in documents]
