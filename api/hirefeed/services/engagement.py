from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal
from uuid import uuid4

from opentelemetry import trace

from hirefeed.core.auth import Viewer
from hirefeed.schemas.posts import (
    POSTS_COLLECTION,
    Application,
    Comment,
    Post,
    format_timestamp,
    normalize_post,
    utcnow,
)
from hirefeed.services.store import ArrayAppend, ArrayRemove, ArrayUnion, StoreNotFoundError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

NOT_SEEKER = "not_seeker"
NOT_EMPLOYER = "not_employer"
NOT_APPLICABLE = "not_applicable"


class EngagementError(Exception):
    """Base engagement error."""


class UnauthenticatedError(EngagementError):
    """Raised when a mutating operation is issued without a viewer."""


class ValidationFailedError(EngagementError):
    """Raised when input is rejected before any store call."""


class NotEligibleError(EngagementError):
    """Raised when the viewer's role or the post's state forbids the action."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class PostNotFoundError(EngagementError):
    """Raised when the target post does not exist."""


class ConcurrentUpdateError(EngagementError):
    """Raised when a read-then-replace write keeps getting overwritten."""


ApplicationStatus = Literal["applied", "already_applied"]


@dataclass(frozen=True, slots=True)
class LikeToggleResult:
    post_id: str
    liked: bool
    like_count: int


@dataclass(frozen=True, slots=True)
class ApplicationResult:
    status: ApplicationStatus
    application: Application

    @property
    def newly_applied(self) -> bool:
        return self.status == "applied"


class EngagementEngine:
    """Mutating operations over Post aggregates.

    The store offers no compare-and-swap, so writes prefer array transforms
    (append, keyed union, remove) that the backend evaluates against its
    latest state. Stores without transforms fall back to read-then-replace of
    the whole list, re-read after the write to check the intended change
    stuck, and retried up to ``like_toggle_max_attempts`` times. Another
    viewer's concurrent replace can still drop this viewer's change between
    our verification and their write; that last-writer-wins window is a known
    limitation of the fallback path, and two racing duplicate applications may
    then both report ``applied``.

    Store failures are never retried here.
    """

    def __init__(
        self,
        store: Any,
        *,
        caption_max_length: int = 256,
        comment_max_length: int = 1000,
        like_toggle_max_attempts: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.caption_max_length = caption_max_length
        self.comment_max_length = comment_max_length
        self.max_attempts = max(1, like_toggle_max_attempts)
        self.clock = clock

    async def create_post(
        self,
        viewer: Viewer | None,
        *,
        caption: str,
        image_url: str | None = None,
        applicable: bool = False,
    ) -> Post:
        viewer = _require_viewer(viewer)
        normalized_caption = caption.strip()
        if not normalized_caption:
            raise ValidationFailedError("caption must not be empty")
        if len(normalized_caption) > self.caption_max_length:
            raise ValidationFailedError(f"caption must be at most {self.caption_max_length} characters")
        if applicable and not viewer.is_employer:
            raise NotEligibleError(NOT_EMPLOYER, "only employers can open posts to applications")

        document: dict[str, Any] = {
            "userId": viewer.id,
            "username": viewer.display_name,
            "userType": viewer.role.value,
            "caption": normalized_caption,
            "createdAt": format_timestamp(self.clock()),
            "likes": [],
            "comments": [],
            "applicable": applicable,
            "applications": [],
        }
        if image_url and image_url.strip():
            document["imageUrl"] = image_url.strip()

        with tracer.start_as_current_span("engagement.create_post"):
            post_id = await self.store.create(POSTS_COLLECTION, document)
            post = await self._load_post(post_id)
        logger.info(
            "post created post_id=%s owner_id=%s applicable=%s",
            post_id,
            viewer.id,
            post.applicable,
        )
        return post

    async def toggle_like(self, post_id: str, viewer: Viewer | None) -> LikeToggleResult:
        viewer = _require_viewer(viewer)
        with tracer.start_as_current_span("engagement.toggle_like") as span:
            span.set_attribute("post.id", post_id)
            post = await self._load_post(post_id)
            want_liked = not post.is_liked_by(viewer.id)

            if self.store.supports_array_transforms:
                transform = ArrayUnion((viewer.id,)) if want_liked else ArrayRemove((viewer.id,))
                await self._merge(post_id, {"likes": transform})
                post = await self._load_post(post_id)
            else:
                post = await self._replace_until_verified(
                    post,
                    build=lambda current: {"likes": _toggled_likes(current.likes, viewer.id, want_liked)},
                    verify=lambda current: current.is_liked_by(viewer.id) == want_liked,
                    operation="toggle_like",
                )

        liked = post.is_liked_by(viewer.id)
        logger.info("like toggled post_id=%s viewer_id=%s liked=%s", post_id, viewer.id, liked)
        return LikeToggleResult(post_id=post_id, liked=liked, like_count=len(post.likes))

    async def add_comment(self, post_id: str, viewer: Viewer | None, text: str) -> Comment:
        viewer = _require_viewer(viewer)
        normalized_text = text.strip()
        if not normalized_text:
            raise ValidationFailedError("comment text must not be empty")
        if len(normalized_text) > self.comment_max_length:
            raise ValidationFailedError(f"comment text must be at most {self.comment_max_length} characters")

        comment = Comment(
            id=uuid4().hex,
            user_id=viewer.id,
            username=viewer.display_name,
            text=normalized_text,
            created_at=self.clock(),
        )
        with tracer.start_as_current_span("engagement.add_comment") as span:
            span.set_attribute("post.id", post_id)
            if self.store.supports_array_transforms:
                await self._merge(post_id, {"comments": ArrayAppend((comment.to_document(),))})
            else:
                post = await self._load_post(post_id)
                await self._replace_until_verified(
                    post,
                    build=lambda current: {
                        "comments": [item.to_document() for item in current.comments] + [comment.to_document()]
                    },
                    verify=lambda current: any(item.id == comment.id for item in current.comments),
                    operation="add_comment",
                )

        logger.info("comment added post_id=%s viewer_id=%s comment_id=%s", post_id, viewer.id, comment.id)
        return comment

    async def apply_to_post(self, post_id: str, viewer: Viewer | None) -> ApplicationResult:
        viewer = _require_viewer(viewer)
        if not viewer.is_seeker:
            raise NotEligibleError(NOT_SEEKER, "only job seekers can apply to posts")

        with tracer.start_as_current_span("engagement.apply_to_post") as span:
            span.set_attribute("post.id", post_id)
            post = await self._load_post(post_id)
            if not post.accepts_applications:
                raise NotEligibleError(NOT_APPLICABLE, "post is not open to applications")

            existing = post.application_for(viewer.id)
            if existing is not None:
                logger.info("application already present post_id=%s applicant_id=%s", post_id, viewer.id)
                return ApplicationResult(status="already_applied", application=existing)

            application = Application(user_id=viewer.id, username=viewer.display_name, applied_at=self.clock())
            if self.store.supports_array_transforms:
                changes = await self._merge(
                    post_id,
                    {"applications": ArrayUnion((application.to_document(),), key="userId")},
                )
                # Only the call whose union actually grew the list applied; a concurrent
                # duplicate sees a zero change even when its entry is value-equal.
                newly_applied = changes.get("applications", 0) > 0
                post = await self._load_post(post_id)
            else:
                inserted: list[bool] = []

                def build(current: Post) -> dict[str, Any]:
                    inserted.append(current.application_for(viewer.id) is None)
                    return {"applications": _with_application(current, application)}

                post = await self._replace_until_verified(
                    post,
                    build=build,
                    verify=lambda current: current.application_for(viewer.id) is not None,
                    operation="apply_to_post",
                )
                newly_applied = inserted[-1]

        stored = post.application_for(viewer.id)
        if stored is None:
            raise ConcurrentUpdateError(f"application for post {post_id} was not persisted")

        status: ApplicationStatus = "applied" if newly_applied else "already_applied"
        logger.info("application recorded post_id=%s applicant_id=%s status=%s", post_id, viewer.id, status)
        return ApplicationResult(status=status, application=stored)

    async def _load_post(self, post_id: str) -> Post:
        document = await self.store.get(POSTS_COLLECTION, post_id)
        if document is None:
            raise PostNotFoundError(f"post not found: {post_id}")
        return normalize_post(document.id, document.data)

    async def _merge(self, post_id: str, fields: dict[str, Any]) -> dict[str, int]:
        try:
            return await self.store.merge_update(POSTS_COLLECTION, post_id, fields)
        except StoreNotFoundError as exc:
            raise PostNotFoundError(f"post not found: {post_id}") from exc

    async def _replace_until_verified(
        self,
        post: Post,
        *,
        build: Callable[[Post], dict[str, Any]],
        verify: Callable[[Post], bool],
        operation: str,
    ) -> Post:
        for attempt in range(1, self.max_attempts + 1):
            await self._merge(post.id, build(post))
            post = await self._load_post(post.id)
            if verify(post):
                return post
            logger.warning(
                "replace write overwritten operation=%s post_id=%s attempt=%s",
                operation,
                post.id,
                attempt,
            )
        raise ConcurrentUpdateError(f"{operation} on post {post.id} lost to concurrent writers")


def _require_viewer(viewer: Viewer | None) -> Viewer:
    if viewer is None:
        raise UnauthenticatedError("authentication required")
    return viewer


def _toggled_likes(likes: list[str], user_id: str, liked: bool) -> list[str]:
    remaining = [item for item in likes if item != user_id]
    return remaining + [user_id] if liked else remaining


def _with_application(post: Post, application: Application) -> list[dict[str, Any]]:
    documents = [item.to_document() for item in post.applications]
    if post.application_for(application.user_id) is None:
        documents.append(application.to_document())
    return documents