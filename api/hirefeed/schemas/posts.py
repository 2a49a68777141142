"""Canonical Post aggregate shape and the normalization applied on every read.

Persisted documents use camelCase field names (``userId``, ``createdAt``...)
and must stay compatible with documents written by the mobile client, so the
models below expose snake_case attributes with camelCase aliases and dump back
to the stored shape through :meth:`to_document`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hirefeed.core.auth import Role, parse_role

logger = logging.getLogger(__name__)

POSTS_COLLECTION = "posts"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    # Fixed width keeps lexical order equal to chronological order in the store.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


class DocumentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Comment(DocumentModel):
    id: str
    user_id: str = Field(alias="userId")
    username: str
    text: str
    created_at: datetime = Field(alias="createdAt")

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)


class Application(DocumentModel):
    user_id: str = Field(alias="userId")
    username: str
    applied_at: datetime = Field(alias="appliedAt")

    @field_serializer("applied_at")
    def _serialize_applied_at(self, value: datetime) -> str:
        return format_timestamp(value)


class Post(DocumentModel):
    id: str
    user_id: str = Field(alias="userId")
    username: str
    user_type: Role = Field(alias="userType")
    caption: str
    image_url: str | None = Field(default=None, alias="imageUrl")
    created_at: datetime = Field(alias="createdAt")
    likes: list[str] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    applicable: bool = False
    applications: list[Application] = Field(default_factory=list)

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)

    def to_document(self) -> dict[str, Any]:
        # The id lives in the document key, not in the body.
        document = super().to_document()
        document.pop("id", None)
        return document

    @property
    def applicant_ids(self) -> set[str]:
        return {application.user_id for application in self.applications}

    @property
    def accepts_applications(self) -> bool:
        return self.applicable and self.user_type is Role.EMPLOYER

    def is_liked_by(self, user_id: str) -> bool:
        return user_id in self.likes

    def application_for(self, user_id: str) -> Application | None:
        return next((item for item in self.applications if item.user_id == user_id), None)


def normalize_post(post_id: str, data: dict[str, Any]) -> Post:
    """Build a canonical :class:`Post` from a raw stored document.

    Missing collections default to empty. Duplicate likes, comment ids and
    applications per applicant collapse onto their first occurrence, and
    malformed embedded entries are dropped with a warning instead of failing
    the whole read.
    """
    created_at = parse_timestamp(data.get("createdAt")) or EPOCH
    image_url = data.get("imageUrl")
    return Post(
        id=post_id,
        user_id=_coerce_text(data.get("userId")),
        username=_coerce_text(data.get("username")),
        user_type=parse_role(data.get("userType")) or Role.SEEKER,
        caption=_coerce_text(data.get("caption")),
        image_url=image_url if isinstance(image_url, str) and image_url else None,
        created_at=created_at,
        likes=_normalize_likes(data.get("likes")),
        comments=_normalize_comments(post_id, data.get("comments"), default_at=created_at),
        applicable=data.get("applicable") is True,
        applications=_normalize_applications(post_id, data.get("applications"), default_at=created_at),
    )


def _normalize_likes(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    seen: set[str] = set()
    likes: list[str] = []
    for item in raw:
        if isinstance(item, str) and item and item not in seen:
            seen.add(item)
            likes.append(item)
    return likes


def _normalize_comments(post_id: str, raw: Any, *, default_at: datetime) -> list[Comment]:
    if not isinstance(raw, list):
        return []
    seen: set[str] = set()
    comments: list[Comment] = []
    for item in raw:
        comment_id = item.get("id") if isinstance(item, dict) else None
        if not isinstance(comment_id, str) or not comment_id:
            logger.warning("dropping malformed comment post_id=%s", post_id)
            continue
        if comment_id in seen:
            continue
        seen.add(comment_id)
        comments.append(
            Comment(
                id=comment_id,
                user_id=_coerce_text(item.get("userId")),
                username=_coerce_text(item.get("username")),
                text=_coerce_text(item.get("text")),
                created_at=parse_timestamp(item.get("createdAt")) or default_at,
            )
        )
    return comments


def _normalize_applications(post_id: str, raw: Any, *, default_at: datetime) -> list[Application]:
    if not isinstance(raw, list):
        return []
    seen: set[str] = set()
    applications: list[Application] = []
    for item in raw:
        user_id = item.get("userId") if isinstance(item, dict) else None
        if not isinstance(user_id, str) or not user_id:
            logger.warning("dropping malformed application post_id=%s", post_id)
            continue
        if user_id in seen:
            continue
        seen.add(user_id)
        applications.append(
            Application(
                user_id=user_id,
                username=_coerce_text(item.get("username")),
                applied_at=parse_timestamp(item.get("appliedAt")) or default_at,
            )
        )
    return applications


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return str(value)
