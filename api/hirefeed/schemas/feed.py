from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from hirefeed.core.auth import Role


class CommentOut(BaseModel):
    id: str
    user_id: str
    username: str
    text: str
    created_at: datetime


class ViewPost(BaseModel):
    id: str
    user_id: str
    username: str
    user_type: Role
    caption: str
    image_url: str | None = None
    created_at: datetime
    applicable: bool = False
    like_count: int = 0
    comment_count: int = 0
    liked_by_viewer: bool = False
    can_apply: bool = False
    recent_comments: list[CommentOut] = Field(default_factory=list)
    has_more_comments: bool = False


class PostCreateRequest(BaseModel):
    caption: str = Field(max_length=4096)
    image_url: str | None = None
    applicable: bool = False


class CommentCreateRequest(BaseModel):
    text: str = Field(max_length=8192)


class LikeToggleOut(BaseModel):
    post_id: str
    liked: bool
    like_count: int


class ApplicationOut(BaseModel):
    user_id: str
    username: str
    applied_at: datetime


class ApplicationResultOut(BaseModel):
    status: Literal["applied", "already_applied"]
    post_id: str
    application: ApplicationOut
