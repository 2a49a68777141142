from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from hirefeed.core.auth import Role, parse_role
from hirefeed.schemas.posts import parse_timestamp

USERS_COLLECTION = "users"


class UserProfileOut(BaseModel):
    id: str
    username: str
    first_name: str = ""
    last_name: str = ""
    user_type: Role
    profile_image_url: str | None = None
    bio: str | None = None
    location: str | None = None
    website: str | None = None
    skills: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


def normalize_user_profile(user_id: str, data: dict[str, Any]) -> UserProfileOut:
    skills = data.get("skills")
    return UserProfileOut(
        id=user_id,
        username=_optional_text(data.get("username")) or "",
        first_name=_optional_text(data.get("firstName")) or "",
        last_name=_optional_text(data.get("lastName")) or "",
        user_type=parse_role(data.get("userType")) or Role.SEEKER,
        profile_image_url=_optional_text(data.get("profileImageUrl")),
        bio=_optional_text(data.get("bio")),
        location=_optional_text(data.get("location")),
        website=_optional_text(data.get("website")),
        skills=[item for item in skills if isinstance(item, str)] if isinstance(skills, list) else [],
        created_at=parse_timestamp(data.get("createdAt")),
        updated_at=parse_timestamp(data.get("updatedAt")),
    )


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None
