from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, status

from hirefeed.core.auth import Role, Viewer, parse_role
from hirefeed.core.config import Settings, get_settings
from hirefeed.schemas.users import USERS_COLLECTION
from hirefeed.services.repository import get_store
from hirefeed.services.store import StoreUnavailableError


async def get_optional_viewer(
    settings: Settings = Depends(get_settings),
    store=Depends(get_store),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Viewer | None:
    """Resolve the caller, or ``None`` when no credentials were sent.

    Reads accept anonymous callers; mutating operations reject ``None``
    further down in the engagement engine.
    """
    if authorization is None:
        return None

    if not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="auth requires bearer token",
        )

    token = authorization.split(" ", maxsplit=1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="empty bearer token")

    if not settings.supabase_url or not settings.supabase_anon_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth is not configured",
        )

    user = await _fetch_supabase_user(
        supabase_url=settings.supabase_url,
        supabase_anon_key=settings.supabase_anon_key,
        token=token,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    try:
        profile = await store.get(USERS_COLLECTION, user_id)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return _resolve_viewer(user_id, user, profile.data if profile is not None else None)


async def _fetch_supabase_user(
    *,
    supabase_url: str,
    supabase_anon_key: str,
    token: str,
    timeout_seconds: float,
) -> dict[str, Any]:
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": supabase_anon_key,
    }
    url = f"{supabase_url.rstrip('/')}/auth/v1/user"

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:  # pragma: no cover - network dependent
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth verification unavailable",
        ) from exc

    if response.status_code in {401, 403}:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")
    if response.status_code != 200:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth verification failed",
        )

    return response.json()


def _resolve_viewer(user_id: str, user: dict[str, Any], profile: dict[str, Any] | None) -> Viewer:
    # The profile document is authoritative; signup metadata only fills gaps.
    profile = profile or {}
    user_metadata = user.get("user_metadata")
    if not isinstance(user_metadata, dict):
        user_metadata = {}

    role: Role | None = parse_role(profile.get("userType")) or parse_role(user_metadata.get("userType"))
    if role is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="user profile not found")

    display_name = profile.get("username") or user_metadata.get("username") or user.get("email") or user_id
    return Viewer(id=user_id, display_name=str(display_name), role=role)
