from fastapi import APIRouter, Depends, HTTPException, Query, status

from hirefeed.core.config import Settings, get_settings
from hirefeed.core.security import get_optional_viewer
from hirefeed.schemas.feed import ViewPost
from hirefeed.schemas.users import UserProfileOut
from hirefeed.services.feed import FeedReader, project_feed
from hirefeed.services.repository import get_store
from hirefeed.services.store import StoreNotFoundError, StoreUnavailableError
from hirefeed.services.users import find_users_by_username, get_user_profile, search_users_by_username

router = APIRouter()


@router.get("", response_model=list[UserProfileOut])
async def find_users(
    settings: Settings = Depends(get_settings),
    store=Depends(get_store),
    username: str = Query(min_length=1),
    exact: bool = Query(default=False),
    limit: int = Query(default=20, ge=1),
) -> list[UserProfileOut]:
    try:
        if exact:
            return await find_users_by_username(store, username)
        return await search_users_by_username(store, username, limit=min(limit, settings.feed_page_size_max))
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/{user_id}", response_model=UserProfileOut)
async def get_user(user_id: str, store=Depends(get_store)) -> UserProfileOut:
    try:
        return await get_user_profile(store, user_id)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/{user_id}/posts", response_model=list[ViewPost])
async def list_user_posts(
    user_id: str,
    viewer=Depends(get_optional_viewer),
    store=Depends(get_store),
) -> list[ViewPost]:
    try:
        posts = await FeedReader(store).list_posts_by_owner(user_id)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return project_feed(posts, viewer)
