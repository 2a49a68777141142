from fastapi import APIRouter, Depends, HTTPException, Query, status

from hirefeed.core.config import Settings, get_settings
from hirefeed.core.security import get_optional_viewer
from hirefeed.schemas.feed import (
    ApplicationOut,
    ApplicationResultOut,
    CommentCreateRequest,
    CommentOut,
    LikeToggleOut,
    PostCreateRequest,
    ViewPost,
)
from hirefeed.services.engagement import (
    ConcurrentUpdateError,
    EngagementEngine,
    EngagementError,
    NotEligibleError,
    PostNotFoundError,
    UnauthenticatedError,
    ValidationFailedError,
)
from hirefeed.services.feed import FeedReader, comment_out, project_feed, project_post
from hirefeed.services.repository import get_store
from hirefeed.services.store import StoreUnavailableError

router = APIRouter()


def get_engagement_engine(
    settings: Settings = Depends(get_settings),
    store=Depends(get_store),
) -> EngagementEngine:
    return EngagementEngine(
        store,
        caption_max_length=settings.caption_max_length,
        comment_max_length=settings.comment_max_length,
        like_toggle_max_attempts=settings.like_toggle_max_attempts,
    )


def get_feed_reader(store=Depends(get_store)) -> FeedReader:
    return FeedReader(store)


def engagement_http_error(exc: EngagementError) -> HTTPException:
    if isinstance(exc, UnauthenticatedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, ValidationFailedError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, NotEligibleError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"reason": exc.reason, "message": str(exc)},
        )
    if isinstance(exc, PostNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConcurrentUpdateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("", response_model=list[ViewPost])
async def list_feed(
    settings: Settings = Depends(get_settings),
    viewer=Depends(get_optional_viewer),
    reader: FeedReader = Depends(get_feed_reader),
    limit: int = Query(default=20, ge=1),
    offset: int = Query(default=0, ge=0),
) -> list[ViewPost]:
    try:
        posts = await reader.list_feed(limit=min(limit, settings.feed_page_size_max), offset=offset)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return project_feed(posts, viewer)


@router.post("", response_model=ViewPost, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreateRequest,
    viewer=Depends(get_optional_viewer),
    engine: EngagementEngine = Depends(get_engagement_engine),
) -> ViewPost:
    try:
        post = await engine.create_post(
            viewer,
            caption=payload.caption,
            image_url=payload.image_url,
            applicable=payload.applicable,
        )
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except EngagementError as exc:
        raise engagement_http_error(exc) from exc
    return project_post(post, viewer)


@router.get("/{post_id}", response_model=ViewPost)
async def get_post(
    post_id: str,
    viewer=Depends(get_optional_viewer),
    reader: FeedReader = Depends(get_feed_reader),
) -> ViewPost:
    try:
        post = await reader.get_post(post_id)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PostNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return project_post(post, viewer)


@router.get("/{post_id}/comments", response_model=list[CommentOut])
async def list_comments(post_id: str, reader: FeedReader = Depends(get_feed_reader)) -> list[CommentOut]:
    try:
        post = await reader.get_post(post_id)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PostNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [comment_out(comment) for comment in post.comments]


@router.post("/{post_id}/likes", response_model=LikeToggleOut)
async def toggle_like(
    post_id: str,
    viewer=Depends(get_optional_viewer),
    engine: EngagementEngine = Depends(get_engagement_engine),
) -> LikeToggleOut:
    try:
        result = await engine.toggle_like(post_id, viewer)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except EngagementError as exc:
        raise engagement_http_error(exc) from exc
    return LikeToggleOut(post_id=result.post_id, liked=result.liked, like_count=result.like_count)


@router.post("/{post_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: str,
    payload: CommentCreateRequest,
    viewer=Depends(get_optional_viewer),
    engine: EngagementEngine = Depends(get_engagement_engine),
) -> CommentOut:
    try:
        comment = await engine.add_comment(post_id, viewer, payload.text)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except EngagementError as exc:
        raise engagement_http_error(exc) from exc
    return comment_out(comment)


@router.post("/{post_id}/applications", response_model=ApplicationResultOut)
async def apply_to_post(
    post_id: str,
    viewer=Depends(get_optional_viewer),
    engine: EngagementEngine = Depends(get_engagement_engine),
) -> ApplicationResultOut:
    try:
        result = await engine.apply_to_post(post_id, viewer)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except EngagementError as exc:
        raise engagement_http_error(exc) from exc
    return ApplicationResultOut(
        status=result.status,
        post_id=post_id,
        application=ApplicationOut(
            user_id=result.application.user_id,
            username=result.application.username,
            applied_at=result.application.applied_at,
        ),
    )
