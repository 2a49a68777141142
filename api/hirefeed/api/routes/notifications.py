from fastapi import APIRouter, Depends, HTTPException, Query, status

from hirefeed.core.security import get_optional_viewer
from hirefeed.schemas.notifications import ApplicationOrder, ApplicationView
from hirefeed.services.notifications import applications_for
from hirefeed.services.repository import get_store
from hirefeed.services.store import StoreUnavailableError

router = APIRouter()


@router.get("/applications", response_model=list[ApplicationView])
async def list_application_notifications(
    viewer=Depends(get_optional_viewer),
    store=Depends(get_store),
    order: ApplicationOrder = Query(default="stored"),
) -> list[ApplicationView]:
    if viewer is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")
    if not viewer.is_employer:
        return []

    try:
        return await applications_for(store, viewer.id, order=order)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
