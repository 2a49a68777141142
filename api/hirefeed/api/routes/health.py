from fastapi import APIRouter, Depends, HTTPException, status

from hirefeed.schemas.users import USERS_COLLECTION
from hirefeed.services.repository import get_store
from hirefeed.services.store import StoreUnavailableError

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(store=Depends(get_store)) -> dict[str, str]:
    try:
        await store.query(USERS_COLLECTION, limit=1)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ready"}
