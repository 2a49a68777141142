from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from hirefeed.api.router import api_router
from hirefeed.core.config import get_settings
from hirefeed.core.telemetry import TelemetryRuntime, configure_api_logging, setup_api_telemetry
from hirefeed.services.repository import get_store

settings = get_settings()
logger = logging.getLogger(__name__)
telemetry = TelemetryRuntime()


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(
        "api starting environment=%s store_backend=%s tracing=%s",
        settings.environment,
        settings.store_backend,
        telemetry.enabled,
    )
    try:
        yield
    finally:
        telemetry.shutdown()
        # Release the asyncpg pool, if one was opened.
        await get_store().close()
        get_store.cache_clear()


configure_api_logging(settings)
app = FastAPI(title=settings.app_name, lifespan=lifespan)
telemetry = setup_api_telemetry(app, settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
