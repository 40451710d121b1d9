"""FastAPI application entry point.

SMS forward endpoint and health check.
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smsgate.channels import build_channels
from smsgate.config import get_settings
from smsgate.core.pipeline import SmsPipeline
from smsgate.storage.memory import MemoryStorage
from smsgate.storage.redis import RedisStorage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: connect storage and webhook client, build pipeline."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup
    store = MemoryStorage() if settings.storage_backend == "memory" else RedisStorage(settings)
    await store.connect()
    client = httpx.AsyncClient(timeout=settings.channel_timeout_seconds)

    channels = build_channels(settings, client)
    app.state.store = store
    app.state.pipeline = SmsPipeline(settings, store, channels)
    configured = [channel.name for channel in channels if channel.is_configured()]
    logger.info(f"{settings.app_name} started: storage={settings.storage_backend}, channels={configured}")

    yield

    # Shutdown
    await client.aclose()
    await store.disconnect()


app = FastAPI(
    title="SMS Gate",
    description="Forwards SMS from a phone to chat webhooks",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.post("/sms")
@app.post("/")
async def forward_sms(request: Request) -> JSONResponse:
    """SMS forward endpoint.

    - Verify bearer token
    - Validate content and timestamp
    - Rate limit per device / ip
    - Deduplicate
    - Push to every channel
    """
    pipeline: SmsPipeline = request.app.state.pipeline
    debug = request.query_params.get("debug") == "true"

    try:
        body = await request.body()
        result = await pipeline.handle(request.headers, body, debug=debug)
    except Exception:
        logger.exception("Unhandled error in SMS forward")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Internal error"},
        )

    return JSONResponse(status_code=result.status_code, content=result.body)


@app.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint.

    Returns: {status, storage, channels}
    """
    store = request.app.state.store
    pipeline: SmsPipeline = request.app.state.pipeline

    storage_healthy = False
    try:
        storage_healthy = await store.health_check()
    except Exception:
        logger.warning("Storage health check raised", exc_info=True)

    overall_status = "healthy" if storage_healthy else "degraded"
    configured = [channel.name for channel in pipeline.dispatcher.channels if channel.is_configured()]

    return JSONResponse(
        status_code=status.HTTP_200_OK if storage_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": overall_status,
            "storage": "healthy" if storage_healthy else "unhealthy",
            "channels": configured,
        },
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "SMS Gate API", "version": "0.1.0"}
