"""FastAPI application entrypoint."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from backoffice.api.deps import Session
from backoffice.api.v1 import v1_router
from backoffice.core.config import get_settings
from backoffice.core.database import init_db, ping
from backoffice.core.errors import DomainError
from backoffice.services.notifications import get_notifier

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: ensure tables exist (use Alembic in production)
    await init_db()
    logger.info("Back office API starting")
    yield
    # Shutdown: let in-flight emails finish
    await get_notifier().drain()
    logger.info("Back office API shutting down")


app = FastAPI(
    title="Back Office",
    version="0.1.0",
    description="Multi-tenant back-office API: companies, workspaces and memberships",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Domain errors ────────────────────────────────────────────
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.warning(
        "%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.detail
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


class HealthResponse(BaseModel):
    status: str  # "ok" or "error"
    detail: str | None = None
    latency_ms: int | None = None


@app.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check(session: Session) -> JSONResponse:
    try:
        t0 = time.monotonic()
        await ping(session)
        latency = int((time.monotonic() - t0) * 1000)
    except Exception as exc:
        logger.exception("Health check failed")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=HealthResponse(status="error", detail=str(exc)[:200]).model_dump(),
        )
    return JSONResponse(content=HealthResponse(status="ok", latency_ms=latency).model_dump())
