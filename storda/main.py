"""Storda Registry - FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storda.config import settings
from storda.database import init_db
from storda.errors import LockedOutError, RegistryError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and the expiry sweep on startup."""
    init_db()

    from storda.services.expiry_worker import expiry_worker
    if settings.sweep_enabled:
        expiry_worker.start()

    yield

    expiry_worker.stop()


app = FastAPI(
    title="Storda Registry",
    description="Device ownership registry: registration, verification, transfers and points",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError):
    headers = None
    if isinstance(exc, LockedOutError):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
        headers=headers,
    )


# --- Register API routers ---
from storda.api.auth import router as auth_router  # noqa: E402
from storda.api.devices import router as devices_router  # noqa: E402
from storda.api.transfers import router as transfers_router  # noqa: E402
from storda.api.wallet import router as wallet_router  # noqa: E402
from storda.api.search import router as search_router  # noqa: E402
from storda.api.system import router as system_router  # noqa: E402

API_PREFIX = "/api/v1"

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(devices_router, prefix=API_PREFIX)
app.include_router(transfers_router, prefix=API_PREFIX)
app.include_router(wallet_router, prefix=API_PREFIX)
app.include_router(search_router, prefix=API_PREFIX)
app.include_router(system_router, prefix=API_PREFIX)


@app.get("/")
def root():
    """Server info."""
    return {
        "name": settings.server_name,
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/api/v1/health")
def health():
    return {"status": "ok"}
