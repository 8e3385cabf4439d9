import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from ferrywatch.api.routes import router
from ferrywatch.config import settings
from ferrywatch.errors import FeatureSchemaMismatchError, FeedError
from ferrywatch.schemas.error import ErrorResponse
from ferrywatch.utils.terminals import build_terminal_lookup

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the terminal lookup at startup so a bad overrides file fails fast."""
    lookup = build_terminal_lookup(settings.TERMINAL_OVERRIDES_CONFIG)
    app.state.terminal_lookup = lookup
    logger.info(
        "Terminal lookup ready: %d terminals, %d names",
        len(lookup.valid_terminals), len(lookup.terminal_names),
    )
    yield


app = FastAPI(
    title="FerryWatch",
    description=(
        "Washington State Ferries trip tracking with per-route at-dock and "
        "at-sea duration predictions."
    ),
    version="0.1.0",
    license_info={"name": "Apache-2.0"},
    lifespan=lifespan,
)

# CORS: origins from settings (supports comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(router, prefix="/api/v1")


# ── Structured error handlers ─────────────────────────────────────────────────

def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error(422, "Validation error", str(exc))


@app.exception_handler(FeedError)
async def feed_error_handler(request: Request, exc: FeedError):
    logger.warning("Feed error on %s %s: %s", request.method, request.url.path, exc)
    return _error(502, "Upstream feed error", str(exc))


@app.exception_handler(FeatureSchemaMismatchError)
async def feature_mismatch_handler(request: Request, exc: FeatureSchemaMismatchError):
    logger.error("Feature schema mismatch on %s: %s", request.url.path, exc)
    return _error(500, "Model schema mismatch", str(exc))


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return _error(500, "Internal server error", "An unexpected error occurred.")


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
