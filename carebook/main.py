import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carebook.api.routes import appointments, providers
from carebook.core.config import settings, _ENV_FILE
from carebook.core.db import init_db

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)

_ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
_ALLOWED_HEADERS = ["Authorization", "Content-Type"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info(
        "Day template: %02d:00-%02d:00 every %d min; store timeout %.1fs",
        settings.slot_start_hour,
        settings.slot_end_hour,
        settings.slot_duration_minutes,
        settings.store_timeout_seconds,
    )
    if not settings.one_booking_per_patient_per_date:
        logger.warning("One-booking-per-patient-per-date rule is disabled")
    if settings.create_tables_on_startup:
        await init_db()
        logger.info("Tables created via metadata.create_all")
    yield


app = FastAPI(
    title="CareBook Scheduling API",
    description="Provider availability and appointment booking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=_ALLOWED_METHODS,
    allow_headers=_ALLOWED_HEADERS,
)

app.include_router(providers.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")


def _error_cors_headers(origin: str | None) -> dict[str, str]:
    """CORS headers for responses produced outside the middleware (unhandled errors)."""
    allowed = settings.cors_origins_list
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": ", ".join(_ALLOWED_METHODS),
        "Access-Control-Allow-Headers": ", ".join(_ALLOWED_HEADERS),
    }
    if allowed:
        headers["Access-Control-Allow-Origin"] = origin if origin in allowed else allowed[0]
    return headers


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    headers = _error_cors_headers(request.headers.get("origin"))
    if isinstance(exc, HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
    logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": f"{type(exc).__name__}: {exc}"},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
