# sustainability_dashboard/main.py

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sustainability_dashboard.api import alerts, auth, comments, goals, kpi, readings, reports, tasks
from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.database import (
    close_mongo_connection,
    connect_to_mongo,
    ensure_indexes,
    get_db,
)
from sustainability_dashboard.core.errors import ApiError, first_validation_message

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Sustainability Dashboard API",
    version="1.0.0",
    description="Energy, water, waste and emissions KPIs for the sustainability dashboard",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ---------------------------------------------------------------------------
# Error handlers: every error uses the {success: false, error} envelope
# ---------------------------------------------------------------------------
def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"400 ValidationError on {request.method} {request.url.path} errors={exc.errors()}")
    return _error(400, first_validation_message(exc.errors()))


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    if settings.DEBUG:
        return _error(500, "Server error", detail=str(exc))
    return _error(500, "Server error")

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
def _build_cors_origins() -> List[str]:
    origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    if settings.FRONTEND_URL:
        origins.append(settings.FRONTEND_URL.strip().rstrip("/"))

    for o in settings.get_cors_origins():
        if o == "*":
            logger.warning("CORS_ORIGINS contains '*'. Ignoring '*' and using explicit allow-list.")
            continue
        origins.append(o)

    merged: List[str] = []
    for o in origins:
        if o and o not in merged:
            merged.append(o)
    return merged


cors_origins = _build_cors_origins()
logger.info(f"CORS origins configured: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,  # bearer token, not cookies
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(kpi.router, prefix="/api/kpi", tags=["kpi"])
app.include_router(readings.router, prefix="/api/readings", tags=["readings"])
app.include_router(goals.router, prefix="/api/goals", tags=["goals"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(alerts.router, prefix="/api/alerts", tags=["alerts"])
app.include_router(comments.router, prefix="/api/comments", tags=["comments"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])

# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    logger.info("Starting Sustainability Dashboard API...")
    try:
        db = await connect_to_mongo()
        await ensure_indexes(db)
    except Exception as e:
        # keep serving; /health reports the database as unavailable
        logger.exception(f"MongoDB connection failed: {e}")
    logger.info(f"Startup complete. ENV={settings.ENVIRONMENT}")


@app.on_event("shutdown")
async def on_shutdown():
    await close_mongo_connection()
    logger.info("Shutdown complete")

# ---------------------------------------------------------------------------
# Root / Health
# ---------------------------------------------------------------------------
@app.get("/")
async def root():
    return {
        "success": True,
        "message": "Sustainability Dashboard API is running",
        "version": app.version,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health")
async def health_check():
    try:
        db = await get_db()
        await db.command("ping")
        db_status = "healthy"
    except Exception as e:
        logger.error(f"DB health check failed: {e}")
        db_status = "unavailable"

    return {
        "success": True,
        "data": {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
            "services": {"database": db_status},
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
