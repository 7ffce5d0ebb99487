# tiretrack/main.py
"""
FastAPI application entry point.
Includes CORS, request timing, domain and global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from tiretrack.routers import admin, auth, branches, cars, health
from tiretrack.database import SessionLocal, create_tables
from tiretrack.config import settings
from tiretrack.exceptions import RateLimitError, TireTrackError
from tiretrack.services.auth_service import ensure_bootstrap_admin
from tiretrack.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="TireTrack API",
    description="Tire, rotation and oil service tracking for shop customers and back office.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Domain Errors ────────────────────────────────────────────────────────────
@app.exception_handler(TireTrackError)
async def domain_exception_handler(request: Request, exc: TireTrackError):
    logger.info(f"{request.method} {request.url.path} → {exc.status_code}: {exc.detail}")
    headers = None
    if isinstance(exc, RateLimitError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(auth.router,     prefix="/api/v1", tags=["Auth"])
app.include_router(cars.router,     prefix="/api/v1", tags=["Cars & Services"])
app.include_router(branches.router, prefix="/api/v1", tags=["Branches"])
app.include_router(admin.router,    prefix="/api/v1", tags=["Admin"])
app.include_router(health.router,   prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("TireTrack backend starting up...")
    create_tables()
    logger.info("Database tables ready")
    db = SessionLocal()
    try:
        ensure_bootstrap_admin(db)
    finally:
        db.close()
    logger.info(f"Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT} ({settings.ENVIRONMENT})")
    logger.info("API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("TireTrack backend shutting down...")
