import logging
import time
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from .config import settings
from .infrastructure.db import Base, engine
from .infrastructure.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_endpoint,
)
from .infrastructure.rate_limit import limiter
from .interfaces.http.errors import error_response, install_error_handlers
from .interfaces.http.routers import admin as admin_router
from .interfaces.http.routers import auth as auth_router
from .interfaces.http.routers import courses as courses_router
from .interfaces.http.routers import progress as progress_router
from .interfaces.http.routers import registrations as registrations_router
from .interfaces.http.routers import students as students_router


log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(title="Registrar", version="0.1.0")

app.state.limiter = limiter
install_error_handlers(app)

app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def observe_requests(request: Request, call_next):
    start_time = time.time()
    method = request.method
    path = request.url.path

    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception("unhandled_error", method=method, path=path)
        response = error_response(request, e)

    if response.headers.get("content-type", "").startswith("application/json"):
        response.headers["content-type"] = "application/json; charset=utf-8"

    duration = time.time() - start_time
    status_code = response.status_code
    http_requests_total.labels(method=method, endpoint=path, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)

    logger.info(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration * 1000, 2),
    )
    return response


@app.on_event("startup")
def on_startup():
    logger.info("Starting registrar", version="0.1.0", env=settings.ENV)
    if not settings.JWT_SECRET:
        logger.warning("JWT_SECRET is not set; authenticated routes will fail")
    Base.metadata.create_all(bind=engine)

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection established")


@app.get("/health")
def health():
    return {"status": "OK", "environment": settings.ENV}


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return metrics_endpoint()


for module in (auth_router, registrations_router, students_router, courses_router, progress_router, admin_router):
    app.include_router(module.router, prefix="/api")

# uploaded course images; store_image returns paths under /uploads
upload_dir = Path(settings.UPLOAD_PATH)
upload_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=upload_dir), name="uploads")
