"""Main FastAPI application for the picture service."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from picture_api.core.config import settings
from picture_api.core.errors import ServiceError
from picture_api.core.logging_config import setup_logging, get_logger
from picture_api.db.session import engine, init_models
from picture_api.api.v1 import admin, health, metrics, pictures
from picture_api.api.middleware import (
    JWTAuthMiddleware,
    PrometheusMiddleware,
    RequestLoggingMiddleware,
)
from picture_api.api.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    service_exception_handler,
    validation_exception_handler,
)


# Logging must be configured before any logger is used
setup_logging(debug=settings.is_debug_mode, json_logs=settings.use_json_logs)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup and dispose the engine on shutdown."""
    logger.info(
        "application_startup",
        service=settings.SERVICE_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        debug_mode=settings.is_debug_mode,
        storage_backend=settings.STORAGE_BACKEND,
    )

    await init_models()

    yield

    await engine.dispose()
    logger.info("application_shutdown", graceful=True)


app = FastAPI(
    title=settings.SERVICE_NAME,
    description="Picture management with gallery and start page ordering",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_exception_handler(ServiceError, service_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Middleware stack (first added is executed last)
app.add_middleware(JWTAuthMiddleware)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware, slow_request_threshold_ms=1000.0)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pictures.router)
app.include_router(admin.router)
app.include_router(health.router)
app.include_router(metrics.router)

# Local storage refs are served directly
if settings.STORAGE_BACKEND == "local":
    storage_path = Path(settings.STORAGE_PATH)
    storage_path.mkdir(parents=True, exist_ok=True)

    app.mount(
        "/storage",
        StaticFiles(directory=settings.STORAGE_PATH),
        name="storage"
    )
    logger.info("static_files_mounted", mount_path="/storage", directory=settings.STORAGE_PATH)


@app.get("/")
async def root():
    """Service information and useful links."""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "documentation": "/docs",
        "health_check": "/api/v1/health/",
        "storage_backend": settings.STORAGE_BACKEND
    }
