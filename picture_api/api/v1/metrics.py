"""Prometheus metric definitions and the /metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest

from picture_api.core.config import settings


router = APIRouter(tags=["metrics"])

service_info = Info("picture_api_service", "Service build information")
service_info.info({
    "name": settings.SERVICE_NAME,
    "version": settings.VERSION,
    "environment": settings.ENVIRONMENT,
    "storage_backend": settings.STORAGE_BACKEND,
})

# Labelled by route template, never by raw path
http_requests_total = Counter(
    "http_requests_total",
    "HTTP requests handled",
    ["service", "method", "endpoint", "status"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["service", "method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently being handled",
    ["service", "method"],
)
errors_total = Counter(
    "errors_total",
    "Unhandled exceptions raised while serving a request",
    ["service", "error_type", "endpoint"],
)

picture_operations_total = Counter(
    "picture_operations_total",
    "Admin picture operations by outcome",
    ["service", "operation", "status"],
)


def record_operation(operation: str, success: bool) -> None:
    """Count one create / update / delete attempt."""
    picture_operations_total.labels(
        service=settings.SERVICE_NAME,
        operation=operation,
        status="success" if success else "failure",
    ).inc()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus text exposition of the default registry."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
