"""
Middleware for request tracing, access logging, Prometheus metrics and
admin token validation.
"""

import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from picture_api.core.config import settings
from picture_api.core.logging_config import clear_trace_id, get_logger, set_trace_id


logger = get_logger(__name__)

TRACE_HEADERS = ("X-Trace-ID", "X-Correlation-ID")


def route_template(request: Request) -> str:
    """Matched route path ("/api/v1/picture/{picture_id}") or the raw path.

    Keeps picture ids out of log and metric labels.
    """
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a trace id to the request and writes one access log line per request.

    The trace id comes from the first TRACE_HEADERS value present, or a new
    uuid4, and is returned in every trace header. Requests slower than
    `slow_request_threshold_ms` are logged as warnings.
    """

    def __init__(self, app: ASGIApp, slow_request_threshold_ms: float = 1000.0):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = next(
            (request.headers[name] for name in TRACE_HEADERS if request.headers.get(name)),
            str(uuid.uuid4()),
        )
        set_trace_id(trace_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=self._elapsed_ms(started),
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise
        else:
            duration_ms = self._elapsed_ms(started)
            log = logger.warning if duration_ms > self.slow_request_threshold_ms else logger.info
            log(
                "request_completed",
                method=request.method,
                path=request.url.path,
                route=route_template(request),
                status_code=response.status_code,
                duration_ms=duration_ms,
                slow=duration_ms > self.slow_request_threshold_ms,
                client_host=request.client.host if request.client else "unknown",
            )
            for name in TRACE_HEADERS:
                response.headers[name] = trace_id
            return response
        finally:
            clear_trace_id()

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Counts requests and observes their duration per route template."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Imported late, metrics module imports settings at module load
        from picture_api.api.v1 import metrics

        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        in_progress = metrics.http_requests_in_progress.labels(
            service=settings.SERVICE_NAME, method=method
        )
        in_progress.inc()
        started = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as exc:
            metrics.errors_total.labels(
                service=settings.SERVICE_NAME,
                error_type=type(exc).__name__,
                endpoint=route_template(request),
            ).inc()
            raise
        finally:
            in_progress.dec()
            endpoint = route_template(request)
            metrics.http_requests_total.labels(
                service=settings.SERVICE_NAME, method=method, endpoint=endpoint, status=status_code
            ).inc()
            metrics.http_request_duration_seconds.labels(
                service=settings.SERVICE_NAME, method=method, endpoint=endpoint
            ).observe(time.perf_counter() - started)


def decode_bearer_token(authorization: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode an "Authorization: Bearer <jwt>" header value.

    Returns:
        The token claims, or None when no bearer token was sent.

    Raises:
        ExpiredSignatureError: token past its exp claim
        JWTError: bad signature, algorithm or format
    """
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        logger.debug("malformed_auth_header", scheme=scheme[:20])
        return None

    return jwt.decode(
        token.strip(),
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        options={"verify_aud": False, "verify_iss": False},
    )


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Validates admin bearer tokens and stores the claims on request.state.

    Never rejects a request itself: public routes stay readable with a
    missing, expired or forged token. Admin routes reject unauthenticated
    requests through the require_admin dependency, which reports
    `request.state.auth_error` when the token was present but unusable.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        logger.info("jwt_middleware_initialized", algorithm=settings.JWT_ALGORITHM)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        claims = None
        auth_error = None
        try:
            claims = decode_bearer_token(request.headers.get("Authorization"))
        except ExpiredSignatureError:
            logger.info("jwt_expired", path=request.url.path)
            auth_error = "Token has expired"
        except JWTError as exc:
            logger.warning("jwt_invalid", path=request.url.path, error=str(exc))
            auth_error = "Invalid token"

        request.state.authenticated = claims is not None
        request.state.auth_payload = claims
        request.state.auth_error = auth_error
        if claims is not None:
            logger.debug("jwt_validated", user_id=claims.get("sub"))
        return await call_next(request)
