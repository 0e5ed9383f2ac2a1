# ============================================================================
# File: api/middleware.py
# ============================================================================

import time
import uuid
import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from core.exceptions import ModuleServiceError
from schemas.api import ErrorResponse

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Injects:
    - request_id
    - api_latency_ms
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.perf_counter()

        request.state.request_id = request_id

        response: Response = await call_next(request)

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-API-Latency-ms"] = str(latency_ms)

        return response


async def module_service_error_handler(request: Request, exc: ModuleServiceError) -> JSONResponse:
    """Typed JSON body for every pipeline error, with the status its class maps to."""
    request_id = getattr(request.state, "request_id", None)
    if exc.http_status >= 500:
        logger.error(f"[{request_id}] {exc}", extra={"error_context": exc.to_dict()})
    else:
        logger.warning(f"[{request_id}] {request.method} {request.url.path} -> {exc.error_code}: {exc.message}")

    context = {
        k: v if isinstance(v, (str, int, float, bool, list, dict, type(None))) else str(v)
        for k, v in exc.context.items()
        if k != "error_timestamp"
    }
    body = ErrorResponse(
        error=type(exc).__name__,
        error_code=exc.error_code,
        detail=exc.message,
        context=context,
        timestamp=exc.timestamp,
    )
    return JSONResponse(status_code=exc.http_status, content=body.model_dump(mode="json"))
