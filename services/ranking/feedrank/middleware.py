import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

# Requests slower than this are logged at WARNING
SLOW_REQUEST_MS = 500.0


async def request_id_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


async def timing_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

    level = logging.WARNING if duration_ms > SLOW_REQUEST_MS else logging.INFO
    logger.log(
        level,
        "%s %s -> %d in %.1fms [request_id=%s]",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        getattr(request.state, "request_id", None),
    )
    return response


async def error_envelope_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Turn an unhandled exception into a JSON 500 carrying the request id.

    HTTPExceptions raised by routes are rendered by FastAPI before they reach
    this layer, so only unexpected errors land here.
    """
    try:
        return await call_next(request)
    except Exception:
        request_id = getattr(request.state, "request_id", None)
        logger.exception("Unhandled exception [request_id=%s]", request_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {"code": "internal_error", "message": "An unexpected error occurred"},
                "request_id": request_id,
            },
            headers={"X-Request-ID": request_id} if request_id else None,
        )
