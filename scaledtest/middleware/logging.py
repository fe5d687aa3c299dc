"""Request logging middleware."""

import time
import uuid

from fastapi import Request

from scaledtest.config import get_settings
from scaledtest.utils.logger import get_logger, set_request_id, truncate

log = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def logging_middleware(request: Request, call_next):
    """Bind a request id, log the request and echo the id in the response."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    set_request_id(request_id)

    start = time.perf_counter()
    log.info(
        "request started",
        method=request.method,
        path=request.url.path,
        query=str(request.url.query) or None,
        client=request.client.host if request.client else None,
    )

    try:
        if get_settings().log_request_body and request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            log.debug("request body", body=truncate(body.decode("utf-8", errors="replace")))

        response = await call_next(request)
    except Exception as e:
        log.error(
            "request failed",
            method=request.method,
            path=request.url.path,
            error_type=type(e).__name__,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        raise
    else:
        log.info(
            "request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        set_request_id(None)
