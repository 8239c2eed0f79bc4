"""
Request logging middleware with a per-request correlation id
"""
import time
import uuid

from fastapi import Request
import structlog

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def logging_middleware(request: Request, call_next):
    """Log every HTTP request and echo its request id back to the client"""
    start_time = time.time()
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id

    logger.info(
        "Request started",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        query=str(request.query_params) if request.query_params else "",
        client_ip=request.client.host if request.client else "",
        user_agent=request.headers.get("user-agent", ""),
    )

    response = await call_next(request)

    latency = time.time() - start_time
    logger.info(
        "Request completed",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        latency_seconds=round(latency, 3),
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
