"""
Prometheus metrics for HTTP traffic and the donation pipeline
"""
import time

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

# Payment verification outcomes: verified, duplicate, rejected
payment_verifications_total = Counter(
    "payment_verifications_total",
    "Payment verification attempts by outcome",
    ["outcome"],
)

donation_amount_total = Counter(
    "donation_amount_rupees_total",
    "Sum of verified donation amounts in rupees",
)

emails_total = Counter(
    "emails_total",
    "Outbound emails by notification type and delivery status",
    ["notification_type", "status"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collect request counts and latency per route template"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # Route templates keep label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(duration)

        return response


async def metrics_endpoint(request: Request):
    """Endpoint to expose Prometheus metrics"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
