from __future__ import annotations
import time
from fastapi import Response, Request
from prometheus_client import (
    Counter, Histogram, CollectorRegistry,
    CONTENT_TYPE_LATEST, generate_latest
)
from ..config import get_settings

S = get_settings()

REGISTRY = CollectorRegistry(auto_describe=True)

# ---------- Metric definitions ----------
HTTP_REQS = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"], registry=REGISTRY)
HTTP_LATENCY = Histogram("http_request_duration_seconds", "HTTP request latency", ["method", "path"], registry=REGISTRY)

OTP_ISSUED = Counter("otp_issued_total", "OTP codes issued", registry=REGISTRY)
OTP_DELIVERY_FAILURES = Counter("otp_delivery_failures_total", "OTP emails not delivered", registry=REGISTRY)
OTP_VERIFY = Counter("otp_verify_total", "OTP verification outcomes", ["outcome"], registry=REGISTRY)
OTP_SWEPT = Counter("otp_swept_total", "Expired OTP records purged by the sweeper", registry=REGISTRY)
USERS_CREATED = Counter("users_created_total", "Accounts created", ["via"], registry=REGISTRY)

# ---------- /metrics endpoint factory ----------
def metrics_app():
    async def _metrics(_: Request):
        if not S.METRICS_ENABLED:
            return Response(status_code=404)
        data = generate_latest(REGISTRY)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)
    return _metrics

# ---------- HTTP middleware for latency/counters ----------
class MetricsHTTPMiddleware:
    def __init__(self, app):
        self.app = app
    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)
        method = scope["method"]
        t0 = time.perf_counter()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                # route template keeps label cardinality bounded (/posts/{post_id}/like)
                route = scope.get("route")
                path = getattr(route, "path", None) or scope["path"]
                HTTP_REQS.labels(method=method, path=path, status=message["status"]).inc()
                HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - t0)
            await send(message)

        await self.app(scope, receive, send_wrapper)
