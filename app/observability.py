import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import REQUEST_COUNT, REQUEST_LATENCY


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and record Prometheus request metrics."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            response.headers["x-request-id"] = request_id
            return response
        finally:
            path = _route_path(request)
            REQUEST_COUNT.labels(method=request.method, path=path, status=status).inc()
            REQUEST_LATENCY.labels(method=request.method, path=path, status=status).observe(
                time.perf_counter() - started
            )
