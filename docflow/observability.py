from time import perf_counter

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

REQUEST_COUNT = Counter(
    "docflow_http_requests_total",
    "HTTP requests processed",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "docflow_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
)
DOCUMENT_UPLOADS = Counter(
    "docflow_document_uploads_total",
    "Documents stored, by storage backend",
    ["backend"],
)
EMAIL_SENDS = Counter(
    "docflow_email_sends_total",
    "Outbound emails, by template and outcome",
    ["template", "outcome"],
)


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None and getattr(route, "path", None):
        return route.path
    return "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path = _route_path(request)
            REQUEST_COUNT.labels(request.method, path, str(status_code)).inc()
            REQUEST_LATENCY.labels(request.method, path).observe(
                perf_counter() - start
            )
