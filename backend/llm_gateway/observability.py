import time
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter

logger = structlog.get_logger()

REQ_COUNTER = Counter("http_requests_total", "Total HTTP Requests", ["method", "path", "status"])
REQ_LATENCY = Histogram("http_request_latency_seconds", "Request latency", ["method", "path"])

# Gateway dispatches; outcome is "success", an error code, or "cancelled"
LLM_REQUESTS = Counter("llm_requests_total", "Chat dispatches by provider and outcome", ["provider", "outcome"])
LLM_LATENCY = Histogram("llm_request_latency_seconds", "Chat dispatch latency", ["provider"])
LLM_RETRIES = Counter("llm_retries_total", "Retried vendor attempts", ["provider"])
LLM_TOKENS = Counter("llm_tokens_total", "Tokens reported by vendors", ["provider", "kind"])
LLM_PROBES = Counter("llm_health_probes_total", "Health probes by provider and result", ["provider", "result"])

class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            latency = time.perf_counter() - start
            # route template keeps label cardinality bounded
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)
            method = request.method
            REQ_COUNTER.labels(method, path, status).inc()
            REQ_LATENCY.labels(method, path).observe(latency)

metrics_router = APIRouter()

@metrics_router.get("/metrics", include_in_schema=False)
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
