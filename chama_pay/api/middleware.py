"""FastAPI middleware for request tracing, metrics and CORS"""

import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from chama_pay.infrastructure.observability.metrics import request_duration_histogram

CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"


def cors_headers(allow_origin: str = "*") -> dict:
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for distributed tracing"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        request_duration_histogram.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code,
        ).observe(duration)

        return response


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Answer pre-flight probes with an empty response and tag every reply with CORS headers"""

    def __init__(self, app, allow_origin: str = "*"):
        super().__init__(app)
        self.cors_headers = cors_headers(allow_origin)

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=self.cors_headers)

        response = await call_next(request)
        response.headers.update(self.cors_headers)
        return response
