import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from pushup_backend.core.logging import request_id_ctx_var, latency_bucket_ms

# Probes hit these every few seconds; keep them out of INFO logs
QUIET_PATHS = frozenset({"/healthz", "/readyz"})


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request_id to each request and log completion with the calling user."""

    def __init__(self, app, header_name: str = "x-request-id", user_header: str = "x-user-id"):
        super().__init__(app)
        self.header_name = header_name
        self.user_header = user_header

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers[self.header_name] = rid

            level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
            logging.getLogger("pushup").log(
                level,
                "request.complete",
                extra={
                    "request_id": rid,
                    "user_id": request.headers.get(self.user_header),
                    "path": request.url.path,
                    "method": request.method,
                    "status": getattr(response, "status_code", None),
                    "latency_bucket": latency_bucket_ms(duration_ms),
                },
            )
            return response
        finally:
            request_id_ctx_var.reset(token)
