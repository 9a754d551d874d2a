import time
import logging
from typing import Iterable
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"

class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response access log with timing"""

    def __init__(self, app, sensitive_paths: Iterable[str] = ("/callback",)):
        super().__init__(app)
        self.sensitive_paths = tuple(sensitive_paths)

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        path = request.url.path

        event = request.headers.get("x-callback-event")
        suffix = f" event={event}" if event else ""
        logger.info(f"Request: {request.method} {path} from {client_ip(request)}{suffix}")

        response = await call_next(request)
        process_time = time.time() - start_time

        # Gateway callbacks carry payment data
        marker = " [SENSITIVE]" if path in self.sensitive_paths else ""
        logger.info(
            f"Response: {request.method} {path} "
            f"status={response.status_code} time={process_time:.4f}s{marker}"
        )

        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response

class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Logs exceptions escaping the routes, then lets the 500 handler answer"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {request.url.path} from {client_ip(request)}")
            raise
