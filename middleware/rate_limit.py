import redis
import time
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from middleware.logging import client_ip
from utilities.response import error_response
import logging

logger = logging.getLogger(__name__)

class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based fixed-window rate limiting for the /api/ routes"""

    def __init__(
        self,
        app,
        redis_url: str = "redis://localhost:6379",
        max_requests: int = 100,
        window_seconds: int = 15 * 60,
        path_prefix: str = "/api/",
        redis_client=None,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_size = window_seconds
        self.path_prefix = path_prefix

        if redis_client is not None:
            self.redis_client = redis_client
            return
        try:
            self.redis_client = redis.from_url(redis_url, decode_responses=True)
            # Test connection
            self.redis_client.ping()
            logger.info("Connected to Redis for rate limiting")
        except redis.RedisError as e:
            logger.warning(f"Could not connect to Redis: {e}. Rate limiting disabled.")
            self.redis_client = None

    async def dispatch(self, request: Request, call_next):
        if not self.redis_client or not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        ip = client_ip(request)
        key = f"rate_limit:{ip}"

        try:
            current_requests = self.redis_client.get(key)

            if current_requests is None:
                # First request from this IP
                self.redis_client.setex(key, self.window_size, 1)
                logger.debug(f"Rate limit initialized for {ip}")
            else:
                current_requests = int(current_requests)

                if current_requests >= self.max_requests:
                    logger.warning(f"Rate limit exceeded for {ip}")
                    return JSONResponse(
                        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                        content=error_response("Too many requests from this IP, please try again later."),
                        headers={"Retry-After": str(max(0, self.redis_client.ttl(key)))},
                    )

                self.redis_client.incr(key)
                logger.debug(f"Rate limit count: {current_requests + 1}/{self.max_requests} for {ip}")

            remaining = max(0, self.max_requests - int(self.redis_client.get(key) or 0))
            reset_at = int(time.time()) + max(0, self.redis_client.ttl(key))

        except redis.RedisError as e:
            logger.error(f"Rate limiting error: {e}")
            # If rate limiting fails, allow the request to proceed
            return await call_next(request)

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_at)

        return response
