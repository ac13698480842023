#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
FastAPI Middleware classes for Playlist Stats.

Per-client throttling of the aggregation endpoint, applied before the
request body is read or the engine runs.
"""

from fastapi import FastAPI, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from api import dependencies
from exceptions import ThrottledError
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class ThrottleMiddleware(BaseHTTPMiddleware):
    """Middleware enforcing the per-client cooldown on the aggregation endpoint.

    The limiter is looked up in ``api.dependencies`` on every request, so it
    follows the application lifespan; with no limiter configured requests
    pass through unthrottled.
    """

    def __init__(self, app: FastAPI, throttled_paths: tuple = ("/api/playlist",)):
        super().__init__(app)
        self.throttled_paths = throttled_paths
        logger.info(f"Throttle middleware initialized for paths: {', '.join(throttled_paths)}")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Reject the request with 429 if its client is still cooling down."""
        rate_limiter = dependencies.rate_limiter
        if (rate_limiter is None or request.method != "POST"
                or request.url.path not in self.throttled_paths):
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        if not rate_limiter.allow(client_ip):
            error = ThrottledError(retry_after=rate_limiter.retry_after_seconds(client_ip))
            logger.warning(
                f"Request from {client_ip} throttled; retry after {error.retry_after}s",
                client_ip=client_ip,
                path=request.url.path
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": error.message, "error_code": error.error_code},
                headers={"Retry-After": str(error.retry_after), "X-Error-Code": error.error_code}
            )

        return await call_next(request)

    def _get_client_ip(self, request: Request) -> str:
        """Extract the client IP address from the request.

        Considers proxy headers like 'X-Forwarded-For' and 'X-Real-IP'.

        Returns:
            str: The determined client IP address, or "unknown".
        """
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # First entry is the originating client
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

        if request.client and request.client.host:
            return request.client.host

        return "unknown"
