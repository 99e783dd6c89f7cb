"""Request middleware for correlation and timing."""

import time
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from fashion_analytics.core.logging import correlation_scope, get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id per request and report the handling time."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request inside a correlation scope.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler in chain.

        Returns:
            Response with X-Request-ID and X-Process-Time-Ms headers.
        """
        with correlation_scope(request.headers.get(CORRELATION_HEADER)) as correlation_id:
            started = time.perf_counter()
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - started) * 1000, 2)

            logger.info(
                "http.request_completed",
                method=request.method,
                path=str(request.url.path),
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers["X-Process-Time-Ms"] = str(duration_ms)
            return response
