"""API key authentication for the admin endpoints."""

import secrets
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

PROTECTED_PREFIX = "/api/v1/admin"


class AdminKeyMiddleware(BaseHTTPMiddleware):
    """Requires an X-API-Key header on index maintenance endpoints.

    Search and health endpoints stay open; who may search is decided by
    the host in front of this service.
    """

    def __init__(self, app: Callable[..., Awaitable[Response]], api_key: str) -> None:
        """Initialize middleware with API key.

        Args:
            app: ASGI application.
            api_key: Expected API key value.
        """
        super().__init__(app)  # type: ignore[arg-type]
        self._api_key = api_key

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Validate API key for admin endpoints.

        Returns:
            HTTP response, or 401 if authentication fails.
        """
        if not request.url.path.startswith(PROTECTED_PREFIX):
            return await call_next(request)

        provided_key = request.headers.get("X-API-Key", "")
        if not provided_key or not secrets.compare_digest(provided_key, self._api_key):
            return JSONResponse(
                status_code=401,
                content={"error": "Invalid or missing X-API-Key header"},
            )

        return await call_next(request)
