from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send
from typing import Callable, Sequence
import logging
import time

logger = logging.getLogger(__name__)

class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Logs every request and reports its duration in `X-Response-Time`."""

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            ms = round((time.perf_counter() - start) * 1000)
            logger.exception(f"{request.method} {request.url.path} -> unhandled error ({ms}ms)")
            raise

        ms = round((time.perf_counter() - start) * 1000)
        response.headers["X-Response-Time"] = f"{ms}ms"
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({ms}ms)")
        return response

class PathScopedCORSMiddleware:
    """Applies CORS only to requests under `path_prefix`; other paths pass through untouched."""

    def __init__(
        self,
        app: ASGIApp,
        path_prefix: str,
        allow_origins: Sequence[str] = (),
        allow_methods: Sequence[str] = ("GET",),
        allow_headers: Sequence[str] = (),
        allow_credentials: bool = False,
    ):
        self.app = app
        self.path_prefix = path_prefix.rstrip("/")
        self.cors = CORSMiddleware(
            app,
            allow_origins=allow_origins,
            allow_methods=allow_methods,
            allow_headers=allow_headers,
            allow_credentials=allow_credentials,
        )

    def _in_scope(self, path: str) -> bool:
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] == "http" and self._in_scope(scope["path"]):
            await self.cors(scope, receive, send)
            return
        await self.app(scope, receive, send)
