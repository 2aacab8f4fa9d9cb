import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of every request.

    Uploads can take minutes while InDesign runs, so the duration is the
    quickest way to tell a slow conversion from a stuck one in the logs.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        logger.info(f"{request.method} {request.url.path}")
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f} ms)")
        return response
