import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from flowershop.logger import logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Одна строка лога на каждый запрос: метод, путь, статус, время."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
