"""LoggingMiddleware -- 请求级日志

每个请求绑定 request_id（沿用调用方的 X-Request-ID，否则生成 ULID）与
规范化后的 actor，完成时记录状态码与耗时。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from tiflow.core.references import normalize_actor_id
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())
        actor = normalize_actor_id(request.headers.get("x-actor-id")) or None

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            actor=actor,
        )

        log = structlog.get_logger()
        await log.ainfo("request_started")
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if response.status_code >= 500:
            await log.aerror(
                "request_failed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
