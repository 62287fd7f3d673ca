"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + NegotiationService 初始化 + 路由注册。
领域异常统一映射为 {"error": {"code", "message"}} 响应。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse
from tiflow.core.config import get_db_path, get_reset_on_startup
from tiflow.core.exceptions import (
    InvalidOperationError,
    InvalidRequestError,
    MissingActorError,
    NotFoundError,
    TaskConflictError,
    TiFlowError,
)
from tiflow.core.store import create_store_group

from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, negotiation, questionnaire, tasks
from .services.negotiation_service import NegotiationService

log = structlog.get_logger()

# 异常类型 -> HTTP 状态码（按继承顺序匹配）
_STATUS_BY_ERROR: list[tuple[type[TiFlowError], int]] = [
    (NotFoundError, 404),
    (InvalidOperationError, 400),
    (MissingActorError, 400),
    (InvalidRequestError, 400),
    (TaskConflictError, 409),
]


def status_for_error(exc: TiFlowError) -> int:
    """领域异常对应的 HTTP 状态码，未登记的类型返回 500"""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


async def handle_tiflow_error(request: Request, exc: TiFlowError) -> JSONResponse:
    status_code = status_for_error(exc)
    log.info(
        "request_failed",
        error_code=exc.code,
        status_code=status_code,
        message=exc.message,
    )
    return _error_response(status_code, exc.code, exc.message)


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    detail = first.get("msg", "invalid request")
    message = f"{location}: {detail}" if location else "invalid request"
    return _error_response(400, InvalidRequestError.code, message)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和服务，关闭时清理连接"""
    db_path = get_db_path()
    reset = get_reset_on_startup()
    store_group = await create_store_group(db_path, reset=reset)
    app.state.store_group = store_group
    app.state.negotiation_service = NegotiationService(store_group)
    log.info("store_initialized", db_path=db_path, reset=reset)

    yield

    # 关闭：清理数据库连接
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TI-Flow Gateway",
        version="0.1.0",
        description="TI-Flow 协商任务 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()

    app.add_exception_handler(TiFlowError, handle_tiflow_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(negotiation.router, tags=["negotiation"])
    app.include_router(questionnaire.router, tags=["questionnaire"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
