"""TraceMiddleware -- 为任务操作绑定 trace_id

trace_id 从路径中的任务 ID 生成：
/Task/{task_id} 以及 /{task_id}/$operation。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


def extract_task_id(path: str) -> str | None:
    """从请求路径提取任务 ID，非任务路径返回 None"""
    parts = [p for p in path.split("/") if p]
    if len(parts) == 2 and parts[0] == "Task" and not parts[1].startswith("$"):
        return parts[1]
    if len(parts) == 2 and parts[1].startswith("$") and parts[0] not in (
        "Questionnaire",
        "QuestionnaireResponse",
        "Task",
    ):
        return parts[0]
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_id = extract_task_id(request.url.path)
        if task_id:
            structlog.contextvars.bind_contextvars(trace_id=f"trace-{task_id}")

        return await call_next(request)
