"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性与 WAL 模式。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse
from tiflow.core.store.sqlite_init import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证 SQLite 可用

    检查项：
    1. sqlite: 数据库连通性
    2. wal: journal 模式（仅报告，不影响就绪结果）
    """
    checks: dict[str, str] = {}
    all_ok = True

    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
        checks["wal"] = "ok" if await verify_wal_mode(store_group.conn) else "disabled"
    except Exception as e:
        log.warning("ready_check_error", error=str(e))
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
