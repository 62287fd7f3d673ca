"""gateway 测试配置 -- FastAPI app + httpx AsyncClient fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tiflow.core.store import create_store_group
from tiflow.gateway.services.negotiation_service import NegotiationService


@pytest_asyncio.fixture
async def app(tmp_path: Path):
    """创建测试用 FastAPI app 实例"""
    db_path = str(tmp_path / "sqlite" / "test.db")
    os.environ["TIFLOW_DB_PATH"] = db_path
    os.environ["TIFLOW_LOG_FORMAT"] = "json"

    from tiflow.gateway.main import create_app

    application = create_app()

    # 手动初始化（ASGITransport 不触发 lifespan）
    store_group = await create_store_group(db_path)
    application.state.store_group = store_group
    application.state.negotiation_service = NegotiationService(store_group)

    yield application

    await store_group.close()
    for key in ["TIFLOW_DB_PATH", "TIFLOW_LOG_FORMAT"]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
