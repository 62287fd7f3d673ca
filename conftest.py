"""全局 pytest 配置 -- 临时 SQLite 数据库 + Store / Service fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """单调递增的假时钟，每次调用前进 1 秒"""
    state = {"now": datetime(2025, 1, 1, 8, 0, tzinfo=UTC)}

    def _tick() -> datetime:
        state["now"] = state["now"] + timedelta(seconds=1)
        return state["now"]

    return _tick


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator:
    """提供已初始化的 StoreGroup"""
    from tiflow.core.store import create_store_group

    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.close()


@pytest_asyncio.fixture
async def service(store_group, clock):
    """提供使用假时钟的 NegotiationService"""
    from tiflow.gateway.services.negotiation_service import NegotiationService

    return NegotiationService(store_group, clock=clock)


@pytest.fixture
def questionnaire() -> dict:
    """最小的 Questionnaire 定义"""
    return {
        "resourceType": "Questionnaire",
        "title": "Rezeptanforderung",
        "status": "active",
        "item": [
            {"linkId": "medication_name", "text": "Medikament", "type": "string"},
            {"linkId": "quantity", "text": "Packungen", "type": "integer"},
        ],
    }
