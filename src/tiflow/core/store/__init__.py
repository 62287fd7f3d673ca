"""TI-Flow Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from .artifact_store import SqliteArtifactStore
from .event_store import SqliteEventStore
from .sqlite_init import init_db, reset_db
from .task_store import SqliteTaskStore
from .transaction import atomic


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与写锁"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.task_store = SqliteTaskStore(conn)
        self.artifact_store = SqliteArtifactStore(conn)
        self.event_store = SqliteEventStore(conn)
        self._write_lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """写事务：串行化 + 提交/回滚"""
        async with atomic(self.conn, self._write_lock):
            yield

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(db_path: str, reset: bool = False) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径（":memory:" 可用于测试）
        reset: 是否在打开后清空全部数据

    Returns:
        StoreGroup 实例
    """
    if db_path != ":memory:":
        # 确保数据库目录存在
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)
    if reset:
        await reset_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteArtifactStore",
    "SqliteEventStore",
    "init_db",
    "reset_db",
    "atomic",
]
