"""原子事务封装

任务、产物与审计事件的写入在同一 SQLite 事务内提交，
任一步失败整体回滚，任务保持调用前的值。
共享连接上的写事务通过 asyncio.Lock 串行化。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def atomic(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
) -> AsyncIterator[None]:
    """在写锁保护下执行一组写操作，正常退出时提交，异常时回滚

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        write_lock: 串行化写事务的锁

    Raises:
        原样抛出块内异常，抛出前已回滚
    """
    async with write_lock:
        try:
            yield
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise
