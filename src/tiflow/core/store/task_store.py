"""TaskStore SQLite 实现

tasks 表保存每个协商任务的当前值。
写操作不自动提交，由 StoreGroup.transaction() 管理事务边界。
"""

import json
from datetime import datetime

import aiosqlite

from ..exceptions import TaskConflictError
from ..models.task import ClosingDocument, Task


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def allocate_task_id(self) -> str:
        """分配下一个任务 ID（严格递增）"""
        cursor = await self._conn.execute(
            "UPDATE id_counters SET value = value + 1 WHERE name = 'task' RETURNING value"
        )
        row = await cursor.fetchone()
        return str(row[0])

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, kind, requester_id, receiver_id, owner_id,
                               state, created_at, updated_at, current_artifact_id,
                               current_artifact_kind, closing_document, description,
                               version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.kind.value,
                task.requester_id,
                task.receiver_id,
                task.owner_id,
                task.state.value,
                _ts(task.created_at),
                _ts(task.updated_at),
                task.current_artifact_id,
                task.current_artifact_kind.value,
                _dump_closing(task.closing_document),
                task.description,
                task.version,
            ),
        )

    async def update_task(self, task: Task, expected_version: int) -> None:
        """按乐观版本整行替换任务的可变字段

        Raises:
            TaskConflictError: 库中版本已不是 expected_version
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET owner_id = ?, state = ?, updated_at = ?, current_artifact_id = ?,
                current_artifact_kind = ?, closing_document = ?, version = ?
            WHERE task_id = ? AND version = ?
            """,
            (
                task.owner_id,
                task.state.value,
                _ts(task.updated_at),
                task.current_artifact_id,
                task.current_artifact_kind.value,
                _dump_closing(task.closing_document),
                task.version,
                task.task_id,
                expected_version,
            ),
        )
        if cursor.rowcount == 0:
            raise TaskConflictError(task.task_id, expected_version)

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(self, actor_id: str | None = None) -> list[Task]:
        """查询任务列表，可按参与方筛选，按创建时间倒序（同刻按插入顺序倒序）"""
        if actor_id:
            cursor = await self._conn.execute(
                """
                SELECT * FROM tasks
                WHERE requester_id = ? OR receiver_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (actor_id, actor_id),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT * FROM tasks ORDER BY created_at DESC, rowid DESC"
            )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        closing = (
            ClosingDocument(**json.loads(row["closing_document"]))
            if row["closing_document"]
            else None
        )
        return Task(
            task_id=row["task_id"],
            kind=row["kind"],
            requester_id=row["requester_id"],
            receiver_id=row["receiver_id"],
            owner_id=row["owner_id"],
            state=row["state"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            current_artifact_id=row["current_artifact_id"],
            current_artifact_kind=row["current_artifact_kind"],
            closing_document=closing,
            description=row["description"],
            version=row["version"],
        )


def _ts(value: datetime) -> str:
    # 固定微秒精度，保证字符串排序与时间排序一致
    return value.isoformat(timespec="microseconds")


def _dump_closing(doc: ClosingDocument | None) -> str | None:
    return doc.model_dump_json() if doc is not None else None
