"""ArtifactStore SQLite 实现

产物（Questionnaire / QuestionnaireResponse）只插入不更新。
content 列保存 FHIR JSON。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.artifact import Artifact
from ..models.questionnaire import QuestionnaireDocument


class SqliteArtifactStore:
    """ArtifactStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def allocate_artifact_id(self) -> str:
        """分配下一个产物 ID（严格递增）"""
        cursor = await self._conn.execute(
            "UPDATE id_counters SET value = value + 1 WHERE name = 'artifact' RETURNING value"
        )
        row = await cursor.fetchone()
        return str(row[0])

    async def put_artifact(self, artifact: Artifact) -> None:
        """存储产物

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO artifacts (artifact_id, kind, created_at, task_id, content)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                artifact.artifact_id,
                artifact.kind.value,
                artifact.created_at.isoformat(timespec="microseconds"),
                artifact.task_id,
                json.dumps(artifact.content.to_fhir(), ensure_ascii=False),
            ),
        )

    async def get_artifact(self, artifact_id: str) -> Artifact | None:
        """根据 artifact_id 查询产物"""
        cursor = await self._conn.execute(
            "SELECT * FROM artifacts WHERE artifact_id = ?",
            (artifact_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_artifact(row)

    async def list_artifacts_for_task(self, task_id: str) -> list[Artifact]:
        """查询指定任务创建过的所有产物，按分配顺序"""
        cursor = await self._conn.execute(
            "SELECT * FROM artifacts WHERE task_id = ? ORDER BY CAST(artifact_id AS INTEGER) ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_artifact(row) for row in rows]

    @staticmethod
    def _row_to_artifact(row: aiosqlite.Row) -> Artifact:
        """将数据库行转换为 Artifact 模型"""
        return Artifact(
            artifact_id=row["artifact_id"],
            kind=row["kind"],
            created_at=datetime.fromisoformat(row["created_at"]),
            task_id=row["task_id"],
            content=QuestionnaireDocument.model_validate(json.loads(row["content"])),
        )
