"""Store Protocol 接口定义

定义 TaskStore、ArtifactStore、EventStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.artifact import Artifact
from ..models.event import Event
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口"""

    async def allocate_task_id(self) -> str:
        """分配下一个任务 ID"""
        ...

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def update_task(self, task: Task, expected_version: int) -> None:
        """按乐观版本替换任务，版本不符时抛出 TaskConflictError"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(self, actor_id: str | None = None) -> list[Task]:
        """查询任务列表，可按参与方筛选"""
        ...


class ArtifactStore(Protocol):
    """Artifact 存储接口"""

    async def allocate_artifact_id(self) -> str:
        """分配下一个产物 ID"""
        ...

    async def put_artifact(self, artifact: Artifact) -> None:
        """存储产物"""
        ...

    async def get_artifact(self, artifact_id: str) -> Artifact | None:
        """根据 artifact_id 查询产物"""
        ...

    async def list_artifacts_for_task(self, task_id: str) -> list[Artifact]:
        """查询指定任务创建过的所有产物"""
        ...


class EventStore(Protocol):
    """Event 存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def append_event(self, event: Event) -> None:
        """追加事件（append-only）"""
        ...

    async def get_events_for_task(self, task_id: str) -> list[Event]:
        """查询指定任务的所有事件"""
        ...

    async def get_next_task_seq(self, task_id: str) -> int:
        """获取指定任务的下一个 task_seq（MAX+1）"""
        ...
