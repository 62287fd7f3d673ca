"""NegotiationService -- 协商任务创建/流转/查询业务逻辑

每个变更操作的流程：
1. 检查操作者（缺失时 MissingActorError）
2. 在任务锁内读取任务（不存在时 TaskNotFoundError）
3. 状态机决策（非法时 InvalidTransitionError，任务保持不变）
4. 单事务写入：新产物（还价时） + 任务更新（乐观版本） + 审计事件
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError
from tiflow.core.exceptions import (
    ArtifactNotFoundError,
    InvalidRequestError,
    InvalidTransitionError,
    MissingActorError,
    QuestionnaireNotFoundError,
    TaskNotFoundError,
)
from tiflow.core.models import (
    TERMINAL_STATES,
    Artifact,
    ArtifactCreatedPayload,
    ArtifactKind,
    ClosingDocument,
    Event,
    EventType,
    QuestionnaireDocument,
    StateTransitionPayload,
    Task,
    TaskCreatedPayload,
    TaskKind,
    TaskState,
    TaskTrigger,
)
from tiflow.core.population import populate
from tiflow.core.references import normalize_actor_id
from tiflow.core.state_machine import TransitionDecision, decide, should_mark_received
from tiflow.core.store import StoreGroup
from ulid import ULID

log = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _parse_document(questionnaire: QuestionnaireDocument | dict | None) -> QuestionnaireDocument:
    if questionnaire is None:
        raise InvalidRequestError("questionnaire is required")
    if isinstance(questionnaire, QuestionnaireDocument):
        return questionnaire
    try:
        return QuestionnaireDocument.model_validate(questionnaire)
    except ValidationError as e:
        raise InvalidRequestError(
            f"Invalid questionnaire: {e.error_count()} validation errors"
        ) from e


class NegotiationService:
    """协商业务服务

    同一任务的读-判-写在任务锁内串行；不同任务互不阻塞（写事务由 StoreGroup 串行化）。
    """

    def __init__(
        self,
        store_group: StoreGroup,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._stores = store_group
        self._clock = clock or _utc_now
        self._task_locks: dict[str, asyncio.Lock] = {}
        self._task_locks_guard = asyncio.Lock()

    # ============================================================
    # 创建
    # ============================================================

    async def create_request(
        self,
        requester_id: str,
        receiver_id: str,
        questionnaire: QuestionnaireDocument | dict,
        kind: TaskKind = TaskKind.FLOW_REQUEST,
    ) -> tuple[str, str, Task]:
        """创建协商请求

        Returns:
            (task_id, artifact_id, task) -- 新任务处于 requested，owner 为发起方
        """
        requester = normalize_actor_id(requester_id)
        receiver = normalize_actor_id(receiver_id)
        if not requester:
            raise MissingActorError("create_request")
        if not receiver:
            raise InvalidRequestError("receiver is required")
        document = _parse_document(questionnaire)

        now = self._clock()
        async with self._stores.transaction():
            task_id = await self._stores.task_store.allocate_task_id()
            artifact_id = await self._stores.artifact_store.allocate_artifact_id()

            artifact = Artifact(
                artifact_id=artifact_id,
                kind=document.resource_type,
                created_at=now,
                task_id=task_id,
                content=document,
            )
            task = Task(
                task_id=task_id,
                kind=kind,
                requester_id=requester,
                receiver_id=receiver,
                owner_id=requester,
                state=TaskState.REQUESTED,
                created_at=now,
                updated_at=now,
                current_artifact_id=artifact_id,
                current_artifact_kind=artifact.kind,
                description=document.title or "",
            )

            await self._stores.artifact_store.put_artifact(artifact)
            await self._stores.task_store.create_task(task)
            await self._append_event(
                task_id,
                EventType.TASK_CREATED,
                requester,
                now,
                TaskCreatedPayload(
                    kind=kind,
                    requester_id=requester,
                    receiver_id=receiver,
                    artifact_id=artifact_id,
                ).model_dump(),
            )
            await self._append_artifact_event(task_id, requester, now, artifact)

        log.info(
            "task_created",
            task_id=task_id,
            artifact_id=artifact_id,
            requester=requester,
            receiver=receiver,
            kind=kind.value,
        )
        return task_id, artifact_id, task

    # ============================================================
    # 查询
    # ============================================================

    async def get_task(self, task_id: str, actor_id: str | None = None) -> Task:
        """查询任务；receiver 在 requested 状态下读取时隐式流转到 received

        Raises:
            TaskNotFoundError: 任务不存在
        """
        task = await self._load_task(task_id)
        actor = normalize_actor_id(actor_id)
        if not should_mark_received(task, actor):
            return task

        lock = await self._get_task_lock(task_id)
        async with lock:
            # 锁内重读，并发读取只有一个会执行流转
            task = await self._load_task(task_id)
            if not should_mark_received(task, actor):
                return task
            decision = decide(task, TaskTrigger.MARK_RECEIVED, actor)
            return await self._commit_transition(task, decision, actor)

    async def get_artifact(self, artifact_id: str) -> Artifact:
        """查询产物

        Raises:
            ArtifactNotFoundError: 产物不存在
        """
        artifact = await self._stores.artifact_store.get_artifact(artifact_id)
        if artifact is None:
            raise ArtifactNotFoundError(artifact_id)
        return artifact

    async def list_tasks_for_actor(self, actor_id: str) -> list[Task]:
        """列出 actor 作为任一方参与的任务，最新创建的在前

        裸 ID 与 Organization/{id} 两种形式等价。
        """
        actor = normalize_actor_id(actor_id)
        if not actor:
            raise MissingActorError("list_tasks_for_actor")
        return await self._stores.task_store.list_tasks(actor)

    # ============================================================
    # 流转
    # ============================================================

    async def submit_counter_offer(
        self,
        task_id: str,
        questionnaire: QuestionnaireDocument | dict,
        actor_id: str,
    ) -> Task:
        """还价：挂载新的 Questionnaire 产物，轮到操作方所在一侧"""
        return await self._transition(
            "submit_counter_offer",
            task_id,
            actor_id,
            TaskTrigger.COUNTER_OFFER,
            questionnaire=questionnaire,
        )

    async def accept(self, task_id: str, actor_id: str) -> Task:
        """接受当前产物"""
        return await self._transition("accept", task_id, actor_id, TaskTrigger.ACCEPT)

    async def reject(self, task_id: str, actor_id: str) -> Task:
        """拒绝（任意非终态）"""
        return await self._transition("reject", task_id, actor_id, TaskTrigger.REJECT)

    async def close(
        self,
        task_id: str,
        closing_document: ClosingDocument | dict[str, Any],
        actor_id: str,
    ) -> Task:
        """关闭已接受的任务并附上文档凭据"""
        if isinstance(closing_document, dict):
            try:
                closing_document = ClosingDocument.model_validate(closing_document)
            except ValidationError as e:
                raise InvalidRequestError("Invalid closing document") from e
        return await self._transition(
            "close",
            task_id,
            actor_id,
            TaskTrigger.CLOSE,
            closing_document=closing_document,
        )

    # ============================================================
    # 预填充
    # ============================================================

    async def populate(
        self,
        questionnaire_id: str,
        bundle: dict[str, Any] | None,
    ) -> QuestionnaireDocument:
        """按 ID 查找 Questionnaire 定义并用上下文 Bundle 预填充

        Raises:
            QuestionnaireNotFoundError: ID 不存在或不是 Questionnaire
        """
        artifact = await self._stores.artifact_store.get_artifact(questionnaire_id)
        if artifact is None or artifact.kind != ArtifactKind.QUESTIONNAIRE:
            raise QuestionnaireNotFoundError(questionnaire_id)
        definition = artifact.content.model_copy(update={"id": artifact.artifact_id})
        return populate(definition, bundle, now=self._clock())

    # ============================================================
    # 内部
    # ============================================================

    async def _load_task(self, task_id: str) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _transition(
        self,
        operation: str,
        task_id: str,
        actor_id: str | None,
        trigger: TaskTrigger,
        questionnaire: QuestionnaireDocument | dict | None = None,
        closing_document: ClosingDocument | None = None,
    ) -> Task:
        actor = normalize_actor_id(actor_id)
        if not actor:
            raise MissingActorError(operation)

        # 未知 ID 不登记 lock
        task = await self._load_task(task_id)
        lock = await self._get_task_lock(task_id)
        try:
            async with lock:
                task = await self._load_task(task_id)
                try:
                    decision = decide(task, trigger, actor)
                except InvalidTransitionError:
                    log.info(
                        "task_transition_rejected",
                        task_id=task_id,
                        trigger=trigger.value,
                        state=task.state.value,
                        actor=actor,
                    )
                    raise
                document = None
                if trigger == TaskTrigger.COUNTER_OFFER:
                    document = _parse_document(questionnaire)
                task = await self._commit_transition(
                    task,
                    decision,
                    actor,
                    document=document,
                    closing_document=closing_document,
                )
        finally:
            # 终态任务（含对终态任务的非法操作）不再保留 lock
            if task.state in TERMINAL_STATES:
                await self._cleanup_task_lock(task_id)
        return task

    async def _commit_transition(
        self,
        task: Task,
        decision: TransitionDecision,
        actor: str,
        document: QuestionnaireDocument | None = None,
        closing_document: ClosingDocument | None = None,
    ) -> Task:
        """单事务写入流转结果，返回更新后的任务"""
        now = self._clock()
        update: dict[str, Any] = {
            "state": decision.to_state,
            "owner_id": decision.owner_id,
            "updated_at": now,
            "version": task.version + 1,
        }
        if closing_document is not None:
            update["closing_document"] = closing_document

        async with self._stores.transaction():
            artifact = None
            if document is not None:
                artifact_id = await self._stores.artifact_store.allocate_artifact_id()
                artifact = Artifact(
                    artifact_id=artifact_id,
                    kind=document.resource_type,
                    created_at=now,
                    task_id=task.task_id,
                    content=document,
                )
                await self._stores.artifact_store.put_artifact(artifact)
                update["current_artifact_id"] = artifact.artifact_id
                update["current_artifact_kind"] = artifact.kind

            updated = task.model_copy(update=update)
            await self._stores.task_store.update_task(updated, expected_version=task.version)
            await self._append_event(
                task.task_id,
                EventType.STATE_TRANSITION,
                actor,
                now,
                StateTransitionPayload(
                    trigger=decision.trigger,
                    from_state=decision.from_state,
                    to_state=decision.to_state,
                    from_owner=task.owner_id,
                    to_owner=decision.owner_id,
                    artifact_id=artifact.artifact_id if artifact else None,
                ).model_dump(),
            )
            if artifact is not None:
                await self._append_artifact_event(task.task_id, actor, now, artifact)

        log.info(
            "task_state_changed",
            task_id=task.task_id,
            trigger=decision.trigger.value,
            from_state=decision.from_state.value,
            to_state=decision.to_state.value,
            owner=decision.owner_id,
        )
        return updated

    async def _append_event(
        self,
        task_id: str,
        event_type: EventType,
        actor: str,
        ts: datetime,
        payload: dict[str, Any],
    ) -> Event:
        """在当前事务内追加审计事件"""
        seq = await self._stores.event_store.get_next_task_seq(task_id)
        event = Event(
            event_id=str(ULID()),
            task_id=task_id,
            task_seq=seq,
            ts=ts,
            type=event_type,
            actor_id=actor,
            payload=payload,
        )
        await self._stores.event_store.append_event(event)
        return event

    async def _append_artifact_event(
        self,
        task_id: str,
        actor: str,
        ts: datetime,
        artifact: Artifact,
    ) -> Event:
        return await self._append_event(
            task_id,
            EventType.ARTIFACT_CREATED,
            actor,
            ts,
            ArtifactCreatedPayload(
                artifact_id=artifact.artifact_id,
                kind=artifact.kind,
                item_count=len(artifact.content.items),
            ).model_dump(),
        )

    async def _get_task_lock(self, task_id: str) -> asyncio.Lock:
        """获取 task 级别锁，序列化同一任务的读-判-写。"""
        async with self._task_locks_guard:
            lock = self._task_locks.get(task_id)
            if lock is None:
                lock = asyncio.Lock()
                self._task_locks[task_id] = lock
            return lock

    async def _cleanup_task_lock(self, task_id: str) -> None:
        """任务终态后清理 lock，避免字典无限增长。"""
        async with self._task_locks_guard:
            lock = self._task_locks.get(task_id)
            if lock is not None and not lock.locked():
                self._task_locks.pop(task_id, None)
