"""Task 协商状态机 -- 纯决策逻辑

给定任务当前值、触发动作和操作者，决定下一个状态与 owner，
或抛出 InvalidTransitionError。不访问存储，不修改入参。

流转表：
    requested                 --mark-received(receiver)--> received
    received / in_progress(*) --counter-offer(party)-----> in_progress(操作方)
    received / in_progress(*) --accept(party)------------> accepted
    非终态                     --reject(party)------------> rejected
    accepted                  --close(party)-------------> completed
新 owner 始终是操作者。还价不强制双方交替。
"""

from pydantic import BaseModel, Field

from .exceptions import InvalidTransitionError
from .models.enums import (
    TERMINAL_STATES,
    PartyRole,
    TaskState,
    TaskTrigger,
    validate_transition,
)
from .models.task import Task


class TransitionDecision(BaseModel):
    """状态机决策结果"""

    trigger: TaskTrigger
    from_state: TaskState
    to_state: TaskState
    owner_id: str = Field(description="流转后的 owner")


def _target_state(trigger: TaskTrigger, role: PartyRole) -> TaskState:
    if trigger == TaskTrigger.MARK_RECEIVED:
        return TaskState.RECEIVED
    if trigger == TaskTrigger.COUNTER_OFFER:
        if role == PartyRole.REQUESTER:
            return TaskState.IN_PROGRESS_REQUESTER
        return TaskState.IN_PROGRESS_RECEIVER
    if trigger == TaskTrigger.ACCEPT:
        return TaskState.ACCEPTED
    if trigger == TaskTrigger.REJECT:
        return TaskState.REJECTED
    return TaskState.COMPLETED


def decide(task: Task, trigger: TaskTrigger, actor_id: str) -> TransitionDecision:
    """决定一次流转

    Args:
        task: 任务当前值
        trigger: 触发动作
        actor_id: 操作者裸 ID

    Returns:
        TransitionDecision

    Raises:
        InvalidTransitionError: 操作者不是参与方、角色不符或状态不允许
    """
    role = task.role_of(actor_id)
    if role is None:
        raise InvalidTransitionError(
            task.state, trigger, actor_id, reason="actor is not a party of this task"
        )

    if trigger == TaskTrigger.MARK_RECEIVED and role != PartyRole.RECEIVER:
        raise InvalidTransitionError(
            task.state, trigger, actor_id, reason="only the receiver can mark a task received"
        )

    if task.state in TERMINAL_STATES:
        raise InvalidTransitionError(
            task.state, trigger, actor_id, reason="task is in a terminal state"
        )

    if not validate_transition(trigger, task.state):
        raise InvalidTransitionError(task.state, trigger, actor_id)

    return TransitionDecision(
        trigger=trigger,
        from_state=task.state,
        to_state=_target_state(trigger, role),
        owner_id=actor_id,
    )


def should_mark_received(task: Task, actor_id: str | None) -> bool:
    """读取是否触发隐式 received 流转（仅 receiver 在 requested 状态下读取时）"""
    return (
        bool(actor_id)
        and task.state == TaskState.REQUESTED
        and task.role_of(actor_id) == PartyRole.RECEIVER
    )
