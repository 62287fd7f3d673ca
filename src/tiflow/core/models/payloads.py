"""Event Payload 子类型"""

from pydantic import BaseModel, Field

from .enums import ArtifactKind, TaskKind, TaskState, TaskTrigger


class TaskCreatedPayload(BaseModel):
    """TASK_CREATED 事件 payload"""

    kind: TaskKind
    requester_id: str
    receiver_id: str
    artifact_id: str


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    trigger: TaskTrigger
    from_state: TaskState
    to_state: TaskState
    from_owner: str
    to_owner: str
    artifact_id: str | None = Field(default=None, description="还价时新挂载的产物")


class ArtifactCreatedPayload(BaseModel):
    """ARTIFACT_CREATED 事件 payload"""

    artifact_id: str
    kind: ArtifactKind
    item_count: int = 0
