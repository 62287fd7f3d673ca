"""Task Domain Model -- 协商任务记录

requester_id / receiver_id 创建后不可变；
owner_id、state、updated_at、current_artifact_id/kind、closing_document、version
随每次流转更新。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import ArtifactKind, PartyRole, TaskKind, TaskState


class ClosingDocument(BaseModel):
    """关闭任务时附带的文档凭据（如 E-Rezept ID + 访问码）"""

    doc_id: str = Field(description="文档 ID")
    doc_pw: str = Field(default="", description="文档访问密钥")


class Task(BaseModel):
    """Task 数据模型

    不变量：owner_id 始终是 requester_id 或 receiver_id 之一。
    """

    task_id: str = Field(description="唯一标识，由存储分配，严格递增")
    kind: TaskKind = Field(default=TaskKind.FLOW_REQUEST, description="协商子类型")
    requester_id: str = Field(description="发起方 actor ID")
    receiver_id: str = Field(description="处理方 actor ID")
    owner_id: str = Field(description="当前需要行动的一方")
    state: TaskState = Field(default=TaskState.REQUESTED, description="当前状态")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    current_artifact_id: str = Field(description="当前挂载的 Questionnaire 产物 ID")
    current_artifact_kind: ArtifactKind = Field(
        default=ArtifactKind.QUESTIONNAIRE,
        description="当前产物类型，决定 input 引用前缀",
    )
    closing_document: ClosingDocument | None = Field(
        default=None,
        description="关闭文档，仅在 completed 时存在",
    )
    description: str = Field(default="", description="任务描述")
    version: int = Field(default=1, description="乐观并发版本号")

    def role_of(self, actor_id: str) -> PartyRole | None:
        """返回 actor 在本任务中的角色，非参与方返回 None"""
        if actor_id == self.requester_id:
            return PartyRole.REQUESTER
        if actor_id == self.receiver_id:
            return PartyRole.RECEIVER
        return None
