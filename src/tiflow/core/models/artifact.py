"""Artifact Domain Model -- 挂载在任务上的 Questionnaire / QuestionnaireResponse

产物创建后不可变：还价时创建新产物，旧产物保留，形成隐式审计链。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import ArtifactKind
from .questionnaire import QuestionnaireDocument


class Artifact(BaseModel):
    """Artifact 数据模型"""

    artifact_id: str = Field(description="唯一标识，由存储分配，严格递增")
    kind: ArtifactKind = Field(description="产物类型")
    created_at: datetime = Field(description="创建时间")
    task_id: str | None = Field(default=None, description="创建该产物的任务 ID")
    content: QuestionnaireDocument = Field(description="Questionnaire / Response 内容")
