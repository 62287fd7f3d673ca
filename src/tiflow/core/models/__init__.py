"""TI-Flow Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .artifact import Artifact
from .enums import (
    ANSWER_KIND_BY_ITEM_TYPE,
    IN_PROGRESS_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    AnswerKind,
    ArtifactKind,
    EventType,
    ItemType,
    PartyRole,
    TaskKind,
    TaskState,
    TaskTrigger,
    validate_transition,
)
from .event import Event
from .payloads import ArtifactCreatedPayload, StateTransitionPayload, TaskCreatedPayload
from .questionnaire import Answer, Quantity, QuestionnaireDocument, QuestionnaireItem
from .resources import (
    BundleEntry,
    BundleResource,
    QuestionnaireResource,
    QuestionnaireResponseResource,
    TaskResource,
)
from .task import ClosingDocument, Task

__all__ = [
    # 枚举
    "TaskState",
    "TaskTrigger",
    "TaskKind",
    "PartyRole",
    "ArtifactKind",
    "EventType",
    "ItemType",
    "AnswerKind",
    "ANSWER_KIND_BY_ITEM_TYPE",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "IN_PROGRESS_STATES",
    "validate_transition",
    # Task
    "Task",
    "ClosingDocument",
    # Artifact
    "Artifact",
    "QuestionnaireDocument",
    "QuestionnaireItem",
    "Answer",
    "Quantity",
    # Event
    "Event",
    "TaskCreatedPayload",
    "StateTransitionPayload",
    "ArtifactCreatedPayload",
    # FHIR 资源
    "TaskResource",
    "QuestionnaireResource",
    "QuestionnaireResponseResource",
    "BundleResource",
    "BundleEntry",
]
