"""枚举定义

包含 TaskState 协商状态、TaskTrigger 触发动作、TaskKind、ArtifactKind、
EventType、ItemType / AnswerKind 以及 VALID_TRANSITIONS 合法流转映射和
TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskState(StrEnum):
    """Task 协商状态

    取值即业务状态原文（businessStatus.text）。
    两个 in_progress 子状态记录轮到谁处理：
    Anfragender = 发起方（requester），Bearbeiter = 处理方（receiver）。
    """

    REQUESTED = "requested"
    RECEIVED = "received"
    IN_PROGRESS_REQUESTER = "in_progress(Anfragender)"
    IN_PROGRESS_RECEIVER = "in_progress(Bearbeiter)"
    ACCEPTED = "accepted"

    # 终态
    REJECTED = "rejected"
    COMPLETED = "completed"


class TaskTrigger(StrEnum):
    """触发流转的动作"""

    MARK_RECEIVED = "mark-received"
    COUNTER_OFFER = "counter-offer"
    ACCEPT = "accept"
    REJECT = "reject"
    CLOSE = "close"


class PartyRole(StrEnum):
    """协商双方角色"""

    REQUESTER = "requester"
    RECEIVER = "receiver"


class TaskKind(StrEnum):
    """协商子类型，仅影响对外呈现"""

    FLOW_REQUEST = "flow-request"
    DOCUMENT_REQUEST = "document-request"


class ArtifactKind(StrEnum):
    """产物类型，取值即 FHIR resourceType"""

    QUESTIONNAIRE = "Questionnaire"
    QUESTIONNAIRE_RESPONSE = "QuestionnaireResponse"


class EventType(StrEnum):
    """审计事件类型"""

    TASK_CREATED = "TASK_CREATED"
    STATE_TRANSITION = "STATE_TRANSITION"
    ARTIFACT_CREATED = "ARTIFACT_CREATED"


class ItemType(StrEnum):
    """Questionnaire item 声明类型"""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    DATE_TIME = "dateTime"
    DECIMAL = "decimal"
    GROUP = "group"
    DISPLAY = "display"
    CHOICE = "choice"
    QUANTITY = "quantity"


class AnswerKind(StrEnum):
    """Answer 值类型，取值即 FHIR answer[x] 字段名"""

    STRING = "valueString"
    INTEGER = "valueInteger"
    BOOLEAN = "valueBoolean"
    DATE = "valueDate"
    DATE_TIME = "valueDateTime"
    DECIMAL = "valueDecimal"
    QUANTITY = "valueQuantity"


# 每个 item 类型对应唯一的 answer 类型；group/display 没有答案，按字符串兜底
ANSWER_KIND_BY_ITEM_TYPE: dict[ItemType, AnswerKind] = {
    ItemType.STRING: AnswerKind.STRING,
    ItemType.TEXT: AnswerKind.STRING,
    ItemType.INTEGER: AnswerKind.INTEGER,
    ItemType.BOOLEAN: AnswerKind.BOOLEAN,
    ItemType.DATE: AnswerKind.DATE,
    ItemType.DATE_TIME: AnswerKind.DATE_TIME,
    ItemType.DECIMAL: AnswerKind.DECIMAL,
    ItemType.QUANTITY: AnswerKind.QUANTITY,
    ItemType.CHOICE: AnswerKind.STRING,
    ItemType.GROUP: AnswerKind.STRING,
    ItemType.DISPLAY: AnswerKind.STRING,
}

IN_PROGRESS_STATES: frozenset[TaskState] = frozenset(
    {TaskState.IN_PROGRESS_REQUESTER, TaskState.IN_PROGRESS_RECEIVER}
)

TERMINAL_STATES: frozenset[TaskState] = frozenset(
    {TaskState.REJECTED, TaskState.COMPLETED}
)

# 每个触发动作允许的源状态
VALID_TRANSITIONS: dict[TaskTrigger, frozenset[TaskState]] = {
    TaskTrigger.MARK_RECEIVED: frozenset({TaskState.REQUESTED}),
    TaskTrigger.COUNTER_OFFER: frozenset({TaskState.RECEIVED}) | IN_PROGRESS_STATES,
    TaskTrigger.ACCEPT: frozenset({TaskState.RECEIVED}) | IN_PROGRESS_STATES,
    TaskTrigger.REJECT: frozenset(TaskState) - TERMINAL_STATES,
    TaskTrigger.CLOSE: frozenset({TaskState.ACCEPTED}),
}


def validate_transition(trigger: TaskTrigger, from_state: TaskState) -> bool:
    """验证触发动作在当前状态下是否合法

    Args:
        trigger: 触发动作
        from_state: 当前状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(trigger, frozenset())
    return from_state in allowed
