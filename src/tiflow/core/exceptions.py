"""TI-Flow 异常体系

每个异常携带稳定的 code，HTTP 层据此映射状态码：
NotFound -> 404，InvalidOperation / MissingActor / InvalidRequest -> 400，
Conflict -> 409。
"""


class TiFlowError(Exception):
    """TI-Flow 基础异常"""

    code: str = "TIFLOW_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TiFlowError):
    """资源不存在"""

    code = "NOT_FOUND"


class TaskNotFoundError(NotFoundError):
    """Task 不存在"""

    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist")
        self.task_id = task_id


class ArtifactNotFoundError(NotFoundError):
    """Questionnaire / QuestionnaireResponse 产物不存在"""

    code = "ARTIFACT_NOT_FOUND"

    def __init__(self, artifact_id: str) -> None:
        super().__init__(f"Artifact with id {artifact_id} does not exist")
        self.artifact_id = artifact_id


class QuestionnaireNotFoundError(NotFoundError):
    """预填充目标 Questionnaire 无法定位（或不是 Questionnaire）"""

    code = "QUESTIONNAIRE_NOT_FOUND"

    def __init__(self, questionnaire_id: str | None = None) -> None:
        if questionnaire_id:
            message = f"No questionnaire found with ID: {questionnaire_id}"
        else:
            message = "No questionnaire definition given"
        super().__init__(message)
        self.questionnaire_id = questionnaire_id


class InvalidOperationError(TiFlowError):
    """当前状态下不允许的操作"""

    code = "INVALID_OPERATION"


class InvalidTransitionError(InvalidOperationError):
    """状态机拒绝的流转

    任务状态保持不变。
    """

    code = "INVALID_TRANSITION"

    def __init__(self, state: str, trigger: str, actor_id: str, reason: str = "") -> None:
        message = f"Cannot {trigger} task in state {state} as {actor_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.state = state
        self.trigger = trigger
        self.actor_id = actor_id


class MissingActorError(TiFlowError):
    """调用方未提供操作者标识"""

    code = "MISSING_ACTOR"

    def __init__(self, operation: str) -> None:
        super().__init__(f"Actor id is required for {operation}")
        self.operation = operation


class TaskConflictError(TiFlowError):
    """乐观并发冲突：任务在读取后已被其他写入修改"""

    code = "TASK_CONFLICT"

    def __init__(self, task_id: str, expected_version: int) -> None:
        super().__init__(
            f"Task {task_id} was modified concurrently (expected version {expected_version})"
        )
        self.task_id = task_id
        self.expected_version = expected_version


class InvalidRequestError(TiFlowError):
    """请求体格式错误"""

    code = "INVALID_REQUEST"


class ExpressionError(TiFlowError):
    """FHIRPath 表达式解析或求值失败

    仅在预填充引擎内部使用，按条目吞掉，不向 populate 调用方抛出。
    """

    code = "EXPRESSION_ERROR"

    def __init__(self, expression: str, detail: str) -> None:
        super().__init__(f"{detail} in expression: {expression}")
        self.expression = expression
        self.detail = detail
