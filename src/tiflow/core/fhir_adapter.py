"""Resource-to-FHIR 适配 -- 领域对象到对外 FHIR 资源

纯函数，不访问存储。actor 统一渲染为 Organization/{id}。
"""

from collections.abc import Iterable

from .models.artifact import Artifact
from .models.enums import ArtifactKind, TaskState
from .models.resources import (
    BundleEntry,
    BundleResource,
    CodeableText,
    QuestionnaireResource,
    QuestionnaireResponseResource,
    Reference,
    TaskInput,
    TaskOutput,
    TaskResource,
)
from .models.task import Task
from .references import actor_reference

# 业务状态 -> FHIR Task.status
_STATUS_MAP: dict[str, str] = {
    TaskState.REQUESTED: "requested",
    TaskState.RECEIVED: "received",
    TaskState.IN_PROGRESS_REQUESTER: "in-progress",
    TaskState.IN_PROGRESS_RECEIVER: "in-progress",
    TaskState.ACCEPTED: "accepted",
    TaskState.REJECTED: "rejected",
    TaskState.COMPLETED: "completed",
}

_DEFAULT_QUESTIONNAIRE_STATUS = "active"
_DEFAULT_RESPONSE_STATUS = "completed"


def map_status(state: str) -> str:
    """业务状态映射到 FHIR Task.status，未知值返回 unknown"""
    return _STATUS_MAP.get(state, "unknown")


def task_to_resource(task: Task) -> TaskResource:
    """Task -> FHIR Task"""
    artifact_ref = f"{task.current_artifact_kind.value}/{task.current_artifact_id}"

    output = None
    if task.closing_document is not None:
        output = [
            TaskOutput(
                type=CodeableText(text="docId"),
                value_string=task.closing_document.doc_id,
            ),
            TaskOutput(
                type=CodeableText(text="docPw"),
                value_string=task.closing_document.doc_pw,
            ),
        ]

    return TaskResource(
        id=task.task_id,
        status=map_status(task.state),
        business_status=CodeableText(text=task.state.value),
        code=CodeableText(text=task.kind.value),
        description=task.description or None,
        authored_on=task.created_at.isoformat(),
        last_modified=task.updated_at.isoformat(),
        requester=Reference(reference=actor_reference(task.requester_id)),
        owner=Reference(reference=actor_reference(task.owner_id)),
        for_=Reference(reference=actor_reference(task.receiver_id)),
        input=[
            TaskInput(
                type=CodeableText(text="questionnaire"),
                value_reference=Reference(reference=artifact_ref),
            )
        ],
        output=output,
    )


def tasks_to_bundle(tasks: Iterable[Task]) -> BundleResource:
    """任务列表 -> searchset Bundle（保持入参顺序）"""
    entries = [
        BundleEntry(full_url=f"Task/{task.task_id}", resource=task_to_resource(task))
        for task in tasks
    ]
    return BundleResource(total=len(entries), entry=entries)


def _merged_content(artifact: Artifact, default_status: str) -> dict:
    content = artifact.content.to_fhir()
    content["resourceType"] = artifact.kind.value
    content["id"] = artifact.artifact_id
    content["status"] = artifact.content.status or default_status
    content["date"] = artifact.created_at.isoformat()
    return content


def artifact_to_questionnaire_resource(artifact: Artifact) -> QuestionnaireResource:
    """Questionnaire 产物 -> FHIR Questionnaire（合并存储内容）"""
    return QuestionnaireResource.model_validate(
        _merged_content(artifact, _DEFAULT_QUESTIONNAIRE_STATUS)
    )


def artifact_to_questionnaire_response_resource(
    artifact: Artifact,
) -> QuestionnaireResponseResource:
    """QuestionnaireResponse 产物 -> FHIR QuestionnaireResponse（合并存储内容）"""
    return QuestionnaireResponseResource.model_validate(
        _merged_content(artifact, _DEFAULT_RESPONSE_STATUS)
    )


def artifact_to_resource(
    artifact: Artifact,
) -> QuestionnaireResource | QuestionnaireResponseResource:
    """按产物类型分派"""
    if artifact.kind == ArtifactKind.QUESTIONNAIRE_RESPONSE:
        return artifact_to_questionnaire_response_resource(artifact)
    return artifact_to_questionnaire_resource(artifact)
