"""Resource-to-FHIR 适配单元测试"""

from datetime import UTC, datetime

import pytest
from tiflow.core.fhir_adapter import (
    artifact_to_resource,
    map_status,
    task_to_resource,
    tasks_to_bundle,
)
from tiflow.core.models import (
    Artifact,
    ArtifactKind,
    ClosingDocument,
    QuestionnaireDocument,
    QuestionnaireResource,
    QuestionnaireResponseResource,
    Task,
    TaskKind,
    TaskState,
)
from tiflow.core.references import actor_reference, normalize_actor_id

T0 = datetime(2025, 3, 1, 9, 30, tzinfo=UTC)


def _task(**update) -> Task:
    task = Task(
        task_id="12",
        kind=TaskKind.DOCUMENT_REQUEST,
        requester_id="apo",
        receiver_id="praxis",
        owner_id="praxis",
        state=TaskState.IN_PROGRESS_RECEIVER,
        created_at=T0,
        updated_at=T0,
        current_artifact_id="30",
        description="Rezeptanforderung",
    )
    return task.model_copy(update=update)


class TestMapStatus:
    """业务状态 -> FHIR status"""

    @pytest.mark.parametrize(
        "state,expected",
        [
            (TaskState.REQUESTED, "requested"),
            (TaskState.RECEIVED, "received"),
            (TaskState.IN_PROGRESS_REQUESTER, "in-progress"),
            (TaskState.IN_PROGRESS_RECEIVER, "in-progress"),
            (TaskState.ACCEPTED, "accepted"),
            (TaskState.REJECTED, "rejected"),
            (TaskState.COMPLETED, "completed"),
        ],
    )
    def test_all_states(self, state: TaskState, expected: str):
        assert map_status(state) == expected

    def test_unknown_label(self):
        assert map_status("on-hold") == "unknown"


class TestReferences:
    """Organization 引用"""

    @pytest.mark.parametrize("actor", ["apo", "Organization/apo", " Organization/apo "])
    def test_reference_idempotent(self, actor: str):
        assert actor_reference(actor) == "Organization/apo"
        assert actor_reference(actor_reference(actor)) == "Organization/apo"

    def test_normalize(self):
        assert normalize_actor_id("Organization/apo") == "apo"
        assert normalize_actor_id(None) == ""


class TestTaskToResource:
    """Task -> FHIR Task"""

    def test_shape(self):
        data = task_to_resource(_task()).to_fhir()
        assert data["resourceType"] == "Task"
        assert data["id"] == "12"
        assert data["status"] == "in-progress"
        assert data["businessStatus"] == {"text": "in_progress(Bearbeiter)"}
        assert data["intent"] == "order"
        assert data["priority"] == "routine"
        assert data["code"] == {"text": "document-request"}
        assert data["description"] == "Rezeptanforderung"
        assert data["requester"] == {"reference": "Organization/apo"}
        assert data["owner"] == {"reference": "Organization/praxis"}
        assert data["for"] == {"reference": "Organization/praxis"}
        assert data["input"] == [
            {
                "type": {"text": "questionnaire"},
                "valueReference": {"reference": "Questionnaire/30"},
            }
        ]
        assert data["authoredOn"] == T0.isoformat()
        assert "output" not in data

    def test_response_artifact_reference(self):
        task = _task(current_artifact_kind=ArtifactKind.QUESTIONNAIRE_RESPONSE)
        data = task_to_resource(task).to_fhir()
        assert data["input"][0]["valueReference"]["reference"] == "QuestionnaireResponse/30"

    def test_closing_document_in_output(self):
        task = _task(
            state=TaskState.COMPLETED,
            closing_document=ClosingDocument(doc_id="rx-1", doc_pw="geheim"),
        )
        data = task_to_resource(task).to_fhir()
        assert data["status"] == "completed"
        assert data["output"] == [
            {"type": {"text": "docId"}, "valueString": "rx-1"},
            {"type": {"text": "docPw"}, "valueString": "geheim"},
        ]

    def test_bundle_keeps_order(self):
        bundle = tasks_to_bundle([_task(task_id="2"), _task(task_id="1")]).to_fhir()
        assert bundle["resourceType"] == "Bundle"
        assert bundle["type"] == "searchset"
        assert bundle["total"] == 2
        assert [e["resource"]["id"] for e in bundle["entry"]] == ["2", "1"]
        assert bundle["entry"][0]["fullUrl"] == "Task/2"


class TestArtifactToResource:
    """产物 -> FHIR 资源"""

    def test_questionnaire_merges_content(self):
        artifact = Artifact(
            artifact_id="30",
            kind=ArtifactKind.QUESTIONNAIRE,
            created_at=T0,
            content=QuestionnaireDocument.model_validate(
                {
                    "id": "client-id",
                    "title": "Formular",
                    "publisher": "Apotheke",
                    "item": [{"linkId": "a", "type": "string"}],
                }
            ),
        )
        resource = artifact_to_resource(artifact)
        assert isinstance(resource, QuestionnaireResource)
        data = resource.to_fhir()
        assert data["resourceType"] == "Questionnaire"
        assert data["id"] == "30"
        assert data["status"] == "active"
        assert data["date"] == T0.isoformat()
        assert data["title"] == "Formular"
        assert data["publisher"] == "Apotheke"
        assert data["item"] == [{"linkId": "a", "type": "string"}]

    def test_response_dispatch(self):
        artifact = Artifact(
            artifact_id="31",
            kind=ArtifactKind.QUESTIONNAIRE_RESPONSE,
            created_at=T0,
            content=QuestionnaireDocument.model_validate(
                {
                    "resourceType": "QuestionnaireResponse",
                    "questionnaire": "Questionnaire/30",
                    "item": [{"linkId": "a", "answer": [{"valueString": "x"}]}],
                }
            ),
        )
        resource = artifact_to_resource(artifact)
        assert isinstance(resource, QuestionnaireResponseResource)
        data = resource.to_fhir()
        assert data["status"] == "completed"
        assert data["questionnaire"] == "Questionnaire/30"
        assert data["item"][0]["answer"] == [{"valueString": "x"}]
