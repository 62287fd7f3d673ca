"""Questionnaire 路由

GET /Questionnaire/{id}, GET /QuestionnaireResponse/{id}: 读取产物。
POST /Questionnaire/{id}/$populate: SDC $populate，
    请求体为 Parameters（context.content 为上下文 Bundle），
    返回 Parameters（response 为预填充的 QuestionnaireResponse）。
POST /$populate: 旧版前端的预填充入口，questionaireId（valueCoding）+
    fhirResources（资源），直接返回 QuestionnaireResponse。
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
from starlette.responses import JSONResponse
from tiflow.core.config import SDC_PARAMETERS_PROFILE
from tiflow.core.exceptions import ArtifactNotFoundError, InvalidRequestError
from tiflow.core.fhir_adapter import artifact_to_resource
from tiflow.core.models import ArtifactKind
from ulid import ULID

from ..deps import get_negotiation_service

router = APIRouter()

FHIR_JSON = "application/fhir+json"


async def _read_artifact(service, artifact_id: str, kind: ArtifactKind) -> dict[str, Any]:
    artifact = await service.get_artifact(artifact_id)
    if artifact.kind != kind:
        raise ArtifactNotFoundError(artifact_id)
    return artifact_to_resource(artifact).to_fhir()


@router.get("/Questionnaire/{artifact_id}")
async def get_questionnaire(
    artifact_id: str,
    service=Depends(get_negotiation_service),
):
    """读取 Questionnaire 产物"""
    return await _read_artifact(service, artifact_id, ArtifactKind.QUESTIONNAIRE)


@router.get("/QuestionnaireResponse/{artifact_id}")
async def get_questionnaire_response(
    artifact_id: str,
    service=Depends(get_negotiation_service),
):
    """读取 QuestionnaireResponse 产物"""
    return await _read_artifact(service, artifact_id, ArtifactKind.QUESTIONNAIRE_RESPONSE)


def extract_context_content(parameters: dict[str, Any]) -> dict[str, Any]:
    """从 $populate 的 Parameters 中取出 context.content 资源

    Raises:
        InvalidRequestError: 不是 Parameters、缺少 context 或 content
    """
    if parameters.get("resourceType") != "Parameters":
        raise InvalidRequestError("Request body must be a FHIR Parameters resource")

    params = parameters.get("parameter")
    if not isinstance(params, list):
        raise InvalidRequestError("Parameters array is required")

    context = next(
        (p for p in params if isinstance(p, dict) and p.get("name") == "context"),
        None,
    )
    if context is None or not isinstance(context.get("part"), list):
        raise InvalidRequestError("context parameter with parts is required")

    for part in context["part"]:
        if isinstance(part, dict) and part.get("name") == "content":
            resource = part.get("resource")
            if isinstance(resource, dict):
                return resource
    raise InvalidRequestError("context.content (resource) is required")


@router.post("/Questionnaire/{questionnaire_id}/$populate")
async def populate_questionnaire(
    questionnaire_id: str,
    parameters: dict[str, Any] = Body(...),
    service=Depends(get_negotiation_service),
):
    """SDC $populate"""
    bundle = extract_context_content(parameters)
    response = await service.populate(questionnaire_id, bundle)
    return JSONResponse(
        media_type=FHIR_JSON,
        content={
            "resourceType": "Parameters",
            "id": f"populate-response-{ULID()}",
            "meta": {"profile": [SDC_PARAMETERS_PROFILE]},
            "parameter": [
                {
                    "name": "response",
                    "resource": response.to_fhir(),
                }
            ],
        },
    )


def extract_legacy_populate_parameters(parameters: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """从旧版 $populate 的 Parameters 中取出 (questionnaire_id, bundle)

    旧版前端的参数名拼写为 questionaireId。

    Raises:
        InvalidRequestError: 不是 Parameters、缺少 questionaireId 或 fhirResources
    """
    if parameters.get("resourceType") != "Parameters":
        raise InvalidRequestError("Request body must be a FHIR Parameters resource")

    params = parameters.get("parameter")
    if not isinstance(params, list):
        raise InvalidRequestError("Parameters array is required")

    questionnaire_id = None
    bundle = None
    for param in params:
        if not isinstance(param, dict):
            continue
        if param.get("name") == "questionaireId" and isinstance(param.get("valueCoding"), dict):
            questionnaire_id = param["valueCoding"].get("code")
        elif param.get("name") == "fhirResources" and isinstance(param.get("resource"), dict):
            bundle = param["resource"]

    if not questionnaire_id:
        raise InvalidRequestError("questionaireId parameter with valueCoding is required")
    if bundle is None:
        raise InvalidRequestError("fhirResources parameter with resource is required")
    return str(questionnaire_id), bundle


@router.post("/$populate")
async def populate_legacy(
    parameters: dict[str, Any] = Body(...),
    service=Depends(get_negotiation_service),
):
    """旧版 $populate：返回裸 QuestionnaireResponse"""
    questionnaire_id, bundle = extract_legacy_populate_parameters(parameters)
    response = await service.populate(questionnaire_id, bundle)
    return JSONResponse(media_type=FHIR_JSON, content=response.to_fhir())
