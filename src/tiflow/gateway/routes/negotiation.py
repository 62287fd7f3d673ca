"""协商操作路由

POST /{task_id}/$counter-offer: 还价（新 Questionnaire）
POST /{task_id}/$accept: 接受
POST /{task_id}/$reject: 拒绝
POST /{task_id}/$close: 关闭并附上文档凭据

操作者通过 x-actor-id 请求头传入，成功返回 {"task": Task 资源}。
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from tiflow.core.fhir_adapter import task_to_resource
from tiflow.core.models import ClosingDocument, Task

from ..deps import get_actor_id, get_negotiation_service

router = APIRouter()


class CounterOfferBody(BaseModel):
    """还价请求体"""

    questionnaire: dict[str, Any] = Field(description="还价 Questionnaire")


class CloseBody(BaseModel):
    """关闭请求体"""

    model_config = ConfigDict(populate_by_name=True)

    doc_id: str = Field(alias="docId", description="文档 ID")
    doc_pw: str = Field(default="", alias="docPw", description="文档访问密钥")


def _task_response(task: Task) -> dict[str, Any]:
    return {"task": task_to_resource(task).to_fhir()}


@router.post("/{task_id}/$counter-offer")
async def counter_offer(
    task_id: str,
    body: CounterOfferBody,
    actor_id: str | None = Depends(get_actor_id),
    service=Depends(get_negotiation_service),
):
    task = await service.submit_counter_offer(task_id, body.questionnaire, actor_id)
    return _task_response(task)


@router.post("/{task_id}/$accept")
async def accept(
    task_id: str,
    actor_id: str | None = Depends(get_actor_id),
    service=Depends(get_negotiation_service),
):
    task = await service.accept(task_id, actor_id)
    return _task_response(task)


@router.post("/{task_id}/$reject")
async def reject(
    task_id: str,
    actor_id: str | None = Depends(get_actor_id),
    service=Depends(get_negotiation_service),
):
    task = await service.reject(task_id, actor_id)
    return _task_response(task)


@router.post("/{task_id}/$close")
async def close(
    task_id: str,
    body: CloseBody,
    actor_id: str | None = Depends(get_actor_id),
    service=Depends(get_negotiation_service),
):
    closing = ClosingDocument(doc_id=body.doc_id, doc_pw=body.doc_pw)
    task = await service.close(task_id, closing, actor_id)
    return _task_response(task)
