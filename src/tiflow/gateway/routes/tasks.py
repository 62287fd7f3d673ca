"""任务创建与查询路由

POST /$request: 创建协商请求（201）。
GET /Task?user=: 列出 actor 参与的任务（searchset Bundle，最新在前）。
GET /Task/{task_id}: 任务详情；receiver 读取 requested 任务时标记为 received。
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from tiflow.core.fhir_adapter import task_to_resource, tasks_to_bundle
from tiflow.core.models import TaskKind

from ..deps import get_actor_id, get_negotiation_service

router = APIRouter()


class CreateRequestBody(BaseModel):
    """创建请求体"""

    requester: str = Field(description="发起方（裸 ID 或 Organization/{id}）")
    receiver: str = Field(description="处理方（裸 ID 或 Organization/{id}）")
    questionnaire: dict[str, Any] = Field(description="初始 Questionnaire")
    kind: TaskKind = Field(default=TaskKind.FLOW_REQUEST, description="协商子类型")


@router.post("/$request")
async def create_request(
    body: CreateRequestBody,
    service=Depends(get_negotiation_service),
):
    """创建协商请求，返回任务 ID、Questionnaire ID 与 Task 资源"""
    task_id, artifact_id, task = await service.create_request(
        body.requester,
        body.receiver,
        body.questionnaire,
        kind=body.kind,
    )
    return JSONResponse(
        status_code=201,
        content={
            "taskId": task_id,
            "questionnaireId": artifact_id,
            "task": task_to_resource(task).to_fhir(),
        },
    )


@router.get("/Task")
async def list_tasks(
    user: str | None = Query(default=None, description="参与方（裸 ID 或 Organization/{id}）"),
    actor_id: str | None = Depends(get_actor_id),
    service=Depends(get_negotiation_service),
):
    """列出 actor 参与的任务；未指定 user 时使用 x-actor-id"""
    tasks = await service.list_tasks_for_actor(user or actor_id or "")
    return tasks_to_bundle(tasks).to_fhir()


@router.get("/Task/{task_id}")
async def get_task(
    task_id: str,
    actor_id: str | None = Depends(get_actor_id),
    service=Depends(get_negotiation_service),
):
    """查询任务详情"""
    task = await service.get_task(task_id, actor_id)
    return task_to_resource(task).to_fhir()
