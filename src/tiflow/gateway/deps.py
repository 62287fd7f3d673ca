"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / Service 实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Header, Request
from tiflow.core.store import StoreGroup

from .services.negotiation_service import NegotiationService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_negotiation_service(request: Request) -> NegotiationService:
    """从 app.state 获取 NegotiationService 实例（持有任务锁注册表，必须全局唯一）"""
    return request.app.state.negotiation_service


def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str | None:
    """从 x-actor-id 请求头读取操作者"""
    return x_actor_id
