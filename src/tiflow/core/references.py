"""Actor 引用格式化

actor 在存储中使用裸 ID，对外渲染为 Organization/{id}。
两种形式输入均可，结果幂等。
"""

from .config import ORGANIZATION_PREFIX


def normalize_actor_id(actor: str | None) -> str:
    """去掉 Organization/ 前缀与首尾空白，返回裸 ID（None 视为空串）"""
    if actor is None:
        return ""
    actor = actor.strip()
    if actor.startswith(ORGANIZATION_PREFIX):
        actor = actor[len(ORGANIZATION_PREFIX):]
    return actor


def actor_reference(actor: str) -> str:
    """渲染为 Organization/{id}，已带前缀时不重复添加"""
    return f"{ORGANIZATION_PREFIX}{normalize_actor_id(actor)}"
