"""FHIRPath 求值 -- fhirpathpy 之上的薄封装

在上下文资源（通常是 Bundle）上求值预填充表达式，结果统一为 list。

约定：
    - `%resource.` 前缀去掉后对上下文资源本身求值；`%resource` 仍可作为变量引用
    - 上下文是 Bundle 且表达式以其他资源类型名开头（如 `Medication.code.text`）时，
      对 entry.resource 列表求值，由类型名筛选出该类型的资源
    - 编译结果按表达式文本缓存，编译后的函数可重入

fhirpathpy 在语法错误、未知函数、深度嵌套等情况下抛出各种异常，
这里一律转换为 ExpressionError。
"""

import re
from collections.abc import Callable
from decimal import Decimal
from functools import lru_cache
from typing import Any

import fhirpathpy

from ..config import EXPRESSION_CACHE_SIZE
from ..exceptions import ExpressionError

_RESOURCE_PREFIX_RE = re.compile(r"%resource\.")
_LEADING_TYPE_RE = re.compile(r"\s*([A-Z][A-Za-z0-9]*)\b")


@lru_cache(maxsize=EXPRESSION_CACHE_SIZE)
def compile_expression(expression: str) -> Callable[..., list[Any]]:
    """编译表达式（按文本缓存）

    Raises:
        ExpressionError: 表达式无法解析
    """
    if not expression or not expression.strip():
        raise ExpressionError(expression, "empty expression")
    try:
        return fhirpathpy.compile(_RESOURCE_PREFIX_RE.sub("", expression))
    except Exception as e:
        raise ExpressionError(expression, _describe(e)) from e


def _evaluation_root(expression: str, resource: Any) -> Any:
    if not isinstance(resource, dict) or resource.get("resourceType") != "Bundle":
        return resource
    match = _LEADING_TYPE_RE.match(_RESOURCE_PREFIX_RE.sub("", expression))
    if match is None or match.group(1) == "Bundle":
        return resource
    return [
        entry["resource"]
        for entry in resource.get("entry") or []
        if isinstance(entry, dict) and isinstance(entry.get("resource"), dict)
    ]


def _plain(value: Any) -> Any:
    # 小数字面量以 Decimal 返回
    if isinstance(value, Decimal):
        return float(value)
    return value


def evaluate(expression: str, resource: Any) -> list[Any]:
    """在资源上求值表达式

    Args:
        expression: FHIRPath 表达式
        resource: 上下文资源；None 时结果为空

    Returns:
        结果集合

    Raises:
        ExpressionError: 解析或求值失败
    """
    fn = compile_expression(expression)
    if resource is None:
        return []
    try:
        results = fn(_evaluation_root(expression, resource), {"resource": resource})
    except Exception as e:
        raise ExpressionError(expression, _describe(e)) from e
    if results is None:
        return []
    if not isinstance(results, list):
        results = [results]
    return [_plain(value) for value in results]


def _describe(error: Exception) -> str:
    if isinstance(error, RecursionError):
        return "expression nested too deeply"
    return str(error) or type(error).__name__
