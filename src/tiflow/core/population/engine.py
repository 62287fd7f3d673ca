"""表达式预填充引擎 -- Questionnaire + 上下文 Bundle -> QuestionnaireResponse

按文档顺序遍历 item：带预填充表达式的 item 对 Bundle 求值，取第一个结果，
按声明类型转换为答案。无结果、转换失败或表达式错误只影响该 item（不作答），
不会中断整体预填充。group 递归且始终保留，display 不作答。

纯函数，不访问存储，可并发调用。
"""

import math
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError
from ulid import ULID

from ..config import SDC_RESPONSE_PROFILE
from ..exceptions import ExpressionError, QuestionnaireNotFoundError
from ..models.enums import ANSWER_KIND_BY_ITEM_TYPE, AnswerKind, ArtifactKind, ItemType
from ..models.questionnaire import Answer, Quantity, QuestionnaireDocument, QuestionnaireItem
from .fhirpath import evaluate

log = structlog.get_logger()

_TRUE_STRINGS = frozenset({"true", "yes", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "0"})

# 不作答的结构性 item 类型
_STRUCTURAL_TYPES = frozenset({ItemType.GROUP, ItemType.DISPLAY})


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_string(value: Any) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float | str):
        return str(value)
    return None


def _as_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _as_integer(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def _as_decimal(value: Any) -> float | None:
    if _is_number(value):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    # NaN / inf 不是合法的 FHIR decimal
    return number if math.isfinite(number) else None


def _as_quantity(value: Any) -> Quantity | None:
    if not isinstance(value, dict) or not _is_number(value.get("value")):
        return None
    if not math.isfinite(value["value"]):
        return None
    return Quantity(
        value=value["value"],
        unit=value.get("unit"),
        system=value.get("system"),
        code=value.get("code"),
    )


def create_answer_for_type(item_type: str | None, value: Any) -> Answer | None:
    """把原始求值结果转换为声明类型对应的答案

    Args:
        item_type: item 声明类型（未知或缺失时按字符串处理）
        value: 表达式第一个结果

    Returns:
        Answer；无法转换时返回 None（item 不作答）
    """
    if value is None:
        return None

    try:
        declared = ItemType(item_type) if item_type is not None else None
    except ValueError:
        declared = None
    kind = ANSWER_KIND_BY_ITEM_TYPE[declared] if declared is not None else AnswerKind.STRING

    converted: Any
    if kind == AnswerKind.BOOLEAN:
        converted = _as_boolean(value)
    elif kind == AnswerKind.INTEGER:
        converted = _as_integer(value)
    elif kind == AnswerKind.DECIMAL:
        converted = _as_decimal(value)
    elif kind == AnswerKind.QUANTITY:
        converted = _as_quantity(value)
        if converted is None:
            kind = AnswerKind.STRING
            converted = _as_string(value)
    elif kind in (AnswerKind.DATE, AnswerKind.DATE_TIME):
        converted = value if isinstance(value, str) else None
    else:
        converted = _as_string(value)

    if converted is None:
        return None
    return Answer(kind=kind, value=converted)


def _resolve_definition(
    questionnaire: QuestionnaireDocument | dict | None,
) -> QuestionnaireDocument:
    if questionnaire is None:
        raise QuestionnaireNotFoundError()
    if isinstance(questionnaire, dict):
        resource_type = questionnaire.get("resourceType", ArtifactKind.QUESTIONNAIRE.value)
        if resource_type != ArtifactKind.QUESTIONNAIRE.value:
            raise QuestionnaireNotFoundError(questionnaire.get("id"))
        try:
            questionnaire = QuestionnaireDocument.model_validate(questionnaire)
        except ValidationError as e:
            raise QuestionnaireNotFoundError(questionnaire.get("id")) from e
    if questionnaire.resource_type != ArtifactKind.QUESTIONNAIRE:
        raise QuestionnaireNotFoundError(questionnaire.id)
    return questionnaire


def _evaluate_item(item: QuestionnaireItem, bundle: Any) -> Answer | None:
    expression = item.population_expression
    if not expression:
        return None
    try:
        results = evaluate(expression, bundle)
    except ExpressionError as exc:
        log.warning(
            "population_expression_failed",
            link_id=item.link_id,
            expression=expression,
            error=exc.detail,
        )
        return None

    if not results:
        log.debug("population_no_result", link_id=item.link_id, expression=expression)
        return None

    answer = create_answer_for_type(item.type, results[0])
    if answer is None:
        log.debug(
            "population_conversion_skipped",
            link_id=item.link_id,
            item_type=item.type,
            value_type=type(results[0]).__name__,
        )
    return answer


def _populate_item(item: QuestionnaireItem, bundle: Any) -> QuestionnaireItem:
    answer = None
    if item.declared_type not in _STRUCTURAL_TYPES:
        answer = _evaluate_item(item, bundle)
    return QuestionnaireItem(
        link_id=item.link_id,
        text=item.text,
        children=[_populate_item(child, bundle) for child in item.children],
        answer=[answer] if answer is not None else None,
    )


def populate(
    questionnaire: QuestionnaireDocument | dict | None,
    bundle: dict[str, Any] | None,
    now: datetime | None = None,
) -> QuestionnaireDocument:
    """用上下文 Bundle 预填充 Questionnaire

    Args:
        questionnaire: Questionnaire 定义（模型或 FHIR dict）
        bundle: 上下文资源（通常是 Bundle），None 时所有 item 不作答
        now: authored 时间（默认当前 UTC 时间）

    Returns:
        QuestionnaireResponse 文档

    Raises:
        QuestionnaireNotFoundError: 定义缺失或不是 Questionnaire
    """
    definition = _resolve_definition(questionnaire)
    authored = now or datetime.now(UTC)

    items = [_populate_item(item, bundle) for item in definition.items]
    answered = sum(1 for item in _walk(items) if item.answer)
    log.info(
        "questionnaire_populated",
        questionnaire=definition.canonical,
        item_count=len(items),
        answered=answered,
    )

    return QuestionnaireDocument(
        resource_type=ArtifactKind.QUESTIONNAIRE_RESPONSE,
        id=f"populated-{ULID()}",
        meta={"profile": [SDC_RESPONSE_PROFILE]},
        status="in-progress",
        questionnaire=definition.canonical,
        authored=authored.isoformat(),
        items=items,
    )


def _walk(items: list[QuestionnaireItem]):
    for item in items:
        yield item
        yield from _walk(item.children)
