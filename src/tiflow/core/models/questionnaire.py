"""Questionnaire / QuestionnaireResponse 内容模型

产物内容是一棵 item 树：定义（可带预填充表达式）或应答（item 带 answer）。
对外交换使用 FHIR 字段名（linkId / item / answer / initial），
未建模的 FHIR 字段（extension、answerOption 等）原样保留。
"""

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_serializer,
    model_validator,
)

from ..config import SDC_INITIAL_EXPRESSION_URL
from .enums import AnswerKind, ArtifactKind, ItemType


class Quantity(BaseModel):
    """FHIR Quantity"""

    value: float = Field(description="数值")
    unit: str | None = Field(default=None, description="单位（显示用）")
    system: str | None = Field(default=None, description="单位编码系统")
    code: str | None = Field(default=None, description="单位编码")


class Answer(BaseModel):
    """类型化答案 -- 封闭的值类型集合

    kind 决定 FHIR 字段名（valueString / valueInteger / ...），
    value 的 Python 类型必须与 kind 一致。
    """

    kind: AnswerKind = Field(description="答案值类型")
    value: bool | int | float | str | Quantity = Field(description="答案值")

    @model_validator(mode="after")
    def _check_value_type(self) -> "Answer":
        expected: type | tuple[type, ...]
        if self.kind == AnswerKind.BOOLEAN:
            expected = bool
        elif self.kind == AnswerKind.INTEGER:
            expected = int
        elif self.kind == AnswerKind.DECIMAL:
            expected = (int, float)
        elif self.kind == AnswerKind.QUANTITY:
            expected = Quantity
        else:
            expected = str

        value = self.value
        if isinstance(value, bool) and self.kind != AnswerKind.BOOLEAN:
            raise ValueError(f"{self.kind} does not accept boolean values")
        if not isinstance(value, expected):
            raise ValueError(f"{self.kind} does not accept {type(value).__name__} values")
        return self

    def to_fhir(self) -> dict[str, Any]:
        """序列化为 FHIR answer 结构，如 {"valueString": "..."}"""
        if isinstance(self.value, Quantity):
            return {self.kind.value: self.value.model_dump(exclude_none=True)}
        return {self.kind.value: self.value}

    @classmethod
    def from_fhir(cls, data: dict[str, Any]) -> "Answer":
        """从 FHIR answer 结构解析

        Raises:
            ValueError: 不属于支持的值类型
        """
        for kind in AnswerKind:
            if kind.value in data:
                return cls(kind=kind, value=data[kind.value])
        raise ValueError(f"Unsupported answer value: {sorted(data)}")


def _parse_answers(value: Any) -> Any:
    if value is None:
        return None
    return [
        Answer.from_fhir(a) if isinstance(a, dict) and "kind" not in a else a
        for a in value
    ]


class QuestionnaireItem(BaseModel):
    """Questionnaire item（递归）

    定义 item 可带 population_expression；应答 item 带 answer。
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    link_id: str = Field(alias="linkId", description="树内唯一的稳定标识")
    text: str | None = Field(default=None, description="显示文本")
    type: str | None = Field(default=None, description="声明类型（应答 item 不携带）")
    required: bool | None = Field(default=None, description="是否必填")
    repeats: bool | None = Field(default=None, description="是否可重复")
    population_expression: str | None = Field(
        default=None,
        alias="populationExpression",
        exclude=True,
        description="预填充 FHIRPath 表达式（序列化时写回 SDC initialExpression 扩展）",
    )
    children: list["QuestionnaireItem"] = Field(
        default_factory=list,
        alias="item",
        description="子 item（group 类型）",
    )
    initial: list[Answer] | None = Field(default=None, description="建议值（还价时携带）")
    answer: list[Answer] | None = Field(default=None, description="答案（仅应答 item）")

    @model_validator(mode="before")
    @classmethod
    def _normalize_fhir_input(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # 旧版前端使用 items 而非 item
        if "items" in data and "item" not in data:
            data["item"] = data.pop("items")

        extensions = list(data.get("extension") or [])
        sdc_expression = _find_initial_expression(extensions)
        plain_expression = data.get("populationExpression", data.get("population_expression"))
        if sdc_expression and not plain_expression:
            data["populationExpression"] = sdc_expression
        elif plain_expression and not sdc_expression:
            extensions.append(
                {
                    "url": SDC_INITIAL_EXPRESSION_URL,
                    "valueExpression": {
                        "language": "text/fhirpath",
                        "expression": plain_expression,
                    },
                }
            )
            data["extension"] = extensions
        return data

    @field_validator("initial", "answer", mode="before")
    @classmethod
    def _parse_answer_list(cls, value: Any) -> Any:
        return _parse_answers(value)

    @field_serializer("initial", "answer")
    def _serialize_answer_list(self, value: list[Answer] | None) -> list[dict[str, Any]] | None:
        if value is None:
            return None
        return [a.to_fhir() for a in value]

    @model_serializer(mode="wrap")
    def _drop_empty_children(self, handler: Any) -> Any:
        data = handler(self)
        # 叶子 item 不输出空的 item 数组
        if isinstance(data, dict):
            for key in ("item", "children"):
                if key in data and not data[key]:
                    del data[key]
        return data

    @property
    def declared_type(self) -> ItemType | None:
        """声明类型对应的 ItemType，未知类型返回 None"""
        if self.type is None:
            return None
        try:
            return ItemType(self.type)
        except ValueError:
            return None


def _find_initial_expression(extensions: list[Any]) -> str | None:
    for ext in extensions:
        if not isinstance(ext, dict) or ext.get("url") != SDC_INITIAL_EXPRESSION_URL:
            continue
        expression = (ext.get("valueExpression") or {}).get("expression")
        if expression:
            return expression
    return None


class QuestionnaireDocument(BaseModel):
    """Questionnaire / QuestionnaireResponse 文档

    resourceType 缺省视为 Questionnaire（旧版前端提交的表单不带 resourceType）。
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    resource_type: ArtifactKind = Field(
        default=ArtifactKind.QUESTIONNAIRE,
        alias="resourceType",
        description="Questionnaire 或 QuestionnaireResponse",
    )
    id: str | None = Field(default=None, description="资源 ID")
    url: str | None = Field(default=None, description="Questionnaire canonical URL")
    title: str | None = Field(default=None, description="标题")
    status: str | None = Field(default=None, description="资源状态")
    questionnaire: str | None = Field(
        default=None,
        description="QuestionnaireResponse 指向原始定义的 canonical 引用",
    )
    items: list[QuestionnaireItem] = Field(
        default_factory=list,
        alias="item",
        description="item 树",
    )

    @model_validator(mode="before")
    @classmethod
    def _rename_legacy_items(cls, data: Any) -> Any:
        if isinstance(data, dict) and "items" in data and "item" not in data:
            data = dict(data)
            data["item"] = data.pop("items")
        return data

    @property
    def canonical(self) -> str:
        """原始定义的 canonical 标识：url 优先，否则 Questionnaire/{id}"""
        if self.url:
            return self.url
        return f"Questionnaire/{self.id}"

    def to_fhir(self) -> dict[str, Any]:
        """序列化为 FHIR JSON 结构"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
