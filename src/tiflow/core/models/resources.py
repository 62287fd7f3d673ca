"""对外 FHIR 资源结构 -- Task / Questionnaire / QuestionnaireResponse / Bundle

每种资源一个显式模型，字段在类型上可见；序列化统一走 to_fhir()。
Questionnaire 类资源允许额外字段，用于合并存储内容中未建模的 FHIR 字段。
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _FhirModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_fhir(self) -> dict[str, Any]:
        """序列化为 FHIR JSON 结构（别名字段名，省略空值）"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Reference(_FhirModel):
    reference: str


class CodeableText(_FhirModel):
    text: str


class TaskInput(_FhirModel):
    type: CodeableText
    value_reference: Reference = Field(alias="valueReference")


class TaskOutput(_FhirModel):
    type: CodeableText
    value_string: str = Field(alias="valueString")


class TaskResource(_FhirModel):
    """FHIR Task"""

    resource_type: Literal["Task"] = Field(default="Task", alias="resourceType")
    id: str
    status: str
    business_status: CodeableText = Field(alias="businessStatus")
    intent: str = "order"
    priority: str = "routine"
    code: CodeableText | None = None
    description: str | None = None
    authored_on: str = Field(alias="authoredOn")
    last_modified: str = Field(alias="lastModified")
    requester: Reference
    owner: Reference
    for_: Reference = Field(alias="for")
    input: list[TaskInput] = Field(default_factory=list)
    output: list[TaskOutput] | None = None


class QuestionnaireResource(_FhirModel):
    """FHIR Questionnaire"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    resource_type: Literal["Questionnaire"] = Field(
        default="Questionnaire", alias="resourceType"
    )
    id: str
    status: str
    date: str
    url: str | None = None
    title: str | None = None
    item: list[dict[str, Any]] = Field(default_factory=list)


class QuestionnaireResponseResource(_FhirModel):
    """FHIR QuestionnaireResponse"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    resource_type: Literal["QuestionnaireResponse"] = Field(
        default="QuestionnaireResponse", alias="resourceType"
    )
    id: str
    status: str
    date: str
    questionnaire: str | None = None
    item: list[dict[str, Any]] = Field(default_factory=list)


class BundleEntry(_FhirModel):
    full_url: str | None = Field(default=None, alias="fullUrl")
    resource: TaskResource


class BundleResource(_FhirModel):
    """FHIR Bundle（searchset）"""

    resource_type: Literal["Bundle"] = Field(default="Bundle", alias="resourceType")
    type: str = "searchset"
    total: int
    entry: list[BundleEntry] = Field(default_factory=list)
