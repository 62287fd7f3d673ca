"""预填充引擎测试

测试内容：
1. 处方场景：药品名称从 Medication 预填充
2. 无结果 / 表达式错误只影响单个 item
3. 各声明类型的答案转换
4. group 递归、display 不作答
5. 定义缺失或类型错误时 QuestionnaireNotFoundError
6. 应答元数据（profile / status / questionnaire / authored）
"""

from datetime import UTC, datetime

import pytest
from tiflow.core.config import SDC_INITIAL_EXPRESSION_URL, SDC_RESPONSE_PROFILE
from tiflow.core.exceptions import QuestionnaireNotFoundError
from tiflow.core.models import AnswerKind, ArtifactKind, Quantity, QuestionnaireDocument
from tiflow.core.population import create_answer_for_type, fhirpath, populate

MEDICATION_BUNDLE = {
    "resourceType": "Bundle",
    "type": "collection",
    "entry": [
        {
            "resource": {
                "resourceType": "Patient",
                "id": "p1",
                "birthDate": "1961-04-12",
                "name": [{"family": "Schulz", "given": ["Anna"]}],
            }
        },
        {
            "resource": {
                "resourceType": "Medication",
                "id": "m1",
                "code": {"text": "Januvia 50mg"},
            }
        },
        {
            "resource": {
                "resourceType": "MedicationRequest",
                "id": "mr1",
                "dispenseRequest": {
                    "quantity": {"value": 2, "unit": "Packung"},
                    "numberOfRepeatsAllowed": 3,
                },
                "substitution": {"allowedBoolean": True},
            }
        },
    ],
}

NOW = datetime(2025, 3, 1, 10, 30, tzinfo=UTC)


def _item(link_id: str, item_type: str, expression: str | None = None, **extra) -> dict:
    item = {"linkId": link_id, "text": link_id, "type": item_type, **extra}
    if expression is not None:
        item["extension"] = [
            {
                "url": SDC_INITIAL_EXPRESSION_URL,
                "valueExpression": {"language": "text/fhirpath", "expression": expression},
            }
        ]
    return item


def _definition(*items: dict) -> dict:
    return {
        "resourceType": "Questionnaire",
        "id": "7",
        "url": "https://tiflow.example/Questionnaire/rezept",
        "status": "active",
        "item": list(items),
    }


def _answers(response: QuestionnaireDocument) -> dict[str, list[dict] | None]:
    """linkId -> FHIR answer 列表（遍历整棵树）"""
    found: dict[str, list[dict] | None] = {}

    def _walk(items: list[dict]) -> None:
        for item in items:
            found[item["linkId"]] = item.get("answer")
            _walk(item.get("item", []))

    _walk(response.to_fhir().get("item", []))
    return found


class TestPrescriptionScenario:
    """处方预填充场景"""

    def test_medication_name_populated(self):
        definition = _definition(
            _item("medication_name", "string", "Medication.code.text"),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert _answers(response)["medication_name"] == [{"valueString": "Januvia 50mg"}]

    def test_plain_population_expression_field(self):
        """不带扩展、直接给 populationExpression 的旧版定义"""
        definition = _definition(
            {
                "linkId": "medication_name",
                "type": "string",
                "populationExpression": (
                    "%resource.entry.resource.where(resourceType = 'Medication').code.text"
                ),
            }
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert _answers(response)["medication_name"] == [{"valueString": "Januvia 50mg"}]

    def test_missing_medication_leaves_item_unanswered(self):
        bundle = {
            "resourceType": "Bundle",
            "entry": [
                e
                for e in MEDICATION_BUNDLE["entry"]
                if e["resource"]["resourceType"] != "Medication"
            ],
        }
        definition = _definition(_item("medication_name", "string", "Medication.code.text"))
        response = populate(definition, bundle, now=NOW)

        answers = _answers(response)
        assert "medication_name" in answers
        assert answers["medication_name"] is None

    def test_none_bundle_answers_nothing(self):
        definition = _definition(_item("medication_name", "string", "Medication.code.text"))
        response = populate(definition, None, now=NOW)
        assert _answers(response) == {"medication_name": None}


class TestItemHandling:
    def test_items_keep_document_order(self):
        definition = _definition(
            _item("b", "string"),
            _item("a", "string", "Patient.name.family"),
            _item("c", "integer", "MedicationRequest.dispenseRequest.numberOfRepeatsAllowed"),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert [i.link_id for i in response.items] == ["b", "a", "c"]
        assert _answers(response) == {
            "b": None,
            "a": [{"valueString": "Schulz"}],
            "c": [{"valueInteger": 3}],
        }

    def test_first_result_wins(self):
        definition = _definition(_item("ids", "string", "Bundle.entry.resource.id"))
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert _answers(response)["ids"] == [{"valueString": "p1"}]

    def test_bad_expression_only_affects_its_item(self):
        definition = _definition(
            _item("unknown_fn", "string", "Medication.code.frobnicate()"),
            _item("medication_name", "string", "Medication.code.text"),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        answers = _answers(response)
        assert answers["unknown_fn"] is None
        assert answers["medication_name"] == [{"valueString": "Januvia 50mg"}]

    def test_malformed_escape_does_not_abort(self):
        definition = _definition(
            _item("bad", "string", "'\\uZZZZ'"),
            _item("medication_name", "string", "Medication.code.text"),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert _answers(response)["medication_name"] == [{"valueString": "Januvia 50mg"}]

    def test_deeply_nested_expression_does_not_abort(self):
        definition = _definition(
            _item("nested", "integer", "(" * 2000 + "1" + ")" * 2000),
            _item("medication_name", "string", "Medication.code.text"),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        answers = _answers(response)
        assert answers["nested"] is None
        assert answers["medication_name"] == [{"valueString": "Januvia 50mg"}]

    @pytest.mark.parametrize("error", [ValueError("invalid literal"), RecursionError()])
    def test_evaluator_exception_only_affects_its_item(self, monkeypatch, error):
        real_compile = fhirpath.fhirpathpy.compile

        def _compile(path):
            if path.startswith("Patient"):
                raise error
            return real_compile(path)

        monkeypatch.setattr(fhirpath.fhirpathpy, "compile", _compile)
        fhirpath.compile_expression.cache_clear()
        try:
            definition = _definition(
                _item("patient_id", "string", "Patient.id"),
                _item("medication_name", "string", "Medication.code.text"),
            )
            response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        finally:
            fhirpath.compile_expression.cache_clear()

        answers = _answers(response)
        assert answers["patient_id"] is None
        assert answers["medication_name"] == [{"valueString": "Januvia 50mg"}]

    def test_group_recurses_and_is_kept(self):
        definition = _definition(
            _item(
                "patient",
                "group",
                item=[
                    _item("birth_date", "date", "Patient.birthDate"),
                    _item("nickname", "string", "Patient.name.where(use = 'nickname').given"),
                ],
            ),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)

        group = response.items[0]
        assert group.link_id == "patient"
        assert group.answer is None
        assert [c.link_id for c in group.children] == ["birth_date", "nickname"]
        answers = _answers(response)
        assert answers["birth_date"] == [{"valueDate": "1961-04-12"}]
        assert answers["nickname"] is None

    def test_group_and_display_never_answered(self):
        definition = _definition(
            _item("hint", "display", "Medication.code.text"),
            _item("section", "group", "Medication.code.text"),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert _answers(response) == {"hint": None, "section": None}

    def test_leaf_items_have_no_empty_item_array(self):
        definition = _definition(_item("medication_name", "string", "Medication.code.text"))
        item = populate(definition, MEDICATION_BUNDLE, now=NOW).to_fhir()["item"][0]
        assert "item" not in item
        assert "extension" not in item
        assert item["text"] == "medication_name"


class TestResponseMetadata:
    def test_response_fields(self):
        definition = _definition(_item("medication_name", "string", "Medication.code.text"))
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        data = response.to_fhir()

        assert response.resource_type == ArtifactKind.QUESTIONNAIRE_RESPONSE
        assert data["resourceType"] == "QuestionnaireResponse"
        assert data["id"].startswith("populated-")
        assert data["meta"] == {"profile": [SDC_RESPONSE_PROFILE]}
        assert data["status"] == "in-progress"
        assert data["questionnaire"] == "https://tiflow.example/Questionnaire/rezept"
        assert data["authored"] == NOW.isoformat()

    def test_canonical_falls_back_to_id(self):
        definition = _definition(_item("medication_name", "string", "Medication.code.text"))
        del definition["url"]
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert response.questionnaire == "Questionnaire/7"

    def test_response_ids_unique(self):
        definition = _definition(_item("medication_name", "string"))
        first = populate(definition, MEDICATION_BUNDLE, now=NOW)
        second = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert first.id != second.id

    def test_accepts_document_model(self):
        document = QuestionnaireDocument.model_validate(
            _definition(_item("medication_name", "string", "Medication.code.text"))
        )
        response = populate(document, MEDICATION_BUNDLE, now=NOW)
        assert _answers(response)["medication_name"] == [{"valueString": "Januvia 50mg"}]

    def test_missing_resource_type_treated_as_questionnaire(self):
        definition = _definition(_item("medication_name", "string", "Medication.code.text"))
        del definition["resourceType"]
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        assert _answers(response)["medication_name"] == [{"valueString": "Januvia 50mg"}]


class TestQuestionnaireNotFound:
    def test_none_definition(self):
        with pytest.raises(QuestionnaireNotFoundError):
            populate(None, MEDICATION_BUNDLE)

    def test_response_is_not_a_definition(self):
        response = {"resourceType": "QuestionnaireResponse", "id": "9", "item": []}
        with pytest.raises(QuestionnaireNotFoundError) as exc_info:
            populate(response, MEDICATION_BUNDLE)
        assert exc_info.value.questionnaire_id == "9"

    def test_response_document_model_rejected(self):
        document = QuestionnaireDocument(resource_type=ArtifactKind.QUESTIONNAIRE_RESPONSE, id="9")
        with pytest.raises(QuestionnaireNotFoundError):
            populate(document, MEDICATION_BUNDLE)

    def test_other_resource_type_rejected(self):
        with pytest.raises(QuestionnaireNotFoundError):
            populate({"resourceType": "Patient", "id": "p1"}, MEDICATION_BUNDLE)

    def test_invalid_definition_rejected(self):
        definition = {"resourceType": "Questionnaire", "id": "8", "item": [{"text": "no linkId"}]}
        with pytest.raises(QuestionnaireNotFoundError) as exc_info:
            populate(definition, MEDICATION_BUNDLE)
        assert exc_info.value.questionnaire_id == "8"


class TestCreateAnswerForType:
    """原始值 -> 类型化答案"""

    @pytest.mark.parametrize(
        ("item_type", "value", "expected"),
        [
            ("string", "Januvia", "Januvia"),
            ("string", 42, "42"),
            ("string", True, "true"),
            ("text", "lang", "lang"),
            ("choice", "A", "A"),
            (None, 1.5, "1.5"),
            ("unknown-type", "x", "x"),
        ],
    )
    def test_string_kinds(self, item_type, value, expected):
        answer = create_answer_for_type(item_type, value)
        assert answer is not None
        assert answer.kind == AnswerKind.STRING
        assert answer.value == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, True),
            (False, False),
            (1, True),
            (0, False),
            (0.5, True),
            ("true", True),
            ("YES", True),
            ("1", True),
            ("false", False),
            ("no", False),
            (" 0 ", False),
        ],
    )
    def test_boolean(self, value, expected):
        answer = create_answer_for_type("boolean", value)
        assert answer is not None
        assert answer.kind == AnswerKind.BOOLEAN
        assert answer.value is expected

    @pytest.mark.parametrize("value", ["maybe", "", {"a": 1}, [True]])
    def test_boolean_unconvertible(self, value):
        assert create_answer_for_type("boolean", value) is None

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(3, 3), (3.0, 3), ("12", 12), (" 7 ", 7), ("4.0", 4)],
    )
    def test_integer(self, value, expected):
        answer = create_answer_for_type("integer", value)
        assert answer is not None
        assert answer.kind == AnswerKind.INTEGER
        assert answer.value == expected
        assert isinstance(answer.value, int)

    @pytest.mark.parametrize("value", [2.5, "2.5", "zwei", True, {"value": 1}])
    def test_integer_unconvertible(self, value):
        assert create_answer_for_type("integer", value) is None

    @pytest.mark.parametrize(("value", "expected"), [(2, 2.0), (2.25, 2.25), ("0.5", 0.5)])
    def test_decimal(self, value, expected):
        answer = create_answer_for_type("decimal", value)
        assert answer is not None
        assert answer.kind == AnswerKind.DECIMAL
        assert answer.value == expected

    @pytest.mark.parametrize(
        "value", ["abc", False, None, "NaN", "inf", "-Infinity", float("nan"), float("inf")]
    )
    def test_decimal_unconvertible(self, value):
        assert create_answer_for_type("decimal", value) is None

    def test_quantity(self):
        answer = create_answer_for_type("quantity", {"value": 2, "unit": "Packung"})
        assert answer is not None
        assert answer.kind == AnswerKind.QUANTITY
        assert answer.value == Quantity(value=2, unit="Packung")
        assert answer.to_fhir() == {"valueQuantity": {"value": 2.0, "unit": "Packung"}}

    def test_non_finite_quantity_unconvertible(self):
        assert create_answer_for_type("quantity", {"value": float("nan"), "unit": "mg"}) is None

    def test_non_finite_observation_value_left_unanswered(self):
        bundle = {
            "resourceType": "Bundle",
            "entry": [{"resource": {"resourceType": "Observation", "valueString": "NaN"}}],
        }
        definition = _definition(_item("level", "decimal", "Observation.valueString"))
        response = populate(definition, bundle, now=NOW)
        assert _answers(response)["level"] is None

    def test_quantity_falls_back_to_string(self):
        answer = create_answer_for_type("quantity", "2 Packungen")
        assert answer is not None
        assert answer.kind == AnswerKind.STRING
        assert answer.value == "2 Packungen"

    def test_quantity_without_numeric_value_unconvertible(self):
        assert create_answer_for_type("quantity", {"unit": "Packung"}) is None

    @pytest.mark.parametrize(
        ("item_type", "kind"),
        [("date", AnswerKind.DATE), ("dateTime", AnswerKind.DATE_TIME)],
    )
    def test_dates_require_strings(self, item_type, kind):
        answer = create_answer_for_type(item_type, "2025-03-01")
        assert answer is not None
        assert answer.kind == kind
        assert answer.value == "2025-03-01"
        assert create_answer_for_type(item_type, 20250301) is None

    def test_string_rejects_structures(self):
        assert create_answer_for_type("string", {"text": "Januvia"}) is None
        assert create_answer_for_type("string", None) is None

    def test_quantity_item_populated_from_bundle(self):
        definition = _definition(
            _item("amount", "quantity", "MedicationRequest.dispenseRequest.quantity"),
            _item("substitution", "boolean", "MedicationRequest.substitution.allowedBoolean"),
        )
        response = populate(definition, MEDICATION_BUNDLE, now=NOW)
        answers = _answers(response)
        assert answers["amount"] == [{"valueQuantity": {"value": 2.0, "unit": "Packung"}}]
        assert answers["substitution"] == [{"valueBoolean": True}]
