"""
Tests for rule form decoding.
"""

import pytest
from starlette.datastructures import FormData

from service_dashboard.app.domain.drl import DEFAULT_DRL
from service_dashboard.app.domain.forms import (
    RuleForm,
    apply_intent,
    collect_indexed,
    create_payload,
    parse_intent,
    parse_rule_form,
    update_payload,
)
from service_dashboard.app.domain.models import FactMetadata, RuleParameter
from service_dashboard.app.domain.rule_builder import RuleBuilder


@pytest.fixture
def builder():
    return RuleBuilder(FactMetadata.model_validate({
        "facts": {
            "TransactionFact": {
                "inputFields": {"amount": {"type": "BIG_DECIMAL"}, "channel": {"type": "STRING"}},
                "resultFields": {"approved": {"type": "BOOLEAN"}},
            },
            "RiskAssessmentFact": {
                "inputFields": {"score": {"type": "INTEGER"}},
                "resultFields": {"flagged": {"type": "BOOLEAN"}},
            },
        },
        "operators": {"BIG_DECIMAL": [">", "<"], "STRING": ["==", "!="], "BOOLEAN": ["=="]},
    }))


def test_collect_indexed_stops_at_first_gap():
    form = FormData([
        ("parameters[0].key", "a"),
        ("parameters[0].value", "1"),
        ("parameters[1].key", "b"),
        ("parameters[3].key", "d"),
    ])

    rows = collect_indexed(form, "parameters", ("key", "value"))

    assert rows == [{"key": "a", "value": "1"}, {"key": "b", "value": ""}]


@pytest.mark.parametrize("value,expected", [
    ("add-condition", ("add-condition", None)),
    ("remove-condition:7", ("remove-condition", "7")),
    ("remove-field:INPUT:2", ("remove-field", "INPUT:2")),
    (None, ("", None)),
])
def test_parse_intent(value, expected):
    assert parse_intent(value) == expected


class TestParseRuleForm:
    """Test cases for new-rule form decoding."""

    def test_basic_fields_and_parameters(self):
        form = FormData([
            ("name", "Gold limit"),
            ("description", "Limit for gold tier"),
            ("policyType", "TRANSACTION_LIMIT"),
            ("editorMode", "drl"),
            ("drlSource", "rule \"Gold\" end"),
            ("parameters[0].key", "maxAmount"),
            ("parameters[0].value", "5000"),
            ("parameters[0].type", "DOUBLE"),
            ("parameters[0].description", "Daily cap"),
        ])

        rule_form = parse_rule_form(form)

        assert rule_form.name == "Gold limit"
        assert rule_form.editor_mode == "drl"
        assert rule_form.effective_drl == "rule \"Gold\" end"
        assert rule_form.parameters == (
            RuleParameter(key="maxAmount", value="5000", type="DOUBLE", description="Daily cap"),
        )

    def test_field_schema_enum_values(self):
        form = FormData([
            ("inputFields[0].fieldName", "tier"),
            ("inputFields[0].fieldType", "ENUM"),
            ("inputFields[0].enumValues", "GOLD, SILVER,"),
            ("inputFields[1].fieldName", "amount"),
            ("inputFields[1].fieldType", "BIG_DECIMAL"),
            ("inputFields[1].enumValues", "ignored"),
            ("resultFields[0].fieldName", "approved"),
            ("resultFields[0].fieldType", "BOOLEAN"),
        ])

        schema = parse_rule_form(form).schema

        assert schema.input_fields[0].enum_values == ["GOLD", "SILVER"]
        assert schema.input_fields[1].enum_values is None
        assert schema.input_fields[1].field_order == 1
        assert schema.result_fields[0].field_category == "RESULT"

    def test_defaults(self):
        rule_form = parse_rule_form(FormData([]))

        assert rule_form.policy_type == "TRANSACTION_LIMIT"
        assert rule_form.editor_mode == "builder"
        assert rule_form.drl_source == DEFAULT_DRL
        assert rule_form.builder.fact_type == "TransactionFact"

    def test_condition_field_change_resets_operator_and_value(self, builder):
        form = FormData([
            ("policyType", "TRANSACTION_LIMIT"),
            ("builderPolicyType", "TRANSACTION_LIMIT"),
            ("builderFactType", "TransactionFact"),
            ("nextId", "3"),
            ("conditions[0].id", "1"),
            ("conditions[0].field", "channel"),
            ("conditions[0].prevField", "amount"),
            ("conditions[0].operator", ">"),
            ("conditions[0].value", "100"),
            ("conditions[0].valueType", "BIG_DECIMAL"),
            ("conditions[1].id", "2"),
            ("conditions[1].field", "amount"),
            ("conditions[1].prevField", "amount"),
            ("conditions[1].operator", "<"),
            ("conditions[1].value", "50"),
            ("conditions[1].valueType", "BIG_DECIMAL"),
        ])

        state = parse_rule_form(form, builder).builder

        changed, kept = state.conditions
        assert (changed.field, changed.operator, changed.value, changed.value_type) == ("channel", "==", "", "STRING")
        assert (kept.field, kept.operator, kept.value) == ("amount", "<", "50")
        assert state.next_id == 3

    def test_policy_type_change_resets_builder(self, builder):
        form = FormData([
            ("policyType", "RISK_FLAG"),
            ("builderPolicyType", "TRANSACTION_LIMIT"),
            ("builderFactType", "TransactionFact"),
            ("conditions[0].id", "1"),
            ("conditions[0].field", "amount"),
            ("conditions[0].prevField", "amount"),
        ])

        state = parse_rule_form(form, builder).builder

        assert state.fact_type == "RiskAssessmentFact"
        assert state.conditions == ()

    def test_fact_type_select_clears_rows(self, builder):
        form = FormData([
            ("policyType", "TRANSACTION_LIMIT"),
            ("builderPolicyType", "TRANSACTION_LIMIT"),
            ("builderFactType", "TransactionFact"),
            ("factType", "RiskAssessmentFact"),
            ("actions[0].id", "1"),
            ("actions[0].field", "approved"),
            ("actions[0].prevField", "approved"),
            ("actions[0].value", "true"),
        ])

        state = parse_rule_form(form, builder).builder

        assert state.fact_type == "RiskAssessmentFact"
        assert state.actions == ()


class TestIntents:
    """Test cases for button intents."""

    def test_parameter_intents(self):
        rule_form = apply_intent(RuleForm.initial(), "add-param")
        rule_form = apply_intent(rule_form, "add-param")
        assert len(rule_form.parameters) == 2

        rule_form = apply_intent(rule_form, "remove-param", "0")
        assert len(rule_form.parameters) == 1

        assert apply_intent(rule_form, "remove-param", "x") == rule_form

    def test_field_intents(self):
        rule_form = apply_intent(RuleForm.initial(), "add-input-field")
        rule_form = apply_intent(rule_form, "add-result-field")
        rule_form = apply_intent(rule_form, "remove-field", "INPUT:0")

        assert rule_form.schema.input_fields == ()
        assert len(rule_form.schema.result_fields) == 1
        assert apply_intent(rule_form, "remove-field", "OTHER:0") == rule_form

    def test_builder_intents(self):
        rule_form = apply_intent(RuleForm.initial(), "add-condition")
        rule_form = apply_intent(rule_form, "add-action")
        condition_id = rule_form.builder.conditions[0].id

        rule_form = apply_intent(rule_form, "remove-condition", condition_id)

        assert rule_form.builder.conditions == ()
        assert len(rule_form.builder.actions) == 1

    def test_mode_switch(self):
        rule_form = apply_intent(RuleForm.initial(), "set-mode", "drl")
        assert rule_form.editor_mode == "drl"
        assert apply_intent(rule_form, "set-mode", "other").editor_mode == "drl"

    def test_unknown_intent_is_noop(self):
        rule_form = RuleForm.initial()
        assert apply_intent(rule_form, "refresh") == rule_form


class TestPayloads:
    """Test cases for request bodies."""

    def test_create_payload_drops_unnamed_fields(self):
        form = FormData([
            ("name", "Risky"),
            ("description", ""),
            ("policyType", "RISK_FLAG"),
            ("editorMode", "drl"),
            ("drlSource", "rule \"Risky\" end"),
            ("inputFields[0].fieldName", "score"),
            ("inputFields[0].fieldType", "INTEGER"),
            ("inputFields[1].fieldName", "  "),
            ("inputFields[1].fieldType", "STRING"),
        ])

        payload = create_payload(parse_rule_form(form))

        assert payload["name"] == "Risky"
        assert payload["policyType"] == "RISK_FLAG"
        assert payload["drlSource"] == "rule \"Risky\" end"
        assert payload["parameters"] == []
        assert payload["fields"] == [
            {"fieldName": "score", "fieldType": "INTEGER", "fieldCategory": "INPUT", "fieldOrder": 0}
        ]
        assert "factTypeName" not in payload

    def test_create_payload_builder_mode_uses_generated_drl(self):
        form = FormData([
            ("name", "Gold"),
            ("policyType", "TRANSACTION_LIMIT"),
            ("editorMode", "builder"),
            ("drlSource", DEFAULT_DRL),
            ("builderFactType", "TransactionFact"),
            ("generatedDrl", "rule \"Gold\" end"),
        ])

        payload = create_payload(parse_rule_form(form))

        assert payload["drlSource"] == "rule \"Gold\" end"
        assert payload["factTypeName"] == "TransactionFact"
        assert "fields" not in payload

    def test_update_payload(self):
        payload = update_payload("Gold", None, "rule x", [RuleParameter(key="k", value="v")])
        assert payload == {
            "name": "Gold",
            "description": "",
            "drlSource": "rule x",
            "parameters": [{"key": "k", "value": "v", "type": "STRING", "description": ""}],
        }
