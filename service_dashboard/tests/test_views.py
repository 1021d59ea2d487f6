"""
Tests for view helpers and the field type lookup table.
"""

import json
from datetime import datetime

import pytest

from service_dashboard.app.domain.field_types import (
    DISABLED_WIDGET,
    curl_sample,
    curl_sample_value,
    input_widget,
    operators_for,
    sample_input,
    sample_value,
)
from service_dashboard.app.domain.models import (
    FactMetadata,
    FieldDefinition,
    Rule,
    RuleField,
    default_fact_type,
    policy_type_label,
)
from service_dashboard.app.domain.views import (
    AuditFilters,
    audit_policy_types,
    dashboard_stats,
    format_timestamp,
    pretty_json,
    rules_link,
)


def _rule(rule_id, policy_type, is_active):
    return Rule(id=rule_id, name=f"rule-{rule_id}", policy_type=policy_type, is_active=is_active)


class TestFieldTypes:
    """Test cases for the field type lookup table."""

    def test_operators_come_from_metadata(self):
        metadata = FactMetadata(operators={"BOOLEAN": ["=="], "STRING": ["==", "!="]})
        assert operators_for(metadata, "BOOLEAN") == ["=="]
        assert operators_for(metadata, "LIST_STRING") == []
        assert operators_for(metadata, "") == []

    def test_input_widgets(self):
        enum = input_widget(FieldDefinition(type="ENUM", enum_values=["LOW", "HIGH"]))
        assert (enum.kind, enum.options) == ("select", ["LOW", "HIGH"])

        boolean = input_widget(FieldDefinition(type="BOOLEAN"))
        assert boolean.options == ["true", "false"]

        decimal = input_widget(FieldDefinition(type="BIG_DECIMAL"))
        assert (decimal.input_type, decimal.step) == ("number", "any")

        integer = input_widget(FieldDefinition(type="INTEGER"))
        assert (integer.input_type, integer.step) == ("number", "1")

        for field_type in ("STRING", "LIST_STRING", "SOMETHING_NEW"):
            widget = input_widget(FieldDefinition(type=field_type))
            assert (widget.kind, widget.input_type) == ("input", "text")

        assert input_widget(None) == DISABLED_WIDGET
        assert DISABLED_WIDGET.disabled is True

    @pytest.mark.parametrize("field,expected", [
        (RuleField(field_type="STRING"), "example"),
        (RuleField(field_type="INTEGER"), 0),
        (RuleField(field_type="BIG_DECIMAL"), 0.0),
        (RuleField(field_type="BOOLEAN"), False),
        (RuleField(field_type="ENUM", enum_values=["GOLD"]), "GOLD"),
        (RuleField(field_type="ENUM"), "VALUE"),
        (RuleField(field_type="LIST_STRING"), []),
        (RuleField(field_type="DATE"), None),
    ])
    def test_sample_value(self, field, expected):
        assert sample_value(field) == expected

    def test_sample_input_only_uses_input_fields(self):
        fields = [
            RuleField(field_name="amount", field_type="BIG_DECIMAL", field_category="INPUT"),
            RuleField(field_name="approved", field_type="BOOLEAN", field_category="RESULT"),
        ]
        assert json.loads(sample_input(fields)) == {"amount": 0.0}
        assert sample_input([]) == "{}"

    def test_curl_sample(self):
        assert curl_sample_value("INTEGER") == 0
        assert curl_sample_value("ENUM") == "value"

        sample = curl_sample("RISK_FLAG", [
            RuleField(field_name="score", field_type="INTEGER", field_category="INPUT"),
        ])
        assert "/api/v1/policies/RISK_FLAG/schema" in sample
        assert "/api/v1/policies/RISK_FLAG/evaluate" in sample
        assert '"score": 0' in sample


class TestModels:
    """Test cases for policy type helpers."""

    def test_labels(self):
        assert policy_type_label("FINANCING_ELIGIBILITY") == "Financing Eligibility"
        assert policy_type_label("CUSTOM_TYPE") == "CUSTOM_TYPE"
        assert policy_type_label(None) == ""

    def test_default_fact_types(self):
        assert default_fact_type("TRANSACTION_LIMIT") == "TransactionFact"
        assert default_fact_type("FINANCING_ELIGIBILITY") == "FinancingRequestFact"
        assert default_fact_type("RISK_FLAG") == "RiskAssessmentFact"
        assert default_fact_type("OTHER") == ""


class TestViews:
    """Test cases for page view helpers."""

    def test_dashboard_stats(self):
        rules = [
            _rule(1, "TRANSACTION_LIMIT", True),
            _rule(2, "TRANSACTION_LIMIT", False),
            _rule(3, "RISK_FLAG", True),
            _rule(4, "UNKNOWN", True),
        ]

        stats = {s.type: (s.total, s.active) for s in dashboard_stats(rules)}

        assert stats == {
            "TRANSACTION_LIMIT": (2, 1),
            "FINANCING_ELIGIBILITY": (0, 0),
            "RISK_FLAG": (1, 1),
        }

    def test_audit_policy_types(self):
        rules = [_rule(1, "RISK_FLAG", True), _rule(2, "TRANSACTION_LIMIT", True), _rule(3, "RISK_FLAG", False)]
        assert audit_policy_types(rules) == ["RISK_FLAG", "TRANSACTION_LIMIT"]

    def test_audit_filters_from_query(self):
        filters = AuditFilters.from_query({"policyType": "RISK_FLAG", "page": "2"})
        assert filters.policy_type == "RISK_FLAG"
        assert filters.page == 2
        assert filters.has_filters is True

        assert AuditFilters.from_query({"page": "abc"}).page == 0
        assert AuditFilters.from_query({}).has_filters is False

    def test_audit_filter_links(self):
        filters = AuditFilters(policy_type="RISK_FLAG", rule_id="r-1", page=3)

        assert filters.query(page=4) == "?policyType=RISK_FLAG&ruleId=r-1&page=4"
        # Changing a filter goes back to the first page
        assert filters.query(ruleId="") == "?policyType=RISK_FLAG"
        assert filters.query(dateFrom="2024-01-01") == "?policyType=RISK_FLAG&ruleId=r-1&dateFrom=2024-01-01"
        assert AuditFilters().query(page=0) == ""

    def test_pretty_json(self):
        assert pretty_json('{"a": 1}') == '{\n  "a": 1\n}'
        assert pretty_json({"a": [1]}) == '{\n  "a": [\n    1\n  ]\n}'
        assert pretty_json("not json") == "not json"
        assert pretty_json(None) == "null"

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2024, 5, 2, 11, 30)) == "2024-05-02 11:30:00"
        assert format_timestamp(None) == ""

    def test_rules_link(self):
        assert rules_link("RISK_FLAG", 2) == "/rules?policyType=RISK_FLAG&page=2"
        assert rules_link("A&B", 0) == "/rules?policyType=A%26B"
        assert rules_link("", -1) == "/rules"
