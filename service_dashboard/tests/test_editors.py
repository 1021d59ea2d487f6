"""
Tests for the field schema, parameter and DRL editor reducers.
"""

import pytest

from service_dashboard.app.domain import drl, field_schema, parameters
from service_dashboard.app.domain.field_schema import FieldSchemaState, parse_enum_values
from service_dashboard.app.domain.models import RuleField, RuleParameter


class TestFieldSchema:
    """Test cases for the field schema reducer."""

    def test_add_fields_use_current_count_as_order(self):
        state = FieldSchemaState()
        state = field_schema.reduce(state, field_schema.AddInputField())
        state = field_schema.reduce(state, field_schema.AddInputField())
        state = field_schema.reduce(state, field_schema.AddResultField())

        assert [f.field_order for f in state.input_fields] == [0, 1]
        assert state.input_fields[1].field_type == "STRING"
        assert state.input_fields[1].field_name == ""
        assert state.result_fields[0].field_category == "RESULT"

    def test_remove_field_renumbers(self):
        state = FieldSchemaState(input_fields=tuple(
            RuleField(field_name=name, field_category="INPUT", field_order=i)
            for i, name in enumerate(["a", "b", "c"])
        ))

        state = field_schema.reduce(state, field_schema.RemoveField("INPUT", 0))

        assert [(f.field_name, f.field_order) for f in state.input_fields] == [("b", 0), ("c", 1)]

    def test_type_change_away_from_enum_clears_values(self):
        state = FieldSchemaState(input_fields=(
            RuleField(field_name="tier", field_type="ENUM", enum_values=["GOLD", "SILVER"]),
        ))

        state = field_schema.reduce(state, field_schema.UpdateField("INPUT", 0, "field_type", "STRING"))

        assert state.input_fields[0].field_type == "STRING"
        assert state.input_fields[0].enum_values is None

    def test_update_enum_values(self):
        state = field_schema.reduce(FieldSchemaState(), field_schema.AddResultField())
        state = field_schema.reduce(state, field_schema.UpdateField("RESULT", 0, "field_type", "ENUM"))
        state = field_schema.reduce(state, field_schema.UpdateField(
            "RESULT", 0, "enum_values", parse_enum_values("LOW, HIGH")))

        assert state.result_fields[0].enum_values == ["LOW", "HIGH"]

    def test_update_out_of_range_is_ignored(self):
        state = FieldSchemaState()
        assert field_schema.reduce(state, field_schema.UpdateField("INPUT", 3, "field_name", "x")) == state

    def test_set_fields(self):
        inputs = (RuleField(field_name="amount"),)
        state = field_schema.reduce(FieldSchemaState(), field_schema.SetFields(inputs, ()))
        assert state.input_fields == inputs
        assert state.all_fields() == list(inputs)

    @pytest.mark.parametrize("text,expected", [
        ("LOW,MEDIUM,HIGH", ["LOW", "MEDIUM", "HIGH"]),
        (" LOW , ,HIGH ,", ["LOW", "HIGH"]),
        ("", []),
        (None, []),
    ])
    def test_parse_enum_values(self, text, expected):
        assert parse_enum_values(text) == expected


class TestParameters:
    """Test cases for the parameter list reducer."""

    def test_add_param_defaults(self):
        params = parameters.reduce((), parameters.AddParam())
        assert params == (RuleParameter(key="", value="", type="STRING", description=""),)

    def test_update_and_remove(self):
        params = parameters.reduce((), parameters.AddParam())
        params = parameters.reduce(params, parameters.AddParam())
        params = parameters.reduce(params, parameters.UpdateParam(1, "key", "maxAmount"))

        assert params[0].key == ""
        assert params[1].key == "maxAmount"

        params = parameters.reduce(params, parameters.RemoveParam(0))
        assert [p.key for p in params] == ["maxAmount"]

    def test_unknown_key(self):
        params = parameters.reduce((), parameters.AddParam())
        with pytest.raises(ValueError):
            parameters.reduce(params, parameters.UpdateParam(0, "name", "x"))

    def test_set_params(self):
        replacement = (RuleParameter(key="threshold", value="10", type="INTEGER"),)
        assert parameters.reduce((), parameters.SetParams(replacement)) == replacement


class TestDrlEditor:
    """Test cases for the DRL editor state."""

    def test_set_source_clears_validation_error(self):
        state = drl.reduce(drl.DrlState(source="x"), drl.SetValidationError("bad"))
        assert state.validation_error == "bad"

        state = drl.reduce(state, drl.SetSource("rule y"))
        assert state == drl.DrlState(source="rule y", validation_error=None)

    @pytest.mark.parametrize("source,expected", [
        ("", "DRL source cannot be empty"),
        ("   \n\t", "DRL source cannot be empty"),
        ("package com.example;", 'DRL source should contain at least one "rule" declaration'),
        ('rule "A"\nwhen\nthen\nend', None),
    ])
    def test_basic_validation(self, source, expected):
        assert drl.basic_validation(source) == expected

    def test_default_drl_passes_basic_validation(self):
        assert drl.basic_validation(drl.DEFAULT_DRL) is None
        assert 'rule "New Rule"' in drl.DEFAULT_DRL
