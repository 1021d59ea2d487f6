"""
Form decoding for the rule pages.

The new-rule page keeps its whole editing state in the submitted form: basic
info, parameters, field schema and visual builder rows. Buttons carry an
``intent`` value that names the edit to apply before the page re-renders.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from . import field_schema, parameters, rule_builder
from .drl import DEFAULT_DRL
from .field_schema import FieldSchemaState, parse_enum_values
from .models import PolicyType, RuleField, RuleParameter, default_fact_type
from .rule_builder import ActionRow, BuilderState, ConditionRow, RuleBuilder


EDITOR_MODES = ("builder", "drl")

PARAM_FORM_KEYS = ("key", "value", "type", "description")
FIELD_FORM_KEYS = ("fieldName", "fieldType", "enumValues")
CONDITION_FORM_KEYS = ("id", "field", "prevField", "operator", "value", "valueType")
ACTION_FORM_KEYS = ("id", "field", "prevField", "value", "valueType")


def collect_indexed(form: Mapping[str, Any], prefix: str,
                    keys: Sequence[str]) -> List[Dict[str, str]]:
    """Read ``prefix[i].key`` rows until the first missing index."""
    rows = []
    i = 0
    while f"{prefix}[{i}].{keys[0]}" in form:
        rows.append({key: str(form.get(f"{prefix}[{i}].{key}") or "") for key in keys})
        i += 1
    return rows


def parse_intent(value: Optional[str]) -> Tuple[str, Optional[str]]:
    """Split ``remove-condition:3`` into ``("remove-condition", "3")``."""
    if not value:
        return "", None
    name, sep, arg = value.partition(":")
    return name, (arg if sep else None)


def _int_or_none(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


@dataclass(frozen=True)
class RuleForm:
    """Editing state of the new-rule page."""

    name: str = ""
    description: str = ""
    policy_type: str = PolicyType.TRANSACTION_LIMIT.value
    editor_mode: str = "builder"
    drl_source: str = DEFAULT_DRL
    parameters: Tuple[RuleParameter, ...] = ()
    schema: FieldSchemaState = field(default_factory=FieldSchemaState)
    builder: BuilderState = field(default_factory=BuilderState)

    @classmethod
    def initial(cls, editor_mode: str = "builder") -> "RuleForm":
        policy_type = PolicyType.TRANSACTION_LIMIT.value
        return cls(
            policy_type=policy_type,
            editor_mode=editor_mode,
            builder=BuilderState(fact_type=default_fact_type(policy_type)),
        )

    @property
    def effective_drl(self) -> str:
        """DRL submitted on create for the active editor."""
        if self.editor_mode == "builder":
            return self.builder.generated_drl
        return self.drl_source


def _parse_parameters(form: Mapping[str, Any]) -> Tuple[RuleParameter, ...]:
    return tuple(
        RuleParameter(
            key=row["key"],
            value=row["value"],
            type=row["type"] or "STRING",
            description=row["description"],
        )
        for row in collect_indexed(form, "parameters", PARAM_FORM_KEYS)
    )


def _parse_fields(form: Mapping[str, Any], prefix: str, category: str) -> Tuple[RuleField, ...]:
    fields = []
    for order, row in enumerate(collect_indexed(form, prefix, FIELD_FORM_KEYS)):
        field_type = row["fieldType"] or "STRING"
        enum_values = parse_enum_values(row["enumValues"]) if field_type == "ENUM" else None
        fields.append(RuleField(
            field_name=row["fieldName"],
            field_type=field_type,
            field_category=category,
            enum_values=enum_values or None,
            field_order=order,
        ))
    return tuple(fields)


def _parse_builder(form: Mapping[str, Any], builder: Optional[RuleBuilder],
                   policy_type: str) -> BuilderState:
    conditions = collect_indexed(form, "conditions", CONDITION_FORM_KEYS)
    actions = collect_indexed(form, "actions", ACTION_FORM_KEYS)
    state = BuilderState(
        fact_type=str(form.get("builderFactType") or default_fact_type(policy_type)),
        conditions=tuple(
            ConditionRow(id=row["id"], field=row["prevField"], operator=row["operator"],
                         value=row["value"], value_type=row["valueType"])
            for row in conditions
        ),
        actions=tuple(
            ActionRow(id=row["id"], field=row["prevField"], value=row["value"],
                      value_type=row["valueType"])
            for row in actions
        ),
        generated_drl=str(form.get("generatedDrl") or ""),
        next_id=_int_or_none(form.get("nextId")) or 1,
    )

    # Policy type changed: start over with that type's fact
    builder_policy_type = form.get("builderPolicyType")
    if builder_policy_type and builder_policy_type != policy_type:
        fact_type = default_fact_type(policy_type)
        if builder is not None:
            return builder.sync_policy_type(state, fact_type)
        return rule_builder.reduce(state, rule_builder.Reset(fact_type))

    fact_type = form.get("factType")
    if fact_type and fact_type != state.fact_type:
        return rule_builder.reduce(state, rule_builder.SetFactType(str(fact_type)))

    # Rows whose field select changed get a fresh operator and value
    for row in conditions:
        if row["field"] == row["prevField"]:
            continue
        if builder is not None:
            state = builder.change_condition_field(state, row["id"], row["field"])
        else:
            state = rule_builder.reduce(state, rule_builder.UpdateCondition(row["id"], "field", row["field"]))

    for row in actions:
        if row["field"] == row["prevField"]:
            continue
        if builder is not None:
            state = builder.change_action_field(state, row["id"], row["field"])
        else:
            state = rule_builder.reduce(state, rule_builder.UpdateAction(row["id"], "field", row["field"]))

    return state


def parse_rule_form(form: Mapping[str, Any], builder: Optional[RuleBuilder] = None) -> RuleForm:
    """Decode a submitted new-rule form."""
    policy_type = str(form.get("policyType") or PolicyType.TRANSACTION_LIMIT.value)
    editor_mode = str(form.get("editorMode") or "builder")
    if editor_mode not in EDITOR_MODES:
        editor_mode = "builder"

    return RuleForm(
        name=str(form.get("name") or ""),
        description=str(form.get("description") or ""),
        policy_type=policy_type,
        editor_mode=editor_mode,
        drl_source=str(form.get("drlSource") if form.get("drlSource") is not None else DEFAULT_DRL),
        parameters=_parse_parameters(form),
        schema=FieldSchemaState(
            input_fields=_parse_fields(form, "inputFields", "INPUT"),
            result_fields=_parse_fields(form, "resultFields", "RESULT"),
        ),
        builder=_parse_builder(form, builder, policy_type),
    )


def apply_intent(rule_form: RuleForm, intent: str, arg: Optional[str] = None) -> RuleForm:
    """Apply one button intent to the form state; unknown intents change nothing."""
    if intent == "add-param":
        return replace(rule_form, parameters=parameters.reduce(rule_form.parameters, parameters.AddParam()))

    if intent == "remove-param":
        index = _int_or_none(arg)
        if index is None:
            return rule_form
        return replace(rule_form, parameters=parameters.reduce(rule_form.parameters, parameters.RemoveParam(index)))

    if intent == "add-input-field":
        return replace(rule_form, schema=field_schema.reduce(rule_form.schema, field_schema.AddInputField()))

    if intent == "add-result-field":
        return replace(rule_form, schema=field_schema.reduce(rule_form.schema, field_schema.AddResultField()))

    if intent == "remove-field":
        category, _, index = (arg or "").partition(":")
        position = _int_or_none(index)
        if category not in ("INPUT", "RESULT") or position is None:
            return rule_form
        return replace(rule_form, schema=field_schema.reduce(
            rule_form.schema, field_schema.RemoveField(category, position)))

    if intent == "add-condition":
        return replace(rule_form, builder=rule_builder.reduce(rule_form.builder, rule_builder.AddCondition()))

    if intent == "remove-condition" and arg:
        return replace(rule_form, builder=rule_builder.reduce(rule_form.builder, rule_builder.RemoveCondition(arg)))

    if intent == "add-action":
        return replace(rule_form, builder=rule_builder.reduce(rule_form.builder, rule_builder.AddAction()))

    if intent == "remove-action" and arg:
        return replace(rule_form, builder=rule_builder.reduce(rule_form.builder, rule_builder.RemoveAction(arg)))

    if intent == "set-mode" and arg in EDITOR_MODES:
        return replace(rule_form, editor_mode=arg)

    return rule_form


def create_payload(rule_form: RuleForm) -> Dict[str, Any]:
    """Request body for the create-rule call."""
    payload: Dict[str, Any] = {
        "name": rule_form.name,
        "description": rule_form.description,
        "policyType": rule_form.policy_type,
        "drlSource": rule_form.effective_drl,
        "parameters": [p.to_api() for p in rule_form.parameters],
    }

    # Fields without a name are dropped
    fields = [f for f in rule_form.schema.all_fields() if f.field_name.strip()]
    if fields:
        payload["fields"] = [f.to_api() for f in fields]
    if rule_form.editor_mode == "builder" and rule_form.builder.fact_type:
        payload["factTypeName"] = rule_form.builder.fact_type
    return payload


def update_payload(name: str, description: Optional[str], drl_source: Optional[str],
                   params: Sequence[RuleParameter]) -> Dict[str, Any]:
    """Request body for the update-rule call used by the detail and DRL pages."""
    return {
        "name": name,
        "description": description or "",
        "drlSource": drl_source or "",
        "parameters": [p.to_api() for p in params],
    }
