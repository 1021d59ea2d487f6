"""
Field type lookup table.

Maps a field's declared type to the operators the builder offers, the input
widget rendered for its value, and the placeholder values used in test input
and sample requests.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .models import FactMetadata, FieldDefinition, RuleField


@dataclass(frozen=True)
class InputWidget:
    """How a value input is rendered."""
    kind: str  # "select" or "input"
    input_type: str = "text"
    options: List[str] = field(default_factory=list)
    step: Optional[str] = None
    placeholder: str = ""
    disabled: bool = False


DISABLED_WIDGET = InputWidget(kind="input", placeholder="Select a field first", disabled=True)


def operators_for(metadata: FactMetadata, field_type: Optional[str]) -> List[str]:
    if not field_type:
        return []
    return list(metadata.operators.get(field_type, []))


def input_widget(field_def: Optional[FieldDefinition]) -> InputWidget:
    if field_def is None:
        return DISABLED_WIDGET

    if field_def.type == "ENUM":
        return InputWidget(kind="select", options=list(field_def.enum_values or []),
                           placeholder="Select value...")
    if field_def.type == "BOOLEAN":
        return InputWidget(kind="select", options=["true", "false"],
                           placeholder="Select value...")
    if field_def.type in ("BIG_DECIMAL", "INTEGER"):
        return InputWidget(
            kind="input",
            input_type="number",
            step="any" if field_def.type == "BIG_DECIMAL" else "1",
            placeholder="Enter number",
        )
    # STRING, LIST_STRING and anything the backend adds later
    return InputWidget(kind="input", placeholder="Enter value")


def sample_value(rule_field: RuleField) -> Any:
    field_type = rule_field.field_type
    if field_type == "STRING":
        return "example"
    if field_type == "INTEGER":
        return 0
    if field_type == "BIG_DECIMAL":
        return 0.0
    if field_type == "BOOLEAN":
        return False
    if field_type == "ENUM":
        return rule_field.enum_values[0] if rule_field.enum_values else "VALUE"
    if field_type == "LIST_STRING":
        return []
    return None


def sample_input(fields: Iterable[RuleField]) -> str:
    """Pretty JSON test input covering every INPUT field."""
    inputs = [f for f in fields if f.field_category == "INPUT"]
    if not inputs:
        return "{}"
    sample: Dict[str, Any] = {f.field_name: sample_value(f) for f in inputs}
    return json.dumps(sample, indent=2)


def curl_sample_value(field_type: str) -> Any:
    if field_type == "INTEGER":
        return 0
    if field_type == "BIG_DECIMAL":
        return 0.0
    if field_type == "BOOLEAN":
        return False
    return "value"


def curl_sample(policy_type: str, fields: Iterable[RuleField]) -> str:
    """Shell snippet showing schema discovery and evaluation for a policy type."""
    body = {
        "data": {
            f.field_name: curl_sample_value(f.field_type)
            for f in fields
            if f.field_category == "INPUT"
        }
    }
    return (
        "# 1. Discover schema\n"
        f"curl -s /api/v1/policies/{policy_type}/schema | jq\n"
        "\n"
        "# 2. Evaluate\n"
        f"curl -X POST /api/v1/policies/{policy_type}/evaluate \\\n"
        '  -H "Content-Type: application/json" \\\n'
        f"  -d '{json.dumps(body, indent=2)}'"
    )
