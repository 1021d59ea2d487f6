"""
Field schema editor state: the INPUT and RESULT fields declared on a rule.
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple, Union

from .models import RuleField


@dataclass(frozen=True)
class FieldSchemaState:
    input_fields: Tuple[RuleField, ...] = ()
    result_fields: Tuple[RuleField, ...] = ()

    def fields(self, category: str) -> Tuple[RuleField, ...]:
        return self.input_fields if category == "INPUT" else self.result_fields

    def all_fields(self) -> List[RuleField]:
        return list(self.input_fields) + list(self.result_fields)


@dataclass(frozen=True)
class AddInputField:
    pass


@dataclass(frozen=True)
class AddResultField:
    pass


@dataclass(frozen=True)
class RemoveField:
    category: str
    index: int


@dataclass(frozen=True)
class UpdateField:
    category: str
    index: int
    key: str
    value: Union[str, int, List[str], None]


@dataclass(frozen=True)
class SetFields:
    input_fields: Tuple[RuleField, ...]
    result_fields: Tuple[RuleField, ...]


FieldSchemaAction = Union[AddInputField, AddResultField, RemoveField, UpdateField, SetFields]

FIELD_KEYS = ("field_name", "field_type", "field_category", "enum_values", "field_order")


def make_field(category: str, order: int) -> RuleField:
    return RuleField(field_name="", field_type="STRING", field_category=category, field_order=order)


def _with_category(state: FieldSchemaState, category: str,
                   fields: Tuple[RuleField, ...]) -> FieldSchemaState:
    if category == "INPUT":
        return replace(state, input_fields=fields)
    return replace(state, result_fields=fields)


def reduce(state: FieldSchemaState, action: FieldSchemaAction) -> FieldSchemaState:
    if isinstance(action, AddInputField):
        field = make_field("INPUT", len(state.input_fields))
        return replace(state, input_fields=state.input_fields + (field,))

    if isinstance(action, AddResultField):
        field = make_field("RESULT", len(state.result_fields))
        return replace(state, result_fields=state.result_fields + (field,))

    if isinstance(action, RemoveField):
        remaining = [f for i, f in enumerate(state.fields(action.category)) if i != action.index]
        renumbered = tuple(
            f.model_copy(update={"field_order": i}) for i, f in enumerate(remaining)
        )
        return _with_category(state, action.category, renumbered)

    if isinstance(action, UpdateField):
        if action.key not in FIELD_KEYS:
            raise ValueError(f"Unknown field key: {action.key}")
        fields = list(state.fields(action.category))
        if not 0 <= action.index < len(fields):
            return state
        updated = fields[action.index].model_copy(update={action.key: action.value})
        # Enum values only apply to ENUM fields
        if action.key == "field_type" and action.value != "ENUM" and updated.enum_values:
            updated = updated.model_copy(update={"enum_values": None})
        fields[action.index] = updated
        return _with_category(state, action.category, tuple(fields))

    if isinstance(action, SetFields):
        return FieldSchemaState(
            input_fields=tuple(action.input_fields),
            result_fields=tuple(action.result_fields),
        )

    return state


def parse_enum_values(text: Optional[str]) -> List[str]:
    """Split a comma separated list, dropping blanks."""
    if not text:
        return []
    return [value.strip() for value in text.split(",") if value.strip()]
