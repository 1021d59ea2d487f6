"""
Visual rule builder state.

The builder holds condition ("when") and action ("then") rows for one fact
type. Rows become a ``RuleDefinition`` that the policy engine compiles to DRL.
State is immutable; every change goes through ``reduce``.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple, Union

from shared.errors import ExternalServiceError
from shared.logging import get_logger

from .field_types import operators_for
from .models import (
    ActionDefinition,
    ConditionDefinition,
    FactMetadata,
    FieldDefinition,
    RuleDefinition,
)


logger = get_logger("dashboard.rule_builder")


@dataclass(frozen=True)
class ConditionRow:
    id: str
    field: str = ""
    operator: str = ""
    value: str = ""
    value_type: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.field and self.operator and self.value)


@dataclass(frozen=True)
class ActionRow:
    id: str
    field: str = ""
    value: str = ""
    value_type: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.field and self.value)


@dataclass(frozen=True)
class BuilderState:
    fact_type: str = ""
    conditions: Tuple[ConditionRow, ...] = ()
    actions: Tuple[ActionRow, ...] = ()
    generated_drl: str = ""
    drl_error: Optional[str] = None
    next_id: int = 1


# Actions

@dataclass(frozen=True)
class SetFactType:
    fact_type: str


@dataclass(frozen=True)
class AddCondition:
    pass


@dataclass(frozen=True)
class RemoveCondition:
    id: str


@dataclass(frozen=True)
class UpdateCondition:
    id: str
    key: str
    value: str


@dataclass(frozen=True)
class AddAction:
    pass


@dataclass(frozen=True)
class RemoveAction:
    id: str


@dataclass(frozen=True)
class UpdateAction:
    id: str
    key: str
    value: str


@dataclass(frozen=True)
class SetDrl:
    drl: str


@dataclass(frozen=True)
class SetDrlError:
    error: Optional[str]


@dataclass(frozen=True)
class Reset:
    fact_type: str


BuilderAction = Union[
    SetFactType, AddCondition, RemoveCondition, UpdateCondition, AddAction,
    RemoveAction, UpdateAction, SetDrl, SetDrlError, Reset,
]

CONDITION_KEYS = ("field", "operator", "value", "value_type")
ACTION_KEYS = ("field", "value", "value_type")


def reduce(state: BuilderState, action: BuilderAction) -> BuilderState:
    """Apply one action to the builder state."""
    if isinstance(action, SetFactType):
        return replace(state, fact_type=action.fact_type, conditions=(), actions=(),
                       generated_drl="", drl_error=None)

    if isinstance(action, AddCondition):
        row = ConditionRow(id=str(state.next_id))
        return replace(state, conditions=state.conditions + (row,), next_id=state.next_id + 1)

    if isinstance(action, RemoveCondition):
        return replace(state, conditions=tuple(c for c in state.conditions if c.id != action.id))

    if isinstance(action, UpdateCondition):
        if action.key not in CONDITION_KEYS:
            raise ValueError(f"Unknown condition key: {action.key}")
        return replace(state, conditions=tuple(
            replace(c, **{action.key: action.value}) if c.id == action.id else c
            for c in state.conditions
        ))

    if isinstance(action, AddAction):
        row = ActionRow(id=str(state.next_id))
        return replace(state, actions=state.actions + (row,), next_id=state.next_id + 1)

    if isinstance(action, RemoveAction):
        return replace(state, actions=tuple(a for a in state.actions if a.id != action.id))

    if isinstance(action, UpdateAction):
        if action.key not in ACTION_KEYS:
            raise ValueError(f"Unknown action key: {action.key}")
        return replace(state, actions=tuple(
            replace(a, **{action.key: action.value}) if a.id == action.id else a
            for a in state.actions
        ))

    if isinstance(action, SetDrl):
        return replace(state, generated_drl=action.drl)

    if isinstance(action, SetDrlError):
        return replace(state, drl_error=action.error)

    if isinstance(action, Reset):
        return BuilderState(fact_type=action.fact_type, next_id=state.next_id)

    return state


class RuleBuilder:
    """Field-aware operations over ``BuilderState`` for one metadata snapshot."""

    def __init__(self, metadata: FactMetadata):
        self.metadata = metadata

    def fact_types(self):
        return list(self.metadata.facts.keys())

    def input_fields(self, state: BuilderState) -> Dict[str, FieldDefinition]:
        fact = self.metadata.facts.get(state.fact_type)
        return dict(fact.input_fields) if fact else {}

    def result_fields(self, state: BuilderState) -> Dict[str, FieldDefinition]:
        fact = self.metadata.facts.get(state.fact_type)
        return dict(fact.result_fields) if fact else {}

    def operators_for_field(self, state: BuilderState, field_name: str):
        field_def = self.input_fields(state).get(field_name)
        if field_def is None:
            return []
        return operators_for(self.metadata, field_def.type)

    def change_condition_field(self, state: BuilderState, row_id: str, field_name: str) -> BuilderState:
        """Select a condition field; resets operator and value to suit its type."""
        field_def = self.input_fields(state).get(field_name)
        value_type = field_def.type if field_def else ""
        operators = operators_for(self.metadata, value_type)

        state = reduce(state, UpdateCondition(row_id, "field", field_name))
        state = reduce(state, UpdateCondition(row_id, "value_type", value_type))
        state = reduce(state, UpdateCondition(row_id, "operator", operators[0] if operators else ""))
        return reduce(state, UpdateCondition(row_id, "value", ""))

    def change_action_field(self, state: BuilderState, row_id: str, field_name: str) -> BuilderState:
        field_def = self.result_fields(state).get(field_name)
        value_type = field_def.type if field_def else ""

        state = reduce(state, UpdateAction(row_id, "field", field_name))
        state = reduce(state, UpdateAction(row_id, "value_type", value_type))
        return reduce(state, UpdateAction(row_id, "value", ""))

    def sync_policy_type(self, state: BuilderState, fact_type: str) -> BuilderState:
        """Reset the builder when the policy type selects another fact."""
        if fact_type and fact_type != state.fact_type:
            return reduce(state, Reset(fact_type))
        return state

    def definition(self, state: BuilderState, rule_name: str, policy_type: str) -> Optional[RuleDefinition]:
        """Build the generator request from complete rows, or None if there are none."""
        conditions = [c for c in state.conditions if c.is_complete]
        actions = [a for a in state.actions if a.is_complete]
        if not conditions and not actions:
            return None

        return RuleDefinition(
            rule_name=rule_name or "New Rule",
            policy_type=policy_type,
            fact_type=state.fact_type,
            conditions=[
                ConditionDefinition(field=c.field, operator=c.operator,
                                    value=c.value, value_type=c.value_type)
                for c in conditions
            ],
            actions=[
                ActionDefinition(field=a.field, value=a.value, value_type=a.value_type)
                for a in actions
            ],
        )

    async def generate_preview(self, state: BuilderState, client, rule_name: str,
                               policy_type: str) -> BuilderState:
        """Ask the policy engine to compile the current rows."""
        definition = self.definition(state, rule_name, policy_type)
        if definition is None:
            return reduce(reduce(state, SetDrlError(None)), SetDrl(""))

        state = reduce(state, SetDrlError(None))
        try:
            drl = await client.generate_drl(definition)
        except ExternalServiceError as exc:
            logger.warning("DRL preview generation failed", fact_type=state.fact_type, error=str(exc))
            return reduce(state, SetDrlError(exc.message or "Failed to generate DRL"))
        return reduce(state, SetDrl(drl))
