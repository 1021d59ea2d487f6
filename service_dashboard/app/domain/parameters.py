"""
Rule parameter list editor.
"""

from dataclasses import dataclass
from typing import Tuple, Union

from .models import RuleParameter


@dataclass(frozen=True)
class AddParam:
    pass


@dataclass(frozen=True)
class RemoveParam:
    index: int


@dataclass(frozen=True)
class UpdateParam:
    index: int
    key: str
    value: str


@dataclass(frozen=True)
class SetParams:
    parameters: Tuple[RuleParameter, ...]


ParameterAction = Union[AddParam, RemoveParam, UpdateParam, SetParams]

PARAM_KEYS = ("key", "value", "type", "description")

Parameters = Tuple[RuleParameter, ...]


def reduce(parameters: Parameters, action: ParameterAction) -> Parameters:
    if isinstance(action, AddParam):
        return parameters + (RuleParameter(key="", value="", type="STRING", description=""),)

    if isinstance(action, RemoveParam):
        return tuple(p for i, p in enumerate(parameters) if i != action.index)

    if isinstance(action, UpdateParam):
        if action.key not in PARAM_KEYS:
            raise ValueError(f"Unknown parameter key: {action.key}")
        return tuple(
            p.model_copy(update={action.key: action.value}) if i == action.index else p
            for i, p in enumerate(parameters)
        )

    if isinstance(action, SetParams):
        return tuple(action.parameters)

    return parameters
