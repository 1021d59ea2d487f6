"""
DRL editor state and client-side sanity checks.
"""

from dataclasses import dataclass, replace
from typing import Optional, Union


DEFAULT_DRL = """package com.islamic.policy.rules;

// Import your fact classes
// import com.islamic.policy.model.TransactionRequest;
// import com.islamic.policy.model.PolicyResult;

rule "New Rule"
    when
        // Define conditions here
    then
        // Define actions here
end"""


@dataclass(frozen=True)
class DrlState:
    source: str = ""
    validation_error: Optional[str] = None


@dataclass(frozen=True)
class SetSource:
    source: str


@dataclass(frozen=True)
class SetValidationError:
    error: Optional[str]


DrlAction = Union[SetSource, SetValidationError]


def reduce(state: DrlState, action: DrlAction) -> DrlState:
    if isinstance(action, SetSource):
        return DrlState(source=action.source, validation_error=None)
    if isinstance(action, SetValidationError):
        return replace(state, validation_error=action.error)
    return state


def basic_validation(source: Optional[str]) -> Optional[str]:
    """Return an error message, or None if the source passes the quick checks."""
    if not source or not source.strip():
        return "DRL source cannot be empty"
    if "rule" not in source:
        return 'DRL source should contain at least one "rule" declaration'
    return None
