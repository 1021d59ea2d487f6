"""
Domain layer for the Dashboard Service.

Holds the records mirrored from the policy engine API and the pure state
machines behind the editing pages. Nothing here performs I/O except
``RuleBuilder.generate_preview``, which calls through a passed-in client.
"""

from .models import PolicyType, Rule, RuleField, RuleParameter
from .rule_builder import BuilderState, RuleBuilder

__all__ = [
    "PolicyType",
    "Rule",
    "RuleField",
    "RuleParameter",
    "BuilderState",
    "RuleBuilder",
]
