"""
View helpers shared by the page handlers and templates.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlencode

from .models import PolicyType, Rule


@dataclass(frozen=True)
class PolicyTypeStats:
    type: str
    total: int = 0
    active: int = 0


def dashboard_stats(rules: Iterable[Rule]) -> List[PolicyTypeStats]:
    """Total and active rule counts for every known policy type."""
    rules = list(rules)
    stats = []
    for policy_type in PolicyType:
        typed = [r for r in rules if r.policy_type == policy_type.value]
        stats.append(PolicyTypeStats(
            type=policy_type.value,
            total=len(typed),
            active=sum(1 for r in typed if r.is_active),
        ))
    return stats


def audit_policy_types(rules: Iterable[Rule]) -> List[str]:
    """Distinct policy types present among the rules."""
    return sorted({r.policy_type for r in rules if r.policy_type})


FILTER_KEYS = ("policyType", "ruleId", "dateFrom", "dateTo")


@dataclass(frozen=True)
class AuditFilters:
    """Audit page filters as carried in the query string."""

    policy_type: str = ""
    rule_id: str = ""
    date_from: str = ""
    date_to: str = ""
    page: int = 0

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "AuditFilters":
        try:
            page = max(int(params.get("page") or 0), 0)
        except ValueError:
            page = 0
        return cls(
            policy_type=params.get("policyType") or "",
            rule_id=params.get("ruleId") or "",
            date_from=params.get("dateFrom") or "",
            date_to=params.get("dateTo") or "",
            page=page,
        )

    @property
    def has_filters(self) -> bool:
        return bool(self.policy_type or self.rule_id or self.date_from or self.date_to)

    def as_params(self) -> Dict[str, str]:
        values = {
            "policyType": self.policy_type,
            "ruleId": self.rule_id,
            "dateFrom": self.date_from,
            "dateTo": self.date_to,
        }
        return {k: v for k, v in values.items() if v}

    def query(self, **overrides: Any) -> str:
        """Query string for a link; changing any filter drops the page."""
        params = self.as_params()
        page: Optional[int] = self.page or None
        for key, value in overrides.items():
            if key == "page":
                page = value
                continue
            if key not in FILTER_KEYS:
                raise KeyError(key)
            page = None
            if value:
                params[key] = str(value)
            else:
                params.pop(key, None)
        if page and page > 0:
            params["page"] = str(page)
        encoded = urlencode(params)
        return f"?{encoded}" if encoded else ""


def rules_link(policy_type: Optional[str], page: int) -> str:
    """Rules list link keeping the policy type filter."""
    params: Dict[str, str] = {}
    if policy_type:
        params["policyType"] = policy_type
    if page > 0:
        params["page"] = str(page)
    encoded = urlencode(params)
    return f"/rules?{encoded}" if encoded else "/rules"


def pretty_json(value: Any) -> str:
    """Indented JSON for display; JSON text is decoded first."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return value
    return json.dumps(value, indent=2, default=str)


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class Toast:
    message: str
    kind: str = "success"  # success | error | info
