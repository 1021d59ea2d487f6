"""
Records mirrored from the policy engine API.

The backend speaks camelCase JSON; models expose snake_case attributes and
serialize back with the backend's aliases.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


RuleId = Union[int, str]
T = TypeVar("T")


class PolicyType(str, Enum):
    """Policy types known to the dashboard."""
    TRANSACTION_LIMIT = "TRANSACTION_LIMIT"
    FINANCING_ELIGIBILITY = "FINANCING_ELIGIBILITY"
    RISK_FLAG = "RISK_FLAG"


POLICY_TYPE_LABELS: Dict[str, str] = {
    PolicyType.TRANSACTION_LIMIT.value: "Transaction Limit",
    PolicyType.FINANCING_ELIGIBILITY.value: "Financing Eligibility",
    PolicyType.RISK_FLAG.value: "Risk Flag",
}

DEFAULT_FACT_TYPES: Dict[str, str] = {
    PolicyType.TRANSACTION_LIMIT.value: "TransactionFact",
    PolicyType.FINANCING_ELIGIBILITY.value: "FinancingRequestFact",
    PolicyType.RISK_FLAG.value: "RiskAssessmentFact",
}

SUPPORTED_FIELD_TYPES = ["STRING", "INTEGER", "BIG_DECIMAL", "BOOLEAN", "ENUM", "LIST_STRING"]
PARAMETER_TYPES = ["STRING", "INTEGER", "DOUBLE", "BOOLEAN"]


def policy_type_label(policy_type: Optional[str]) -> str:
    """Human label for a policy type; unknown types render as-is."""
    if not policy_type:
        return ""
    return POLICY_TYPE_LABELS.get(policy_type, policy_type)


def default_fact_type(policy_type: Optional[str]) -> str:
    return DEFAULT_FACT_TYPES.get(policy_type or "", "")


class ApiModel(BaseModel):
    """Base for backend records."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Unset backend DTO fields arrive as null; those take the field default
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    def to_api(self) -> Dict[str, Any]:
        """Serialize with the backend's camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RuleParameter(ApiModel):
    key: str = ""
    value: str = ""
    type: str = "STRING"
    description: str = ""


class RuleField(ApiModel):
    field_name: str = ""
    field_type: str = "STRING"
    field_category: str = "INPUT"
    enum_values: Optional[List[str]] = None
    field_order: int = 0


class Rule(ApiModel):
    id: RuleId
    name: str = ""
    description: Optional[str] = ""
    policy_type: str = ""
    drl_source: Optional[str] = ""
    fact_type_name: Optional[str] = None
    is_active: bool = False
    version: int = 1
    parameters: List[RuleParameter] = Field(default_factory=list)
    fields: List[RuleField] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def input_fields(self) -> List[RuleField]:
        return [f for f in self.fields if f.field_category == "INPUT"]

    @property
    def result_fields(self) -> List[RuleField]:
        return [f for f in self.fields if f.field_category == "RESULT"]


class EvaluationResponse(ApiModel):
    policy_type: Optional[str] = None
    rule_id: Optional[RuleId] = None
    rule_version: Optional[int] = None
    result: Any = None
    evaluation_ms: Optional[int] = None
    timestamp: Optional[datetime] = None


class AuditLog(ApiModel):
    id: RuleId
    policy_type: Optional[str] = None
    rule_id: Optional[RuleId] = None
    rule_version: Optional[int] = None
    # The backend stores these as JSON text; other deployments return objects
    input_data: Any = None
    output_data: Any = None
    evaluation_ms: Optional[int] = None
    caller_id: Optional[str] = None
    created_at: Optional[datetime] = None


class Page(ApiModel, Generic[T]):
    """Spring-style page envelope; ``number`` is zero-based."""

    content: List[T] = Field(default_factory=list)
    total_elements: int = 0
    total_pages: int = 0
    number: int = 0

    @property
    def has_previous(self) -> bool:
        return self.number > 0

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages - 1

    @classmethod
    def empty(cls) -> "Page[T]":
        return cls(content=[], total_elements=0, total_pages=0, number=0)


class BackendErrorResponse(ApiModel):
    """Error body returned by the policy engine."""

    error: Optional[str] = None
    message: Optional[str] = None
    details: List[str] = Field(default_factory=list)
    timestamp: Optional[str] = None


class FieldDefinition(ApiModel):
    type: str = "STRING"
    enum_values: Optional[List[str]] = None


class FactDefinition(ApiModel):
    package_name: Optional[str] = None
    input_fields: Dict[str, FieldDefinition] = Field(default_factory=dict)
    result_fields: Dict[str, FieldDefinition] = Field(default_factory=dict)


class FactMetadata(ApiModel):
    facts: Dict[str, FactDefinition] = Field(default_factory=dict)
    operators: Dict[str, List[str]] = Field(default_factory=dict)
    policy_types: List[str] = Field(default_factory=list)


class ConditionDefinition(ApiModel):
    field: str
    operator: str
    value: str
    value_type: str = ""


class ActionDefinition(ApiModel):
    field: str
    value: str
    value_type: str = ""


class RuleDefinition(ApiModel):
    """Visual builder output sent to the DRL generator."""

    rule_name: str
    policy_type: str
    fact_type: str
    conditions: List[ConditionDefinition] = Field(default_factory=list)
    actions: List[ActionDefinition] = Field(default_factory=list)


class PolicySchema(ApiModel):
    policy_type: Optional[str] = None
    fact_type_name: Optional[str] = None
    rule_name: Optional[str] = None
    rule_version: Optional[int] = None
    input_fields: List[RuleField] = Field(default_factory=list)
    result_fields: List[RuleField] = Field(default_factory=list)


class DrlValidationResult(ApiModel):
    valid: bool = False
    errors: List[str] = Field(default_factory=list)
