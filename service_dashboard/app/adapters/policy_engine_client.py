"""
Policy engine REST client for the Dashboard.
"""

import time
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx

from shared.errors import ExternalServiceError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..domain.models import (
    ApiModel,
    AuditLog,
    BackendErrorResponse,
    DrlValidationResult,
    EvaluationResponse,
    FactMetadata,
    Page,
    PolicySchema,
    Rule,
    RuleDefinition,
    RuleId,
)


INVALID_RESPONSE = "Invalid response from policy engine"

M = TypeVar("M", bound=ApiModel)


class ApiError(ExternalServiceError):
    """Non-success response (or transport failure) from the policy engine."""

    def __init__(self, status: int, message: str,
                 error_response: Optional[BackendErrorResponse] = None):
        self.status = status
        self.error_response = error_response
        details: Dict[str, Any] = {"status": status}
        if error_response is not None:
            details["backend"] = error_response.to_api()
        super().__init__("policy_engine", message, details, code="POLICY_ENGINE_ERROR")
        self.status_code = 404 if status == 404 else 502


class PolicyEngineClient:
    """Client for the policy engine's rule, policy and audit APIs."""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 metrics: Optional[MetricsCollector] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("dashboard.policy_engine_client")

    async def _request(self, operation: str, method: str, path: str,
                       params: Optional[Dict[str, str]] = None,
                       json: Any = None) -> Any:
        """Execute a request and decode the JSON body."""
        url = f"{self.base_url}{path}"
        start_time = time.time()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    params=params or None,
                    json=json,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            self._record(operation, "unavailable", start_time)
            self.logger.error(
                "Policy engine unreachable",
                operation=operation,
                url=url,
                error=str(exc),
            )
            raise ApiError(503, f"Policy engine unavailable: {exc}") from exc

        if response.status_code >= 400:
            self._record(operation, str(response.status_code), start_time)
            error_response = self._parse_error(response)
            message = (
                error_response.message
                if error_response and error_response.message
                else f"Request failed: {response.status_code}"
            )
            self.logger.warning(
                "Policy engine request failed",
                operation=operation,
                url=url,
                status_code=response.status_code,
                message=message,
            )
            raise ApiError(response.status_code, message, error_response)

        self._record(operation, str(response.status_code), start_time)
        self.logger.debug("Policy engine request", operation=operation, url=url,
                          status_code=response.status_code)

        if response.status_code == 204:
            return None
        try:
            return response.json()
        except ValueError as exc:
            self.logger.error("Policy engine returned a non-JSON body", operation=operation, url=url,
                              content_type=response.headers.get("content-type"))
            raise ApiError(502, INVALID_RESPONSE) from exc

    def _decode(self, operation: str, model: Type[M], data: Any) -> M:
        """Validate a response body, mapping schema mismatches to ApiError."""
        try:
            return model.model_validate(data)
        except ValueError as exc:
            self.logger.error("Unexpected policy engine response", operation=operation, error=str(exc))
            raise ApiError(502, INVALID_RESPONSE) from exc

    def _parse_error(self, response: httpx.Response) -> Optional[BackendErrorResponse]:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        try:
            return BackendErrorResponse.model_validate(body)
        except ValueError:
            return None

    def _record(self, operation: str, status: str, start_time: float) -> None:
        if self.metrics is not None:
            self.metrics.record_backend_call(operation, status, time.time() - start_time)

    # ----- rules -----

    async def get_rules(self, policy_type: Optional[str] = None,
                        is_active: Optional[bool] = None,
                        page: Optional[int] = None,
                        size: Optional[int] = None) -> Page[Rule]:
        """List rules, optionally filtered by policy type and status."""
        params: Dict[str, str] = {}
        if policy_type:
            params["policyType"] = policy_type
        if is_active is not None:
            params["isActive"] = "true" if is_active else "false"
        if page is not None:
            params["page"] = str(page)
        if size is not None:
            params["size"] = str(size)
        data = await self._request("get_rules", "GET", "/api/v1/rules", params=params)
        return self._decode("get_rules", Page[Rule], data)

    async def get_rule(self, rule_id: RuleId) -> Rule:
        data = await self._request("get_rule", "GET", f"/api/v1/rules/{rule_id}")
        return self._decode("get_rule", Rule, data)

    async def create_rule(self, payload: Dict[str, Any]) -> Rule:
        data = await self._request("create_rule", "POST", "/api/v1/rules", json=payload)
        return self._decode("create_rule", Rule, data)

    async def update_rule(self, rule_id: RuleId, payload: Dict[str, Any]) -> Rule:
        data = await self._request("update_rule", "PUT", f"/api/v1/rules/{rule_id}", json=payload)
        return self._decode("update_rule", Rule, data)

    async def toggle_rule_status(self, rule_id: RuleId, is_active: bool) -> Rule:
        data = await self._request(
            "toggle_rule_status", "PATCH", f"/api/v1/rules/{rule_id}/status",
            json={"isActive": is_active},
        )
        return self._decode("toggle_rule_status", Rule, data)

    # ----- evaluation -----

    async def test_rule(self, rule_id: RuleId, data: Dict[str, Any]) -> EvaluationResponse:
        """Dry-run a rule; the backend writes no audit record."""
        body = await self._request(
            "test_rule", "POST", f"/api/v1/rules/{rule_id}/test", json={"data": data}
        )
        return self._decode("test_rule", EvaluationResponse, body)

    async def evaluate_rule(self, rule_id: RuleId, data: Dict[str, Any]) -> EvaluationResponse:
        body = await self._request(
            "evaluate_rule", "POST", f"/api/v1/rules/{rule_id}/evaluate", json={"data": data}
        )
        return self._decode("evaluate_rule", EvaluationResponse, body)

    async def evaluate_policy(self, policy_type: str, data: Dict[str, Any]) -> EvaluationResponse:
        body = await self._request(
            "evaluate_policy", "POST", f"/api/v1/policies/{policy_type}/evaluate",
            json={"data": data},
        )
        return self._decode("evaluate_policy", EvaluationResponse, body)

    # ----- audit -----

    async def get_audit_logs(self, policy_type: Optional[str] = None,
                             rule_id: Optional[RuleId] = None,
                             date_from: Optional[str] = None,
                             date_to: Optional[str] = None,
                             page: Optional[int] = None,
                             size: Optional[int] = None) -> Page[AuditLog]:
        """Query the audit trail."""
        params: Dict[str, str] = {}
        if policy_type:
            params["policyType"] = policy_type
        if rule_id:
            params["ruleId"] = str(rule_id)
        if date_from:
            params["dateFrom"] = date_from
        if date_to:
            params["dateTo"] = date_to
        if page is not None:
            params["page"] = str(page)
        if size is not None:
            params["size"] = str(size)
        data = await self._request("get_audit_logs", "GET", "/api/v1/audit", params=params)
        return self._decode("get_audit_logs", Page[AuditLog], data)

    # ----- metadata & schema -----

    async def get_fact_metadata(self) -> FactMetadata:
        data = await self._request("get_fact_metadata", "GET", "/api/v1/rules/metadata")
        return self._decode("get_fact_metadata", FactMetadata, data)

    async def get_policy_schema(self, policy_type: str) -> PolicySchema:
        data = await self._request(
            "get_policy_schema", "GET", f"/api/v1/policies/{policy_type}/schema"
        )
        return self._decode("get_policy_schema", PolicySchema, data)

    async def get_rule_schema(self, rule_id: RuleId) -> PolicySchema:
        data = await self._request("get_rule_schema", "GET", f"/api/v1/rules/{rule_id}/schema")
        return self._decode("get_rule_schema", PolicySchema, data)

    # ----- DRL -----

    async def generate_drl(self, definition: RuleDefinition) -> str:
        """Compile a visual rule definition to DRL source."""
        data = await self._request(
            "generate_drl", "POST", "/api/v1/rules/generate-drl", json=definition.to_api()
        )
        if data is None:
            return ""
        if not isinstance(data, dict):
            self.logger.error("Unexpected policy engine response", operation="generate_drl")
            raise ApiError(502, INVALID_RESPONSE)
        return data.get("drl") or ""

    async def validate_drl(self, drl_source: str) -> DrlValidationResult:
        data = await self._request(
            "validate_drl", "POST", "/api/v1/rules/validate-drl",
            json={"drlSource": drl_source},
        )
        return self._decode("validate_drl", DrlValidationResult, data or {})

    async def check_health(self) -> str:
        """Probe the backend for the service health check."""
        try:
            await self.get_rules(size=1)
        except ApiError as exc:
            self.logger.warning("Policy engine health probe failed", status=exc.status)
            return "error"
        return "ok"


def collect_errors(result: DrlValidationResult) -> List[str]:
    """Normalize validator output for display."""
    if result.valid:
        return []
    return result.errors or ["DRL validation failed"]
