"""
Policy Engine Dashboard service.
"""

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.base_service import BaseService
from shared.errors import NotFoundError, ValidationError
from shared.logging import set_rule_id
from service_dashboard.app.adapters.policy_engine_client import (
    ApiError,
    PolicyEngineClient,
    collect_errors,
)
from service_dashboard.app.domain import drl as drl_editor
from service_dashboard.app.domain.field_types import (
    curl_sample,
    input_widget,
    operators_for,
    sample_input,
)
from service_dashboard.app.domain.forms import (
    RuleForm,
    apply_intent,
    create_payload,
    parse_intent,
    parse_rule_form,
    update_payload,
)
from service_dashboard.app.domain.models import (
    PARAMETER_TYPES,
    SUPPORTED_FIELD_TYPES,
    AuditLog,
    FactMetadata,
    Page,
    PolicyType,
    Rule,
    RuleDefinition,
    policy_type_label,
)
from service_dashboard.app.domain.rule_builder import BuilderState, RuleBuilder
from service_dashboard.app.domain.views import (
    AuditFilters,
    Toast,
    audit_policy_types,
    dashboard_stats,
    format_timestamp,
    pretty_json,
    rules_link,
)


TEMPLATES_DIR = Path(__file__).parent / "templates"

DASHBOARD_ERROR = "Unable to connect to backend API. Is the server running?"
RULES_ERROR = "Unable to load rules. Is the backend running?"
AUDIT_ERROR = "Unable to load audit logs. Is the backend running?"


class DashboardService(BaseService):
    """Policy Engine Dashboard service implementation."""

    def __init__(self, **config_overrides):
        super().__init__("dashboard", 3000, **config_overrides)
        self.client = PolicyEngineClient(
            self.config.api_url,
            timeout=self.config.request_timeout,
            metrics=self.metrics,
        )
        self.templates = Jinja2Templates(directory=self.config.templates_dir or str(TEMPLATES_DIR))
        self._setup_template_helpers()

        self._setup_page_routes()
        self._setup_rule_routes()
        self._setup_api_routes()
        self._setup_not_found_handler()

        # Expose service instance via app state for introspection/testing
        self.app.state.dashboard_service = self

    def _setup_template_helpers(self):
        env = self.templates.env
        env.filters["policy_label"] = policy_type_label
        env.filters["pretty_json"] = pretty_json
        env.filters["timestamp"] = format_timestamp
        env.globals["POLICY_TYPES"] = [p.value for p in PolicyType]
        env.globals["FIELD_TYPES"] = SUPPORTED_FIELD_TYPES
        env.globals["PARAMETER_TYPES"] = PARAMETER_TYPES
        env.globals["input_widget"] = input_widget
        env.globals["operators_for"] = operators_for
        env.globals["preview_debounce_ms"] = self.config.preview_debounce_ms

    def _render(self, request: Request, template: str, context: Dict[str, Any],
                status_code: int = 200) -> HTMLResponse:
        context.setdefault("toasts", [])
        context.setdefault("active_nav", "")
        return self.templates.TemplateResponse(request, template, context, status_code=status_code)

    def _render_error(self, request: Request, message: str, status_code: int,
                      back_link: bool = True) -> HTMLResponse:
        return self._render(
            request,
            "error.html",
            {"message": message, "status_code": status_code, "back_link": back_link},
            status_code=status_code,
        )

    def _error_response(self, request: Request, status_code: int, payload: Dict[str, Any]) -> Response:
        """JSON for API routes, an error panel for pages."""
        if request.url.path.startswith("/api/"):
            return JSONResponse(status_code=status_code, content=payload)
        return self._render_error(request, payload.get("message") or "Internal server error", status_code)

    def _setup_not_found_handler(self):
        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 404:
                payload = NotFoundError("Page not found").to_response().model_dump()
            else:
                payload = {"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}}
            return self._error_response(request, exc.status_code, payload)

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"policy_engine": await self.client.check_health()}

    # ----- pages -----

    def _setup_page_routes(self):
        """Set up dashboard and audit pages."""

        @self.app.get("/", response_class=HTMLResponse)
        async def dashboard(request: Request):
            return await self._dashboard_page(request)

        @self.app.get("/rules", response_class=HTMLResponse)
        async def rules_list(request: Request):
            return await self._rules_page(request)

        @self.app.get("/audit", response_class=HTMLResponse)
        async def audit(request: Request):
            return await self._audit_page(request)

    async def _dashboard_page(self, request: Request) -> HTMLResponse:
        error = None
        try:
            rules_page, audit_page = await asyncio.gather(
                self.client.get_rules(size=self.config.dashboard_rule_sample),
                self.client.get_audit_logs(size=self.config.recent_audit_size),
            )
            stats = dashboard_stats(rules_page.content)
            recent_audit = audit_page.content
        except ApiError as e:
            self.logger.error("Failed to load dashboard", error=str(e))
            stats = dashboard_stats([])
            recent_audit = []
            error = DASHBOARD_ERROR

        return self._render(request, "dashboard.html", {
            "active_nav": "dashboard",
            "stats": stats,
            "recent_audit": recent_audit,
            "error": error,
        })

    async def _rules_page(self, request: Request) -> HTMLResponse:
        policy_type = request.query_params.get("policyType") or ""
        page_number = _page_param(request)
        error = None
        try:
            rules = await self.client.get_rules(
                policy_type=policy_type or None,
                page=page_number,
                size=self.config.page_size,
            )
        except ApiError as e:
            self.logger.error("Failed to load rules", policy_type=policy_type, error=str(e))
            rules = Page[Rule].empty()
            error = RULES_ERROR

        return self._render(request, "rules/list.html", {
            "active_nav": "rules",
            "rules": rules,
            "policy_type": policy_type,
            "prev_href": rules_link(policy_type, rules.number - 1),
            "next_href": rules_link(policy_type, rules.number + 1),
            "error": error,
        })

    async def _audit_page(self, request: Request) -> HTMLResponse:
        filters = AuditFilters.from_query(request.query_params)
        error = None
        try:
            logs, rules = await asyncio.gather(
                self.client.get_audit_logs(
                    policy_type=filters.policy_type or None,
                    rule_id=filters.rule_id or None,
                    date_from=filters.date_from or None,
                    date_to=filters.date_to or None,
                    page=filters.page,
                    size=self.config.page_size,
                ),
                self.client.get_rules(size=self.config.dashboard_rule_sample),
            )
            policy_types = audit_policy_types(rules.content)
        except ApiError as e:
            self.logger.error("Failed to load audit logs", error=str(e))
            logs = Page[AuditLog].empty()
            policy_types = []
            error = AUDIT_ERROR

        return self._render(request, "audit.html", {
            "active_nav": "audit",
            "logs": logs,
            "filters": filters,
            "policy_types": policy_types,
            "error": error,
        })

    # ----- rules -----

    def _setup_rule_routes(self):
        """Set up rule create, detail, DRL and test pages."""

        @self.app.get("/rules/new", response_class=HTMLResponse)
        async def new_rule(request: Request):
            builder, metadata_error = await self._load_builder()
            rule_form = RuleForm.initial("builder" if builder else "drl")
            return self._render_new_rule(request, rule_form, builder, metadata_error)

        @self.app.post("/rules/new", response_class=HTMLResponse)
        async def submit_new_rule(request: Request):
            return await self._submit_new_rule(request)

        @self.app.get("/rules/{rule_id}", response_class=HTMLResponse)
        async def rule_detail(request: Request, rule_id: str):
            return await self._rule_detail_page(request, rule_id)

        @self.app.post("/rules/{rule_id}", response_class=HTMLResponse)
        async def rule_detail_action(request: Request, rule_id: str):
            form = await request.form()
            toast = await self._rule_detail_action(rule_id, form)
            return await self._rule_detail_page(request, rule_id, toast)

        @self.app.get("/rules/{rule_id}/drl", response_class=HTMLResponse)
        async def drl_editor_page(request: Request, rule_id: str):
            rule, error_page = await self._load_rule(request, rule_id)
            if error_page is not None:
                return error_page
            return self._render_drl(request, rule, drl_editor.DrlState(source=rule.drl_source or ""))

        @self.app.post("/rules/{rule_id}/drl", response_class=HTMLResponse)
        async def drl_editor_action(request: Request, rule_id: str):
            return await self._drl_action(request, rule_id)

        @self.app.get("/rules/{rule_id}/test", response_class=HTMLResponse)
        async def test_rule_page(request: Request, rule_id: str):
            rule, error_page = await self._load_rule(request, rule_id)
            if error_page is not None:
                return error_page
            return self._render_test(request, rule, sample_input(rule.fields))

        @self.app.post("/rules/{rule_id}/test", response_class=HTMLResponse)
        async def run_rule_test(request: Request, rule_id: str):
            return await self._run_test(request, rule_id)

    async def _load_builder(self) -> Tuple[Optional[RuleBuilder], Optional[str]]:
        """Fetch fact metadata for the visual builder."""
        try:
            metadata = await self.client.get_fact_metadata()
        except ApiError as e:
            self.logger.warning("Fact metadata unavailable", error=str(e))
            return None, e.message
        return RuleBuilder(metadata), None

    async def _preview(self, builder: RuleBuilder, rule_form: RuleForm) -> BuilderState:
        state = await builder.generate_preview(
            rule_form.builder, self.client, rule_form.name, rule_form.policy_type)
        if state.drl_error:
            self.metrics.record_builder_preview("error")
        else:
            self.metrics.record_builder_preview("generated" if state.generated_drl else "empty")
        return state

    async def _load_rule(self, request: Request, rule_id: str) -> Tuple[Optional[Rule], Optional[HTMLResponse]]:
        """Fetch a rule, or the error page to show instead."""
        set_rule_id(rule_id)
        try:
            return await self.client.get_rule(rule_id), None
        except ApiError as e:
            self.logger.error("Failed to load rule", rule_id=rule_id, status=e.status, error=str(e))
            if e.status == 404:
                return None, self._render_error(request, "Rule not found", 404)
            return None, self._render_error(request, e.message or "Failed to load rule", e.status_code)

    def _render_new_rule(self, request: Request, rule_form: RuleForm,
                         builder: Optional[RuleBuilder], metadata_error: Optional[str] = None,
                         toasts: Optional[List[Toast]] = None) -> HTMLResponse:
        return self._render(request, "rules/new.html", {
            "active_nav": "rules",
            "form": rule_form,
            "builder": builder,
            "metadata": builder.metadata if builder else FactMetadata(),
            "metadata_error": metadata_error,
            "toasts": toasts or [],
        })

    async def _submit_new_rule(self, request: Request) -> HTMLResponse:
        form = await request.form()
        builder, metadata_error = await self._load_builder()
        rule_form = parse_rule_form(form, builder)
        intent, arg = parse_intent(form.get("intent"))

        if intent != "create":
            rule_form = apply_intent(rule_form, intent, arg)
            if builder is not None and rule_form.editor_mode == "builder":
                rule_form = replace(rule_form, builder=await self._preview(builder, rule_form))
            return self._render_new_rule(request, rule_form, builder, metadata_error)

        if builder is not None and rule_form.editor_mode == "builder":
            rule_form = replace(rule_form, builder=await self._preview(builder, rule_form))

        try:
            rule = await self.client.create_rule(create_payload(rule_form))
        except ApiError as e:
            self.logger.error("Failed to create rule", name=rule_form.name, error=str(e))
            toast = Toast(e.message or "Failed to create rule", "error")
            return self._render_new_rule(request, rule_form, builder, metadata_error, [toast])

        self.logger.info("Rule created", rule_id=str(rule.id), policy_type=rule.policy_type)
        self.metrics.record_business_event("rule_created")
        return RedirectResponse(f"/rules/{rule.id}", status_code=303)

    async def _rule_detail_page(self, request: Request, rule_id: str,
                                toast: Optional[Toast] = None) -> HTMLResponse:
        rule, error_page = await self._load_rule(request, rule_id)
        if error_page is not None:
            return error_page
        return self._render(request, "rules/detail.html", {
            "active_nav": "rules",
            "rule": rule,
            "curl_sample": curl_sample(rule.policy_type, rule.fields),
            "toasts": [toast] if toast else [],
        })

    async def _rule_detail_action(self, rule_id: str, form) -> Toast:
        intent, _ = parse_intent(form.get("intent"))
        try:
            if intent == "toggle-status":
                is_active = form.get("isActive") == "true"
                await self.client.toggle_rule_status(rule_id, is_active)
                self.metrics.record_business_event("rule_activated" if is_active else "rule_deactivated")
                return Toast(f"Rule {'activated' if is_active else 'deactivated'}")

            if intent == "update-info":
                await self.client.update_rule(rule_id, {
                    "name": form.get("name") or "",
                    "description": form.get("description") or "",
                })
                return Toast("Rule updated successfully")
        except ApiError as e:
            self.logger.error("Rule action failed", rule_id=rule_id, intent=intent, error=str(e))
            return Toast(e.message, "error")

        return Toast("Unknown action", "error")

    def _render_drl(self, request: Request, rule: Rule, state: drl_editor.DrlState,
                    toasts: Optional[List[Toast]] = None) -> HTMLResponse:
        return self._render(request, "rules/drl.html", {
            "active_nav": "rules",
            "rule": rule,
            "state": state,
            "toasts": toasts or [],
        })

    async def _drl_action(self, request: Request, rule_id: str) -> HTMLResponse:
        rule, error_page = await self._load_rule(request, rule_id)
        if error_page is not None:
            return error_page

        form = await request.form()
        intent, _ = parse_intent(form.get("intent"))
        state = drl_editor.reduce(drl_editor.DrlState(), drl_editor.SetSource(str(form.get("drlSource") or "")))

        if intent == "validate":
            error = drl_editor.basic_validation(state.source)
            if error is None:
                try:
                    errors = collect_errors(await self.client.validate_drl(state.source))
                    self.metrics.record_drl_validation("invalid" if errors else "valid")
                except ApiError as e:
                    errors = [e.message]
                    self.metrics.record_drl_validation("error")
                error = "\n".join(errors) or None
            else:
                self.metrics.record_drl_validation("invalid")
            state = drl_editor.reduce(state, drl_editor.SetValidationError(error))
            toasts = [] if error else [Toast("DRL syntax looks valid")]
            return self._render_drl(request, rule, state, toasts)

        if intent == "save":
            try:
                rule = await self.client.update_rule(
                    rule_id,
                    update_payload(rule.name, rule.description, state.source, rule.parameters),
                )
            except ApiError as e:
                self.logger.error("Failed to save DRL", rule_id=rule_id, error=str(e))
                return self._render_drl(request, rule, state, [Toast(e.message or "Failed to save DRL", "error")])
            self.metrics.record_business_event("drl_saved")
            return self._render_drl(request, rule, state, [Toast("DRL source saved successfully")])

        return self._render_drl(request, rule, state, [Toast("Unknown action", "error")])

    def _render_test(self, request: Request, rule: Rule, test_input: str,
                     result=None, error: Optional[str] = None) -> HTMLResponse:
        return self._render(request, "rules/test.html", {
            "active_nav": "rules",
            "rule": rule,
            "test_input": test_input,
            "result": result,
            "error": error,
        })

    async def _run_test(self, request: Request, rule_id: str) -> HTMLResponse:
        rule, error_page = await self._load_rule(request, rule_id)
        if error_page is not None:
            return error_page

        form = await request.form()
        test_input = str(form.get("input") or "")
        try:
            data = json.loads(test_input)
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return self._render_test(request, rule, test_input, error="Test input must be valid JSON")

        try:
            result = await self.client.test_rule(rule_id, data)
        except ApiError as e:
            self.logger.error("Rule test failed", rule_id=rule_id, error=str(e))
            return self._render_test(request, rule, test_input, error=e.message)
        return self._render_test(request, rule, test_input, result=result)

    # ----- JSON endpoints -----

    def _setup_api_routes(self):
        """Set up JSON endpoints used by the browser."""

        @self.app.post("/api/generate-drl")
        async def generate_drl(request: Request):
            try:
                definition = RuleDefinition.model_validate(await request.json())
            except ValueError as e:
                raise ValidationError("Invalid rule definition", {"error": str(e)}) from e
            try:
                drl = await self.client.generate_drl(definition)
            except ApiError as e:
                return {"error": True, "message": e.message or "Failed to generate DRL"}
            return {"drl": drl}

        @self.app.post("/api/validate-drl")
        async def validate_drl(request: Request):
            try:
                body = await request.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            source = str(body.get("drlSource") or "")
            try:
                result = await self.client.validate_drl(source)
            except ApiError as e:
                return {"valid": False, "errors": [e.message]}
            return {"valid": result.valid, "errors": result.errors}

        @self.app.post("/api/rule-builder/preview")
        async def rule_builder_preview(request: Request):
            form = await request.form()
            builder, metadata_error = await self._load_builder()
            if builder is None:
                return {"drl": "", "error": metadata_error}
            rule_form = parse_rule_form(form, builder)
            state = await self._preview(builder, rule_form)
            return {"drl": state.generated_drl, "error": state.drl_error}


def _page_param(request: Request) -> int:
    try:
        return max(int(request.query_params.get("page") or 0), 0)
    except ValueError:
        return 0


def create_app(**config_overrides):
    """Create FastAPI application."""
    service = DashboardService(**config_overrides)
    return service.app


if __name__ == "__main__":
    service = DashboardService()
    service.run()
