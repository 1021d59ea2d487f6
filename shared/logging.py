"""
Structured logging for the Policy Engine Dashboard.

Every log line is a JSON object (or a colored console line when running
locally) carrying the service name, the request id and, inside rule pages,
the rule being edited.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
route_var: ContextVar[Optional[str]] = ContextVar('route', default=None)
rule_id_var: ContextVar[Optional[str]] = ContextVar('rule_id', default=None)

# DRL sources and evaluation payloads can be large
MAX_FIELD_LENGTH = 2000

_service_name: Optional[str] = None


def configure_logging(service_name: str, log_level: str = "info", log_format: str = "json") -> None:
    """Configure structlog and the stdlib root logger for a service."""
    global _service_name
    _service_name = service_name

    if log_format == "console":
        renderer: Any = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            truncate_long_values,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag events with the owning service."""
    # Logger names look like "dashboard.policy_engine_client"
    logger_name = event_dict.get("logger") or ""
    service = logger_name.split(".")[0] if "." in logger_name else _service_name
    if service:
        event_dict.setdefault("service", service)
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add request, route and rule ids from the current context."""
    for key, var in (("request_id", request_id_var), ("route", route_var), ("rule_id", rule_id_var)):
        value = var.get()
        if value and key not in event_dict:
            event_dict[key] = value
    return event_dict


def truncate_long_values(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Cut oversized string values down to MAX_FIELD_LENGTH characters."""
    for key, value in event_dict.items():
        if isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            event_dict[key] = f"{value[:MAX_FIELD_LENGTH]}... ({len(value)} chars)"
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_route(route: Optional[str]) -> None:
    route_var.set(route)


def set_rule_id(rule_id: Optional[str]) -> None:
    """Attach the rule being viewed to every log line of this request."""
    rule_id_var.set(rule_id)


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    route_var.set(None)
    rule_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
