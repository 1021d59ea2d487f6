"""
Policy Engine Dashboard service package.

Server-rendered admin UI for the policy engine backend:
- Rule management: list, create, inspect, activate/deactivate
- Visual rule builder and DRL editor
- Dry-run rule testing
- Audit log browsing

Structure:
- app.main: FastAPI app, page routes and JSON endpoints.
- app.adapters: HTTP client for the policy engine REST API.
- app.domain: API records, editor state reducers, form decoding and view helpers.
- app.templates: Jinja2 pages and component macros.
"""
