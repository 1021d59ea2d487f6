"""
Adapters package for the Dashboard Service.

Wraps the policy engine REST API. The client maps non-success responses and
transport failures to ``ApiError`` so pages can show the backend's message.
"""

from .policy_engine_client import ApiError, PolicyEngineClient

__all__ = [
    "ApiError",
    "PolicyEngineClient",
]
