"""API routers for the CRM authorization service."""

from . import rbac

__all__ = [
    "rbac",
]
