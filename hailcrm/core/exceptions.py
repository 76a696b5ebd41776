"""Error taxonomy for the authorization engine.

Store and transport failures are not wrapped here: SQLAlchemy errors
propagate to the caller unchanged.
"""

from typing import Optional


class RBACError(Exception):
    """Base class for authorization engine errors."""

    code = "RBAC_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ForbiddenError(RBACError):
    """Raised when a guard's requirement is not met.

    ``kind`` is one of ``permission``, ``role`` or ``admin``; ``requirement``
    names the permission or role that was missing.
    """

    code = "FORBIDDEN"

    def __init__(self, message: str, *, kind: str, requirement: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.requirement = requirement


class DuplicateGrantError(RBACError):
    """Raised when an assign/grant targets an edge that already exists."""

    code = "CONFLICT"


class NotFoundError(RBACError):
    """Raised when a referenced user, role, permission or grant does not exist."""

    code = "NOT_FOUND"
