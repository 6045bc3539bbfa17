"""Typed exceptions for role and permission operations.

Every error carries the HTTP status the API layer renders it with, so the
same taxonomy serves library callers and the Flask error handlers.
"""
from __future__ import annotations
from typing import Optional


class RoleServiceError(Exception):
    """Base exception for all RBAC operations.

    Attributes:
        status: HTTP status code used when rendering the error
        detail: Human readable error message
        error_type: Short machine readable error category
    """

    status = 500
    error_type = "internalError"

    def __init__(self, detail: str, status: Optional[int] = None):
        self.detail = detail
        if status is not None:
            self.status = status
        super().__init__(detail)

    def to_dict(self) -> dict:
        """Convert to API error response format."""
        return {
            "error": self.error_type,
            "status": str(self.status),
            "message": self.detail,
        }


class AuthenticationError(RoleServiceError):
    """The acting user could not be resolved."""

    status = 401
    error_type = "unauthenticated"


class AuthorizationError(RoleServiceError):
    """The acting user lacks the scope required for the operation."""

    status = 403
    error_type = "forbidden"

    def __init__(self, detail: str, required_scope: Optional[str] = None):
        self.required_scope = required_scope
        super().__init__(detail)

    def to_dict(self) -> dict:
        error_dict = super().to_dict()
        if self.required_scope:
            error_dict["requiredScope"] = self.required_scope
        return error_dict


class InvalidScopeError(RoleServiceError):
    """One or more scopes are not part of the permission catalog."""

    status = 400
    error_type = "invalidScope"

    def __init__(self, scopes: list[str]):
        self.scopes = list(scopes)
        super().__init__(f"Unknown permission scope(s): {', '.join(self.scopes)}")


class NotFoundError(RoleServiceError):
    """A role or user profile does not exist."""

    status = 404
    error_type = "notFound"


class RoleNotFoundError(NotFoundError):
    """Role lookup failed."""
    pass


class UserProfileNotFoundError(NotFoundError):
    """User profile lookup failed."""
    pass


class ConflictError(RoleServiceError):
    """The requested change conflicts with the current state."""

    status = 409
    error_type = "conflict"


class RoleAlreadyAssignedError(ConflictError):
    """The user already holds the role."""
    pass


class RoleNotAssignedError(ConflictError):
    """The user does not hold the role being revoked."""
    pass


class RoleNameExistsError(ConflictError):
    """A role with the same name already exists."""
    pass


class ProtectedRoleError(ConflictError):
    """The role may not be removed without authorization."""

    error_type = "protectedRole"


class StaleProfileError(ConflictError):
    """The profile changed between read and write."""

    error_type = "staleProfile"


class PersistenceError(RoleServiceError):
    """The backing store failed to read or write."""

    status = 500
    error_type = "persistenceError"


class AuditTrailError(PersistenceError):
    """A revocation audit record could not be written."""

    error_type = "auditTrailError"
