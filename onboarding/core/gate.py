"""Permission gate: the authorization check in front of every role mutation."""
from __future__ import annotations
import logging

from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    PersistenceError,
    RoleServiceError,
    UserProfileNotFoundError,
)
from .permissions import Permission
from .store.base import RoleStore

logger = logging.getLogger(__name__)


class PermissionGate:
    """Answers whether a user holds a scope.

    The gate fails closed: if the user's roles cannot be resolved the check
    raises instead of returning a value, so a resolution error can never be
    read as a grant. A caller without a profile is an AuthenticationError; a
    role on the caller's profile that cannot be loaded is a PersistenceError,
    so NotFoundError from an operation always refers to its target.
    """

    def __init__(self, store: RoleStore):
        self.store = store

    def check_if_user_has_permission(self, uid: str, required: Permission) -> bool:
        try:
            allowed = self.store.check_if_user_has_permission(uid, required)
        except UserProfileNotFoundError as exc:
            logger.warning("Permission check for uid=%s: no user profile", uid)
            raise AuthenticationError(f"Logged in user '{uid}' has no user profile") from exc
        except NotFoundError as exc:
            # a role listed on the actor's own profile, never the target of the operation
            logger.error("Permission check for uid=%s could not resolve the user's roles: %s", uid, exc)
            raise PersistenceError(f"Unable to resolve roles of logged in user '{uid}': {exc.detail}") from exc
        except RoleServiceError:
            logger.warning("Permission check for uid=%s scope=%s failed", uid, required.scope)
            raise
        except Exception as exc:
            logger.warning("Permission check for uid=%s scope=%s failed: %s", uid, required.scope, exc)
            raise PersistenceError(f"Unable to check if user has permission '{required.scope}': {exc}") from exc
        return allowed is True

    def authorize(self, uid: str, required: Permission, action: str) -> None:
        """Raise AuthorizationError unless ``uid`` holds ``required``.

        Args:
            uid: Acting user's UID
            required: Permission the operation needs
            action: Short description used in the error message, e.g. "create role"
        """
        if not self.check_if_user_has_permission(uid, required):
            logger.info("Denied uid=%s action=%r (missing %s)", uid, action, required.scope)
            raise AuthorizationError(
                f"Logged in user does not have permission to {action}",
                required_scope=required.scope,
            )
