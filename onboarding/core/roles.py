"""
Role Service Layer: role lifecycle and assignment

This module holds the business logic behind every role operation exposed by
the API layer. Each mutating operation follows the same sequence:

    resolve actor ──> permission gate ──> required reads ──> single write ──> audit

No write happens until every read an operation depends on has succeeded, so a
failed precondition never leaves a partial change behind.

Features:
    - Role lifecycle: create, list, find, edit scopes, activate, deactivate, delete
    - Idempotency-protected assignment (single and batch) and revocation
    - Append-only revocation records
    - Catalog overlay read model (RoleOutput)
"""

from __future__ import annotations
import logging
import re
from dataclasses import replace
from typing import Callable, Iterable, Optional, TypeVar

from . import audit
from .exceptions import (
    AuditTrailError,
    AuthenticationError,
    InvalidScopeError,
    PersistenceError,
    ProtectedRoleError,
    RoleAlreadyAssignedError,
    RoleNotAssignedError,
    RoleServiceError,
)
from .gate import PermissionGate
from .identity import IdentityResolver
from .models import (
    Actor,
    Role,
    RoleInput,
    RoleOutput,
    RolePermissionInput,
    RoleRevocationInput,
    UserProfile,
)
from .permissions import (
    CAN_ASSIGN_ROLE,
    CAN_CREATE_ROLE,
    CAN_EDIT_ROLE,
    CAN_VIEW_ROLE,
    Permission,
    all_permissions,
    unknown_scopes,
)
from .store.base import RoleStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Roles whose name contains the word "test" may be removed without authorization
# unless their creator marked them explicitly.
DEFAULT_DISPOSABLE_ROLE_PATTERN = r"\btest\b"


# ─────────────────────────────────────────────────────────────────────────────
# Read model
# ─────────────────────────────────────────────────────────────────────────────

def build_role_output(
    role: Role,
    catalog: Optional[Iterable[Permission]] = None,
    users: Optional[list[UserProfile]] = None,
) -> RoleOutput:
    """Overlay the permission catalog onto a role.

    Args:
        role: Role to render
        catalog: Permission catalog (defaults to the full catalog)
        users: Profiles holding the role, when the caller needs them

    Returns:
        RoleOutput with one permission per catalog entry, in catalog order
    """
    if catalog is None:
        catalog = all_permissions()
    granted = set(role.scopes)
    return RoleOutput(
        id=role.id,
        name=role.name,
        description=role.description,
        scopes=list(role.scopes),
        active=role.active,
        permissions=[replace(permission, allowed=permission.scope in granted) for permission in catalog],
        users=list(users or []),
    )


def _union(current: list[str], extra: list[str]) -> list[str]:
    return list(current) + [scope for scope in extra if scope not in current]


def _difference(current: list[str], removed: list[str]) -> list[str]:
    return [scope for scope in current if scope not in removed]


def _dedupe(values: Iterable[str]) -> list[str]:
    result: list[str] = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


class RoleService:
    """Role lifecycle and assignment operations.

    Args:
        store: Persistence for roles, profiles and revocations
        identity: Resolves the acting user
        gate: Permission gate (defaults to one over ``store``)
        disposable_role_pattern: Regex matched against role names when a role
            carries no explicit ``protected`` flag
    """

    def __init__(
        self,
        store: RoleStore,
        identity: IdentityResolver,
        *,
        gate: Optional[PermissionGate] = None,
        disposable_role_pattern: str = DEFAULT_DISPOSABLE_ROLE_PATTERN,
    ):
        self.store = store
        self.identity = identity
        self.gate = gate or PermissionGate(store)
        self.disposable_role_pattern = re.compile(disposable_role_pattern, re.IGNORECASE)

    # ─────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────

    def _call_store(self, operation: str, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run a store call, wrapping unexpected failures as PersistenceError."""
        try:
            return fn(*args, **kwargs)
        except RoleServiceError:
            raise
        except Exception as exc:
            logger.error("Store call failed (%s): %s", operation, exc)
            raise PersistenceError(f"Failed to {operation}: {exc}") from exc

    def _actor(self) -> Actor:
        try:
            return self.identity.get_logged_in_user()
        except AuthenticationError:
            raise
        except Exception as exc:
            raise AuthenticationError(f"Unable to get logged in user: {exc}") from exc

    def _authorize(self, required: Permission, action: str) -> Actor:
        actor = self._actor()
        self.gate.authorize(actor.uid, required, action)
        return actor

    def _actor_profile(self, actor: Actor) -> UserProfile:
        return self._call_store("get user profile", self.store.get_user_profile_by_uid, actor.uid)

    def _get_role(self, role_id: str) -> Role:
        return self._call_store("get role", self.store.get_role_by_id, role_id)

    def _get_profile(self, user_id: str) -> UserProfile:
        return self._call_store("get user profile", self.store.get_user_profile_by_id, user_id)

    @staticmethod
    def _validate_scopes(scopes: list[str]) -> None:
        unknown = unknown_scopes(scopes)
        if unknown:
            raise InvalidScopeError(unknown)

    def is_disposable(self, role: Role) -> bool:
        """Whether the role may be deleted through the unauthorized path."""
        if role.protected is not None:
            return not role.protected
        return bool(self.disposable_role_pattern.search(role.name))

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def create_role(self, role_input: RoleInput) -> RoleOutput:
        """Create a role on behalf of an actor holding ``role.create``."""
        actor = self._authorize(CAN_CREATE_ROLE, "create role")
        return self._create_role(actor, role_input)

    def create_unauthorized_role(self, role_input: RoleInput) -> RoleOutput:
        """Create a role without the permission check (bootstrap path).

        The actor and their profile must still resolve.
        """
        actor = self._actor()
        return self._create_role(actor, role_input)

    def _create_role(self, actor: Actor, role_input: RoleInput) -> RoleOutput:
        self._validate_scopes(role_input.scopes)
        profile = self._actor_profile(actor)
        role = self._call_store("create role", self.store.create_role, profile.id, role_input)

        logger.info("Role '%s' (%s) created by %s", role.name, role.id, actor.uid)
        audit.safe_log_role_event(
            "role_create",
            role.id,
            operator=actor.uid,
            details={"name": role.name, "scopes": list(role.scopes)},
        )
        return build_role_output(role)

    def get_all_roles(self) -> list[RoleOutput]:
        """List every role together with the users holding it."""
        self._authorize(CAN_VIEW_ROLE, "list roles")
        roles = self._call_store("list roles", self.store.get_all_roles)
        return self._with_users(roles)

    def find_role_by_name(self, name: str) -> list[RoleOutput]:
        """List roles whose name is exactly ``name``."""
        self._authorize(CAN_VIEW_ROLE, "search roles")
        roles = self._call_store("list roles", self.store.get_all_roles)
        return self._with_users([role for role in roles if role.name == name])

    def _with_users(self, roles: list[Role]) -> list[RoleOutput]:
        catalog = all_permissions()
        outputs = []
        for role in roles:
            users = self._call_store("get role users", self.store.get_user_profiles_by_role_id, role.id)
            outputs.append(build_role_output(role, catalog, users))
        return outputs

    def get_all_permissions(self) -> list[Permission]:
        """Return the full permission catalog to an actor holding ``role.view``."""
        self._authorize(CAN_VIEW_ROLE, "list permissions")
        return all_permissions()

    def add_permissions_to_role(self, role_input: RolePermissionInput) -> RoleOutput:
        """Grant additional scopes to a role."""
        return self._edit_scopes(role_input, _union)

    def revoke_role_permission(self, role_input: RolePermissionInput) -> RoleOutput:
        """Remove scopes from a role. Scopes the role does not hold are ignored."""
        return self._edit_scopes(role_input, _difference, validate=False)

    def update_role_permissions(self, role_input: RolePermissionInput) -> RoleOutput:
        """Replace a role's scopes wholesale."""
        return self._edit_scopes(role_input, lambda current, new: list(new))

    def _edit_scopes(
        self,
        role_input: RolePermissionInput,
        combine: Callable[[list[str], list[str]], list[str]],
        validate: bool = True,
    ) -> RoleOutput:
        actor = self._authorize(CAN_EDIT_ROLE, "edit role")
        if validate:
            self._validate_scopes(role_input.scopes)
        role = self._get_role(role_input.role_id)
        profile = self._actor_profile(actor)

        previous = list(role.scopes)
        role.scopes = combine(previous, role_input.scopes)
        updated = self._call_store("update role", self.store.update_role_details, profile.id, role)

        audit.safe_log_role_event(
            "role_update",
            updated.id,
            operator=actor.uid,
            details={"before": previous, "after": list(updated.scopes)},
        )
        return build_role_output(updated)

    def activate_role(self, role_id: str) -> RoleOutput:
        return self._set_active(role_id, True)

    def deactivate_role(self, role_id: str) -> RoleOutput:
        return self._set_active(role_id, False)

    def _set_active(self, role_id: str, active: bool) -> RoleOutput:
        action = "activate role" if active else "deactivate role"
        actor = self._authorize(CAN_EDIT_ROLE, action)
        role = self._get_role(role_id)
        profile = self._actor_profile(actor)

        role.active = active
        updated = self._call_store("update role", self.store.update_role_details, profile.id, role)

        audit.safe_log_role_event(
            "role_activate" if active else "role_deactivate",
            updated.id,
            operator=actor.uid,
            details={"name": updated.name},
        )
        return build_role_output(updated)

    def delete_role(self, role_id: str) -> bool:
        """Permanently remove a role (and strip it from every user holding it)."""
        actor = self._authorize(CAN_EDIT_ROLE, "delete role")
        deleted = self._call_store("delete role", self.store.delete_role, role_id)
        audit.safe_log_role_event("role_delete", role_id, operator=actor.uid)
        return deleted

    def unauthorized_delete_role(self, role_id: str) -> bool:
        """Delete a disposable role without a permission check.

        Used by automated test and CI cleanup. Roles that are not disposable
        are refused with ProtectedRoleError before the store is touched.
        """
        role = self._get_role(role_id)
        if not self.is_disposable(role):
            logger.warning("Refused unauthorized delete of protected role '%s' (%s)", role.name, role.id)
            raise ProtectedRoleError(f"Role '{role.name}' is protected and cannot be deleted without authorization")

        deleted = self._call_store("delete role", self.store.delete_role, role_id)
        audit.safe_log_role_event(
            "role_delete",
            role_id,
            operator="unauthorized-cleanup",
            details={"name": role.name},
        )
        return deleted

    # ─────────────────────────────────────────────────────────────────────
    # Assignment
    # ─────────────────────────────────────────────────────────────────────

    def assign_role(self, user_id: str, role_id: str) -> bool:
        """Give a user a role they do not hold yet.

        Raises:
            RoleAlreadyAssignedError: If the user already holds the role
        """
        actor = self._authorize(CAN_ASSIGN_ROLE, "assign role")
        role = self._get_role(role_id)
        profile = self._get_profile(user_id)

        if profile.has_role(role.id):
            raise RoleAlreadyAssignedError(f"User '{profile.id}' already has role '{role.name}'")

        self._call_store(
            "update user roles",
            self.store.update_user_role_ids,
            profile.id,
            profile.roles + [role.id],
            expected_version=profile.version,
        )

        logger.info("Role %s assigned to %s by %s", role.id, profile.id, actor.uid)
        audit.safe_log_role_event(
            "role_assign",
            profile.id,
            operator=actor.uid,
            details={"role_ids": [role.id]},
        )
        return True

    def assign_multiple_roles(self, user_id: str, role_ids: list[str]) -> bool:
        """Give a user several roles in one write.

        All-or-nothing: every role must exist and none may already be held,
        otherwise nothing is written.
        """
        actor = self._authorize(CAN_ASSIGN_ROLE, "assign role")
        role_ids = _dedupe(role_ids)
        roles = [self._get_role(role_id) for role_id in role_ids]
        profile = self._get_profile(user_id)

        held = [role.name for role in roles if profile.has_role(role.id)]
        if held:
            raise RoleAlreadyAssignedError(f"User '{profile.id}' already has role(s): {', '.join(held)}")
        if not roles:
            return True

        self._call_store(
            "update user roles",
            self.store.update_user_role_ids,
            profile.id,
            profile.roles + [role.id for role in roles],
            expected_version=profile.version,
        )

        audit.safe_log_role_event(
            "role_assign",
            profile.id,
            operator=actor.uid,
            details={"role_ids": [role.id for role in roles]},
        )
        return True

    def revoke_role(self, user_id: str, role_id: str, reason: str) -> bool:
        """Take a role away from a user and record why.

        The revocation record is written only after the role list update
        succeeds. If that record cannot be written the previous role list is
        restored and AuditTrailError is raised.

        Raises:
            RoleNotAssignedError: If the user does not hold the role
        """
        actor = self._authorize(CAN_ASSIGN_ROLE, "revoke role")
        role = self._get_role(role_id)
        profile = self._get_profile(user_id)

        if not profile.has_role(role.id):
            raise RoleNotAssignedError(f"User '{profile.id}' does not have role '{role.name}'")

        remaining = [held for held in profile.roles if held != role.id]
        updated = self._call_store(
            "update user roles",
            self.store.update_user_role_ids,
            profile.id,
            remaining,
            expected_version=profile.version,
        )

        revocation = RoleRevocationInput(profile_id=profile.id, role_id=role.id, reason=reason)
        try:
            self.store.save_role_revocation(actor.uid, revocation)
        except Exception as exc:
            self._restore_roles(profile, updated, exc)

        logger.info("Role %s revoked from %s by %s", role.id, profile.id, actor.uid)
        audit.safe_log_role_event(
            "role_revoke",
            profile.id,
            operator=actor.uid,
            details={"role_id": role.id, "reason": reason},
        )
        return True

    def _restore_roles(self, original: UserProfile, updated: Optional[UserProfile], cause: Exception) -> None:
        """Put back a role list after its revocation record failed to save. Always raises."""
        expected_version = updated.version if isinstance(updated, UserProfile) else None
        try:
            self.store.update_user_role_ids(original.id, original.roles, expected_version=expected_version)
        except Exception as restore_exc:
            logger.critical(
                "Role list of %s changed without a revocation record (restore failed: %s)",
                original.id,
                restore_exc,
            )
            raise AuditTrailError(
                f"Revocation record could not be saved and roles of '{original.id}' could not be restored: {cause}"
            ) from cause

        logger.error("Revocation record for %s could not be saved; roles restored: %s", original.id, cause)
        raise AuditTrailError(f"Revocation record could not be saved; role was not revoked: {cause}") from cause
