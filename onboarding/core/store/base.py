"""Role store interface.

The store owns persistence of roles, user role lists and revocation records.
Implementations raise the typed exceptions from ``onboarding.core.exceptions``.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from ..exceptions import RoleNotFoundError
from ..models import Role, RoleInput, RoleRevocation, RoleRevocationInput, UserProfile
from ..permissions import Permission


class RoleStore(ABC):
    """Persistence boundary for the role service."""

    @abstractmethod
    def get_role_by_id(self, role_id: str) -> Role:
        """Return the role with ``role_id``.

        Raises:
            RoleNotFoundError: If no such role exists
        """

    @abstractmethod
    def get_all_roles(self) -> list[Role]:
        """Return every role in creation order."""

    @abstractmethod
    def create_role(self, profile_id: str, role_input: RoleInput) -> Role:
        """Persist a new active role created by ``profile_id``.

        Raises:
            RoleNameExistsError: If a role with the same name exists
        """

    @abstractmethod
    def update_role_details(self, profile_id: str, role: Role) -> Role:
        """Overwrite a role's name, description, scopes and active flag."""

    @abstractmethod
    def delete_role(self, role_id: str) -> bool:
        """Remove a role and strip it from every profile that holds it."""

    @abstractmethod
    def get_user_profiles_by_role_id(self, role_id: str) -> list[UserProfile]:
        """Return profiles currently holding ``role_id``."""

    @abstractmethod
    def get_user_profile_by_id(self, profile_id: str, include_suspended: bool = False) -> UserProfile:
        """Raises UserProfileNotFoundError when absent."""

    @abstractmethod
    def get_user_profile_by_uid(self, uid: str, include_suspended: bool = False) -> UserProfile:
        """Raises UserProfileNotFoundError when absent."""

    @abstractmethod
    def update_user_role_ids(
        self,
        profile_id: str,
        role_ids: list[str],
        expected_version: Optional[int] = None,
    ) -> UserProfile:
        """Replace a profile's role list.

        When ``expected_version`` is given and the stored profile has moved on,
        the write is refused with StaleProfileError.
        """

    @abstractmethod
    def save_role_revocation(self, user_id: str, revocation: RoleRevocationInput) -> RoleRevocation:
        """Append a revocation record; ``user_id`` is the revoking profile."""

    @abstractmethod
    def get_role_revocations(self, profile_id: str) -> list[RoleRevocation]:
        """Return revocation records for a profile, oldest first."""

    def get_roles_by_ids(self, role_ids: list[str]) -> list[Role]:
        return [self.get_role_by_id(role_id) for role_id in role_ids]

    def get_role_by_name(self, name: str) -> Role:
        for role in self.get_all_roles():
            if role.name == name:
                return role
        raise RoleNotFoundError(f"Role with name '{name}' not found")

    def check_if_user_has_permission(self, uid: str, required: Permission) -> bool:
        """True iff one of the user's active roles grants ``required``."""
        profile = self.get_user_profile_by_uid(uid)
        for role in self.get_roles_by_ids(profile.roles):
            if role.active and role.has_permission(required.scope):
                return True
        return False
