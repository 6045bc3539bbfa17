"""Dict-backed role store for demo mode and tests."""
from __future__ import annotations
import copy
import datetime
import threading
import uuid
from typing import Optional

from ..exceptions import (
    RoleNameExistsError,
    RoleNotFoundError,
    StaleProfileError,
    UserProfileNotFoundError,
)
from ..models import Role, RoleInput, RoleRevocation, RoleRevocationInput, UserProfile
from .base import RoleStore


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class InMemoryRoleStore(RoleStore):
    """Keeps roles, profiles and revocations in process memory.

    Reads return copies so callers never mutate stored state by accident.
    Reads and writes share a single lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._roles: dict[str, Role] = {}
        self._profiles: dict[str, UserProfile] = {}
        self._revocations: list[RoleRevocation] = []

    # ─────────────────────────────────────────────────────────────────────
    # Seeding helpers
    # ─────────────────────────────────────────────────────────────────────

    def add_profile(self, profile: UserProfile) -> UserProfile:
        with self._lock:
            self._profiles[profile.id] = copy.deepcopy(profile)
        return profile

    def add_role(self, role: Role) -> Role:
        with self._lock:
            self._roles[role.id] = copy.deepcopy(role)
        return role

    # ─────────────────────────────────────────────────────────────────────
    # Roles
    # ─────────────────────────────────────────────────────────────────────

    def get_role_by_id(self, role_id: str) -> Role:
        with self._lock:
            role = self._roles.get(role_id)
            if role is None:
                raise RoleNotFoundError(f"Role with id '{role_id}' not found")
            return copy.deepcopy(role)

    def get_all_roles(self) -> list[Role]:
        with self._lock:
            return [copy.deepcopy(role) for role in self._roles.values()]

    def create_role(self, profile_id: str, role_input: RoleInput) -> Role:
        with self._lock:
            if any(role.name == role_input.name for role in self._roles.values()):
                raise RoleNameExistsError(f"Role with name '{role_input.name}' already exists")
            role = Role(
                id=str(uuid.uuid4()),
                name=role_input.name,
                description=role_input.description,
                scopes=list(role_input.scopes),
                active=True,
                protected=role_input.protected,
                created_by=profile_id,
                created=_now(),
            )
            self._roles[role.id] = role
        return copy.deepcopy(role)

    def update_role_details(self, profile_id: str, role: Role) -> Role:
        with self._lock:
            stored = self._roles.get(role.id)
            if stored is None:
                raise RoleNotFoundError(f"Role with id '{role.id}' not found")
            updated = Role(
                id=stored.id,
                name=role.name,
                description=role.description,
                scopes=list(role.scopes),
                active=role.active,
                protected=stored.protected,
                created_by=stored.created_by,
                created=stored.created,
                updated_by=profile_id,
                updated=_now(),
            )
            self._roles[role.id] = updated
        return copy.deepcopy(updated)

    def delete_role(self, role_id: str) -> bool:
        with self._lock:
            if role_id not in self._roles:
                raise RoleNotFoundError(f"Role with id '{role_id}' not found")
            for profile in self._profiles.values():
                if role_id in profile.roles:
                    profile.roles = [held for held in profile.roles if held != role_id]
                    profile.version += 1
            del self._roles[role_id]
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Profiles
    # ─────────────────────────────────────────────────────────────────────

    def get_user_profiles_by_role_id(self, role_id: str) -> list[UserProfile]:
        with self._lock:
            return [
                copy.deepcopy(profile)
                for profile in self._profiles.values()
                if role_id in profile.roles
            ]

    def get_user_profile_by_id(self, profile_id: str, include_suspended: bool = False) -> UserProfile:
        with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None or (profile.suspended and not include_suspended):
                raise UserProfileNotFoundError(f"User profile with id '{profile_id}' not found")
            return copy.deepcopy(profile)

    def get_user_profile_by_uid(self, uid: str, include_suspended: bool = False) -> UserProfile:
        with self._lock:
            for profile in self._profiles.values():
                if profile.uid == uid and (include_suspended or not profile.suspended):
                    return copy.deepcopy(profile)
        raise UserProfileNotFoundError(f"User profile with uid '{uid}' not found")

    def update_user_role_ids(
        self,
        profile_id: str,
        role_ids: list[str],
        expected_version: Optional[int] = None,
    ) -> UserProfile:
        with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                raise UserProfileNotFoundError(f"User profile with id '{profile_id}' not found")
            if expected_version is not None and profile.version != expected_version:
                raise StaleProfileError(
                    f"User profile '{profile_id}' was modified concurrently "
                    f"(expected version {expected_version}, found {profile.version})"
                )
            profile.roles = list(role_ids)
            profile.version += 1
            return copy.deepcopy(profile)

    # ─────────────────────────────────────────────────────────────────────
    # Revocations
    # ─────────────────────────────────────────────────────────────────────

    def save_role_revocation(self, user_id: str, revocation: RoleRevocationInput) -> RoleRevocation:
        record = RoleRevocation(
            id=str(uuid.uuid4()),
            profile_id=revocation.profile_id,
            role_id=revocation.role_id,
            reason=revocation.reason,
            created_by=user_id,
            created=_now(),
        )
        with self._lock:
            self._revocations.append(record)
        return record

    def get_role_revocations(self, profile_id: str) -> list[RoleRevocation]:
        with self._lock:
            return [record for record in self._revocations if record.profile_id == profile_id]
