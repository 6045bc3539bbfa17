"""Role store backed by the profile store REST API."""
from __future__ import annotations
import logging
from typing import Optional

import requests

from ..exceptions import (
    PersistenceError,
    RoleNameExistsError,
    RoleNotFoundError,
    StaleProfileError,
    UserProfileNotFoundError,
)
from ..models import Role, RoleInput, RoleRevocation, RoleRevocationInput, UserProfile
from .base import RoleStore
from .client import ProfileStoreAPIError, ProfileStoreClient

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class HttpRoleStore(RoleStore):
    """Maps store operations onto profile store endpoints.

    HTTP failures are translated into the service exception taxonomy:
    404 → NotFoundError, 409 → RoleNameExistsError, 412 → StaleProfileError,
    anything else (including transport errors) → PersistenceError.
    """

    def __init__(self, client: ProfileStoreClient):
        self.client = client

    def _call(self, method: str, path: str, *, not_found=None, **kwargs) -> requests.Response:
        try:
            return getattr(self.client, method)(f"{API_PREFIX}{path}", **kwargs)
        except ProfileStoreAPIError as exc:
            if exc.status_code == 404 and not_found is not None:
                raise not_found from exc
            if exc.status_code == 409:
                raise RoleNameExistsError(exc.message) from exc
            if exc.status_code == 412:
                raise StaleProfileError(exc.message) from exc
            logger.error("Profile store %s %s failed: %s", method.upper(), path, exc)
            raise PersistenceError(f"Profile store request failed: {exc}") from exc
        except requests.RequestException as exc:
            logger.error("Profile store %s %s unreachable: %s", method.upper(), path, exc)
            raise PersistenceError(f"Profile store unreachable: {exc}") from exc

    # ─────────────────────────────────────────────────────────────────────
    # Roles
    # ─────────────────────────────────────────────────────────────────────

    def get_role_by_id(self, role_id: str) -> Role:
        resp = self._call(
            "get",
            f"/roles/{role_id}",
            not_found=RoleNotFoundError(f"Role with id '{role_id}' not found"),
        )
        return Role.from_dict(resp.json())

    def get_all_roles(self) -> list[Role]:
        resp = self._call("get", "/roles")
        return [Role.from_dict(item) for item in resp.json()]

    def create_role(self, profile_id: str, role_input: RoleInput) -> Role:
        payload = {
            "name": role_input.name,
            "description": role_input.description,
            "scopes": list(role_input.scopes),
            "protected": role_input.protected,
            "createdBy": profile_id,
        }
        resp = self._call("post", "/roles", json=payload)
        return Role.from_dict(resp.json())

    def update_role_details(self, profile_id: str, role: Role) -> Role:
        payload = {
            "name": role.name,
            "description": role.description,
            "scopes": list(role.scopes),
            "active": role.active,
            "updatedBy": profile_id,
        }
        resp = self._call(
            "put",
            f"/roles/{role.id}",
            json=payload,
            not_found=RoleNotFoundError(f"Role with id '{role.id}' not found"),
        )
        return Role.from_dict(resp.json())

    def delete_role(self, role_id: str) -> bool:
        self._call(
            "delete",
            f"/roles/{role_id}",
            not_found=RoleNotFoundError(f"Role with id '{role_id}' not found"),
        )
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Profiles
    # ─────────────────────────────────────────────────────────────────────

    def get_user_profiles_by_role_id(self, role_id: str) -> list[UserProfile]:
        resp = self._call("get", "/profiles", params={"role": role_id})
        return [UserProfile.from_dict(item) for item in resp.json()]

    def get_user_profile_by_id(self, profile_id: str, include_suspended: bool = False) -> UserProfile:
        resp = self._call(
            "get",
            f"/profiles/{profile_id}",
            params={"includeSuspended": str(include_suspended).lower()},
            not_found=UserProfileNotFoundError(f"User profile with id '{profile_id}' not found"),
        )
        return UserProfile.from_dict(resp.json())

    def get_user_profile_by_uid(self, uid: str, include_suspended: bool = False) -> UserProfile:
        resp = self._call(
            "get",
            "/profiles",
            params={"uid": uid, "includeSuspended": str(include_suspended).lower()},
        )
        items = resp.json()
        if not items:
            raise UserProfileNotFoundError(f"User profile with uid '{uid}' not found")
        return UserProfile.from_dict(items[0])

    def update_user_role_ids(
        self,
        profile_id: str,
        role_ids: list[str],
        expected_version: Optional[int] = None,
    ) -> UserProfile:
        headers = {}
        if expected_version is not None:
            headers["If-Match"] = str(expected_version)
        resp = self._call(
            "put",
            f"/profiles/{profile_id}/roles",
            json={"roles": list(role_ids)},
            headers=headers,
            not_found=UserProfileNotFoundError(f"User profile with id '{profile_id}' not found"),
        )
        return UserProfile.from_dict(resp.json())

    # ─────────────────────────────────────────────────────────────────────
    # Revocations
    # ─────────────────────────────────────────────────────────────────────

    def save_role_revocation(self, user_id: str, revocation: RoleRevocationInput) -> RoleRevocation:
        payload = {
            "profileID": revocation.profile_id,
            "roleID": revocation.role_id,
            "reason": revocation.reason,
            "createdBy": user_id,
        }
        resp = self._call("post", "/role-revocations", json=payload)
        return RoleRevocation.from_dict(resp.json())

    def get_role_revocations(self, profile_id: str) -> list[RoleRevocation]:
        resp = self._call("get", "/role-revocations", params={"profileID": profile_id})
        return [RoleRevocation.from_dict(item) for item in resp.json()]
