"""Permission catalog: every scope the platform knows about."""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class Scope(str, Enum):
    """Grantable capability identifiers."""

    ROLE_CREATE = "role.create"
    ROLE_VIEW = "role.view"
    ROLE_EDIT = "role.edit"
    ROLE_ASSIGN = "role.assign"
    AGENT_REGISTER = "agent.register"
    AGENT_VIEW = "agent.view"
    AGENT_IDENTIFY = "agent.identify"
    CONSUMER_VIEW = "consumer.view"
    PARTNER_VIEW = "partner.view"
    PATIENT_CREATE = "patient.create"
    PATIENT_VIEW = "patient.view"
    PATIENT_IDENTIFY = "patient.identify"
    EMPLOYEE_REMOVE = "employee.remove"
    KYC_PROCESS = "kyc.process"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Permission:
    """Catalog entry describing one scope.

    ``allowed`` is never persisted; it is filled in when the catalog is
    overlaid on a specific role.
    """

    scope: str
    group: str
    description: str
    allowed: bool = False

    def to_dict(self) -> dict:
        return {
            "scope": self.scope,
            "group": self.group,
            "description": self.description,
            "allowed": self.allowed,
        }


PERMISSIONS: tuple[Permission, ...] = (
    Permission(Scope.ROLE_CREATE.value, "role", "Can create a role"),
    Permission(Scope.ROLE_VIEW.value, "role", "Can view roles"),
    Permission(Scope.ROLE_EDIT.value, "role", "Can edit a role"),
    Permission(Scope.ROLE_ASSIGN.value, "role", "Can assign and revoke roles"),
    Permission(Scope.AGENT_REGISTER.value, "agent", "Can register a new agent"),
    Permission(Scope.AGENT_VIEW.value, "agent", "Can view agents"),
    Permission(Scope.AGENT_IDENTIFY.value, "agent", "Can identify an agent"),
    Permission(Scope.CONSUMER_VIEW.value, "consumer", "Can view consumers"),
    Permission(Scope.PARTNER_VIEW.value, "partner", "Can view partners"),
    Permission(Scope.PATIENT_CREATE.value, "patient", "Can register a patient"),
    Permission(Scope.PATIENT_VIEW.value, "patient", "Can view patients"),
    Permission(Scope.PATIENT_IDENTIFY.value, "patient", "Can identify a patient"),
    Permission(Scope.EMPLOYEE_REMOVE.value, "employee", "Can remove an employee"),
    Permission(Scope.KYC_PROCESS.value, "kyc", "Can process KYC requests"),
)

_BY_SCOPE = {permission.scope: permission for permission in PERMISSIONS}
if len(_BY_SCOPE) != len(PERMISSIONS):
    raise RuntimeError("Permission catalog contains duplicate scopes")

# Named permissions used by the role service gate
CAN_CREATE_ROLE = _BY_SCOPE[Scope.ROLE_CREATE.value]
CAN_VIEW_ROLE = _BY_SCOPE[Scope.ROLE_VIEW.value]
CAN_EDIT_ROLE = _BY_SCOPE[Scope.ROLE_EDIT.value]
CAN_ASSIGN_ROLE = _BY_SCOPE[Scope.ROLE_ASSIGN.value]


def all_permissions() -> list[Permission]:
    """Return every permission in catalog order, none of them allowed."""
    return list(PERMISSIONS)


def get_permission(scope: str | Scope) -> Permission:
    """Look up a catalog entry by scope.

    Raises:
        KeyError: If the scope is not in the catalog
    """
    return _BY_SCOPE[str(scope)]


def is_known_scope(scope: str) -> bool:
    return str(scope) in _BY_SCOPE


def unknown_scopes(scopes: Iterable[str]) -> list[str]:
    """Return the scopes (in input order) that the catalog does not define."""
    return [str(scope) for scope in scopes if str(scope) not in _BY_SCOPE]
