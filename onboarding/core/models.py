"""Role, profile and audit record types shared by the service and its stores."""
from __future__ import annotations
import datetime
from dataclasses import dataclass, field
from typing import Any, Optional

from .permissions import Permission


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _dedupe(values) -> list[str]:
    """Keep the first occurrence of each value, preserving order."""
    seen: list[str] = []
    for value in values or []:
        value = str(value)
        if value not in seen:
            seen.append(value)
    return seen


def _isoformat(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Any) -> Optional[datetime.datetime]:
    if value is None or isinstance(value, datetime.datetime):
        return value
    return datetime.datetime.fromisoformat(str(value))


@dataclass
class Actor:
    """The authenticated caller of an operation."""

    uid: str
    email: str = ""
    display_name: str = ""


@dataclass
class Role:
    """A named, persisted bundle of scopes.

    ``protected`` marks whether the role may be removed through the
    unauthorized delete path. ``None`` means the creator did not say, in which
    case the role name decides.
    """

    id: str
    name: str
    description: str = ""
    scopes: list[str] = field(default_factory=list)
    active: bool = True
    protected: Optional[bool] = None
    created_by: str = ""
    created: Optional[datetime.datetime] = None
    updated_by: str = ""
    updated: Optional[datetime.datetime] = None

    def __post_init__(self) -> None:
        self.scopes = _dedupe(self.scopes)

    def has_permission(self, scope: str) -> bool:
        return str(scope) in self.scopes

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "scopes": list(self.scopes),
            "active": self.active,
            "protected": self.protected,
            "createdBy": self.created_by,
            "created": _isoformat(self.created),
            "updatedBy": self.updated_by,
            "updated": _isoformat(self.updated),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Role":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            scopes=data.get("scopes") or [],
            active=data.get("active", True),
            protected=data.get("protected"),
            created_by=data.get("createdBy", ""),
            created=_parse_datetime(data.get("created")),
            updated_by=data.get("updatedBy", ""),
            updated=_parse_datetime(data.get("updated")),
        )


@dataclass
class RoleInput:
    """Information required when creating a role."""

    name: str
    description: str = ""
    scopes: list[str] = field(default_factory=list)
    protected: Optional[bool] = None

    def __post_init__(self) -> None:
        self.scopes = _dedupe(self.scopes)


@dataclass
class RolePermissionInput:
    """Scopes to add to, remove from or set on a role."""

    role_id: str
    scopes: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.scopes = _dedupe(self.scopes)


@dataclass
class UserProfile:
    """The slice of a user profile this subsystem reads and writes.

    ``roles`` is ordered with set semantics. ``version`` increases on every
    write to the role list and guards against lost updates.
    """

    id: str
    uid: str = ""
    display_name: str = ""
    roles: list[str] = field(default_factory=list)
    suspended: bool = False
    version: int = 0

    def has_role(self, role_id: str) -> bool:
        return role_id in self.roles

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "uid": self.uid,
            "displayName": self.display_name,
            "roles": list(self.roles),
            "suspended": self.suspended,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        return cls(
            id=data["id"],
            uid=data.get("uid", ""),
            display_name=data.get("displayName", ""),
            roles=list(data.get("roles") or []),
            suspended=data.get("suspended", False),
            version=int(data.get("version", 0)),
        )


@dataclass
class RoleRevocationInput:
    profile_id: str
    role_id: str
    reason: str


@dataclass(frozen=True)
class RoleRevocation:
    """Append-only record of a role being removed from a user."""

    id: str
    profile_id: str
    role_id: str
    reason: str
    created_by: str
    created: datetime.datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "profileID": self.profile_id,
            "roleID": self.role_id,
            "reason": self.reason,
            "createdBy": self.created_by,
            "created": _isoformat(self.created),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoleRevocation":
        return cls(
            id=data["id"],
            profile_id=data["profileID"],
            role_id=data["roleID"],
            reason=data.get("reason", ""),
            created_by=data.get("createdBy", ""),
            created=_parse_datetime(data.get("created")) or _utcnow(),
        )


@dataclass
class RoleOutput:
    """Read model returned to callers: a role with the catalog overlaid."""

    id: str
    name: str
    description: str = ""
    scopes: list[str] = field(default_factory=list)
    active: bool = True
    permissions: list[Permission] = field(default_factory=list)
    users: list[UserProfile] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "scopes": list(self.scopes),
            "active": self.active,
            "permissions": [permission.to_dict() for permission in self.permissions],
            "users": [user.to_dict() for user in self.users],
        }
