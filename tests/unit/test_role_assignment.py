"""Unit tests for role assignment and revocation."""
import json
from unittest.mock import MagicMock

import pytest

from onboarding.core.exceptions import (
    AuditTrailError,
    AuthorizationError,
    PersistenceError,
    RoleAlreadyAssignedError,
    RoleNotAssignedError,
    RoleNotFoundError,
    StaleProfileError,
    UserProfileNotFoundError,
)
from onboarding.core.identity import StaticIdentityResolver
from onboarding.core.models import Actor, Role, UserProfile
from onboarding.core.roles import RoleService
from onboarding.core.store import InMemoryRoleStore

REASON = "no longer working for us"


def _events(audit_log):
    if not audit_log.exists():
        return []
    return [json.loads(line) for line in audit_log.read_text().splitlines() if line.strip()]


# ============================================================================
# assign_role
# ============================================================================

def test_assign_role_appends(service, store, agents_role, nurses_role, alice):
    store.update_user_role_ids(alice.id, [nurses_role.id])

    assert service.assign_role(alice.id, agents_role.id) is True
    assert store.get_user_profile_by_id(alice.id).roles == [nurses_role.id, agents_role.id]


def test_assign_role_twice_conflicts(service, store, agents_role, alice):
    service.assign_role(alice.id, agents_role.id)
    version = store.get_user_profile_by_id(alice.id).version

    with pytest.raises(RoleAlreadyAssignedError):
        service.assign_role(alice.id, agents_role.id)

    profile = store.get_user_profile_by_id(alice.id)
    assert profile.roles == [agents_role.id]
    assert profile.version == version


def test_assign_role_missing_role(service, store, alice):
    with pytest.raises(RoleNotFoundError):
        service.assign_role(alice.id, "nope")
    assert store.get_user_profile_by_id(alice.id).roles == []


def test_assign_role_missing_profile(service, agents_role):
    with pytest.raises(UserProfileNotFoundError):
        service.assign_role("profile-ghost", agents_role.id)


def test_assign_role_suspended_profile_not_found(service, store, agents_role):
    store.add_profile(UserProfile(id="profile-bob", uid="uid-bob", suspended=True))
    with pytest.raises(UserProfileNotFoundError):
        service.assign_role("profile-bob", agents_role.id)


def test_assign_role_requires_assign_scope(make_service, store, agents_role, alice):
    with pytest.raises(AuthorizationError) as exc:
        make_service(alice.uid).assign_role(alice.id, agents_role.id)
    assert exc.value.required_scope == "role.assign"
    assert store.get_user_profile_by_id(alice.id).roles == []


def test_assign_role_audited(service, agents_role, alice, audit_log):
    service.assign_role(alice.id, agents_role.id)

    event = _events(audit_log)[-1]
    assert event["event_type"] == "role_assign"
    assert event["target"] == alice.id
    assert event["details"] == {"role_ids": [agents_role.id]}


def test_assign_role_audit_failure_does_not_fail_operation(service, store, agents_role, alice, monkeypatch):
    from onboarding.core import audit

    def _broken(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr(audit, "log_role_event", _broken)

    assert service.assign_role(alice.id, agents_role.id) is True
    assert store.get_user_profile_by_id(alice.id).roles == [agents_role.id]


# ============================================================================
# assign_multiple_roles
# ============================================================================

def test_assign_multiple_roles_single_write(service, store, agents_role, nurses_role, alice):
    before = store.get_user_profile_by_id(alice.id).version

    assert service.assign_multiple_roles(alice.id, [agents_role.id, nurses_role.id]) is True

    profile = store.get_user_profile_by_id(alice.id)
    assert profile.roles == [agents_role.id, nurses_role.id]
    assert profile.version == before + 1


def test_assign_multiple_roles_dedupes_input(service, store, agents_role, alice):
    service.assign_multiple_roles(alice.id, [agents_role.id, agents_role.id])
    assert store.get_user_profile_by_id(alice.id).roles == [agents_role.id]


def test_assign_multiple_roles_all_or_nothing_on_held_role(service, store, agents_role, nurses_role, alice):
    store.update_user_role_ids(alice.id, [agents_role.id])

    with pytest.raises(RoleAlreadyAssignedError) as exc:
        service.assign_multiple_roles(alice.id, [nurses_role.id, agents_role.id])

    assert "Agents" in str(exc.value)
    assert store.get_user_profile_by_id(alice.id).roles == [agents_role.id]


def test_assign_multiple_roles_all_or_nothing_on_missing_role(service, store, agents_role, alice):
    with pytest.raises(RoleNotFoundError):
        service.assign_multiple_roles(alice.id, [agents_role.id, "nope"])
    assert store.get_user_profile_by_id(alice.id).roles == []


def test_assign_multiple_roles_empty_batch_is_noop(service, store, alice):
    assert service.assign_multiple_roles(alice.id, []) is True
    assert store.get_user_profile_by_id(alice.id).version == 0


# ============================================================================
# revoke_role
# ============================================================================

def test_revoke_role_removes_and_records(service, store, agents_role, nurses_role, alice, admin):
    store.update_user_role_ids(alice.id, [agents_role.id, nurses_role.id])

    assert service.revoke_role(alice.id, agents_role.id, REASON) is True

    assert store.get_user_profile_by_id(alice.id).roles == [nurses_role.id]
    records = store.get_role_revocations(alice.id)
    assert len(records) == 1
    assert records[0].role_id == agents_role.id
    assert records[0].reason == REASON
    assert records[0].created_by == admin.uid


def test_revoke_role_not_held(service, store, agents_role, alice):
    with pytest.raises(RoleNotAssignedError):
        service.revoke_role(alice.id, agents_role.id, REASON)
    assert store.get_role_revocations(alice.id) == []


def test_revoke_role_requires_assign_scope(make_service, store, agents_role, alice):
    store.update_user_role_ids(alice.id, [agents_role.id])

    with pytest.raises(AuthorizationError):
        make_service(alice.uid).revoke_role(alice.id, agents_role.id, REASON)
    assert store.get_user_profile_by_id(alice.id).roles == [agents_role.id]


def test_revoke_role_audited(service, store, agents_role, alice, audit_log):
    store.update_user_role_ids(alice.id, [agents_role.id])
    service.revoke_role(alice.id, agents_role.id, REASON)

    event = _events(audit_log)[-1]
    assert event["event_type"] == "role_revoke"
    assert event["details"] == {"role_id": agents_role.id, "reason": REASON}


def test_assign_after_revoke_is_allowed(service, store, agents_role, alice):
    service.assign_role(alice.id, agents_role.id)
    service.revoke_role(alice.id, agents_role.id, REASON)
    service.assign_role(alice.id, agents_role.id)

    assert store.get_user_profile_by_id(alice.id).roles == [agents_role.id]
    assert len(store.get_role_revocations(alice.id)) == 1


# ============================================================================
# Revocation record failures
# ============================================================================

class NoRevocationStore(InMemoryRoleStore):
    def save_role_revocation(self, user_id, revocation):
        raise OSError("revocation table unavailable")


def _seed(target, source, *role_ids):
    for role_id in role_ids:
        target.add_role(source.get_role_by_id(role_id))


def test_revocation_failure_restores_roles(store, admin, agents_role, nurses_role):
    broken = NoRevocationStore()
    _seed(broken, store, "role-admin", agents_role.id, nurses_role.id)
    broken.add_profile(UserProfile(id="profile-admin", uid="uid-admin", roles=["role-admin"]))
    broken.add_profile(UserProfile(id="profile-alice", uid="uid-alice", roles=[agents_role.id, nurses_role.id]))
    svc = RoleService(broken, StaticIdentityResolver(Actor(uid="uid-admin")))

    with pytest.raises(AuditTrailError) as exc:
        svc.revoke_role("profile-alice", agents_role.id, REASON)

    assert "not revoked" in str(exc.value)
    assert isinstance(exc.value.__cause__, OSError)
    assert broken.get_user_profile_by_id("profile-alice").roles == [agents_role.id, nurses_role.id]


def test_revocation_and_restore_failure(store, admin, agents_role, caplog):
    class NoRestoreStore(NoRevocationStore):
        writes = 0

        def update_user_role_ids(self, profile_id, role_ids, expected_version=None):
            self.writes += 1
            if self.writes > 1:
                raise OSError("profile store offline")
            return super().update_user_role_ids(profile_id, role_ids, expected_version)

    broken = NoRestoreStore()
    _seed(broken, store, "role-admin", agents_role.id)
    broken.add_profile(UserProfile(id="profile-admin", uid="uid-admin", roles=["role-admin"]))
    broken.add_profile(UserProfile(id="profile-alice", uid="uid-alice", roles=[agents_role.id]))
    svc = RoleService(broken, StaticIdentityResolver(Actor(uid="uid-admin")))

    with caplog.at_level("CRITICAL"):
        with pytest.raises(AuditTrailError) as exc:
            svc.revoke_role("profile-alice", agents_role.id, REASON)

    assert "could not be restored" in str(exc.value)
    assert any(record.levelname == "CRITICAL" for record in caplog.records)


def test_audit_trail_error_is_persistence_error():
    assert issubclass(AuditTrailError, PersistenceError)
    assert AuditTrailError("x").status == 500


# ============================================================================
# Concurrent modification
# ============================================================================

class RacingStore(InMemoryRoleStore):
    """Simulates another writer touching the profile between read and write."""

    def __init__(self, intruder_role_id):
        super().__init__()
        self.intruder_role_id = intruder_role_id
        self.raced = False

    def update_user_role_ids(self, profile_id, role_ids, expected_version=None):
        if not self.raced and expected_version is not None:
            self.raced = True
            current = self.get_user_profile_by_id(profile_id)
            super().update_user_role_ids(profile_id, current.roles + [self.intruder_role_id])
        return super().update_user_role_ids(profile_id, role_ids, expected_version)


def test_concurrent_assignment_is_detected(store, admin, agents_role, nurses_role):
    racing = RacingStore(intruder_role_id=nurses_role.id)
    _seed(racing, store, "role-admin", agents_role.id, nurses_role.id)
    racing.add_profile(UserProfile(id="profile-admin", uid="uid-admin", roles=["role-admin"]))
    racing.add_profile(UserProfile(id="profile-alice", uid="uid-alice"))
    svc = RoleService(racing, StaticIdentityResolver(Actor(uid="uid-admin")))

    with pytest.raises(StaleProfileError):
        svc.assign_role("profile-alice", agents_role.id)

    # the concurrent writer's change survives
    assert racing.get_user_profile_by_id("profile-alice").roles == [nurses_role.id]


def test_stale_profile_is_conflict():
    assert StaleProfileError("x").status == 409
    assert StaleProfileError("x").to_dict()["error"] == "staleProfile"


# ============================================================================
# Store failures
# ============================================================================

def test_profile_store_failure_wrapped(make_service, admin, agents_role):
    mock_store = MagicMock()
    mock_store.check_if_user_has_permission.return_value = True
    mock_store.get_role_by_id.return_value = Role(id=agents_role.id, name="Agents")
    mock_store.get_user_profile_by_id.side_effect = ConnectionError("timeout")

    with pytest.raises(PersistenceError) as exc:
        make_service(admin.uid, s=mock_store).assign_role("profile-alice", agents_role.id)

    assert "get user profile" in str(exc.value)
    mock_store.update_user_role_ids.assert_not_called()


def test_dangling_role_on_actor_is_not_reported_as_missing_target(service, store, admin, agents_role, alice):
    store.update_user_role_ids(admin.id, ["role-admin", "gone"])

    with pytest.raises(PersistenceError) as exc:
        service.assign_role(alice.id, agents_role.id)

    assert not isinstance(exc.value, RoleNotFoundError)
    assert exc.value.status == 500
    assert store.get_user_profile_by_id(alice.id).roles == []
