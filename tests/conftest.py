"""Pytest shared fixtures for role service tests."""
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")

import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from onboarding.core import audit
from onboarding.core.identity import StaticIdentityResolver
from onboarding.core.models import Actor, Role, UserProfile
from onboarding.core.permissions import PERMISSIONS
from onboarding.core.roles import RoleService
from onboarding.core.store import InMemoryRoleStore


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from reaching a live profile store or identity provider.

    Tests marked with @pytest.mark.integration are allowed real HTTP calls.
    Individual tests may install their own stubs on top of this guard.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(method_or_url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {method_or_url} {args[:1]}")

    monkeypatch.setattr(requests, "request", _blocked)
    monkeypatch.setattr(requests, "post", _blocked)
    monkeypatch.setattr(requests, "get", _blocked)


# ─────────────────────────────────────────────────────────────────────────────
# Audit Trail
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def audit_log(tmp_path, monkeypatch):
    """Isolated, signed audit log for every test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "role-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_file


# ─────────────────────────────────────────────────────────────────────────────
# Store and Service
# ─────────────────────────────────────────────────────────────────────────────
ADMIN_UID = "uid-admin"
ADMIN_PROFILE_ID = "profile-admin"
ADMIN_ROLE_ID = "role-admin"


@pytest.fixture()
def store():
    return InMemoryRoleStore()


@pytest.fixture()
def admin(store):
    """Profile holding an active role with every scope in the catalog."""
    store.add_role(
        Role(
            id=ADMIN_ROLE_ID,
            name="Administrator",
            scopes=[permission.scope for permission in PERMISSIONS],
            protected=True,
        )
    )
    return store.add_profile(UserProfile(id=ADMIN_PROFILE_ID, uid=ADMIN_UID, roles=[ADMIN_ROLE_ID]))


@pytest.fixture()
def make_service(store):
    """Build a RoleService acting as ``uid`` (None means no logged in user)."""
    def _make(uid=ADMIN_UID, s=None):
        actor = Actor(uid=uid) if uid else None
        return RoleService(s or store, StaticIdentityResolver(actor))
    return _make


@pytest.fixture()
def service(make_service, admin):
    return make_service(admin.uid)


@pytest.fixture()
def agents_role(store):
    return store.add_role(Role(id="role-agents", name="Agents", scopes=["agent.view"]))


@pytest.fixture()
def nurses_role(store):
    return store.add_role(Role(id="role-nurses", name="Nurses", scopes=["patient.view", "patient.identify"]))


@pytest.fixture()
def alice(store):
    return store.add_profile(UserProfile(id="profile-alice", uid="uid-alice", display_name="Alice"))


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for JWT Testing
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    return {
        "private_key": private_key,
        "private_pem": private_pem,
        "public_key": private_key.public_key(),
    }
