"""Flask application factory and bootstrap.

This module provides the create_app() factory which wires settings, the role
store, the role service, blueprints and error handlers together.
"""
from __future__ import annotations
import logging
import uuid
from typing import Optional

from flask import Flask

from onboarding.config import AppConfig, load_settings
from onboarding.core import audit
from onboarding.core.identity import StaticIdentityResolver
from onboarding.core.models import Actor, RoleInput, UserProfile
from onboarding.core.permissions import PERMISSIONS
from onboarding.core.roles import RoleService
from onboarding.core.store import HttpRoleStore, InMemoryRoleStore, ProfileStoreClient, RoleStore

logger = logging.getLogger(__name__)

ADMIN_ROLE_NAME = "Administrator"


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, store: Optional[RoleStore] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings (loaded from the environment when omitted)
        store: Role store override (built from settings when omitted)
    """
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode

    audit.configure(cfg.audit_log_dir)

    if store is None:
        store = build_store(cfg)
        if isinstance(store, InMemoryRoleStore) and cfg.bootstrap_admin_uid:
            bootstrap_admin(store, cfg.bootstrap_admin_uid)

    from onboarding.api.decorators import FlaskIdentityResolver

    app.extensions["role_store"] = store
    app.extensions["role_service"] = RoleService(
        store,
        FlaskIdentityResolver(),
        disposable_role_pattern=cfg.disposable_role_pattern,
    )

    # Register blueprints
    from onboarding.api import errors, health, roles

    app.register_blueprint(health.bp)
    app.register_blueprint(roles.bp)

    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    logger.info("Mode=%s; role store=%s", mode_label, type(store).__name__)

    return app


def build_store(cfg: AppConfig) -> RoleStore:
    """Create the role store selected by ROLE_STORE_BACKEND."""
    if cfg.role_store_backend == "memory":
        return InMemoryRoleStore()

    client = ProfileStoreClient(cfg.profile_store_url, token_url=cfg.profile_store_token_url)
    client.authenticate_service_account(cfg.profile_store_client_id, cfg.profile_store_client_secret)
    return HttpRoleStore(client)


def bootstrap_admin(store: InMemoryRoleStore, uid: str) -> UserProfile:
    """Seed an administrator profile holding every scope (demo mode).

    Uses the unauthorized create path since no one can hold ``role.create``
    before the first role exists.
    """
    profile = store.add_profile(UserProfile(id=str(uuid.uuid4()), uid=uid, display_name="Bootstrap Admin"))
    service = RoleService(store, StaticIdentityResolver(Actor(uid=uid)))
    admin_role = service.create_unauthorized_role(
        RoleInput(
            name=ADMIN_ROLE_NAME,
            description="Full access to role management",
            scopes=[permission.scope for permission in PERMISSIONS],
            protected=True,
        )
    )
    profile = store.update_user_role_ids(profile.id, [admin_role.id], expected_version=profile.version)
    logger.warning("Bootstrapped administrator uid=%s with role %s", uid, admin_role.id)
    return profile
