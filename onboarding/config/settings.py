"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from onboarding.core.roles import DEFAULT_DISPOSABLE_ROLE_PATTERN

logger = logging.getLogger(__name__)


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info("Loaded %s from /run/secrets", secret_name)
                return secret_value
        except OSError as e:
            logger.warning("Failed to read /run/secrets/%s: %s", secret_name, e)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() == "true"


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Role store
    role_store_backend: str = "memory"
    profile_store_url: str = ""
    profile_store_token_url: str = ""
    profile_store_client_id: str = "onboarding-service"
    profile_store_client_secret: str = ""

    # Bearer token validation
    oidc_issuer: str = ""
    oidc_jwks_url: str = ""
    oidc_audience: str = ""

    # Roles
    disposable_role_pattern: str = DEFAULT_DISPOSABLE_ROLE_PATTERN
    bootstrap_admin_uid: str = ""

    # Audit
    audit_log_dir: str = ".runtime/audit"
    audit_log_signing_key: str = ""


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE")

    role_store_backend = os.environ.get(
        "ROLE_STORE_BACKEND", "memory" if demo_mode else "http"
    ).strip().lower()
    if role_store_backend not in {"memory", "http"}:
        raise RuntimeError(f"ROLE_STORE_BACKEND must be 'memory' or 'http', got '{role_store_backend}'")

    profile_store_url = os.environ.get("PROFILE_STORE_URL", "").rstrip("/")
    profile_store_client_secret = _load_secret_from_file(
        "profile_store_client_secret",
        "PROFILE_STORE_CLIENT_SECRET",
    ) or ""
    if role_store_backend == "http":
        if not profile_store_url:
            raise RuntimeError("PROFILE_STORE_URL is required when ROLE_STORE_BACKEND=http.")
        if not profile_store_client_secret and not demo_mode:
            raise RuntimeError("PROFILE_STORE_CLIENT_SECRET is required when ROLE_STORE_BACKEND=http.")

    oidc_issuer = os.environ.get("OIDC_ISSUER", "http://localhost:8080/realms/demo" if demo_mode else "")
    if not oidc_issuer:
        raise RuntimeError("Environment variable OIDC_ISSUER is required in production mode.")
    oidc_jwks_url = os.environ.get("OIDC_JWKS_URL", f"{oidc_issuer}/protocol/openid-connect/certs")

    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key
    elif not demo_mode:
        logger.warning("AUDIT_LOG_SIGNING_KEY not set; audit events will be unsigned")

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info("Mode=%s; role_store=%s; issuer=%s", mode_label, role_store_backend, oidc_issuer)
    if demo_mode:
        logger.warning("Demo mode active: in-memory store and demo audit key. Do not deploy with these defaults.")

    return AppConfig(
        demo_mode=demo_mode,
        role_store_backend=role_store_backend,
        profile_store_url=profile_store_url,
        profile_store_token_url=os.environ.get("PROFILE_STORE_TOKEN_URL", ""),
        profile_store_client_id=os.environ.get("PROFILE_STORE_CLIENT_ID", "onboarding-service"),
        profile_store_client_secret=profile_store_client_secret,
        oidc_issuer=oidc_issuer,
        oidc_jwks_url=oidc_jwks_url,
        oidc_audience=os.environ.get("OIDC_AUDIENCE", ""),
        disposable_role_pattern=os.environ.get("DISPOSABLE_ROLE_PATTERN", DEFAULT_DISPOSABLE_ROLE_PATTERN),
        bootstrap_admin_uid=os.environ.get("BOOTSTRAP_ADMIN_UID", ""),
        audit_log_dir=os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"),
        audit_log_signing_key=audit_log_signing_key,
    )
