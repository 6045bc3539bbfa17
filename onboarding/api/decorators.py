"""
Flask decorators for Bearer token authentication.

Callers of the role API present an OAuth 2.0 Bearer token (RFC 6750) issued by
the identity provider. The token's ``sub`` claim identifies the acting user;
what that user may do is decided by the permission gate, not by token scopes.

Security:
- RSA-SHA256 signature verification via JWKS (RFC 7517)
- Expiration, issuer and (optional) audience validation (RFC 7519)
- JWKS caching (1-hour refresh)
"""

import logging
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
)
from flask import current_app, g, jsonify, request

from onboarding.core.exceptions import AuthenticationError
from onboarding.core.identity import IdentityResolver
from onboarding.core.models import Actor

logger = logging.getLogger(__name__)

# Global JWKS client (cached singleton)
_jwks_client: Optional[PyJWKClient] = None


class TokenValidationError(Exception):
    """Exception raised when JWT token validation fails."""
    pass


def get_jwks_client() -> PyJWKClient:
    """Get cached JWKS client for the configured issuer."""
    global _jwks_client

    if _jwks_client is None:
        cfg = current_app.config["APP_CONFIG"]
        logger.info("Initializing JWKS client for: %s", cfg.oidc_jwks_url)
        _jwks_client = PyJWKClient(
            cfg.oidc_jwks_url,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
            headers={"User-Agent": "Onboarding-RBAC/1.0"},
        )

    return _jwks_client


def validate_jwt_token(token: str) -> Dict[str, Any]:
    """
    Validate a JWT Bearer token.

    Validations performed:
    1. Signature verification (RS256 via JWKS)
    2. Expiration and not-before
    3. Issuer
    4. Audience, when OIDC_AUDIENCE is configured

    Returns:
        dict: Validated token claims

    Raises:
        TokenValidationError: If any validation fails
    """
    cfg = current_app.config["APP_CONFIG"]

    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)

        audience = getattr(cfg, "oidc_audience", "") or None
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            issuer=cfg.oidc_issuer,
            audience=audience,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_nbf": True,
                "verify_iss": True,
                "verify_aud": audience is not None,
                "require": ["exp", "iat", "sub"],
            },
            leeway=5,
        )

        logger.debug("JWT validated for sub=%s", claims.get("sub"))
        return claims

    except ExpiredSignatureError:
        raise TokenValidationError("Token expired (exp claim)")
    except InvalidIssuerError as e:
        raise TokenValidationError(f"Invalid issuer: {e}")
    except InvalidAudienceError as e:
        raise TokenValidationError(f"Invalid audience (token not for this API): {e}")
    except InvalidSignatureError:
        raise TokenValidationError("Invalid signature (token tampered or wrong key)")
    except DecodeError as e:
        raise TokenValidationError(f"Token decode error (malformed JWT): {e}")
    except Exception as e:
        logger.error("JWT validation failed: %s", e)
        raise TokenValidationError(f"Token validation failed: {e}")


def _unauthorized(detail: str):
    return jsonify(AuthenticationError(detail).to_dict()), 401


def require_bearer_token(fn):
    """
    Require a valid Bearer token and expose the caller as ``g.actor``.

    Example:
        @bp.route("/roles", methods=["POST"])
        @require_bearer_token
        def create_role():
            ...
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")

        if not auth_header:
            logger.warning("Request missing Authorization header")
            return _unauthorized("Authorization header required. Use 'Authorization: Bearer <token>'")

        if not auth_header.startswith("Bearer "):
            logger.warning("Request with invalid Authorization format")
            return _unauthorized("Invalid Authorization header format. Expected 'Bearer <token>'")

        token = auth_header[7:]
        if not token:
            return _unauthorized("Bearer token is empty")

        try:
            claims = validate_jwt_token(token)
        except TokenValidationError as e:
            logger.warning("JWT validation failed: %s", e)
            return _unauthorized(str(e))

        g.token_claims = claims
        g.actor = Actor(
            uid=claims["sub"],
            email=claims.get("email", ""),
            display_name=claims.get("name") or claims.get("preferred_username", ""),
        )
        return fn(*args, **kwargs)

    return wrapper


class FlaskIdentityResolver(IdentityResolver):
    """Resolves the actor set by ``require_bearer_token`` for the current request."""

    def get_logged_in_user(self) -> Actor:
        actor = g.get("actor")
        if actor is None:
            raise AuthenticationError("No authenticated user on this request")
        return actor
