"""Role management HTTP endpoints.

Thin JSON adapter over RoleService: parse the request, call one service
operation, render the result. Authorization is enforced by the service.
"""
from __future__ import annotations
from typing import Any

from flask import Blueprint, abort, current_app, jsonify, request

from onboarding.core.models import RoleInput, RolePermissionInput
from onboarding.core.roles import RoleService

from .decorators import require_bearer_token

bp = Blueprint("roles", __name__)


def _service() -> RoleService:
    return current_app.extensions["role_service"]


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="Request body must be a JSON object")
    return payload


def _string_list(payload: dict, key: str, required: bool = False) -> list[str]:
    if required and key not in payload:
        abort(400, description=f"'{key}' is required")
    value = payload.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        abort(400, description=f"'{key}' must be a list of strings")
    return value


def _required_string(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        abort(400, description=f"'{key}' is required")
    return value.strip()


# ─────────────────────────────────────────────────────────────────────────────
# Roles
# ─────────────────────────────────────────────────────────────────────────────

@bp.route("/roles", methods=["GET"])
@require_bearer_token
def list_roles():
    """List all roles, or the roles matching ?name= exactly."""
    name = request.args.get("name")
    if name is not None:
        outputs = _service().find_role_by_name(name)
    else:
        outputs = _service().get_all_roles()
    return jsonify([output.to_dict() for output in outputs])


@bp.route("/roles", methods=["POST"])
@require_bearer_token
def create_role():
    payload = _json_body()
    protected = payload.get("protected")
    if protected is not None and not isinstance(protected, bool):
        abort(400, description="'protected' must be a boolean")
    role_input = RoleInput(
        name=_required_string(payload, "name"),
        description=str(payload.get("description", "")),
        scopes=_string_list(payload, "scopes"),
        protected=protected,
    )
    output = _service().create_role(role_input)
    return jsonify(output.to_dict()), 201


@bp.route("/roles/permissions", methods=["GET"])
@require_bearer_token
def list_permissions():
    permissions = _service().get_all_permissions()
    return jsonify([permission.to_dict() for permission in permissions])


@bp.route("/roles/<role_id>/permissions", methods=["POST", "DELETE", "PUT"])
@require_bearer_token
def edit_role_permissions(role_id: str):
    """POST adds scopes, DELETE removes them, PUT replaces the whole set."""
    payload = _json_body()
    # PUT replaces the whole set; a missing key is not an empty set
    scopes = _string_list(payload, "scopes", required=request.method == "PUT")
    role_input = RolePermissionInput(role_id=role_id, scopes=scopes)
    service = _service()
    if request.method == "POST":
        output = service.add_permissions_to_role(role_input)
    elif request.method == "DELETE":
        output = service.revoke_role_permission(role_input)
    else:
        output = service.update_role_permissions(role_input)
    return jsonify(output.to_dict())


@bp.route("/roles/<role_id>/activate", methods=["POST"])
@require_bearer_token
def activate_role(role_id: str):
    return jsonify(_service().activate_role(role_id).to_dict())


@bp.route("/roles/<role_id>/deactivate", methods=["POST"])
@require_bearer_token
def deactivate_role(role_id: str):
    return jsonify(_service().deactivate_role(role_id).to_dict())


@bp.route("/roles/<role_id>", methods=["DELETE"])
@require_bearer_token
def delete_role(role_id: str):
    return jsonify({"deleted": _service().delete_role(role_id)})


# ─────────────────────────────────────────────────────────────────────────────
# User role assignment
# ─────────────────────────────────────────────────────────────────────────────

@bp.route("/users/<user_id>/roles", methods=["POST"])
@require_bearer_token
def assign_roles(user_id: str):
    """Assign one role ({"roleID": ...}) or several ({"roleIDs": [...]})."""
    payload = _json_body()
    if "roleIDs" in payload:
        assigned = _service().assign_multiple_roles(user_id, _string_list(payload, "roleIDs"))
    else:
        assigned = _service().assign_role(user_id, _required_string(payload, "roleID"))
    return jsonify({"assigned": assigned})


@bp.route("/users/<user_id>/roles/<role_id>", methods=["DELETE"])
@require_bearer_token
def revoke_role(user_id: str, role_id: str):
    payload = _json_body()
    reason = _required_string(payload, "reason")
    return jsonify({"revoked": _service().revoke_role(user_id, role_id, reason)})
