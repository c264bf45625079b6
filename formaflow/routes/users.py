from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..models import User
from ..services import accounts
from ..services.store import EntityStore
from ..shared.constants import ROLE_LABELS
from ..shared.errors import ValidationError
from ..shared.rbac import actor_required, admin_required
from ..shared.records import capability_record, user_record

bp = Blueprint("users", __name__, url_prefix="/users")


@bp.get("/me")
@actor_required
def me(actor):
    return jsonify(
        {
            "ok": True,
            "user": user_record(actor.user),
            "active_role": actor.role,
            "active_role_label": ROLE_LABELS[actor.role],
        }
    )


@bp.patch("/me")
@actor_required
def update_me(actor):
    data = request.get_json(silent=True) or {}
    data.pop("role", None)
    user = accounts.update_profile(actor.user_id, data)
    return jsonify({"ok": True, "user": user_record(user)})


@bp.post("/me/password")
@actor_required
def change_my_password(actor):
    data = request.get_json(silent=True) or {}
    accounts.change_password(
        actor.user_id,
        data.get("current_password"),
        data.get("new_password"),
        data.get("confirmation"),
    )
    return jsonify({"ok": True})


@bp.get("")
@admin_required
def list_users(actor):
    users = EntityStore().query(User, order_by=[User.full_name, User.id])
    return jsonify({"ok": True, "users": [user_record(u) for u in users]})


@bp.post("")
@admin_required
def create_user(actor):
    data = request.get_json(silent=True) or {}
    user = accounts.create_user(
        data.get("email"),
        data.get("full_name"),
        password=data.get("password"),
        phone=data.get("phone"),
    )
    return jsonify({"ok": True, "user": user_record(user)}), 201


@bp.delete("/<int:user_id>")
@admin_required
def delete_user(user_id: int, actor):
    if user_id == actor.user_id:
        raise ValidationError("Administrators cannot delete themselves.", fields=["user_id"])
    accounts.delete_user(user_id)
    return jsonify({"ok": True, "deleted": user_id})


@bp.post("/<int:user_id>/roles")
@admin_required
def grant_role(user_id: int, actor):
    data = request.get_json(silent=True) or {}
    filiere_ids = data.get("filiere_ids") or []
    if not isinstance(filiere_ids, list):
        raise ValidationError("filiere_ids must be a list.", fields=["filiere_ids"])
    cap = accounts.grant_role(
        user_id,
        data.get("kind"),
        region_id=data.get("region_id"),
        branche_id=data.get("branche_id"),
        filiere_ids=filiere_ids,
    )
    return jsonify({"ok": True, "capability": capability_record(cap)}), 201


@bp.put("/<int:user_id>/roles/cdc/filieres")
@admin_required
def set_cdc_filieres(user_id: int, actor):
    data = request.get_json(silent=True) or {}
    filiere_ids = data.get("filiere_ids")
    if not isinstance(filiere_ids, list):
        raise ValidationError("filiere_ids must be a list.", fields=["filiere_ids"])
    cap = accounts.set_cdc_filieres(user_id, filiere_ids)
    return jsonify({"ok": True, "capability": capability_record(cap)})


@bp.delete("/<int:user_id>/roles/<kind>")
@admin_required
def revoke_role(user_id: int, kind: str, actor):
    accounts.revoke_role(user_id, kind)
    return jsonify({"ok": True, "user_id": user_id, "revoked": kind})
