from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services.lookups import create_lookup, delete_lookup, list_lookups, update_lookup
from ..services.scoping import list_by_region
from ..shared.acl import is_admin
from ..shared.constants import COORDINATOR, DIRECTOR
from ..shared.errors import AuthorizationError
from ..shared.rbac import actor_required, admin_required
from ..shared.records import formation_record, lookup_record

bp = Blueprint("lookups", __name__)


@bp.get("/lookups/<kind>")
@actor_required
def list_kind(kind: str, actor):
    parent_id = request.args.get("parent_id", type=int)
    items = list_lookups(kind, parent_id)
    return jsonify({"ok": True, "items": [lookup_record(i) for i in items]})


@bp.post("/lookups/<kind>")
@admin_required
def create_kind(kind: str, actor):
    record = create_lookup(kind, request.get_json(silent=True) or {})
    return jsonify({"ok": True, "item": lookup_record(record)}), 201


@bp.put("/lookups/<kind>/<int:item_id>")
@admin_required
def update_kind(kind: str, item_id: int, actor):
    record = update_lookup(kind, item_id, request.get_json(silent=True) or {})
    return jsonify({"ok": True, "item": lookup_record(record)})


@bp.delete("/lookups/<kind>/<int:item_id>")
@admin_required
def delete_kind(kind: str, item_id: int, actor):
    delete_lookup(kind, item_id)
    return jsonify({"ok": True, "deleted": item_id})


@bp.get("/regions/<int:region_id>/formations")
@actor_required
def region_formations(region_id: int, actor):
    allowed = (
        is_admin(actor)
        or actor.role == COORDINATOR
        or (actor.role == DIRECTOR and actor.region_id == region_id)
    )
    if not allowed:
        raise AuthorizationError(
            f"Role {actor.role} cannot list formations of region {region_id}.",
            role=actor.role,
        )
    approved_only = request.args.get("approved_only", "").lower() in ("1", "true", "yes")
    items = list_by_region(region_id, approved_only=approved_only)
    return jsonify(
        {
            "ok": True,
            "region_id": region_id,
            "formations": [formation_record(f) for f in items],
        }
    )
