from __future__ import annotations

from flask import Blueprint, Response, jsonify, request

from ..services import formations as formation_service
from ..services import roster as roster_service
from ..services.enrollment import assign_participants
from ..services.scoping import list_visible, pending_approvals
from ..services.stats import actor_stats, formation_stats
from ..shared.acl import can_see_formation, is_admin
from ..shared.errors import AuthorizationError, ValidationError
from ..shared.rbac import actor_required
from ..shared.records import formation_record, participant_record

bp = Blueprint("formations", __name__, url_prefix="/formations")


def _payload() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    data = dict(data)
    data.pop("role", None)
    return data


def _visible_formation(formation_id: int, actor):
    formation = formation_service.get_formation(formation_id)
    if not can_see_formation(actor, formation):
        raise AuthorizationError(
            f"Formation {formation_id} is outside the {actor.role} scope.",
            role=actor.role,
        )
    return formation


@bp.get("")
@actor_required
def list_formations(actor):
    status = request.args.get("status") or None
    items = list_visible(actor, status)
    return jsonify(
        {
            "ok": True,
            "role": actor.role,
            "formations": [formation_record(f) for f in items],
        }
    )


@bp.post("")
@actor_required
def create_formation(actor):
    formation = formation_service.create_formation(actor, _payload())
    return jsonify({"ok": True, "formation": formation_record(formation)}), 201


@bp.get("/pending")
@actor_required
def pending(actor):
    items = pending_approvals(actor)
    return jsonify({"ok": True, "formations": [formation_record(f) for f in items]})


@bp.get("/stats")
@actor_required
def stats(actor):
    if not is_admin(actor):
        raise AuthorizationError("Only administrators can view global stats.", role=actor.role)
    return jsonify({"ok": True, "stats": formation_stats()})


@bp.get("/mine/stats")
@actor_required
def my_stats(actor):
    return jsonify({"ok": True, "role": actor.role, "stats": actor_stats(actor)})


@bp.get("/<int:formation_id>")
@actor_required
def show_formation(formation_id: int, actor):
    formation = _visible_formation(formation_id, actor)
    return jsonify({"ok": True, "formation": formation_record(formation, expand=True)})


@bp.patch("/<int:formation_id>")
@actor_required
def update_formation(formation_id: int, actor):
    formation = formation_service.update_formation(actor, formation_id, _payload())
    return jsonify({"ok": True, "formation": formation_record(formation)})


@bp.delete("/<int:formation_id>")
@actor_required
def delete_formation(formation_id: int, actor):
    formation_service.delete_formation(actor, formation_id)
    return jsonify({"ok": True, "deleted": formation_id})


@bp.post("/<int:formation_id>/promote")
@actor_required
def promote(formation_id: int, actor):
    formation = formation_service.promote(formation_id, actor)
    return jsonify({"ok": True, "formation": formation_record(formation)})


@bp.post("/<int:formation_id>/approve")
@actor_required
def approve(formation_id: int, actor):
    formation = formation_service.approve(formation_id, actor)
    return jsonify({"ok": True, "formation": formation_record(formation)})


@bp.post("/<int:formation_id>/revert")
@actor_required
def revert(formation_id: int, actor):
    target = _payload().get("target") or request.args.get("target")
    if not target:
        raise ValidationError("target is required.", fields=["target"])
    formation = formation_service.revert(formation_id, actor, target)
    return jsonify({"ok": True, "formation": formation_record(formation)})


@bp.get("/<int:formation_id>/roster")
@actor_required
def roster(formation_id: int, actor):
    _visible_formation(formation_id, actor)
    groups = roster_service.participants_by_center(formation_id)
    return jsonify({"ok": True, "roster": [g.to_dict() for g in groups]})


@bp.get("/<int:formation_id>/roster.csv")
@actor_required
def roster_csv(formation_id: int, actor):
    _visible_formation(formation_id, actor)
    body = roster_service.roster_csv(formation_id)
    return Response(
        body,
        mimetype="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename=formation_{formation_id}_roster.csv"
        },
    )


@bp.post("/<int:formation_id>/participants")
@actor_required
def add_participants(formation_id: int, actor):
    ids = _payload().get("participant_ids")
    if not isinstance(ids, list):
        raise ValidationError("participant_ids must be a list.", fields=["participant_ids"])
    try:
        ids = [int(pid) for pid in ids]
    except (TypeError, ValueError):
        raise ValidationError(
            "participant_ids must contain integers.", fields=["participant_ids"]
        )
    participants = assign_participants(formation_id, ids, actor)
    return jsonify(
        {"ok": True, "participants": [participant_record(p) for p in participants]}
    )
