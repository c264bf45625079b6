from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services.enrollment import (
    create_participant,
    delete_participant,
    list_participants as visible_participants,
    unassign_participant,
    update_participant,
)
from ..shared.acl import require_manager
from ..shared.errors import ValidationError
from ..shared.rbac import actor_required, admin_required
from ..shared.records import participant_record

bp = Blueprint("participants", __name__, url_prefix="/participants")


def _int_field(data: dict, name: str, required: bool = True) -> int | None:
    value = data.get(name)
    if value in (None, ""):
        if required:
            raise ValidationError(f"{name} is required.", fields=[name])
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer.", fields=[name])


@bp.get("")
@actor_required
def list_participants(actor):
    items = visible_participants(
        actor,
        ista_id=request.args.get("ista_id", type=int),
        unassigned=bool(request.args.get("unassigned")),
    )
    return jsonify({"ok": True, "participants": [participant_record(p) for p in items]})


@bp.post("")
@actor_required
def register_participant(actor):
    require_manager(actor, action="register participants for")
    data = request.get_json(silent=True) or {}
    participant = create_participant(
        _int_field(data, "user_id"),
        _int_field(data, "ista_id"),
        _int_field(data, "filiere_id", required=False),
    )
    return jsonify({"ok": True, "participant": participant_record(participant)}), 201


@bp.patch("/<int:participant_id>")
@actor_required
def edit_participant(participant_id: int, actor):
    data = request.get_json(silent=True) or {}
    data.pop("role", None)
    participant = update_participant(participant_id, data, actor)
    return jsonify({"ok": True, "participant": participant_record(participant)})


@bp.delete("/<int:participant_id>")
@admin_required
def remove_participant(participant_id: int, actor):
    delete_participant(participant_id)
    return jsonify({"ok": True, "deleted": participant_id})


@bp.delete("/<int:participant_id>/formation")
@actor_required
def unassign(participant_id: int, actor):
    participant = unassign_participant(participant_id, actor)
    return jsonify({"ok": True, "participant": participant_record(participant)})
