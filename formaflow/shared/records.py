"""Plain-dict renderings of entities for JSON responses and exports."""

from __future__ import annotations

from typing import Any

from .time import iso

TIMESTAMP_FIELDS = ("created_at", "updated_at", "returned_at")


def lookup_record(obj: Any) -> dict[str, Any] | None:
    if obj is None:
        return None
    record = {"id": obj.id, "name": obj.name}
    for parent in ("region_id", "city_id", "branche_id"):
        if hasattr(obj, parent):
            record[parent] = getattr(obj, parent)
    if hasattr(obj, "address"):
        record["address"] = obj.address
    return record


def user_record(user: Any) -> dict[str, Any] | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "phone": user.phone,
        "roles": user.role_kinds(),
    }


def capability_record(cap: Any) -> dict[str, Any]:
    return {
        "id": cap.id,
        "user_id": cap.user_id,
        "kind": cap.kind,
        "region_id": cap.region_id,
        "branche_id": cap.branche_id,
        "filiere_ids": sorted(f.id for f in cap.filieres),
    }


def formation_record(formation: Any, *, expand: bool = False) -> dict[str, Any]:
    record = {
        "id": formation.id,
        "title": formation.title,
        "description": formation.description,
        "start_date": iso(formation.start_date),
        "end_date": iso(formation.end_date),
        "status": formation.status,
        "approved_by_center_chief": bool(formation.approved_by_center_chief),
        "approved_by_coordinator": bool(formation.approved_by_coordinator),
        "returned_by": formation.returned_by,
        "returned_to": formation.returned_to,
        "returned_at": iso(formation.returned_at),
        "facilitator_id": formation.facilitator_id,
        "city_id": formation.city_id,
        "site_id": formation.site_id,
        "branche_id": formation.branche_id,
        "created_at": iso(formation.created_at),
        "updated_at": iso(formation.updated_at),
    }
    if expand:
        record["facilitator"] = user_record(formation.facilitator)
        record["city"] = lookup_record(formation.city)
        record["site"] = lookup_record(formation.site)
        record["branche"] = lookup_record(formation.branche)
    return record


def participant_record(participant: Any) -> dict[str, Any]:
    user = participant.user
    return {
        "id": participant.id,
        "user_id": participant.user_id,
        "name": user.full_name if user else None,
        "email": user.email if user else None,
        "ista_id": participant.ista_id,
        "formation_id": participant.formation_id,
        "filiere": lookup_record(participant.filiere),
    }


def without_timestamps(record: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k not in TIMESTAMP_FIELDS}
