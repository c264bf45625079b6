"""Reference data: regions, cities, sites, training centers, branches, filieres."""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from ..models import Branche, City, Filiere, Ista, Region, Site
from ..shared.errors import NotFoundError, ValidationError
from .store import EntityStore

# kind -> (model, parent field, parent model, extra optional fields)
LOOKUPS: dict[str, tuple[type, str | None, type | None, tuple[str, ...]]] = {
    "regions": (Region, None, None, ()),
    "cities": (City, "region_id", Region, ()),
    "sites": (Site, "city_id", City, ("address",)),
    "istas": (Ista, "city_id", City, ("address",)),
    "branches": (Branche, None, None, ()),
    "filieres": (Filiere, "branche_id", Branche, ()),
}


def lookup_model(kind: str) -> type:
    try:
        return LOOKUPS[kind][0]
    except KeyError:
        raise NotFoundError("Lookup", kind)


def list_lookups(kind: str, parent_id: int | None = None, store: EntityStore | None = None):
    model = lookup_model(kind)
    parent_field = LOOKUPS[kind][1]
    store = store or EntityStore()
    criteria = []
    if parent_id is not None and parent_field:
        criteria.append(getattr(model, parent_field) == parent_id)
    return store.query(model, *criteria, order_by=[model.name, model.id])


def _clean_name(model: type, data: Mapping[str, Any], ident: int | None = None) -> str:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required.", fields=["name"])
    if model in (Region, Branche):
        clash = model.query.filter_by(name=name).first()
        if clash is not None and clash.id != ident:
            raise ValidationError(f"{model.__name__} {name!r} already exists.", fields=["name"])
    return name


def _set_parent(store: EntityStore, record: Any, kind: str, data: Mapping[str, Any]) -> None:
    _, parent_field, parent_model, _ = LOOKUPS[kind]
    parent_id = data.get(parent_field)
    if parent_id in (None, ""):
        raise ValidationError(f"{parent_field} is required.", fields=[parent_field])
    try:
        parent = store.get(parent_model, int(parent_id))
    except (TypeError, ValueError):
        raise ValidationError(f"{parent_field} must be an integer.", fields=[parent_field])
    setattr(record, parent_field[: -len("_id")], parent)


def _set_extra(record: Any, kind: str, data: Mapping[str, Any], partial: bool = False) -> None:
    for field in LOOKUPS[kind][3]:
        if partial and field not in data:
            continue
        value = data.get(field)
        if isinstance(value, str):
            value = value.strip() or None
        setattr(record, field, value)


def create_lookup(kind: str, data: Mapping[str, Any], store: EntityStore | None = None):
    model = lookup_model(kind)
    parent_field = LOOKUPS[kind][1]
    name = _clean_name(model, data)

    store = store or EntityStore()
    with store.unit_of_work():
        record = model(name=name)
        if parent_field:
            _set_parent(store, record, kind, data)
        _set_extra(record, kind, data)
        store.save(record)
    current_app.logger.info("[LOOKUP] created %s id=%s", kind, record.id)
    return record


def update_lookup(
    kind: str, ident: int, data: Mapping[str, Any], store: EntityStore | None = None
):
    """Rename a lookup row; the parent and extra fields change only when sent."""

    model = lookup_model(kind)
    parent_field = LOOKUPS[kind][1]
    name = _clean_name(model, data, ident)

    store = store or EntityStore()
    with store.unit_of_work():
        record = store.get(model, ident)
        record.name = name
        if parent_field and parent_field in data:
            _set_parent(store, record, kind, data)
        _set_extra(record, kind, data, partial=True)
        store.save(record)
    current_app.logger.info("[LOOKUP] updated %s id=%s", kind, ident)
    return record


def delete_lookup(kind: str, ident: int, store: EntityStore | None = None) -> None:
    """Delete a lookup row; dependent rows follow the model cascades."""

    model = lookup_model(kind)
    store = store or EntityStore()
    with store.unit_of_work():
        store.delete(model, ident)
    current_app.logger.info("[LOOKUP] deleted %s id=%s", kind, ident)
