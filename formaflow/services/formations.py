"""Transactional formation operations: CRUD plus workflow transitions.

Each public function runs as one unit of work against the entity store: the
formation row is locked, the pure transition from ``shared.workflow`` is applied,
invariants are re-checked and ``updated_at`` is stamped before the commit. Any
failure rolls the whole unit back.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from flask import current_app

from ..models import Branche, City, Formation, Site, User
from ..shared import workflow
from ..shared.acl import (
    Actor,
    can_see_formation,
    is_admin,
    is_approver,
    require_manager,
)
from ..shared.constants import CENTER_CHIEF, DRAFT, FACILITATOR, VALIDATED
from ..shared.errors import (
    AuthorizationError,
    NotFoundError,
    StateError,
    ValidationError,
)
from ..shared.time import now_utc, parse_date
from ..shared.workflow import ApprovalState
from .store import EntityStore

EDITABLE_FIELDS = (
    "title",
    "description",
    "start_date",
    "end_date",
    "facilitator_id",
    "city_id",
    "site_id",
    "branche_id",
)

_REFERENCES = {
    "facilitator_id": User,
    "city_id": City,
    "site_id": Site,
    "branche_id": Branche,
}


def _coerce_id(value: Any, field: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.", fields=[field])


def _apply_fields(store: EntityStore, formation: Formation, data: Mapping[str, Any]) -> None:
    unknown = sorted(set(data) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(
            "Unknown formation fields: " + ", ".join(unknown), fields=unknown
        )
    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ("start_date", "end_date"):
            value = parse_date(value, field)
        elif field in _REFERENCES:
            value = _coerce_id(value, field)
            if value is not None:
                try:
                    store.get(_REFERENCES[field], value)
                except NotFoundError:
                    raise ValidationError(
                        f"{field} references a missing record.", fields=[field]
                    )
        elif isinstance(value, str):
            value = value.strip() or None
        setattr(formation, field, value)

    if formation.facilitator_id is not None:
        facilitator = store.get(User, formation.facilitator_id)
        if not facilitator.has_role(FACILITATOR):
            raise ValidationError(
                "The facilitator must hold the animateur role.",
                fields=["facilitator_id"],
            )
    if formation.site_id is not None and formation.city_id is not None:
        site = store.get(Site, formation.site_id)
        if site.city_id != formation.city_id:
            raise ValidationError(
                "The site does not belong to the formation city.", fields=["site_id"]
            )
    workflow.check_dates(formation.start_date, formation.end_date)


def get_formation(formation_id: int, store: EntityStore | None = None) -> Formation:
    return (store or EntityStore()).get(Formation, formation_id)


def create_formation(
    actor: Actor, data: Mapping[str, Any], store: EntityStore | None = None
) -> Formation:
    """Create a draft formation with both approvals cleared."""

    require_manager(actor, action="create")
    store = store or EntityStore()
    with store.unit_of_work():
        formation = Formation(
            status=DRAFT,
            approved_by_center_chief=False,
            approved_by_coordinator=False,
        )
        _apply_fields(store, formation, data)
        if actor.role == CENTER_CHIEF:
            if formation.branche_id is None:
                formation.branche_id = actor.branche_id
            elif formation.branche_id != actor.branche_id:
                raise AuthorizationError(
                    "A center chief can only create formations in their branche.",
                    role=actor.role,
                )
        formation.updated_at = now_utc()
        store.save(formation)
    current_app.logger.info(
        "[FORMATION-CREATE] id=%s role=%s user=%s",
        formation.id,
        actor.role,
        actor.user_id,
    )
    return formation


def update_formation(
    actor: Actor,
    formation_id: int,
    data: Mapping[str, Any],
    store: EntityStore | None = None,
) -> Formation:
    store = store or EntityStore()
    with store.unit_of_work():
        formation = store.get(Formation, formation_id, for_update=True)
        require_manager(actor, formation, action="edit")
        if formation.status == VALIDATED:
            raise StateError(
                "Validated formations cannot be edited.", status=formation.status
            )
        before = {field: getattr(formation, field) for field in EDITABLE_FIELDS}
        _apply_fields(store, formation, data)
        changed = sorted(
            field for field in EDITABLE_FIELDS if getattr(formation, field) != before[field]
        )
        if not can_see_formation(actor, formation):
            raise AuthorizationError(
                "The change would move the formation outside your scope.",
                role=actor.role,
            )
        if formation.status != DRAFT:
            missing = workflow.missing_required_fields(formation)
            if missing:
                raise ValidationError(
                    "Missing required fields: " + ", ".join(missing), fields=missing
                )
        # any content change invalidates earlier sign-offs
        reset = bool(changed) and (
            formation.approved_by_center_chief or formation.approved_by_coordinator
        )
        if reset:
            formation.approved_by_center_chief = False
            formation.approved_by_coordinator = False
        formation.updated_at = now_utc()
        store.save(formation)
    current_app.logger.info(
        "[FORMATION-UPDATE] id=%s fields=%s approvals_reset=%s user=%s",
        formation.id,
        ",".join(changed),
        reset,
        actor.user_id,
    )
    return formation


def delete_formation(
    actor: Actor, formation_id: int, store: EntityStore | None = None
) -> None:
    if not is_admin(actor):
        raise AuthorizationError(
            "Only administrators can delete formations.", role=actor.role
        )
    store = store or EntityStore()
    with store.unit_of_work():
        store.delete(Formation, formation_id)
    current_app.logger.info(
        "[FORMATION-DELETE] id=%s user=%s", formation_id, actor.user_id
    )


def _transition(
    formation_id: int,
    actor: Actor,
    action: str,
    apply: Callable[[ApprovalState, Formation], ApprovalState],
    store: EntityStore | None,
) -> Formation:
    store = store or EntityStore()
    with store.unit_of_work():
        formation = store.get(Formation, formation_id, for_update=True)
        if action == "promote":
            require_manager(actor, formation, action="promote")
        else:
            if not is_approver(actor):
                raise AuthorizationError(
                    f"Role {actor.role} cannot {action} formations.", role=actor.role
                )
            if not can_see_formation(actor, formation):
                raise AuthorizationError(
                    f"Formation {formation.id} is outside the {actor.role} scope.",
                    role=actor.role,
                )
        before = ApprovalState.of(formation)
        after = apply(before, formation)
        workflow.check_invariants(after)
        after.apply_to(formation)
        stamp = now_utc()
        formation.updated_at = stamp
        if action == "revert":
            formation.returned_at = stamp
        elif after.returned_by is None:
            formation.returned_at = None
        store.save(formation)
    current_app.logger.info(
        "[FORMATION-%s] id=%s role=%s user=%s %s -> %s cdc=%s drif=%s",
        action.upper(),
        formation.id,
        actor.role,
        actor.user_id,
        before.status,
        after.status,
        after.approved_by_center_chief,
        after.approved_by_coordinator,
    )
    return formation


def promote(
    formation_id: int, actor: Actor, store: EntityStore | None = None
) -> Formation:
    """Advance the formation one step along draft -> written -> validated."""

    def apply(state: ApprovalState, formation: Formation) -> ApprovalState:
        new_state = workflow.promote(
            state, workflow.missing_required_fields(formation)
        )
        if state.status == DRAFT:
            workflow.check_dates(formation.start_date, formation.end_date)
        return new_state

    return _transition(formation_id, actor, "promote", apply, store)


def approve(
    formation_id: int, actor: Actor, store: EntityStore | None = None
) -> Formation:
    """Record the acting approver's sign-off on a written formation."""

    return _transition(
        formation_id,
        actor,
        "approve",
        lambda state, _formation: workflow.approve(state, actor.role),
        store,
    )


def revert(
    formation_id: int,
    actor: Actor,
    target_status: str,
    store: EntityStore | None = None,
) -> Formation:
    """Send the formation back one step on behalf of the acting approver."""

    return _transition(
        formation_id,
        actor,
        "revert",
        lambda state, _formation: workflow.revert(state, actor.role, target_status),
        store,
    )
