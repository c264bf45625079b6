"""Role-scoped visibility of formations."""

from __future__ import annotations

from sqlalchemy import false
from sqlalchemy.orm import Query

from ..app import db
from ..models import City, Formation, Participant, Region
from ..shared.acl import Actor, normalize_role
from ..shared.constants import (
    ADMIN,
    CENTER_CHIEF,
    COORDINATOR,
    DIRECTOR,
    FACILITATOR,
    FORMATION_STATUSES,
    PARTICIPANT,
    WRITTEN,
)
from ..shared.errors import AuthorizationError, UnknownRoleError, ValidationError
from ..shared.workflow import APPROVAL_FLAGS
from .store import EntityStore


def visible_formations_query(actor: Actor) -> Query:
    """Return a query over the formations ``actor`` may observe."""

    role = normalize_role(actor.role)
    query = db.session.query(Formation)
    if role in (ADMIN, COORDINATOR):
        return query
    if role == DIRECTOR:
        if actor.region_id is None:
            return query.filter(false())
        return query.join(City, Formation.city_id == City.id).filter(
            City.region_id == actor.region_id
        )
    if role == CENTER_CHIEF:
        if actor.branche_id is None:
            return query.filter(false())
        return query.filter(Formation.branche_id == actor.branche_id)
    if role == FACILITATOR:
        return query.filter(Formation.facilitator_id == actor.user_id)
    if role == PARTICIPANT:
        return query.join(Participant, Participant.formation_id == Formation.id).filter(
            Participant.user_id == actor.user_id
        )
    raise UnknownRoleError(role)


def visible_formations(actor: Actor) -> set[Formation]:
    return set(visible_formations_query(actor).all())


def list_visible(actor: Actor, status: str | None = None) -> list[Formation]:
    query = visible_formations_query(actor)
    if status is not None:
        if status not in FORMATION_STATUSES:
            raise ValidationError(f"Unknown status {status!r}", fields=["status"])
        query = query.filter(Formation.status == status)
    return query.order_by(Formation.start_date, Formation.id).all()


def pending_approvals(actor: Actor) -> list[Formation]:
    """Written formations in scope still waiting for the actor's sign-off."""

    flag = APPROVAL_FLAGS.get(actor.role)
    if flag is None:
        raise AuthorizationError(
            f"Role {actor.role} does not approve formations.", role=actor.role
        )
    return (
        visible_formations_query(actor)
        .filter(Formation.status == WRITTEN)
        .filter(getattr(Formation, flag).is_(False))
        .order_by(Formation.start_date, Formation.id)
        .all()
    )


def list_by_region(
    region_id: int, *, approved_only: bool = False, store: EntityStore | None = None
) -> list[Formation]:
    (store or EntityStore()).get(Region, region_id)
    query = (
        db.session.query(Formation)
        .join(City, Formation.city_id == City.id)
        .filter(City.region_id == region_id)
    )
    if approved_only:
        query = query.filter(Formation.approved_by_coordinator.is_(True))
    return query.order_by(Formation.start_date, Formation.id).all()
