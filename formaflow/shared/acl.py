from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..models import RoleCapability, User
from .constants import (
    ADMIN,
    APPROVER_ROLES,
    CENTER_CHIEF,
    COORDINATOR,
    DIRECTOR,
    FACILITATOR,
    FORMATION_MANAGER_ROLES,
    PARTICIPANT,
    ROLE_PRIORITY,
)
from .errors import AuthorizationError, UnknownRoleError


@dataclass(frozen=True)
class Actor:
    """A user acting in one of the roles they hold."""

    user: User
    role: str
    capability: RoleCapability | None = None

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def region_id(self) -> int | None:
        return self.capability.region_id if self.capability else None

    @property
    def branche_id(self) -> int | None:
        return self.capability.branche_id if self.capability else None


def normalize_role(role: Any) -> str:
    if not isinstance(role, str) or role.strip().lower() not in ROLE_PRIORITY:
        raise UnknownRoleError(role)
    return role.strip().lower()


def default_role(user: User) -> str | None:
    held = set(user.role_kinds())
    for role in ROLE_PRIORITY:
        if role in held:
            return role
    return None


def resolve_actor(user: User, role: str | None = None) -> Actor:
    """Return ``user`` acting as ``role`` (or their highest-priority role)."""

    if role is None:
        role = default_role(user)
        if role is None:
            raise AuthorizationError("User holds no role.")
    else:
        role = normalize_role(role)
    if not user.has_role(role):
        raise AuthorizationError(f"User does not hold the {role} role.", role=role)
    return Actor(user=user, role=role, capability=user.capability(role))


def is_admin(actor: Actor) -> bool:
    return actor.role == ADMIN


def is_approver(actor: Actor) -> bool:
    return actor.role in APPROVER_ROLES


def can_manage_formations(actor: Actor) -> bool:
    return actor.role in FORMATION_MANAGER_ROLES


def can_see_formation(actor: Actor, formation: Any) -> bool:
    """Row-level check matching the scoping queries for a single formation."""

    role = normalize_role(actor.role)
    if role in (ADMIN, COORDINATOR):
        return True
    if role == DIRECTOR:
        city = formation.city
        return bool(city and actor.region_id and city.region_id == actor.region_id)
    if role == CENTER_CHIEF:
        return bool(actor.branche_id and formation.branche_id == actor.branche_id)
    if role == FACILITATOR:
        return formation.facilitator_id == actor.user_id
    if role == PARTICIPANT:
        participant = actor.user.participant
        return bool(participant and participant.formation_id == formation.id)
    raise UnknownRoleError(role)


def require_manager(actor: Actor, formation: Any | None = None, action: str = "manage") -> None:
    if not can_manage_formations(actor):
        raise AuthorizationError(
            f"Role {actor.role} cannot {action} formations.", role=actor.role
        )
    if formation is not None and not can_see_formation(actor, formation):
        raise AuthorizationError(
            f"Formation {formation.id} is outside the {actor.role} scope.",
            role=actor.role,
        )
