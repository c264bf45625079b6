"""Formation approval workflow as pure functions over an approval record."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable

from .constants import (
    CENTER_CHIEF,
    COORDINATOR,
    DRAFT,
    FORMATION_STATUSES,
    REQUIRED_FORMATION_FIELDS,
    VALIDATED,
    WRITTEN,
)
from .errors import AuthorizationError, PreconditionError, StateError, ValidationError

APPROVAL_FLAGS = {
    CENTER_CHIEF: "approved_by_center_chief",
    COORDINATOR: "approved_by_coordinator",
}

# target status of a revert, keyed by the current status
REVERT_TARGETS = {VALIDATED: WRITTEN, WRITTEN: DRAFT}


@dataclass(frozen=True)
class ApprovalState:
    status: str = DRAFT
    approved_by_center_chief: bool = False
    approved_by_coordinator: bool = False
    returned_by: str | None = None
    returned_to: str | None = None

    @classmethod
    def of(cls, formation: Any) -> "ApprovalState":
        return cls(
            status=formation.status,
            approved_by_center_chief=bool(formation.approved_by_center_chief),
            approved_by_coordinator=bool(formation.approved_by_coordinator),
            returned_by=formation.returned_by,
            returned_to=formation.returned_to,
        )

    def apply_to(self, formation: Any) -> None:
        formation.status = self.status
        formation.approved_by_center_chief = self.approved_by_center_chief
        formation.approved_by_coordinator = self.approved_by_coordinator
        formation.returned_by = self.returned_by
        formation.returned_to = self.returned_to

    @property
    def fully_approved(self) -> bool:
        return self.approved_by_center_chief and self.approved_by_coordinator

    def missing_approvals(self) -> list[str]:
        return [role for role, flag in APPROVAL_FLAGS.items() if not getattr(self, flag)]


def missing_required_fields(formation: Any) -> list[str]:
    """Return the required fields that are empty on ``formation``."""

    missing = []
    for field in REQUIRED_FORMATION_FIELDS:
        value = getattr(formation, field, None)
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            missing.append(field)
    return missing


def check_dates(start_date: Any, end_date: Any) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationError(
            "end_date must be on or after start_date.", fields=["end_date"]
        )


def check_invariants(state: ApprovalState) -> None:
    if state.status not in FORMATION_STATUSES:
        raise StateError(f"Unknown status {state.status!r}", status=state.status)
    if state.status == VALIDATED and not state.fully_approved:
        raise StateError(
            "A validated formation must carry both approvals.", status=state.status
        )


def _require_approver(role: str, action: str) -> str:
    flag = APPROVAL_FLAGS.get(role)
    if flag is None:
        raise AuthorizationError(
            f"Role {role!r} cannot {action} formations.", role=role
        )
    return flag


def promote(state: ApprovalState, missing_fields: Iterable[str] = ()) -> ApprovalState:
    """Advance ``state`` exactly one step along draft -> written -> validated."""

    if state.status == DRAFT:
        missing = list(missing_fields)
        if missing:
            raise ValidationError(
                "Missing required fields: " + ", ".join(missing), fields=missing
            )
        new_state = replace(state, status=WRITTEN, returned_by=None, returned_to=None)
    elif state.status == WRITTEN:
        if not state.fully_approved:
            raise PreconditionError(
                "awaiting dual approval", missing=state.missing_approvals()
            )
        new_state = replace(
            state, status=VALIDATED, returned_by=None, returned_to=None
        )
    elif state.status == VALIDATED:
        raise StateError("Formation is already validated.", status=state.status)
    else:
        raise StateError(f"Unknown status {state.status!r}", status=state.status)
    check_invariants(new_state)
    return new_state


def approve(state: ApprovalState, role: str) -> ApprovalState:
    """Set the approval flag owned by ``role``."""

    flag = _require_approver(role, "approve")
    if state.status != WRITTEN:
        raise StateError(
            "Formations can only be approved while written.", status=state.status
        )
    new_state = replace(state, **{flag: True})
    check_invariants(new_state)
    return new_state


def revert(state: ApprovalState, role: str, target: str) -> ApprovalState:
    """Send the formation back one step, clearing only ``role``'s own flag."""

    flag = _require_approver(role, "revert")
    if target not in FORMATION_STATUSES:
        raise ValidationError(f"Unknown target status {target!r}", fields=["target"])
    expected = REVERT_TARGETS.get(state.status)
    if expected is None or expected != target:
        raise StateError(
            f"Cannot return a {state.status} formation to {target}.",
            status=state.status,
            target=target,
        )
    new_state = replace(
        state, status=target, returned_by=role, returned_to=target, **{flag: False}
    )
    check_invariants(new_state)
    return new_state
