from __future__ import annotations

from typing import Any, Iterable, Mapping

from flask import current_app

from ..models import Filiere, Formation, Ista, Participant, User
from ..shared.acl import Actor, require_manager
from ..shared.constants import CENTER_CHIEF, VALIDATED
from ..shared.errors import StateError, ValidationError
from .store import EntityStore

PARTICIPANT_FIELDS = ("ista_id", "filiere_id")


def create_participant(
    user_id: int,
    ista_id: int,
    filiere_id: int | None = None,
    store: EntityStore | None = None,
) -> Participant:
    """Enroll a user at a training center; formation assignment comes later."""

    store = store or EntityStore()
    with store.unit_of_work():
        user = store.get(User, user_id)
        if user.participant is not None:
            raise ValidationError(
                "User is already registered as a participant.", fields=["user_id"]
            )
        ista = store.get(Ista, ista_id)
        filiere = store.get(Filiere, filiere_id) if filiere_id is not None else None
        participant = Participant(user=user, ista=ista, filiere=filiere)
        store.save(participant)
    return participant


def list_participants(
    actor: Actor,
    *,
    ista_id: int | None = None,
    unassigned: bool = False,
    store: EntityStore | None = None,
) -> list[Participant]:
    """Participants the actor may enroll; a cdc only sees its curated filieres."""

    require_manager(actor, action="list participants of")
    store = store or EntityStore()
    criteria = []
    if actor.role == CENTER_CHIEF:
        filiere_ids = [f.id for f in actor.capability.filieres] if actor.capability else []
        if not filiere_ids:
            return []
        criteria.append(Participant.filiere_id.in_(filiere_ids))
    if ista_id is not None:
        criteria.append(Participant.ista_id == ista_id)
    if unassigned:
        criteria.append(Participant.formation_id.is_(None))
    return store.query(Participant, *criteria, order_by=Participant.id)


def _participant_id(value: Any, field: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.", fields=[field])


def update_participant(
    participant_id: int,
    data: Mapping[str, Any],
    actor: Actor,
    store: EntityStore | None = None,
) -> Participant:
    """Move a participant to another center and/or filiere."""

    require_manager(actor, action="update participants of")
    unknown = sorted(set(data) - set(PARTICIPANT_FIELDS))
    if unknown:
        raise ValidationError(
            "Unknown participant fields: " + ", ".join(unknown), fields=unknown
        )
    store = store or EntityStore()
    with store.unit_of_work():
        participant = store.get(Participant, participant_id)
        if "ista_id" in data:
            ista_id = _participant_id(data["ista_id"], "ista_id")
            if ista_id is None:
                raise ValidationError("ista_id is required.", fields=["ista_id"])
            participant.ista = store.get(Ista, ista_id)
        if "filiere_id" in data:
            filiere_id = _participant_id(data["filiere_id"], "filiere_id")
            participant.filiere = (
                store.get(Filiere, filiere_id) if filiere_id is not None else None
            )
        store.save(participant)
    current_app.logger.info(
        "[PARTICIPANT-UPDATE] id=%s fields=%s user=%s",
        participant_id,
        ",".join(sorted(data)),
        actor.user_id,
    )
    return participant


def delete_participant(participant_id: int, store: EntityStore | None = None) -> None:
    store = store or EntityStore()
    with store.unit_of_work():
        store.delete(Participant, participant_id)


def assign_participants(
    formation_id: int,
    participant_ids: Iterable[int],
    actor: Actor,
    store: EntityStore | None = None,
) -> list[Participant]:
    """Attach participants to a formation, replacing any earlier assignment."""

    store = store or EntityStore()
    ids = list(dict.fromkeys(participant_ids))
    if not ids:
        raise ValidationError("participant_ids must not be empty.", fields=["participant_ids"])
    with store.unit_of_work():
        formation = store.get(Formation, formation_id, for_update=True)
        require_manager(actor, formation, action="enroll participants in")
        if formation.status == VALIDATED:
            raise StateError(
                "Participants cannot be added to a validated formation.",
                status=formation.status,
            )
        participants = [store.get(Participant, pid) for pid in ids]
        for participant in participants:
            participant.formation = formation
            store.save(participant)
    current_app.logger.info(
        "[FORMATION-ENROLL] id=%s participants=%s user=%s",
        formation_id,
        ",".join(str(p.id) for p in participants),
        actor.user_id,
    )
    return participants


def unassign_participant(
    participant_id: int, actor: Actor, store: EntityStore | None = None
) -> Participant:
    store = store or EntityStore()
    with store.unit_of_work():
        participant = store.get(Participant, participant_id)
        if participant.formation is not None:
            require_manager(actor, participant.formation, action="unenroll participants from")
        else:
            require_manager(actor, action="unenroll participants from")
        participant.formation = None
        store.save(participant)
    return participant
