from __future__ import annotations

import csv
import io
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import joinedload

from ..app import db
from ..models import Filiere, Formation, Ista, Participant, User
from ..shared.records import lookup_record
from .store import EntityStore


@dataclass
class RosterEntry:
    participant: Participant
    user: User
    filiere: Filiere | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.participant.id,
            "user": {
                "id": self.user.id,
                "name": self.user.full_name,
                "email": self.user.email,
            },
            "filiere": lookup_record(self.filiere),
        }


@dataclass
class CenterRoster:
    """Participants of one formation attending from the same training center."""

    center: Ista
    participants: list[RosterEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "center": lookup_record(self.center),
            "participants": [entry.to_dict() for entry in self.participants],
        }


def _name_key(value: str | None) -> str:
    return (value or "").casefold()


def participants_by_center(
    formation_id: int, store: EntityStore | None = None
) -> list[CenterRoster]:
    """Group a formation's participants by Ista, both levels sorted by name."""

    (store or EntityStore()).get(Formation, formation_id)
    participants = (
        db.session.query(Participant)
        .options(
            joinedload(Participant.user),
            joinedload(Participant.ista),
            joinedload(Participant.filiere),
        )
        .filter(Participant.formation_id == formation_id)
        .all()
    )

    groups: dict[int, CenterRoster] = {}
    members: dict[int, list[RosterEntry]] = defaultdict(list)
    for participant in participants:
        center = participant.ista
        if center.id not in groups:
            groups[center.id] = CenterRoster(center=center)
        members[center.id].append(
            RosterEntry(
                participant=participant,
                user=participant.user,
                filiere=participant.filiere,
            )
        )

    rosters = sorted(
        groups.values(), key=lambda g: (_name_key(g.center.name), g.center.id)
    )
    for roster in rosters:
        roster.participants = sorted(
            members[roster.center.id],
            key=lambda e: (_name_key(e.user.full_name), e.participant.id),
        )
    return rosters


def roster_csv(formation_id: int, store: EntityStore | None = None) -> str:
    """Render the grouped roster as CSV for printing or spreadsheet export."""

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["Center", "Participant", "Email", "Filiere"])
    for roster in participants_by_center(formation_id, store):
        for entry in roster.participants:
            writer.writerow(
                [
                    roster.center.name,
                    entry.user.full_name,
                    entry.user.email,
                    entry.filiere.name if entry.filiere else "",
                ]
            )
    return buf.getvalue()
