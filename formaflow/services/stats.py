from __future__ import annotations

from sqlalchemy import func

from ..app import db
from ..models import Formation
from ..shared.acl import Actor
from ..shared.constants import FORMATION_STATUSES, VALIDATED
from ..shared.workflow import APPROVAL_FLAGS
from .scoping import visible_formations_query


def formation_stats() -> dict[str, int]:
    """Count formations per workflow status, plus the total."""

    rows = (
        db.session.query(Formation.status, func.count(Formation.id))
        .group_by(Formation.status)
        .all()
    )
    counts = {status: 0 for status in FORMATION_STATUSES}
    counts.update({status: total for status, total in rows})
    counts["total"] = sum(counts[s] for s in FORMATION_STATUSES)
    return counts


def actor_stats(actor: Actor) -> dict[str, int]:
    """In-progress vs completed formations from the acting role's viewpoint.

    Approvers count by their own sign-off; everyone else counts validated
    formations in their visible set as completed.
    """

    query = visible_formations_query(actor)
    flag = APPROVAL_FLAGS.get(actor.role)
    if flag is not None:
        approved = getattr(Formation, flag)
        completed = query.filter(approved.is_(True)).count()
        in_progress = (
            query.filter(approved.is_(False))
            .filter(Formation.status != VALIDATED)
            .count()
        )
    else:
        completed = query.filter(Formation.status == VALIDATED).count()
        in_progress = query.filter(Formation.status != VALIDATED).count()
    return {"in_progress": in_progress, "completed": completed}
