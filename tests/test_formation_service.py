from datetime import date

import pytest

from conftest import actor_for, make_formation
from formaflow.app import db
from formaflow.models import Formation
from formaflow.services import formations
from formaflow.shared.errors import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    StateError,
    ValidationError,
)
from formaflow.shared.records import formation_record, without_timestamps


pytestmark = pytest.mark.smoke


def reload(formation_id):
    db.session.expire_all()
    return db.session.get(Formation, formation_id)


def test_full_approval_scenario(world):
    f = make_formation(world)
    drif = actor_for(world.drif)
    cdc = actor_for(world.cdc)

    formations.promote(f.id, drif)
    assert reload(f.id).status == "written"

    with pytest.raises(PreconditionError) as exc:
        formations.promote(f.id, drif)
    assert exc.value.missing == ["cdc", "drif"]

    formations.approve(f.id, cdc)
    formations.approve(f.id, drif)
    formation = formations.promote(f.id, drif)
    assert formation.status == "validated"
    assert formation.approved_by_center_chief
    assert formation.approved_by_coordinator

    formation = formations.revert(f.id, drif, "written")
    assert formation.status == "written"
    assert formation.approved_by_center_chief is True
    assert formation.approved_by_coordinator is False
    assert formation.returned_by == "drif"
    assert formation.returned_to == "written"
    assert formation.returned_at is not None


def test_promote_missing_fields_names_them(world):
    f = make_formation(world, title=None, site_id=None)
    with pytest.raises(ValidationError) as exc:
        formations.promote(f.id, actor_for(world.admin))
    assert set(exc.value.fields) == {"title", "site_id"}
    assert reload(f.id).status == "draft"


def test_promote_rejects_inverted_dates(world):
    f = make_formation(
        world, start_date=date(2026, 11, 6), end_date=date(2026, 11, 2)
    )
    with pytest.raises(ValidationError):
        formations.promote(f.id, actor_for(world.admin))
    assert reload(f.id).status == "draft"


def test_promote_validated_is_state_error(world):
    f = make_formation(
        world,
        status="validated",
        approved_by_center_chief=True,
        approved_by_coordinator=True,
    )
    with pytest.raises(StateError):
        formations.promote(f.id, actor_for(world.drif))
    assert reload(f.id).status == "validated"


def test_only_managers_promote(world):
    f = make_formation(world)
    for user in (world.dr_nord, world.fac):
        with pytest.raises(AuthorizationError):
            formations.promote(f.id, actor_for(user))
    assert reload(f.id).status == "draft"


def test_admin_cannot_approve(world):
    f = make_formation(world, status="written")
    with pytest.raises(AuthorizationError):
        formations.approve(f.id, actor_for(world.admin))
    formation = reload(f.id)
    assert not formation.approved_by_center_chief
    assert not formation.approved_by_coordinator


def test_cdc_scoped_to_own_branche(world):
    f = make_formation(world, status="written", branche=world.btp)
    with pytest.raises(AuthorizationError):
        formations.approve(f.id, actor_for(world.cdc))
    formations.approve(f.id, actor_for(world.cdc_btp))
    assert reload(f.id).approved_by_center_chief is True


def test_approve_draft_leaves_flags_unchanged(world):
    f = make_formation(world)
    with pytest.raises(StateError):
        formations.approve(f.id, actor_for(world.cdc))
    formation = reload(f.id)
    assert formation.status == "draft"
    assert not formation.approved_by_center_chief


def test_revert_written_to_draft_by_cdc(world):
    f = make_formation(world, status="written", approved_by_center_chief=True)
    formation = formations.revert(f.id, actor_for(world.cdc), "draft")
    assert formation.status == "draft"
    assert formation.approved_by_center_chief is False
    assert formation.returned_by == "cdc"

    formation = formations.promote(f.id, actor_for(world.cdc))
    assert formation.status == "written"
    assert formation.returned_by is None
    assert formation.returned_at is None


def test_revert_illegal_target_leaves_state(world):
    f = make_formation(world, status="written")
    with pytest.raises(StateError):
        formations.revert(f.id, actor_for(world.drif), "validated")
    assert reload(f.id).status == "written"


def test_unknown_formation(world):
    with pytest.raises(NotFoundError):
        formations.promote(999, actor_for(world.admin))


def test_create_formation_starts_in_draft(world):
    cdc = actor_for(world.cdc)
    formation = formations.create_formation(
        cdc,
        {
            "title": "Cloud",
            "description": "Cloud basics",
            "start_date": "2026-12-01",
            "end_date": "2026-12-03",
            "facilitator_id": world.fac.id,
            "city_id": world.tanger.id,
            "site_id": world.site_tanger.id,
        },
    )
    assert formation.status == "draft"
    assert formation.branche_id == world.digital.id
    assert not formation.approved_by_center_chief
    assert not formation.approved_by_coordinator
    assert formation.start_date == date(2026, 12, 1)


def test_create_formation_validation(world):
    admin = actor_for(world.admin)
    with pytest.raises(ValidationError) as exc:
        formations.create_formation(admin, {"title": "x", "status": "validated"})
    assert exc.value.fields == ["status"]

    with pytest.raises(ValidationError) as exc:
        formations.create_formation(admin, {"facilitator_id": world.drif.id})
    assert exc.value.fields == ["facilitator_id"]

    with pytest.raises(ValidationError) as exc:
        formations.create_formation(
            admin, {"city_id": world.tanger.id, "site_id": world.site_agadir.id}
        )
    assert exc.value.fields == ["site_id"]

    with pytest.raises(ValidationError):
        formations.create_formation(
            admin, {"start_date": "2026-12-03", "end_date": "2026-12-01"}
        )
    assert Formation.query.count() == 0


def test_cdc_cannot_create_in_other_branche(world):
    with pytest.raises(AuthorizationError):
        formations.create_formation(
            actor_for(world.cdc), {"title": "x", "branche_id": world.btp.id}
        )
    with pytest.raises(AuthorizationError):
        formations.create_formation(actor_for(world.fac), {"title": "x"})


def test_update_formation(world):
    f = make_formation(world)
    formation = formations.update_formation(
        actor_for(world.drif), f.id, {"title": "Advanced Python"}
    )
    assert formation.title == "Advanced Python"

    validated = make_formation(
        world,
        status="validated",
        approved_by_center_chief=True,
        approved_by_coordinator=True,
    )
    with pytest.raises(StateError):
        formations.update_formation(actor_for(world.drif), validated.id, {"title": "x"})


def test_update_written_keeps_required_fields(world):
    f = make_formation(world, status="written")
    with pytest.raises(ValidationError) as exc:
        formations.update_formation(actor_for(world.admin), f.id, {"description": ""})
    assert exc.value.fields == ["description"]
    assert reload(f.id).description == "Intro course"


def test_delete_formation_admin_only(world):
    formation_id = make_formation(world).id
    with pytest.raises(AuthorizationError):
        formations.delete_formation(actor_for(world.drif), formation_id)
    formations.delete_formation(actor_for(world.admin), formation_id)
    assert db.session.get(Formation, formation_id) is None


def test_record_round_trip_ignores_timestamps(world):
    f = make_formation(world)
    before = without_timestamps(formation_record(f))
    stored = without_timestamps(formation_record(formations.get_formation(f.id)))
    assert stored == before
    assert stored["status"] == "draft"
    assert stored["start_date"] == "2026-11-02"


def test_single_approval_cannot_validate(world):
    f = make_formation(world)
    drif = actor_for(world.drif)
    formations.promote(f.id, drif)

    formations.approve(f.id, drif)
    with pytest.raises(PreconditionError) as exc:
        formations.promote(f.id, drif)
    assert exc.value.missing == ["cdc"]
    assert reload(f.id).status == "written"

    formations.approve(f.id, actor_for(world.cdc))
    formation = formations.promote(f.id, drif)
    assert formation.status == "validated"


def test_revert_and_reapprove_cycle(world):
    f = make_formation(world)
    drif = actor_for(world.drif)
    cdc = actor_for(world.cdc)
    formations.promote(f.id, drif)

    for reverter in (drif, cdc):
        formations.approve(f.id, cdc)
        formations.approve(f.id, drif)
        formation = formations.promote(f.id, drif)
        assert formation.status == "validated"
        assert formation.approved_by_center_chief and formation.approved_by_coordinator

        formation = formations.revert(f.id, reverter, "written")
        assert formation.status == "written"
        assert not (formation.approved_by_center_chief and formation.approved_by_coordinator)
        with pytest.raises(PreconditionError):
            formations.promote(f.id, drif)

    formations.approve(f.id, cdc)
    formations.approve(f.id, drif)
    formation = formations.promote(f.id, drif)
    assert formation.status == "validated"
    assert formation.approved_by_center_chief and formation.approved_by_coordinator


def test_editing_written_formation_resets_approvals(world):
    f = make_formation(world)
    drif = actor_for(world.drif)
    formations.promote(f.id, drif)
    formations.approve(f.id, actor_for(world.cdc))

    formation = formations.update_formation(drif, f.id, {"branche_id": world.btp.id})
    assert formation.branche_id == world.btp.id
    assert formation.approved_by_center_chief is False
    assert formation.approved_by_coordinator is False

    formations.approve(f.id, drif)
    with pytest.raises(PreconditionError) as exc:
        formations.promote(f.id, drif)
    assert exc.value.missing == ["cdc"]
    assert reload(f.id).status == "written"

    formations.approve(f.id, actor_for(world.cdc_btp))
    assert formations.promote(f.id, drif).status == "validated"


def test_unchanged_edit_keeps_approvals(world):
    f = make_formation(world, status="written", approved_by_center_chief=True)
    formation = formations.update_formation(
        actor_for(world.drif), f.id, {"title": "Python basics", "start_date": "2026-11-02"}
    )
    assert formation.approved_by_center_chief is True
