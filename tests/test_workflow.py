from types import SimpleNamespace

import pytest

from formaflow.shared import workflow
from formaflow.shared.errors import (
    AuthorizationError,
    PreconditionError,
    StateError,
    ValidationError,
)
from formaflow.shared.workflow import ApprovalState


pytestmark = pytest.mark.smoke


def written(**flags):
    return ApprovalState(status="written", **flags)


def test_promote_draft_to_written_requires_fields():
    with pytest.raises(ValidationError) as exc:
        workflow.promote(ApprovalState(), ["title", "site_id"])
    assert exc.value.fields == ["title", "site_id"]
    assert exc.value.to_dict()["error"] == "validation"

    state = workflow.promote(ApprovalState(), [])
    assert state.status == "written"
    assert not state.approved_by_center_chief
    assert not state.approved_by_coordinator


def test_promote_written_needs_both_approvals():
    with pytest.raises(PreconditionError) as exc:
        workflow.promote(written(approved_by_center_chief=True))
    assert exc.value.missing == ["drif"]

    with pytest.raises(PreconditionError) as exc:
        workflow.promote(written())
    assert exc.value.missing == ["cdc", "drif"]

    state = workflow.promote(
        written(approved_by_center_chief=True, approved_by_coordinator=True)
    )
    assert state.status == "validated"


def test_promote_validated_is_state_error():
    state = ApprovalState(
        status="validated", approved_by_center_chief=True, approved_by_coordinator=True
    )
    with pytest.raises(StateError):
        workflow.promote(state)


def test_promote_clears_returned_marker():
    state = ApprovalState(returned_by="cdc", returned_to="draft")
    promoted = workflow.promote(state, [])
    assert promoted.returned_by is None
    assert promoted.returned_to is None


def test_approve_sets_only_own_flag():
    state = workflow.approve(written(), "cdc")
    assert state.approved_by_center_chief is True
    assert state.approved_by_coordinator is False

    state = workflow.approve(state, "drif")
    assert state.fully_approved
    assert state.status == "written"


@pytest.mark.parametrize("role", ["admin", "dr", "animateur", "participant"])
def test_approve_rejects_non_approvers(role):
    with pytest.raises(AuthorizationError):
        workflow.approve(written(), role)


@pytest.mark.parametrize("status", ["draft", "validated"])
def test_approve_outside_written_is_state_error(status):
    flags = status == "validated"
    state = ApprovalState(
        status=status, approved_by_center_chief=flags, approved_by_coordinator=flags
    )
    with pytest.raises(StateError):
        workflow.approve(state, "cdc")


def test_revert_validated_clears_only_actor_flag():
    state = ApprovalState(
        status="validated", approved_by_center_chief=True, approved_by_coordinator=True
    )
    reverted = workflow.revert(state, "drif", "written")
    assert reverted.status == "written"
    assert reverted.approved_by_center_chief is True
    assert reverted.approved_by_coordinator is False
    assert reverted.returned_by == "drif"
    assert reverted.returned_to == "written"


def test_revert_written_to_draft():
    reverted = workflow.revert(written(approved_by_center_chief=True), "cdc", "draft")
    assert reverted.status == "draft"
    assert reverted.approved_by_center_chief is False
    assert reverted.returned_by == "cdc"


def test_revert_illegal_moves():
    with pytest.raises(StateError):
        workflow.revert(ApprovalState(), "cdc", "draft")
    with pytest.raises(StateError):
        workflow.revert(written(), "cdc", "validated")
    with pytest.raises(ValidationError):
        workflow.revert(written(), "cdc", "archived")
    with pytest.raises(AuthorizationError):
        workflow.revert(written(), "dr", "draft")


def test_check_invariants_rejects_unapproved_validated():
    with pytest.raises(StateError):
        workflow.check_invariants(
            ApprovalState(status="validated", approved_by_center_chief=True)
        )
    with pytest.raises(StateError):
        workflow.check_invariants(ApprovalState(status="archived"))


def test_missing_required_fields_treats_blank_as_missing():
    formation = SimpleNamespace(
        title="  ",
        description="d",
        start_date=None,
        end_date="2026-01-01",
        facilitator_id=1,
        city_id=1,
        site_id=None,
        branche_id=2,
    )
    assert workflow.missing_required_fields(formation) == [
        "title",
        "start_date",
        "site_id",
    ]


def test_check_dates():
    from datetime import date

    workflow.check_dates(date(2026, 1, 1), date(2026, 1, 1))
    workflow.check_dates(None, date(2026, 1, 1))
    with pytest.raises(ValidationError) as exc:
        workflow.check_dates(date(2026, 1, 2), date(2026, 1, 1))
    assert exc.value.fields == ["end_date"]


def test_state_round_trips_through_record():
    formation = SimpleNamespace(
        status="written",
        approved_by_center_chief=True,
        approved_by_coordinator=False,
        returned_by=None,
        returned_to=None,
    )
    state = ApprovalState.of(formation)
    assert state == written(approved_by_center_chief=True)
    workflow.approve(state, "drif").apply_to(formation)
    assert formation.approved_by_coordinator is True
