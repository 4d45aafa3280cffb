import sys
import os
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("database_url", "sqlite:///:memory:")
os.environ.setdefault("secret_key", "testsecret")

import pytest

from app.core.errors import InvalidStateError
from app.models.enums import RequirementStatus
from app.services.state_machine import (
    TRANSITIONS,
    can_transition,
    ensure_deletable,
    ensure_editable,
    evaluate_approvals,
    next_status,
)

ALL_STATUSES = list(RequirementStatus)


def test_status_domain_is_closed():
    assert {s.value for s in ALL_STATUSES} == {
        "draft", "pending_approval", "approved", "rejected", "completed", "cancelled",
    }
    for _, (sources, target) in TRANSITIONS.items():
        assert target in ALL_STATUSES
        assert sources <= set(ALL_STATUSES)


@pytest.mark.parametrize("current", ["draft", "rejected"])
def test_submit_from_editable_states(current):
    assert next_status(current, "submit") == RequirementStatus.PENDING_APPROVAL


@pytest.mark.parametrize("current", ["pending_approval", "approved", "completed", "cancelled"])
def test_submit_from_other_states_fails(current):
    with pytest.raises(InvalidStateError):
        next_status(current, "submit")


def test_complete_only_from_approved():
    assert next_status("approved", "complete") == RequirementStatus.COMPLETED
    for current in ["draft", "pending_approval", "rejected", "completed", "cancelled"]:
        assert not can_transition(current, "complete")


def test_cancel_from_any_state_except_completed():
    for current in ALL_STATUSES:
        if current == RequirementStatus.COMPLETED:
            with pytest.raises(InvalidStateError) as exc:
                next_status(current, "cancel")
            assert exc.value.current_status == "completed"
        else:
            assert next_status(current, "cancel") == RequirementStatus.CANCELLED


def test_unknown_status_is_rejected():
    with pytest.raises(InvalidStateError):
        next_status("archived", "cancel")


def test_unknown_trigger_is_a_programming_error():
    with pytest.raises(ValueError):
        next_status("draft", "publish")


def test_edit_and_delete_guards():
    ensure_editable("draft")
    ensure_editable("rejected")
    ensure_deletable("draft")
    with pytest.raises(InvalidStateError):
        ensure_editable("pending_approval")
    with pytest.raises(InvalidStateError):
        ensure_deletable("rejected")


def test_empty_approval_set_stays_pending():
    assert evaluate_approvals([]) is None


def test_all_approved_approves():
    assert evaluate_approvals(["approved", "approved"]) == RequirementStatus.APPROVED
    assert evaluate_approvals(["approved"]) == RequirementStatus.APPROVED


def test_any_rejection_rejects():
    assert evaluate_approvals(["approved", "rejected"]) == RequirementStatus.REJECTED
    assert evaluate_approvals(["rejected", "pending"]) == RequirementStatus.REJECTED


def test_pending_decision_blocks_approval():
    assert evaluate_approvals(["approved", "pending"]) is None
    assert evaluate_approvals(["pending"]) is None
