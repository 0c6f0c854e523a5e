"""
Single-user assignment planning: assign, transfer, promote, unassign.
"""
from datetime import date

import pytest

from app.core.exceptions import InactiveUserError, NotFoundError, ScopeMismatchError
from app.core.intents import SetUserAssignment, Unassign
from app.features.assignments.planner import plan_assign, plan_promote, plan_transfer, plan_unassign

from factories import department, position, user


def test_assign_with_position():
    intent = plan_assign(user("u"), department("d1"), position("p", "d1"), reason="new_hire")
    assert intent == SetUserAssignment(user_id="u", department_id="d1", position_id="p", reason="new_hire")


def test_assign_without_position_keeps_compatible_one():
    holder = user("u", department_id="d1", position_id="shared")
    intent = plan_assign(holder, department("d2"), None, position("shared"))
    assert intent.position_id == "shared"
    assert intent.department_id == "d2"


def test_assign_without_position_rejects_dangling_scoped_position():
    holder = user("u", department_id="d1", position_id="p")
    with pytest.raises(ScopeMismatchError):
        plan_assign(holder, department("d2"), None, position("p", "d1"))


def test_inactive_user_is_rejected():
    with pytest.raises(InactiveUserError):
        plan_assign(user("u", is_active=False), department("d1"))


def test_transfer_requires_current_department():
    with pytest.raises(NotFoundError):
        plan_transfer(user("u"), department("d2"))

    intent = plan_transfer(user("u", department_id="d1"), department("d2"), effective_date=date(2024, 1, 1))
    assert intent.department_id == "d2"
    assert intent.reason == "transfer"
    assert intent.effective_date == date(2024, 1, 1)


def test_promote_stays_in_department():
    intent = plan_promote(user("u", department_id="d1", position_id="junior"), position("senior", "d1"))
    assert intent == SetUserAssignment(user_id="u", department_id="d1", position_id="senior", reason="promotion")

    with pytest.raises(ScopeMismatchError):
        plan_promote(user("u", department_id="d1"), position("other", "d2"))


def test_unassign_clears_both_in_one_intent():
    intent = plan_unassign(user("u", department_id="d1", position_id="p"), reason="resigned")
    assert intent == Unassign(user_id="u", reason="resigned")

    with pytest.raises(NotFoundError):
        plan_unassign(user("u"))
