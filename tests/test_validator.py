"""
Rule checks for department trees, user assignment and team membership.
"""
from app.core.exceptions import (
    CapacityExceededError,
    CycleError,
    DuplicateMembershipError,
    InactiveUserError,
    LeadRemovalError,
    NotAMemberError,
    NotFoundError,
    ScopeMismatchError,
)
from app.features.assignments.validator import (
    check_add_member,
    check_department_parent,
    check_lead_deactivation,
    check_member_eligibility,
    check_position_holders,
    check_remove_member,
    check_restore_department,
    check_restore_position,
    check_restore_team,
    check_team_lead,
    check_team_update,
    check_user_assignment,
)
from app.features.teams.models import TeamType

from factories import department, member, position, team, user


# ==================== Department tree ====================

def test_self_parent_is_a_cycle():
    assert isinstance(check_department_parent("a", "a", {"a": None}), CycleError)


def test_parent_that_is_a_descendant_is_a_cycle():
    # c -> b -> a
    parents = {"a": None, "b": "a", "c": "b"}
    assert isinstance(check_department_parent("a", "c", parents), CycleError)


def test_reparenting_within_the_tree_is_allowed():
    parents = {"a": None, "b": "a", "c": None}
    assert check_department_parent("c", "b", parents) is None
    assert check_department_parent("b", None, parents) is None


def test_unknown_parent_is_not_found():
    assert isinstance(check_department_parent("a", "ghost", {"a": None}), NotFoundError)


def test_existing_corrupt_loop_does_not_hang():
    parents = {"x": "y", "y": "x", "a": None}
    assert check_department_parent("a", "x", parents) is None


def test_restore_department_needs_live_parent():
    trashed = department("child", parent_id="gone")
    assert isinstance(check_restore_department(trashed, {"root": None}), NotFoundError)
    assert check_restore_department(department("child", parent_id="root"), {"root": None}) is None


# ==================== User assignment ====================

def test_scoped_position_must_match_department():
    error = check_user_assignment(user("u"), department("d1"), position("p", department_id="d2"))
    assert isinstance(error, ScopeMismatchError)


def test_unscoped_position_fits_any_department():
    assert check_user_assignment(user("u"), department("d1"), position("p")) is None


def test_kept_position_must_fit_new_department():
    current = position("p", department_id="d1")
    holder = user("u", department_id="d1", position_id="p")
    assert isinstance(check_user_assignment(holder, department("d2"), None, current), ScopeMismatchError)
    assert check_user_assignment(holder, department("d1"), None, current) is None


def test_inactive_user_cannot_be_assigned():
    assert isinstance(check_user_assignment(user("u", is_active=False), department("d")), InactiveUserError)


def test_position_rescope_checks_holders():
    holders = [user("a", department_id="d1"), user("b", department_id="d2")]
    assert isinstance(check_position_holders("d1", holders), ScopeMismatchError)
    assert check_position_holders(None, holders) is None


def test_restore_position_needs_live_department():
    assert isinstance(check_restore_position(position("p", "gone"), ["d1"]), NotFoundError)
    assert check_restore_position(position("p"), []) is None


def test_restore_position_checks_where_holders_sit():
    holders = [user("a", department_id="d1", position_id="p"), user("b", department_id="d2", position_id="p")]
    error = check_restore_position(position("p", "d1"), ["d1", "d2"], holders)
    assert isinstance(error, ScopeMismatchError)
    assert error.subject_id == "b"
    assert check_restore_position(position("p", "d1"), ["d1", "d2"], holders[:1]) is None
    assert check_restore_position(position("p"), ["d1", "d2"], holders) is None


# ==================== Team membership ====================

def test_duplicate_is_checked_before_inactive_and_scope():
    t = team(department_id="d1")
    outsider = user("u", department_id="d2", is_active=False)
    error = check_member_eligibility(t, outsider, [member("t1", "u")])
    assert isinstance(error, DuplicateMembershipError)


def test_inactive_is_checked_before_scope():
    t = team(department_id="d1")
    error = check_member_eligibility(t, user("u", department_id="d2", is_active=False), [])
    assert isinstance(error, InactiveUserError)


def test_scoped_team_rejects_other_departments():
    t = team(department_id="d1")
    assert isinstance(check_member_eligibility(t, user("u", department_id="d2"), []), ScopeMismatchError)
    assert isinstance(check_member_eligibility(t, user("v"), []), ScopeMismatchError)
    assert check_member_eligibility(t, user("w", department_id="d1"), []) is None


def test_cross_functional_team_ignores_department():
    t = team(department_id="d1", team_type=TeamType.CROSS_FUNCTIONAL)
    assert check_member_eligibility(t, user("u", department_id="d2"), []) is None


def test_capacity_is_checked_last():
    t = team(max_members=1)
    members = [member("t1", "a")]
    assert isinstance(check_add_member(t, user("b"), members), CapacityExceededError)
    assert isinstance(check_add_member(t, user("a"), members), DuplicateMembershipError)


def test_lead_cannot_be_removed():
    t = team(team_lead_id="a")
    members = [member("t1", "a"), member("t1", "b")]
    assert isinstance(check_remove_member(t, "a", members), LeadRemovalError)
    assert check_remove_member(t, "b", members) is None
    assert isinstance(check_remove_member(t, "c", members), NotAMemberError)


def test_lead_must_be_an_active_member():
    t = team()
    members = [member("t1", "a"), member("t1", "b")]
    assert check_team_lead(t, user("a"), members) is None
    assert check_team_lead(t, None, members) is None
    assert isinstance(check_team_lead(t, user("c"), members), NotAMemberError)
    assert isinstance(check_team_lead(t, user("b", is_active=False), members), InactiveUserError)


def test_team_update_rejects_shrinking_below_member_count():
    member_users = [user("a"), user("b"), user("c")]
    assert isinstance(check_team_update(team(max_members=2), member_users), CapacityExceededError)
    assert check_team_update(team(max_members=3), member_users) is None


def test_team_update_rejects_rescoping_away_from_members():
    member_users = [user("a", department_id="d1"), user("b", department_id="d2")]
    assert isinstance(check_team_update(team(department_id="d1"), member_users), ScopeMismatchError)
    cross = team(department_id="d1", team_type=TeamType.CROSS_FUNCTIONAL)
    assert check_team_update(cross, member_users) is None


def test_team_update_skips_checks_for_unchanged_fields():
    drifted = [user("a", department_id="d1"), user("b", department_id="d2")]
    scoped = team(department_id="d1", max_members=5)
    assert check_team_update(scoped, drifted, scope_changed=False) is None
    assert isinstance(check_team_update(team(department_id="d1", max_members=1), drifted, scope_changed=False), CapacityExceededError)
    assert check_team_update(team(max_members=1), drifted, capacity_changed=False, scope_changed=False) is None


def test_restore_team_tolerates_members_transferred_out():
    drifted = [user("a", department_id="d1"), user("b", department_id="d2")]
    assert check_restore_team(team(department_id="d1", team_lead_id="a"), ["d1", "d2"], drifted) is None
    assert isinstance(check_restore_team(team(department_id="d1", max_members=1), ["d1"], drifted), CapacityExceededError)


def test_restore_team_rechecks_department_and_lead():
    member_users = [user("a", department_id="d1")]
    assert isinstance(check_restore_team(team(department_id="gone"), ["d1"], member_users), NotFoundError)
    assert isinstance(check_restore_team(team(team_lead_id="z"), ["d1"], member_users), NotAMemberError)
    assert check_restore_team(team(department_id="d1", team_lead_id="a"), ["d1"], member_users) is None


def test_lead_deactivation_names_led_teams():
    error = check_lead_deactivation(user("a"), [team("t1", team_lead_id="a"), team("t2", team_lead_id="a")])
    assert isinstance(error, LeadRemovalError)
    assert error.subject_id == "a"
    assert "T1, T2" in error.message
    assert check_lead_deactivation(user("a"), []) is None
