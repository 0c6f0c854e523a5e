"""
Effective permission aggregation over roles.
"""
from hypothesis import given, strategies as st

from app.features.permissions.aggregator import effective_permissions, granted_actions
from app.features.permissions.normalizer import ACTIONS, ACTION_SYNONYMS

from factories import role


verbs = st.sampled_from(sorted(ACTION_SYNONYMS) + ["frobnicate", "manage"])
modules = st.sampled_from(["hrm_departments", "hrm_positions", "hrm_teams", "users", "roles"])
identifiers = st.builds(lambda v, m: f"{v}_{m}", verbs, modules) | st.sampled_from(["foo", "view_", "bar"])
roles = st.lists(
    st.builds(lambda i, perms: role(f"role{i}", *perms), st.integers(0, 50), st.lists(identifiers, max_size=8)),
    max_size=5,
)


def as_grants(modules_out):
    """Flatten the matrix into a set of (module, document, action) grants."""
    return {
        (m.module_name, d.document_name, action)
        for m in modules_out
        for d in m.documents
        for action in ACTIONS
        if getattr(d.permissions, action)
    }


def test_empty_role_set_yields_empty_list():
    assert effective_permissions([]) == []


def test_union_of_roles_merges_actions_per_module():
    result = effective_permissions([
        role("viewer", "view_hrm_departments"),
        role("editor", "edit_hrm_departments", "create_hrm_positions"),
    ])

    assert [m.module_name for m in result] == ["hrm_departments", "hrm_positions"]
    departments = result[0].documents[0]
    assert departments.document_name == "hrm_departments"
    assert departments.display_name == "Hrm Departments"
    assert departments.permissions.read and departments.permissions.write
    assert not departments.permissions.create
    assert granted_actions(result, "hrm_positions") == {"create"}


def test_synonyms_collapse_into_one_cell():
    result = effective_permissions([role("r", "view_users", "read_users", "access_users")])
    assert granted_actions(result, "users") == {"read"}


def test_unknown_verbs_and_bare_names_contribute_nothing():
    assert effective_permissions([role("r", "foo", "frobnicate_widgets")]) == []


def test_modules_are_sorted_by_name():
    result = effective_permissions([role("r", "view_users", "view_hrm_teams", "export_audit_logs")])
    assert [m.module_name for m in result] == ["audit_logs", "hrm_teams", "users"]


@given(roles, st.randoms())
def test_aggregation_is_deterministic_regardless_of_order(role_list, rnd):
    shuffled = [r.model_copy(update={"permissions": rnd.sample(r.permissions, len(r.permissions))}) for r in role_list]
    rnd.shuffle(shuffled)
    assert effective_permissions(role_list) == effective_permissions(shuffled)


@given(roles, roles)
def test_union_is_monotonic(first, second):
    combined = as_grants(effective_permissions(first + second))
    assert as_grants(effective_permissions(first)) <= combined
    assert as_grants(effective_permissions(second)) <= combined
