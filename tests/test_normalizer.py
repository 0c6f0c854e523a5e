"""
Permission identifier parsing and action synonym mapping.
"""
import pytest

from app.features.permissions.normalizer import (
    ACTIONS,
    ACTION_SYNONYMS,
    format_display_name,
    normalize_action,
    parse_permission,
)


@pytest.mark.parametrize("verb,canonical", [
    ("view", "read"), ("read", "read"), ("access", "read"),
    ("edit", "write"), ("update", "write"), ("write", "write"),
    ("create", "create"), ("add", "create"), ("store", "create"),
    ("delete", "delete"), ("destroy", "delete"), ("remove", "delete"),
    ("submit", "submit"), ("approve", "submit"),
    ("report", "report"),
    ("export", "export"), ("download", "export"),
])
def test_synonyms_map_to_canonical_action(verb, canonical):
    assert normalize_action(verb) == canonical


def test_every_synonym_targets_a_canonical_action():
    assert set(ACTION_SYNONYMS.values()) == set(ACTIONS)


def test_action_matching_is_case_insensitive():
    assert normalize_action("VIEW") == "read"
    assert parse_permission("Edit_hrm_departments").action == "write"


def test_module_is_everything_after_first_underscore():
    parsed = parse_permission("edit_hrm_departments")
    assert parsed.action == "write"
    assert parsed.module == "hrm_departments"
    assert parsed.document == "hrm_departments"


@pytest.mark.parametrize("identifier", [
    "foo",                   # no separator
    "view_",                 # empty module
    "_departments",          # empty action
    "frobnicate_widgets",    # unknown verb
    "manage_team_members",   # verb outside the synonym table
    "",
])
def test_unusable_identifiers_are_skipped(identifier):
    assert parse_permission(identifier) is None


def test_display_name_capitalizes_each_word():
    assert format_display_name("hrm_departments") == "Hrm Departments"
    assert format_display_name("users") == "Users"
