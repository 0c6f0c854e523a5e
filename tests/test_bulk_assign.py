"""
Bulk assignment: per-item failures never abort the batch.
"""
import pytest
from hypothesis import given, strategies as st

from app.features.assignments.bulk import BulkOutcome, bulk_assign, unique_ids

from factories import department, position, user


HR = department("hr")


def test_partial_batch_reports_each_failure():
    users = {
        "u1": user("u1"),
        "u2": user("u2", department_id="eng"),
        "u3": user("u3", is_active=False),
        "u4": user("u4", department_id="eng", position_id="eng-lead"),
        "u5": user("u5"),
    }
    current = {"eng-lead": position("eng-lead", "eng")}

    report = bulk_assign(["u1", "u2", "u3", "u4", "u5"], HR, users, current_positions=current)

    assert report.applied == ["u1", "u2", "u5"]
    assert report.success_count == 3
    assert report.failed_count == 2
    assert set(report.errors) == {"u3", "u4"}
    assert [f.error_kind for f in report.failures] == ["inactive_user", "scope_mismatch"]
    assert report.outcome == BulkOutcome.PARTIAL


def test_unknown_user_is_a_per_item_not_found():
    report = bulk_assign(["ghost", "u1"], HR, {"u1": user("u1")})
    assert report.applied == ["u1"]
    assert report.failures[0].user_id == "ghost"
    assert report.failures[0].error_kind == "not_found"


def test_shared_position_goes_to_every_success():
    users = {"u1": user("u1"), "u2": user("u2")}
    report = bulk_assign(["u1", "u2"], HR, users, position=position("clerk", "hr"), reason="transfer")
    assert {intent.position_id for intent in report.intents} == {"clerk"}
    assert {intent.reason for intent in report.intents} == {"transfer"}
    assert report.outcome == BulkOutcome.SUCCESS


def test_mismatched_shared_position_fails_everyone():
    users = {"u1": user("u1"), "u2": user("u2")}
    report = bulk_assign(["u1", "u2"], HR, users, position=position("dev", "eng"))
    assert report.success_count == 0
    assert report.outcome == BulkOutcome.FAILED


def test_repeated_ids_are_processed_once():
    report = bulk_assign(["u1", "u1", "u2", "u1"], HR, {"u1": user("u1"), "u2": user("u2")})
    assert report.applied == ["u1", "u2"]


def test_empty_batch_is_rejected():
    with pytest.raises(ValueError):
        bulk_assign([], HR, {})


def test_oversized_batch_is_rejected():
    users = {f"u{i}": user(f"u{i}") for i in range(3)}
    with pytest.raises(ValueError):
        bulk_assign(list(users), HR, users, max_items=2)


@given(st.lists(st.sampled_from("abcdef"), min_size=1), st.sets(st.sampled_from("abcdef")))
def test_every_unique_id_is_accounted_for_once(ids, inactive):
    users = {i: user(i, is_active=i not in inactive) for i in "abcdef"}
    report = bulk_assign(ids, HR, users)

    assert report.success_count + report.failed_count == len(unique_ids(ids))
    assert set(report.applied).isdisjoint(report.errors)
    assert set(report.errors) == set(ids) & inactive
