"""
User assignment operations and history through the HTTP API.
"""
from factories import assign, create_department, create_position, create_user


def test_assign_sets_department_and_position(client):
    dept = create_department(client, "HR")
    pos = create_position(client, "HR-CLERK", department_id=dept["id"])
    user = create_user(client)

    response = assign(client, user["id"], dept["id"], pos["id"])
    assert response.status_code == 200
    assert response.json()["department_id"] == dept["id"]
    assert response.json()["position_id"] == pos["id"]

    current = client.get(f"/assignments/users/{user['id']}/current").json()
    assert current["department_id"] == dept["id"]
    assert current["reason"] == "new_hire"


def test_position_from_another_department_is_rejected(client):
    hr = create_department(client, "HR")
    eng = create_department(client, "ENG")
    dev = create_position(client, "DEV", department_id=eng["id"])
    user = create_user(client)

    response = assign(client, user["id"], hr["id"], dev["id"])
    assert response.status_code == 422
    assert response.json()["error"] == "scope_mismatch"
    assert client.get(f"/users/{user['id']}").json()["department_id"] is None


def test_shared_position_fits_any_department(client):
    hr = create_department(client, "HR")
    intern = create_position(client, "INTERN")
    user = create_user(client)
    assert assign(client, user["id"], hr["id"], intern["id"]).status_code == 200


def test_inactive_user_cannot_be_assigned(client):
    dept = create_department(client, "HR")
    user = create_user(client, is_active=False)
    response = assign(client, user["id"], dept["id"])
    assert response.status_code == 422
    assert response.json()["error"] == "inactive_user"


def test_unknown_department_is_not_found(client):
    user = create_user(client)
    response = assign(client, user["id"], "missing")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_bulk_assign_reports_partial_success(client):
    hr = create_department(client, "HR")
    eng = create_department(client, "ENG")
    dev = create_position(client, "DEV", department_id=eng["id"])

    ok = [create_user(client) for _ in range(3)]
    inactive = create_user(client, is_active=False)
    stuck = create_user(client)
    assert assign(client, stuck["id"], eng["id"], dev["id"]).status_code == 200

    ids = [u["id"] for u in ok] + [inactive["id"], stuck["id"]]
    response = client.post("/assignments/bulk-assign", json={"user_ids": ids, "department_id": hr["id"]})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "partial"
    assert body["summary"] == {"success": 3, "failed": 2}
    assert body["applied"] == [u["id"] for u in ok]
    assert set(body["errors"]) == {inactive["id"], stuck["id"]}

    members = client.get(f"/departments/{hr['id']}/users").json()
    assert {u["id"] for u in members} == {u["id"] for u in ok}
    assert client.get(f"/users/{stuck['id']}").json()["department_id"] == eng["id"]


def test_bulk_assign_unknown_user_and_duplicates(client):
    hr = create_department(client, "HR")
    user = create_user(client)

    response = client.post(
        "/assignments/bulk-assign",
        json={"user_ids": [user["id"], user["id"], "ghost"], "department_id": hr["id"]},
    )
    body = response.json()
    assert body["applied"] == [user["id"]]
    assert list(body["errors"]) == ["ghost"]


def test_bulk_assign_rejects_empty_batch(client):
    hr = create_department(client, "HR")
    response = client.post("/assignments/bulk-assign", json={"user_ids": [], "department_id": hr["id"]})
    assert response.status_code == 400


def test_bulk_assign_unknown_position_rejects_batch(client):
    hr = create_department(client, "HR")
    user = create_user(client)
    response = client.post(
        "/assignments/bulk-assign",
        json={"user_ids": [user["id"]], "department_id": hr["id"], "position_id": "missing"},
    )
    assert response.status_code == 404
    assert client.get(f"/users/{user['id']}").json()["department_id"] is None


def test_transfer_closes_previous_history(client):
    hr = create_department(client, "HR")
    eng = create_department(client, "ENG")
    user = create_user(client)
    client.post(
        "/assignments/assign",
        json={"user_id": user["id"], "department_id": hr["id"], "effective_date": "2024-01-01"},
    )

    response = client.post(
        f"/assignments/users/{user['id']}/transfer",
        json={"new_department_id": eng["id"], "effective_date": "2024-06-01"},
    )
    assert response.status_code == 200
    assert response.json()["department_id"] == eng["id"]

    history = client.get(f"/assignments/users/{user['id']}/history").json()
    assert [h["department_id"] for h in history] == [eng["id"], hr["id"]]
    assert history[0]["end_date"] is None
    assert history[0]["reason"] == "transfer"
    assert history[1]["end_date"] == "2024-06-01"


def test_transfer_requires_current_department(client):
    eng = create_department(client, "ENG")
    user = create_user(client)
    response = client.post(f"/assignments/users/{user['id']}/transfer", json={"new_department_id": eng["id"]})
    assert response.status_code == 404


def test_transfer_with_scoped_position_left_behind_is_rejected(client):
    hr = create_department(client, "HR")
    eng = create_department(client, "ENG")
    clerk = create_position(client, "HR-CLERK", department_id=hr["id"])
    user = create_user(client)
    assign(client, user["id"], hr["id"], clerk["id"])

    response = client.post(f"/assignments/users/{user['id']}/transfer", json={"new_department_id": eng["id"]})
    assert response.status_code == 422
    assert response.json()["error"] == "scope_mismatch"


def test_promote_within_department(client):
    hr = create_department(client, "HR")
    eng = create_department(client, "ENG")
    junior = create_position(client, "HR-JUNIOR", department_id=hr["id"], level=1)
    senior = create_position(client, "HR-SENIOR", department_id=hr["id"], level=2)
    dev = create_position(client, "DEV", department_id=eng["id"])
    user = create_user(client)
    assign(client, user["id"], hr["id"], junior["id"])

    response = client.post(f"/assignments/users/{user['id']}/promote", json={"new_position_id": senior["id"]})
    assert response.status_code == 200
    assert response.json()["position_id"] == senior["id"]

    response = client.post(f"/assignments/users/{user['id']}/promote", json={"new_position_id": dev["id"]})
    assert response.status_code == 422


def test_unassign_clears_both(client):
    hr = create_department(client, "HR")
    clerk = create_position(client, "HR-CLERK", department_id=hr["id"])
    user = create_user(client)
    assign(client, user["id"], hr["id"], clerk["id"])

    response = client.post(f"/assignments/users/{user['id']}/unassign", json={"reason": "resigned"})
    assert response.status_code == 200
    assert response.json()["department_id"] is None
    assert response.json()["position_id"] is None

    history = client.get(f"/assignments/users/{user['id']}/history").json()
    assert history[0]["end_date"] is not None
    assert history[0]["notes"] == "Ended: resigned"

    again = client.post(f"/assignments/users/{user['id']}/unassign", json={})
    assert again.status_code == 404


def test_unknown_reason_is_a_validation_error(client):
    hr = create_department(client, "HR")
    user = create_user(client)
    response = client.post(
        "/assignments/assign",
        json={"user_id": user["id"], "department_id": hr["id"], "reason": "whim"},
    )
    assert response.status_code == 400
    assert "reason" in response.json()


def test_rescoping_position_checks_holders(client):
    hr = create_department(client, "HR")
    eng = create_department(client, "ENG")
    shared = create_position(client, "ANALYST")
    user = create_user(client)
    assign(client, user["id"], hr["id"], shared["id"])

    response = client.patch(f"/positions/{shared['id']}", json={"department_id": eng["id"]})
    assert response.status_code == 422
    assert response.json()["error"] == "scope_mismatch"
    assert client.patch(f"/positions/{shared['id']}", json={"department_id": hr["id"]}).status_code == 200


def test_trashed_position_still_binds_its_holder(client):
    eng = create_department(client, "ENG")
    ops = create_department(client, "OPS")
    dev = create_position(client, "DEV", department_id=eng["id"])
    user = create_user(client)
    assign(client, user["id"], eng["id"], dev["id"])
    assert client.delete(f"/positions/{dev['id']}").status_code == 204

    response = assign(client, user["id"], ops["id"])
    assert response.status_code == 422
    assert response.json()["error"] == "scope_mismatch"

    response = client.post(f"/assignments/users/{user['id']}/transfer", json={"new_department_id": ops["id"]})
    assert response.status_code == 422

    response = client.post("/assignments/bulk-assign", json={"user_ids": [user["id"]], "department_id": ops["id"]})
    assert list(response.json()["errors"]) == [user["id"]]

    current = client.get(f"/users/{user['id']}").json()
    assert (current["department_id"], current["position_id"]) == (eng["id"], dev["id"])


def test_restore_position_with_holder_in_place(client):
    eng = create_department(client, "ENG")
    dev = create_position(client, "DEV", department_id=eng["id"])
    user = create_user(client)
    assign(client, user["id"], eng["id"], dev["id"])
    client.delete(f"/positions/{dev['id']}")

    response = client.post(f"/positions/{dev['id']}/restore")
    assert response.status_code == 200
    assert response.json()["deleted_at"] is None
    assert [u["id"] for u in client.get(f"/positions/{dev['id']}/users").json()] == [user["id"]]
