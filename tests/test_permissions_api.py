"""
Roles, grants and the effective permission matrix through the HTTP API.
"""
from factories import create_user


def create_permission(client, name):
    response = client.post("/permissions/permissions", json={"name": name})
    assert response.status_code == 201, response.text
    return response.json()


def create_role(client, name, *permission_names):
    role = client.post("/permissions/roles", json={"name": name}).json()
    ids = [create_permission(client, p)["id"] for p in permission_names]
    if ids:
        assert client.post(f"/permissions/roles/{role['id']}/permissions", json={"permission_ids": ids}).status_code == 200
    return role


def test_effective_permissions_merge_roles(client):
    user = create_user(client)
    viewer = create_role(client, "viewer", "view_hrm_departments", "view_hrm_teams")
    editor = create_role(client, "editor", "edit_hrm_departments", "download_hrm_departments", "manage_team_members")
    client.post(f"/users/{user['id']}/roles", json={"role_ids": [viewer["id"], editor["id"]]})

    response = client.get(f"/permissions/users/{user['id']}/effective")
    assert response.status_code == 200
    body = response.json()
    assert body["roles"] == ["editor", "viewer"]
    assert [m["module_name"] for m in body["modules"]] == ["hrm_departments", "hrm_teams"]

    departments = body["modules"][0]
    assert departments["display_name"] == "Hrm Departments"
    matrix = departments["documents"][0]["permissions"]
    assert matrix == {
        "read": True, "write": True, "create": False, "delete": False,
        "submit": False, "report": False, "export": True,
    }


def test_user_without_roles_has_no_permissions(client):
    user = create_user(client)
    body = client.get(f"/permissions/users/{user['id']}/effective").json()
    assert body == {"user_id": user["id"], "roles": [], "modules": []}


def test_unknown_user_is_not_found(client):
    response = client.get("/permissions/users/nobody/effective")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_revoked_grant_disappears(client):
    user = create_user(client)
    role = create_role(client, "ops")
    perm = create_permission(client, "delete_hrm_positions")
    client.post(f"/permissions/roles/{role['id']}/permissions", json={"permission_ids": [perm["id"]]})
    client.post(f"/users/{user['id']}/roles", json={"role_ids": [role["id"]]})

    modules = client.get(f"/permissions/users/{user['id']}/effective").json()["modules"]
    assert modules[0]["documents"][0]["permissions"]["delete"] is True

    assert client.delete(f"/permissions/roles/{role['id']}/permissions/{perm['id']}").status_code == 204
    assert client.get(f"/permissions/users/{user['id']}/effective").json()["modules"] == []


def test_deleting_role_removes_it_from_users(client):
    user = create_user(client)
    role = create_role(client, "temp", "view_hrm_teams")
    client.post(f"/users/{user['id']}/roles", json={"role_ids": [role["id"]]})

    assert client.delete(f"/permissions/roles/{role['id']}").status_code == 204
    assert client.get(f"/users/{user['id']}/roles").json() == []
    assert client.get(f"/permissions/users/{user['id']}/effective").json()["roles"] == []


def test_module_actions_list_granted_verbs(client):
    user = create_user(client)
    role = create_role(client, "hr", "view_hrm_positions", "create_hrm_positions", "view_hrm_teams")
    client.post(f"/users/{user['id']}/roles", json={"role_ids": [role["id"]]})

    response = client.get(f"/permissions/users/{user['id']}/effective/hrm_positions")
    assert response.status_code == 200
    assert response.json() == {"user_id": user["id"], "module_name": "hrm_positions", "actions": ["create", "read"]}
    assert client.get(f"/permissions/users/{user['id']}/effective/hrm_departments").json()["actions"] == []
    assert client.get("/permissions/users/nobody/effective/hrm_positions").status_code == 404
