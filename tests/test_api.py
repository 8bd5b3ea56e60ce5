import uuid

from fastapi.testclient import TestClient

from tracer.auth.tokens import issue_access_token
from tracer.models.enums import GlobalRole
from tracer.models.user import User
from tracer.notifications import MEMBER_ADDED

def auth(u: User) -> dict:
    return {"Authorization": f"Bearer {issue_access_token(u.id)}"}

def make_project(client: TestClient, owner: User, name: str = "fit-out") -> dict:
    r = client.post("/projects", json={"name": name}, headers=auth(owner))
    assert r.status_code == 200, r.text
    return r.json()

def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "ok"

    # notifications are off under test, so only the database is checked
    r = client.get("/ready")
    assert r.status_code == 200, r.text
    assert r.json()["checks"] == {"db": True}

def test_missing_or_bad_token_is_401(client: TestClient):
    assert client.get("/projects").status_code == 401
    r = client.get("/projects", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    # well-formed token for a user that does not exist
    r = client.get("/projects", headers={"Authorization": f"Bearer {issue_access_token(uuid.uuid4())}"})
    assert r.status_code == 401

def test_inactive_user_is_403(client: TestClient, make_user):
    u = make_user(is_active=False)
    r = client.get("/projects", headers=auth(u))
    assert r.status_code == 403, r.text

def test_create_and_fetch_project(client: TestClient, make_user):
    owner = make_user(GlobalRole.installer, "owner")
    p = make_project(client, owner)

    assert p["owner_id"] == str(owner.id)
    assert p["status"] == "planning"
    assert [(m["user_id"], m["role"]) for m in p["team"]] == [(str(owner.id), "owner")]

    r = client.get(f"/projects/{p['id']}", headers=auth(owner))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["progress"] == 0
    assert body["tasks"]["total"] == 0

    r = client.get("/projects", headers=auth(owner))
    assert [x["id"] for x in r.json()] == [p["id"]]

def test_forbidden_carries_reason(client: TestClient, make_user):
    owner, outsider, member = make_user(name="owner"), make_user(name="outsider"), make_user(name="member")
    p = make_project(client, owner)

    r = client.get(f"/projects/{p['id']}", headers=auth(outsider))
    assert r.status_code == 403, r.text
    assert r.json()["reason"] == "not-member"

    r = client.post(f"/projects/{p['id']}/team", json={"user_id": str(member.id)}, headers=auth(owner))
    assert r.status_code == 200, r.text

    r = client.delete(f"/projects/{p['id']}", headers=auth(member))
    assert r.status_code == 403
    assert r.json()["reason"] == "not-owner"

    r = client.patch(f"/projects/{p['id']}", json={"name": "mine now"}, headers=auth(member))
    assert r.status_code == 403
    assert r.json()["reason"] == "insufficient-role"

def test_error_status_mapping(client: TestClient, make_user):
    owner = make_user(name="owner")
    p = make_project(client, owner)

    r = client.get(f"/projects/{uuid.uuid4()}", headers=auth(owner))
    assert r.status_code == 404
    assert r.json()["detail"] == "project not found"

    # removing the owner is an invalid operation, not a permission problem
    r = client.delete(f"/projects/{p['id']}/team/{owner.id}", headers=auth(owner))
    assert r.status_code == 400
    assert "reason" not in r.json()

    # blank after trimming: rejected by the core
    r = client.post("/projects", json={"name": "   "}, headers=auth(owner))
    assert r.status_code == 422

    # malformed payload: rejected at the edge
    r = client.post("/projects", json={"name": "x", "status": "exploded"}, headers=auth(owner))
    assert r.status_code == 422

def test_team_invite_notifies(client: TestClient, make_user, notifier):
    owner, bob = make_user(name="owner"), make_user(name="bob")
    p = make_project(client, owner)

    r = client.post(
        f"/projects/{p['id']}/team",
        json={"user_id": str(bob.id), "role": "manager"},
        headers=auth(owner),
    )
    assert r.status_code == 200, r.text
    assert {m["user_id"]: m["role"] for m in r.json()["team"]}[str(bob.id)] == "manager"

    invites = notifier.of(MEMBER_ADDED)
    assert len(invites) == 1
    assert invites[0]["user_id"] == bob.id
    assert invites[0]["role"] == "manager"

def test_task_flow(client: TestClient, make_user):
    owner, member = make_user(name="owner"), make_user(name="member")
    p = make_project(client, owner)
    client.post(f"/projects/{p['id']}/team", json={"user_id": str(member.id)}, headers=auth(owner))

    r = client.post(
        f"/projects/{p['id']}/tasks",
        json={"title": "pull cable", "assigned_to": str(member.id), "subtasks": ["floor 1", "floor 2"]},
        headers=auth(member),
    )
    assert r.status_code == 200, r.text
    task = r.json()
    assert task["status"] == "todo"
    assert task["completed_at"] is None
    assert task["subtask_progress"] == 0
    tid = task["id"]

    sid = task["subtasks"][0]["id"]
    r = client.patch(f"/tasks/{tid}/subtasks/{sid}", json={"completed": True}, headers=auth(member))
    assert r.status_code == 200, r.text
    assert r.json()["completed_at"] is not None

    r = client.post(
        f"/tasks/{tid}/time-logs",
        json={"start_time": "2026-03-02T08:00:00Z", "end_time": "2026-03-02T09:30:30Z"},
        headers=auth(member),
    )
    assert r.status_code == 200, r.text
    assert r.json()["duration_minutes"] == 91
    assert r.json()["time_spent_minutes"] == 91

    r = client.post(
        f"/tasks/{tid}/time-logs",
        json={"start_time": "2026-03-02T10:00:00Z", "end_time": "2026-03-02T09:00:00Z"},
        headers=auth(member),
    )
    assert r.status_code == 400

    r = client.patch(f"/tasks/{tid}", json={"status": "completed"}, headers=auth(member))
    assert r.status_code == 200, r.text
    assert r.json()["completed_at"] is not None

    r = client.post(f"/tasks/{tid}/comments", json={"text": "done"}, headers=auth(member))
    assert r.status_code == 200, r.text

    r = client.get(f"/tasks/{tid}", headers=auth(owner))
    body = r.json()
    assert body["subtask_progress"] == 50
    assert body["time_tracking"]["time_spent_minutes"] == 91
    assert len(body["time_tracking"]["logs"]) == 1
    assert [c["text"] for c in body["comments"]] == ["done"]

    r = client.get(f"/projects/{p['id']}", headers=auth(owner))
    assert r.json()["progress"] == 100

    r = client.delete(f"/projects/{p['id']}", headers=auth(owner))
    assert r.status_code == 200, r.text
    assert r.json() == {"deleted": True, "tasks_deleted": 1}
    assert client.get(f"/tasks/{tid}", headers=auth(owner)).status_code == 404

def test_unassign_with_null(client: TestClient, make_user):
    owner = make_user(name="owner")
    p = make_project(client, owner)
    r = client.post(f"/projects/{p['id']}/tasks", json={"title": "t", "assigned_to": str(owner.id)}, headers=auth(owner))
    tid = r.json()["id"]

    r = client.patch(f"/tasks/{tid}", json={"title": "renamed"}, headers=auth(owner))
    assert r.json()["assigned_to"] == str(owner.id)

    r = client.patch(f"/tasks/{tid}", json={"assigned_to": None}, headers=auth(owner))
    assert r.status_code == 200, r.text
    assert r.json()["assigned_to"] is None

def test_my_permissions(client: TestClient, make_user):
    u = make_user(GlobalRole.warehouse)
    r = client.get("/me/permissions", headers=auth(u))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["role"] == "warehouse"
    assert "create_project" in body["permissions"]
    assert "delete_user" not in body["permissions"]

def test_delete_user_endpoint(client: TestClient, make_user):
    admin = make_user(GlobalRole.admin, "admin")
    u1, u2 = make_user(name="u1"), make_user(name="u2")
    p = make_project(client, u1)
    client.post(f"/projects/{p['id']}/team", json={"user_id": str(u2.id)}, headers=auth(u1))

    r = client.delete(f"/users/{u1.id}", headers=auth(u2))
    assert r.status_code == 403
    assert r.json()["reason"] == "insufficient-role"

    u1_id, u2_id = str(u1.id), str(u2.id)
    r = client.delete(f"/users/{u1_id}", headers=auth(admin))
    assert r.status_code == 200, r.text
    assert r.json()["promoted"] == {p["id"]: u2_id}

    r = client.get(f"/projects/{p['id']}", headers=auth(u2))
    assert r.json()["project"]["owner_id"] == u2_id

def test_delete_me(client: TestClient, make_user):
    owner, u = make_user(name="owner"), make_user(name="leaver")
    p = make_project(client, owner)
    client.post(f"/projects/{p['id']}/team", json={"user_id": str(u.id)}, headers=auth(owner))

    r = client.delete("/me", headers=auth(owner))
    assert r.status_code == 400

    headers = auth(u)
    r = client.delete("/me", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["memberships_removed"] == 1

    # the token outlives the account but no longer resolves to anyone
    assert client.get("/projects", headers=headers).status_code == 401

def test_list_projects_archive_and_filters(client: TestClient, make_user):
    owner = make_user(name="owner")
    live = client.post("/projects", json={"name": "live", "tags": ["fibre"], "priority": "high"}, headers=auth(owner))
    old = make_project(client, owner, "old")
    r = client.patch(f"/projects/{old['id']}", json={"is_archived": True}, headers=auth(owner))
    assert r.status_code == 200, r.text
    assert live.json()["tags"] == ["fibre"]

    def names(params: dict) -> set[str]:
        r = client.get("/projects", params=params, headers=auth(owner))
        assert r.status_code == 200, r.text
        return {p["name"] for p in r.json()}

    assert names({}) == {"live"}
    assert names({"archived": "true"}) == {"old"}
    assert names({"include_archived": "true"}) == {"live", "old"}
    assert names({"tags": ["fibre", "other"]}) == {"live"}
    assert names({"priority": "high", "search": "LIV"}) == {"live"}

def test_list_tasks_due_filter(client: TestClient, make_user):
    owner = make_user(name="owner")
    p = make_project(client, owner)
    r = client.post(
        f"/projects/{p['id']}/tasks",
        json={"title": "long overdue", "due_date": "2020-01-01T00:00:00Z", "tags": ["legacy"]},
        headers=auth(owner),
    )
    assert r.status_code == 200, r.text
    assert r.json()["tags"] == ["legacy"]

    r = client.get(f"/projects/{p['id']}/tasks", params={"due": "overdue"}, headers=auth(owner))
    assert [t["title"] for t in r.json()] == ["long overdue"]

    r = client.get(f"/projects/{p['id']}/tasks", params={"due": "someday"}, headers=auth(owner))
    assert r.status_code == 422
