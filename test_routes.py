import uuid

import pytest
from fastapi.testclient import TestClient

from conftest import USER_ID, access_token, srm_payload
from main import app, get_storage
from presentation import PRESENTATION_MAX_FILE_SIZE_BYTES

PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"


@pytest.fixture
def client(fake_storage):
    app.dependency_overrides[get_storage] = lambda: fake_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {access_token()}"}


def _lock_and_register(client, auth_headers, statement_id="ps-01"):
    locked = client.post("/api/problem-statements/lock", json={"problemStatementId": statement_id}, headers=auth_headers)
    assert locked.status_code == 200
    body = {**srm_payload(), "problemStatementId": statement_id, "lockToken": locked.json()["lockToken"]}
    response = client.post("/api/register", json=body, headers=auth_headers)
    assert response.status_code == 201, response.json()
    return response.json()["team"]["id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_requires_authentication(client):
    response = client.get("/api/register")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert response.headers["cache-control"] == "no-store"

    bad = client.get("/api/problem-statements", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


def test_team_id_checked_before_auth(client):
    response = client.get("/api/register/not-a-uuid")
    assert response.status_code == 400
    assert response.json() == {"error": "Team id is invalid."}

    assert client.delete("/api/register/not-a-uuid").status_code == 400
    assert client.delete("/api/register").json() == {"error": "Team id is required."}


def test_request_body_checks(client, auth_headers):
    response = client.post("/api/register", content="teamName=x", headers={"Content-Type": "text/plain", **auth_headers})
    assert response.status_code == 415
    assert response.json() == {"error": "Content-Type must be application/json."}

    response = client.post("/api/register", content="{not json", headers={"Content-Type": "application/json", **auth_headers})
    assert response.json() == {"error": "Invalid JSON payload."}

    payload = srm_payload()
    payload["teamType"] = "other"
    response = client.post("/api/register", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Team type must be srm or non_srm."}


def test_valid_body_still_needs_auth(client):
    assert client.post("/api/register", json=srm_payload()).status_code == 401


def test_lock_unknown_statement_before_auth(client):
    response = client.post("/api/problem-statements/lock", json={"problemStatementId": "ps-42"})
    assert response.status_code == 400
    assert response.json() == {"error": "Problem statement not found."}

    assert client.post("/api/problem-statements/lock", json={"problemStatementId": "ps-01"}).status_code == 401


def test_registration_flow(client, auth_headers):
    team_id = _lock_and_register(client, auth_headers)

    teams = client.get("/api/register", headers=auth_headers).json()["teams"]
    assert [t["id"] for t in teams] == [team_id]

    team = client.get(f"/api/register/{team_id}", headers=auth_headers).json()["team"]
    assert team["problemStatementId"] == "ps-01"
    assert team["lead"]["netId"] == "ar1234"

    statements = client.get("/api/problem-statements", headers=auth_headers).json()["statements"]
    assert next(s for s in statements if s["id"] == "ps-01")["registeredCount"] == 1

    patched = client.patch(f"/api/register/{team_id}", json=srm_payload("Segfaults"), headers=auth_headers)
    assert patched.status_code == 200
    assert patched.json()["team"]["teamName"] == "Segfaults"

    upload = client.post(
        f"/api/register/{team_id}/presentation",
        files={"file": ("deck.pptx", b"slides", PPTX)},
        headers=auth_headers,
    )
    assert upload.status_code == 200
    assert upload.json()["team"]["presentationStoragePath"] == f"{USER_ID}/{team_id}/submission.pptx"

    removed = client.delete(f"/api/register?id={team_id}", headers=auth_headers)
    assert removed.json() == {"teams": []}


def test_patch_lock_needs_both_fields(client, auth_headers):
    team_id = str(uuid.uuid4())
    body = {**srm_payload(), "problemStatementId": "ps-01"}
    response = client.patch(f"/api/register/{team_id}", json=body, headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Both problemStatementId and lockToken are required to lock a statement."}


def test_presentation_needs_file(client, auth_headers):
    team_id = _lock_and_register(client, auth_headers)

    response = client.post(f"/api/register/{team_id}/presentation", data={"note": "no file"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Presentation file is required."}

    response = client.post(
        f"/api/register/{team_id}/presentation",
        files={"file": ("deck.key", b"slides", "application/octet-stream")},
        headers=auth_headers,
    )
    assert response.json() == {"error": "Only .ppt or .pptx files are allowed."}


def test_other_users_team_is_hidden(client, auth_headers):
    team_id = _lock_and_register(client, auth_headers)
    other = {"Authorization": f"Bearer {access_token('user-9')}"}

    assert client.get(f"/api/register/{team_id}", headers=other).status_code == 404
    assert client.delete(f"/api/register/{team_id}", headers=other).status_code == 404
    assert client.delete(f"/api/register/{team_id}", headers=auth_headers).json() == {"deleted": True}


def test_admin_migrate(client, monkeypatch):
    import main

    monkeypatch.setattr(main, "API_KEY", None)
    assert client.post("/admin/migrate").status_code == 500

    monkeypatch.setattr(main, "API_KEY", "test-key")
    assert client.post("/admin/migrate", headers={"X-API-Key": "wrong"}).json() == {"error": "Invalid API Key"}

    monkeypatch.setattr(main, "run_migrations", lambda dsn, **kwargs: (True, "Migrations completed."))
    response = client.post("/admin/migrate", headers={"X-API-Key": "test-key"})
    assert response.json() == {"status": "success", "message": "Migrations completed."}


def test_oversize_presentation_is_rejected(client, auth_headers, fake_storage):
    team_id = _lock_and_register(client, auth_headers)
    oversize = b"x" * (PRESENTATION_MAX_FILE_SIZE_BYTES + 1)

    response = client.post(
        f"/api/register/{team_id}/presentation",
        files={"file": ("deck.pptx", oversize, PPTX)},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Presentation file size must be 5 MB or less."}
    assert fake_storage.objects == {}
