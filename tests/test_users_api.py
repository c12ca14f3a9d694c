"""
Test user registration, login, logout and profile endpoints.
"""

import uuid

from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from recordbook.core.config import settings
from recordbook.models.record import Record
from recordbook.services import session_service
from recordbook.services.account_service import INVALID_CREDENTIALS

ALICE = {"username": "alice", "password": "Password123!", "email": "a@test.com"}


def _cookie(client: TestClient):
    return client.cookies.get(settings.SESSION_COOKIE_NAME)


def test_register_then_duplicate(client: TestClient):
    """Registering the same payload twice yields 201 then 409."""
    first = client.post("/user/register", json=ALICE)
    assert first.status_code == 201
    assert "userId" in first.json()
    assert _cookie(client)

    second = client.post("/user/register", json=ALICE)
    assert second.status_code == 409
    assert second.json()["message"] == "Username and email are already registered."


def test_register_names_colliding_field(client: TestClient):
    client.post("/user/register", json=ALICE)
    response = client.post(
        "/user/register",
        json={"username": "other", "email": "a@test.com", "password": "x"},
    )
    assert response.status_code == 409
    assert response.json()["message"] == "Email is already registered."


def test_register_missing_fields(client: TestClient):
    response = client.post("/user/register", json={"username": "alice"})
    assert response.status_code == 400
    assert "required" in response.json()["message"]


def test_register_malformed_email(client: TestClient):
    response = client.post(
        "/user/register",
        json={"username": "alice", "email": "not-an-email", "password": "x"},
    )
    assert response.status_code == 400
    assert "message" in response.json()


def test_register_sets_http_only_cookie(client: TestClient):
    response = client.post("/user/register", json=ALICE)
    header = response.headers["set-cookie"].lower()
    assert "httponly" in header
    assert "samesite=lax" in header


def test_login_returns_registration_user_id(make_client):
    """Login returns the same userId as registration and sets a cookie."""
    registering = make_client()
    user_id = registering.post("/user/register", json=ALICE).json()["userId"]

    fresh = make_client()
    response = fresh.post(
        "/user/login",
        json={"username": "alice", "password": "Password123!"},
    )
    assert response.status_code == 200
    assert response.json()["userId"] == user_id
    assert _cookie(fresh)

    by_email = make_client().post(
        "/user/login",
        json={"username": "a@test.com", "password": "Password123!"},
    )
    assert by_email.status_code == 200
    assert by_email.json()["userId"] == user_id


def test_login_failures_are_indistinguishable(client: TestClient):
    client.post("/user/register", json=ALICE)

    wrong_password = client.post("/user/login", json={"username": "alice", "password": "nope"})
    unknown_user = client.post("/user/login", json={"username": "mallory", "password": "nope"})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"message": INVALID_CREDENTIALS}


def test_login_missing_fields(client: TestClient):
    response = client.post("/user/login", json={"username": "alice"})
    assert response.status_code == 400


def test_logout_is_idempotent(make_client, register):
    client = make_client()
    register(client)

    assert client.get("/user/logout").status_code == 200
    assert client.get("/user/logout").status_code == 200
    assert make_client().get("/user/logout").status_code == 200


def test_logout_ends_session(make_client, register):
    client = make_client()
    register(client)
    assert client.get("/user/all").status_code == 200

    token = _cookie(client)
    client.get("/user/logout")
    assert _cookie(client) is None

    # replaying the old token fails too
    replay = make_client().get(
        "/user/all",
        headers={"Cookie": f"{settings.SESSION_COOKIE_NAME}={token}"},
    )
    assert replay.status_code == 401


def test_auth_logout_alias(make_client, register):
    client = make_client()
    register(client)
    assert client.get("/auth/logout").status_code == 200
    assert client.get("/user/all").status_code == 401


def test_list_users_requires_session(client: TestClient):
    response = client.get("/user/all")
    assert response.status_code == 401
    assert response.json() == {"message": "Access denied. Please log in."}


def test_list_users_excludes_password(alice, bob):
    client, _ = alice
    response = client.get("/user/all")
    assert response.status_code == 200
    users = response.json()
    assert {u["username"] for u in users} == {"alice", "bob"}
    for user in users:
        assert "password" not in user
        assert "passwordHash" not in user
        assert user["hasPassword"] is True


def test_me(alice):
    client, alice_id = alice
    response = client.get("/user/me")
    assert response.status_code == 200
    assert response.json()["id"] == alice_id


def test_update_own_profile(alice, make_client):
    client, alice_id = alice
    response = client.put(f"/user/{alice_id}", json={"username": "alice2", "password": "NewPass1!"})
    assert response.status_code == 200
    assert response.json()["user"]["username"] == "alice2"

    login = make_client().post("/user/login", json={"username": "alice2", "password": "NewPass1!"})
    assert login.status_code == 200


def test_update_other_profile_forbidden(alice, bob):
    client, _ = alice
    _, bob_id = bob
    response = client.put(f"/user/{bob_id}", json={"username": "hacked"})
    assert response.status_code == 403


def test_update_profile_requires_session(client: TestClient, bob):
    _, bob_id = bob
    assert client.put(f"/user/{bob_id}", json={"username": "x"}).status_code == 401


def test_update_profile_validation_and_conflict(alice, bob):
    client, alice_id = alice
    assert client.put(f"/user/{alice_id}", json={}).status_code == 400
    response = client.put(f"/user/{alice_id}", json={"username": "bob"})
    assert response.status_code == 409
    assert response.json()["message"] == "Username is already taken."


def test_delete_other_account_forbidden(alice, bob):
    client, _ = alice
    _, bob_id = bob
    assert client.delete(f"/user/{bob_id}").status_code == 403


def test_delete_account_cascades_records_and_ends_sessions(make_client, register):
    client = make_client()
    user_id = register(client)
    second_device = make_client()
    second_device.post("/user/login", json={"username": "alice", "password": "Password123!"})

    record = client.post("/record", json={"title": "Diary"}).json()
    category = client.post("/category", json={"name": "Work"}).json()

    response = client.delete(f"/user/{user_id}")
    assert response.status_code == 204
    assert _cookie(client) is None

    # every session of the user is gone
    assert second_device.get("/user/all").status_code == 401

    other = make_client()
    register(other, "bob")
    assert other.get(f"/record/{record['id']}").status_code == 404
    # categories survive without an owner
    survivor = other.get(f"/category/{category['id']}").json()
    assert survivor["ownerId"] is None

    login = make_client().post("/user/login", json={"username": "alice", "password": "Password123!"})
    assert login.status_code == 401


def test_register_rejects_at_sign_in_username(client: TestClient):
    response = client.post(
        "/user/register",
        json={"username": "a@b.com", "email": "ab@test.com", "password": "x"},
    )
    assert response.status_code == 400
    assert response.json() == {"message": "Username cannot contain '@'."}


def test_email_login_cannot_be_shadowed_by_username(make_client):
    """A username equal to someone's email cannot take over that email login."""
    victim = make_client()
    victim_id = victim.post(
        "/user/register",
        json={"username": "victim", "email": "v@test.com", "password": "Victim123!"},
    ).json()["userId"]

    squatter = make_client().post(
        "/user/register",
        json={"username": "v@test.com", "email": "x@test.com", "password": "Other123!"},
    )
    assert squatter.status_code == 400

    login = make_client().post(
        "/user/login",
        json={"username": "V@Test.com", "password": "Victim123!"},
    )
    assert login.status_code == 200
    assert login.json()["userId"] == victim_id


def test_update_profile_rejects_at_sign_in_username(alice):
    client, alice_id = alice
    response = client.put(f"/user/{alice_id}", json={"username": "bob@test.com"})
    assert response.status_code == 400
    assert client.get("/user/me").json()["username"] == "alice"


def test_delete_account_survives_session_teardown_failure(alice, db, monkeypatch):
    """Session cleanup errors are logged; the account is still gone and the cookie cleared."""
    client, alice_id = alice
    client.post("/record", json={"title": "Diary"})

    def broken_teardown(*args, **kwargs):
        raise SQLAlchemyError("sessions table unavailable")

    monkeypatch.setattr(session_service, "destroy_user_sessions", broken_teardown)

    response = client.delete(f"/user/{alice_id}")
    assert response.status_code == 204
    assert _cookie(client) is None
    assert db.query(Record).filter(Record.owner_id == uuid.UUID(alice_id)).count() == 0
