from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from marketplace.core.security import create_refresh_token
from marketplace.models.user import User
from tests.factories import TEST_PASSWORD, auth_headers, create_user


def _register_payload(**overrides) -> dict:
    payload = {
        "email": "new@example.com",
        "first_name": "Nimal",
        "last_name": "Silva",
        "password": "secret123",
        "confirm_password": "secret123",
    }
    payload.update(overrides)
    return payload


def test_register_returns_tokens_and_customer(client: TestClient, db_session: Session):
    response = client.post("/api/v1/auth/register", json=_register_payload())

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["user_type"] == "CUSTOMER"
    assert data["access_token"]
    assert data["refresh_token"]
    assert db_session.query(User).count() == 1


def test_register_duplicate_email_is_conflict(client: TestClient, db_session: Session):
    create_user(db_session, "new@example.com")

    response = client.post("/api/v1/auth/register", json=_register_payload())

    assert response.status_code == 409


def test_register_password_mismatch_is_validation_error(client: TestClient):
    response = client.post("/api/v1/auth/register", json=_register_payload(confirm_password="other123"))

    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"


def test_register_cannot_self_assign_admin(client: TestClient):
    response = client.post("/api/v1/auth/register", json=_register_payload(user_type="ADMIN"))

    assert response.status_code == 400


def test_login_sets_cookies_that_authenticate(client: TestClient, db_session: Session):
    create_user(db_session, "login@example.com")

    response = client.post("/api/v1/auth/login", json={"email": "login@example.com", "password": TEST_PASSWORD})

    assert response.status_code == 200
    assert "access_token" in response.cookies
    profile = client.get("/api/v1/auth/profile")
    assert profile.status_code == 200
    assert profile.json()["data"]["email"] == "login@example.com"

    client.post("/api/v1/auth/logout")
    assert client.get("/api/v1/auth/profile").status_code == 401


def test_login_with_wrong_password_is_unauthorized(client: TestClient, db_session: Session):
    create_user(db_session, "login@example.com")

    response = client.post("/api/v1/auth/login", json={"email": "login@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


def test_refresh_token_issues_access_token(client: TestClient, db_session: Session):
    user = create_user(db_session, "refresh@example.com")
    refresh = create_refresh_token({"sub": str(user.id)})

    response = client.post("/api/v1/auth/refresh-token", json={"refresh_token": refresh})

    assert response.status_code == 200
    access = response.json()["data"]["access_token"]
    profile = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {access}"})
    assert profile.status_code == 200


def test_refresh_token_cannot_be_used_as_access_token(client: TestClient, db_session: Session):
    user = create_user(db_session, "refresh@example.com")
    refresh = create_refresh_token({"sub": str(user.id)})

    response = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {refresh}"})

    assert response.status_code == 401


def test_update_profile(client: TestClient, db_session: Session):
    user = create_user(db_session, "profile@example.com")

    response = client.put(
        "/api/v1/auth/profile",
        json={"first_name": "Kamal", "phone": "+94771234567"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert response.json()["data"]["first_name"] == "Kamal"
    assert response.json()["data"]["phone"] == "+94771234567"


def test_error_envelope_shape(client: TestClient):
    response = client.get("/api/v1/auth/profile")

    payload = response.json()
    assert response.status_code == 401
    assert payload["success"] is False
    assert payload["data"] is None
    assert payload["errors"] == []
    assert "timestamp" in payload
