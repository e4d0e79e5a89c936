from core.auth.db import create_default_admin
from core.auth.models import UserRole

REGISTER_URL = "/api/v1/auth/register"
LOGIN_URL = "/api/v1/auth/login"


async def test_register_returns_user_without_password(client):
    response = await client.post(
        REGISTER_URL,
        json={"name": "Jane", "email": "Jane@Example.com", "password": "Password123"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "jane@example.com"
    assert body["role"] == UserRole.USER
    assert "password" not in body
    assert "password_hash" not in body


async def test_register_duplicate_email(client):
    payload = {"name": "Jane", "email": "jane@example.com", "password": "Password123"}
    await client.post(REGISTER_URL, json=payload)
    response = await client.post(REGISTER_URL, json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": "Email already in use"}


async def test_register_weak_password(client):
    response = await client.post(
        REGISTER_URL,
        json={"name": "Jane", "email": "jane@example.com", "password": "password"},
    )
    assert response.status_code == 400
    assert "uppercase" in response.json()["error"]


async def test_register_missing_fields(client):
    response = await client.post(REGISTER_URL, json={"email": "jane@example.com"})
    assert response.status_code == 400
    assert "name" in response.json()["error"]


async def test_login_and_me(client, register):
    headers = await register("jane@example.com", "Jane")
    response = await client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Jane"
    assert response.json()["last_login"] is not None


async def test_login_bad_credentials(client, register):
    await register("jane@example.com")
    response = await client.post(LOGIN_URL, json={"email": "jane@example.com", "password": "Wrong1234"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password"}


async def test_missing_token_is_unauthorized(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_logout_revokes_token(client, register):
    headers = await register("jane@example.com")
    response = await client.post("/api/v1/auth/logout", headers=headers)
    assert response.status_code == 200

    response = await client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 401


async def test_create_default_admin_is_idempotent(db_session):
    admin = await create_default_admin(db_session, email="root@example.com", password="Admin123!")
    again = await create_default_admin(db_session, email="root@example.com", password="Admin123!")
    assert admin.id == again.id
    assert admin.role == UserRole.ADMIN
