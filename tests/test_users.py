import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_signup_success(client: AsyncClient, test_company):
    """Successful signup returns 201 and correct user data (no password in response)"""
    payload = {
        "email": "newuser123@example.com",
        "role": "user",
        "password": "strongpass123",
        "company_id": test_company.id,
    }
    response = await client.post("/profile/signup", json=payload)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == payload["email"]
    assert "id" in data
    assert "password" not in data
    assert data["role"] == "user"
    assert data["company_id"] == test_company.id


@pytest.mark.asyncio
async def test_signup_duplicate_email(client: AsyncClient):
    """Duplicate email returns 409 Conflict"""
    payload = {
        "email": "duplicate@example.com",
        "role": "user",
        "password": "pass12345678",
    }
    await client.post("/profile/signup", json=payload)
    response = await client.post("/profile/signup", json=payload)

    assert response.status_code == 409
    assert response.json()["detail"] == "User already exists"


@pytest.mark.asyncio
async def test_signup_unknown_company(client: AsyncClient):
    payload = {
        "email": "orphan@example.com",
        "password": "pass12345678",
        "company_id": 9999,
    }
    response = await client.post("/profile/signup", json=payload)

    assert response.status_code == 404
    assert response.json()["detail"] == "Company not found"


@pytest.mark.asyncio
async def test_signup_invalid_data(client: AsyncClient):
    """Invalid payload returns 422 Unprocessable Entity"""
    payload = {"email": "not-an-email", "password": "short"}
    response = await client.post("/profile/signup", json=payload)

    assert response.status_code == 422
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient):
    """Login returns 200 with access_token"""
    payload = {
        "email": "loginuser@example.com",
        "password": "validpass123",
        "role": "user",
    }
    await client.post("/profile/signup", json=payload)

    login_payload = {"email": payload["email"], "password": payload["password"]}
    response = await client.post("/profile/login", json=login_payload)

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert isinstance(data["access_token"], str)
    assert len(data["access_token"]) > 20


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, test_user):
    response = await client.post(
        "/profile/login", json={"email": test_user.email, "password": "wrong-password"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_unknown_user(client: AsyncClient):
    response = await client.post(
        "/profile/login", json={"email": "ghost@example.com", "password": "whatever123"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_me(client: AsyncClient, test_user, auth_headers_user):
    response = await client.get("/profile/me", headers=auth_headers_user)

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == test_user.id
    assert data["company_id"] == test_user.company_id


@pytest.mark.asyncio
async def test_get_me_requires_token(client: AsyncClient):
    response = await client.get("/profile/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_me_rejects_garbage_token(client: AsyncClient):
    response = await client.get(
        "/profile/me", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401
