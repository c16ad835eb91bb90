"""Authentication endpoint tests."""

from recipebox.services.auth import create_access_token, decode_access_token

EMAIL = "test@example.com"


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_user(client):
    """Test user registration."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "newuser@example.com", "password": "password123", "name": "New User"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "newuser@example.com"
    assert decode_access_token(data["access_token"])["sub"] == str(data["user"]["id"])


def test_register_duplicate_email(client, auth_headers):
    """Test registration with duplicate email fails."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": EMAIL, "password": "password123", "name": "Duplicate"},
    )
    assert response.status_code == 400
    assert "already registered" in response.json()["detail"]


def test_register_short_password(client):
    response = client.post(
        "/api/v1/auth/register", json={"email": "kort@example.com", "password": "kort"}
    )
    assert response.status_code == 422


def test_login(client, auth_headers):
    """Test user login."""
    response = client.post("/api/v1/auth/login", json={"email": EMAIL, "password": "testpass123"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == auth_headers.user_id


def test_login_wrong_password(client, auth_headers):
    """Test login with wrong password."""
    response = client.post("/api/v1/auth/login", json={"email": EMAIL, "password": "wrongpass"})
    assert response.status_code == 401


def test_get_current_user(client, auth_headers):
    """Test getting current user info."""
    response = client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == EMAIL


def test_invalid_token_rejected(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid"})
    assert response.status_code == 401


def test_token_for_deleted_user_rejected(client):
    token = create_access_token(999999, "ghost@example.com")
    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"
