def _register(client, email="new@example.com", role="CLIENT"):
    return client.post(
        "/api/v1/auth/register",
        json={
            "email": email,
            "password": "testpassword",
            "role": role,
            "firstName": "New",
            "lastName": "User",
        },
    )


def test_register_then_login(client):
    response = _register(client)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["role"] == "CLIENT"
    assert data["token"]

    login = client.post(
        "/api/v1/auth/login",
        data={"username": "NEW@example.com", "password": "testpassword"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"})
    assert me.json()["data"]["user"]["firstName"] == "New"


def test_duplicate_email_conflicts(client):
    _register(client)
    response = _register(client)

    assert response.status_code == 409
    assert response.json()["error"] == "CONFLICT"


def test_admin_role_cannot_self_register(client):
    response = _register(client, role="ADMIN")

    assert response.status_code == 400


def test_wrong_password(client):
    _register(client)

    response = client.post(
        "/api/v1/auth/login",
        data={"username": "new@example.com", "password": "nope"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    assert response.status_code == 401


def test_garbage_token(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token."


def test_status_is_public(client):
    response = client.get("/api/v1/status")

    assert response.status_code == 200
    assert response.json()["status"] == "OK"
