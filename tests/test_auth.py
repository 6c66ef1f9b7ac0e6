from bucketstore.security import TokenSigner


def test_health_and_root(client):
    assert client.get("/health").json() == {"status": "ok", "environment": "dev"}
    assert client.get("/").json()["status"] == "ok"


def test_unknown_route_and_wrong_method_use_error_envelope(client):
    missing = client.get("/nope")
    assert missing.status_code == 404
    assert missing.json() == {"error": {"code": "not_found", "message": "Not Found"}}

    wrong_method = client.delete("/bucket/add")
    assert wrong_method.status_code == 405
    assert wrong_method.json()["error"]["code"] == "method_not_allowed"
    assert "POST" in wrong_method.headers["allow"]


def test_register_returns_user_and_token(client):
    response = client.post(
        "/auth/register",
        json={"full_name": "Ada Lovelace", "email": "Ada@Example.com", "password": "analytical"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["full_name"] == "Ada Lovelace"
    assert "password" not in body["user"]
    assert "password_hash" not in body["user"]


def test_register_duplicate_email_is_rejected(client, make_user):
    make_user(email="dup@example.com")
    response = client.post(
        "/auth/register",
        json={"full_name": "Someone Else", "email": "dup@example.com", "password": "other-pass"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == {"code": "bad_request", "message": "user already exists"}


def test_register_missing_field_returns_bad_request(client):
    response = client.post("/auth/register", json={"email": "x@example.com", "password": "password1"})
    assert response.status_code == 400
    assert "missing parameters" in response.json()["error"]["message"]


def test_login_checks_password(client, make_user):
    make_user(email="login@example.com", password="right-password")

    ok = client.post("/auth/login", json={"email": "login@example.com", "password": "right-password"})
    assert ok.status_code == 200
    assert ok.json()["user"]["email"] == "login@example.com"

    wrong = client.post("/auth/login", json={"email": "login@example.com", "password": "wrong-password"})
    assert wrong.status_code == 400
    assert wrong.json()["error"]["message"] == "unable to login"

    unknown = client.post("/auth/login", json={"email": "nobody@example.com", "password": "right-password"})
    assert unknown.status_code == 400


def test_protected_routes_require_token(client):
    missing = client.get("/bucket/list/1/10")
    assert missing.status_code == 401
    assert missing.json()["error"] == {"code": "unauthorized", "message": "please log in"}

    garbage = client.get("/bucket/list/1/10", headers={"Authorization": "Bearer not-a-jwt"})
    assert garbage.status_code == 401


def test_token_signed_with_other_secret_is_rejected(client, make_user):
    _, user = make_user()
    forged = TokenSigner("other-secret").sign(user_id=user["user_id"], email=user["email"])
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


def test_me_returns_current_user(client, make_user):
    headers, user = make_user()
    response = client.get("/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["user_id"] == user["user_id"]


def test_logout_revokes_only_current_session(client, make_user):
    first, _ = make_user(email="multi@example.com", password="pass-word")
    login = client.post("/auth/login", json={"email": "multi@example.com", "password": "pass-word"})
    second = {"Authorization": f"Bearer {login.json()['token']}"}

    response = client.post("/auth/logout", headers=first)
    assert response.status_code == 200
    assert response.json() == {"message": "logged out"}

    assert client.get("/auth/me", headers=first).status_code == 401
    assert client.get("/auth/me", headers=second).status_code == 200


def test_logoutall_revokes_every_session(client, make_user):
    first, _ = make_user(email="all@example.com", password="pass-word")
    login = client.post("/auth/login", json={"email": "all@example.com", "password": "pass-word"})
    second = {"Authorization": f"Bearer {login.json()['token']}"}

    response = client.post("/auth/logoutall", headers=second)
    assert response.status_code == 200

    assert client.get("/auth/me", headers=first).status_code == 401
    assert client.get("/auth/me", headers=second).status_code == 401
