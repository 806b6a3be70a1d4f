from blogshare.blueprints.auth import routes as auth_routes


def test_login_logout_roundtrip(client):
    r = client.post("/auth/login", json={"username": "admin", "password": "owner-pass"})
    assert r.status_code == 200
    assert r.get_json()["user"]["role"] == "admin"
    me = client.get("/auth/me").get_json()
    assert me["user"]["email"] == "owner@example.com"
    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401


def test_wrong_password_and_lockout(client):
    auth_routes._ATTEMPTS.clear()
    for _ in range(auth_routes.MAX_ATTEMPTS):
        r = client.post("/auth/login", json={"username": "admin", "password": "nope"})
        assert r.status_code == 401
    r = client.post("/auth/login", json={"username": "admin", "password": "owner-pass"})
    assert r.status_code == 429
    auth_routes._ATTEMPTS.clear()


def test_admin_session_can_manage_shares(client, tree):
    client.post("/auth/login", json={"username": "admin", "password": "owner-pass"})
    r = client.put("/api/share/categories", json={"slugPath": "security", "publicEnabled": True})
    assert r.status_code == 200
