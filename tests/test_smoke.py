def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_unknown_route_is_json_404(client):
    r = client.get("/definitely/not/here")
    assert r.status_code == 404
    assert r.get_json()["ok"] is False
