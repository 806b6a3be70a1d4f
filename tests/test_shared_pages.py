import datetime as _dt

import pytest

from blogshare.services import token_codec

from conftest import login_as, make_category, make_database, make_post, make_user


@pytest.fixture
def published(db, sharing, tree):
    make_post(db, "root-post", tree["security"])
    make_post(db, "p", tree["web"])
    make_post(db, "collision", tree["security2"])
    share = sharing.registry.upsert_settings(tree["security"].id, "category", public_enabled=True)
    return share.public_token


def test_category_root_page(client, published):
    r = client.get(f"/sc/{published}")
    body = r.get_json()
    assert r.status_code == 200
    assert r.headers["Cache-Control"] == "private, no-store"
    assert body["category"]["name"] == "Security"
    assert body["category"]["slugPath"] == ["security"]
    assert {p["slug"] for p in body["posts"]} == {"root-post", "p"}
    assert [c["slug"] for c in body["children"]] == ["web"]
    assert body["includeSubcategories"] is True
    assert body["expiringSoon"] is False
    assert body["accessType"] == "public_token"


def test_post_inside_shared_category(client, published):
    r = client.get(f"/sc/{published}/p")
    assert r.status_code == 200
    post = r.get_json()["post"]
    assert post["category"] == "Security/Web"
    assert post["content"] == "body of p"
    assert client.get(f"/sc/{published}/collision").status_code == 404
    assert client.get(f"/sc/{published}/does-not-exist").status_code == 404


def test_cascade_off_hides_child_posts(client, sharing, tree, published):
    sharing.registry.upsert_settings(tree["security"].id, "category", include_subcategories=False)
    body = client.get(f"/sc/{published}").get_json()
    assert {p["slug"] for p in body["posts"]} == {"root-post"}
    assert body["children"] == []
    assert client.get(f"/sc/{published}/p").status_code == 404


@pytest.mark.parametrize("token", ["abc", "bad.token.value.1234", "x" * 200])
def test_malformed_token_is_404(client, published, token):
    r = client.get(f"/sc/{token}")
    assert r.status_code == 404
    assert r.get_json()["reason"] == "not_found"


def test_unknown_and_disabled_tokens_both_404(client, sharing, tree, published):
    assert client.get(f"/sc/{token_codec.generate()}").status_code == 404
    sharing.registry.upsert_settings(tree["security"].id, "category", public_enabled=False)
    r = client.get(f"/sc/{published}")
    assert r.status_code == 404
    assert r.get_json()["reason"] == "not_found"


def test_expired_link_is_410(client, sharing, tree, clock, published):
    sharing.registry.upsert_settings(tree["security"].id, "category",
                                     public_expires_at=clock() + _dt.timedelta(days=2))
    body = client.get(f"/sc/{published}").get_json()
    assert body["expiringSoon"] is True
    clock.advance(days=3)
    r = client.get(f"/sc/{published}")
    assert r.status_code == 410
    assert r.get_json()["reason"] == "expired"


def test_category_token_does_not_open_post_route(client, published):
    assert client.get(f"/s/{published}").status_code == 404


def test_database_routes(client, db, tree, published):
    database = make_database(db, "payloads", tree["web"])
    item_id = database.items[0].id
    r = client.get(f"/sc/{published}/db/payloads")
    assert r.status_code == 200
    assert r.get_json()["database"]["items"][0]["title"] == "First row"
    r = client.get(f"/sc/{published}/db/payloads/{item_id}")
    assert r.get_json()["item"]["data"] == {"name": "First row", "score": 3}
    assert client.get(f"/sc/{published}/db/payloads/{item_id + 1}").status_code == 404
    assert client.get(f"/sc/{published}/db/unknown").status_code == 404


def test_single_post_share(client, db, sharing, tree):
    post = make_post(db, "solo", tree["security2"])
    token = sharing.registry.upsert_settings(post.id, "post", public_enabled=True).public_token
    r = client.get(f"/s/{token}")
    assert r.status_code == 200
    assert r.get_json()["post"]["slug"] == "solo"
    assert client.get(f"/sc/{token}").status_code == 404


def test_validate_endpoints(client, db, sharing, tree, published):
    body = client.get(f"/api/share/validate/category/{published}").get_json()
    assert body["valid"] is True
    assert body["categorySlugPath"] == ["security"]
    assert client.get("/api/share/validate/category/abc").get_json() == {"valid": False, "reason": "not_found"}

    post = make_post(db, "solo", tree["security2"])
    token = sharing.registry.upsert_settings(post.id, "post", public_enabled=True).public_token
    assert client.get(f"/api/share/validate/{token}").get_json()["slug"] == "solo"


# ---------------------------------------------------------------------------
# Einladungen
# ---------------------------------------------------------------------------
def test_invited_category_requires_login(client, tree):
    r = client.get("/shared/categories/security")
    assert r.status_code == 401


def test_invited_viewer_sees_category(client, db, sharing, tree):
    make_post(db, "p", tree["web"])
    alice = make_user(db, "alice", "alice@example.com")
    share = sharing.registry.ensure(tree["security"].id, "category")
    sharing.invitations.invite(share.id, ["alice@example.com"])

    login_as(client, alice)
    r = client.get("/shared/categories/security")
    body = r.get_json()
    assert r.status_code == 200
    assert body["accessType"] == "invited"
    assert [p["slug"] for p in body["posts"]] == ["p"]

    me = client.get("/shared/me").get_json()
    assert [c["slugPath"] for c in me["categories"]] == ["security"]
    assert me["categories"][0]["status"] == "accepted"


def test_expired_invitation_vs_uninvited(client, db, sharing, tree, clock):
    alice = make_user(db, "alice", "alice@example.com")
    bob = make_user(db, "bob", "bob@example.com")
    share = sharing.registry.ensure(tree["security"].id, "category")
    sharing.invitations.invite(share.id, ["alice@example.com"], expires_at=clock() - _dt.timedelta(days=1))

    login_as(client, alice)
    assert client.get("/shared/categories/security").status_code == 410
    login_as(client, bob)
    assert client.get("/shared/categories/security").status_code == 404
    assert client.get("/shared/categories/security/nope").status_code == 404


def test_invited_post(client, db, sharing, tree):
    post = make_post(db, "letter", tree["security"])
    carol = make_user(db, "carol", "carol@example.com")
    share = sharing.registry.ensure(post.id, "post")
    sharing.invitations.invite(share.id, ["carol@example.com"])
    login_as(client, carol)
    r = client.get("/shared/posts/letter")
    assert r.status_code == 200
    assert r.get_json()["post"]["title"] == "Letter"
    assert client.get("/shared/posts/other").status_code == 404


def test_owner_sees_unshared_category(admin_client, db):
    cat = make_category(db, "Drafts")
    make_post(db, "wip", cat)
    body = admin_client.get("/shared/categories/drafts").get_json()
    assert body["accessType"] == "admin"
    assert [p["slug"] for p in body["posts"]] == ["wip"]


@pytest.fixture
def invited_bob(client, db, sharing, tree):
    make_post(db, "root-post", tree["security"])
    make_post(db, "p", tree["web"])
    deep = make_category(db, "XSS", parent=tree["web"])
    make_post(db, "deep", deep)
    make_post(db, "collision", tree["security2"])
    bob = make_user(db, "bob", "bob@example.com")
    share = sharing.registry.ensure(tree["security"].id, "category")
    sharing.invitations.invite(share.id, ["bob@example.com"])
    login_as(client, bob)
    return share


def test_invitation_cascades_into_child_categories(client, invited_bob):
    top = client.get("/shared/categories/security").get_json()
    assert [c["slug_path"] for c in top["children"]] == [["security", "web"]]

    r = client.get("/shared/categories/security/web")
    body = r.get_json()
    assert r.status_code == 200
    assert body["accessType"] == "invited"
    assert body["category"]["slugPath"] == ["security", "web"]
    assert [p["slug"] for p in body["posts"]] == ["p"]
    assert [c["slug"] for c in body["children"]] == ["xss"]
    assert client.get("/shared/categories/security/web/xss").status_code == 200


def test_invited_viewer_opens_posts_in_shared_subtree(client, invited_bob):
    for slug in ("root-post", "p", "deep"):
        r = client.get(f"/shared/posts/{slug}")
        assert r.status_code == 200, slug
        assert r.get_json()["post"]["slug"] == slug
    assert client.get("/shared/posts/collision").status_code == 404
    assert client.get("/shared/categories/security2").status_code == 404


def test_exact_invitation_stops_at_the_category(client, sharing, tree, invited_bob):
    sharing.registry.upsert_settings(tree["security"].id, "category", include_subcategories=False)
    assert client.get("/shared/categories/security").status_code == 200
    assert client.get("/shared/categories/security/web").status_code == 404
    assert client.get("/shared/posts/root-post").status_code == 200
    assert client.get("/shared/posts/p").status_code == 404


def test_expired_category_invitation_blocks_its_posts(client, db, sharing, tree, clock):
    make_post(db, "p", tree["web"])
    alice = make_user(db, "alice", "alice@example.com")
    share = sharing.registry.ensure(tree["security"].id, "category")
    sharing.invitations.invite(share.id, ["alice@example.com"], expires_at=clock() - _dt.timedelta(days=1))
    login_as(client, alice)
    r = client.get("/shared/posts/p")
    assert r.status_code == 410
    assert r.get_json()["reason"] == "expired"
