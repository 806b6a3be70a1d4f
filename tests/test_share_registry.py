import datetime as _dt

import pytest

from blogshare.errors import ValidationError
from blogshare.models.share import Invitation, Share
from blogshare.services import token_codec
from blogshare.services.share_registry import ShareRegistry, serialize_share


@pytest.fixture
def retired():
    return []


@pytest.fixture
def registry(db, retired):
    return ShareRegistry(db, on_token_changed=[retired.append])


def test_share_is_created_lazily(db, tree, registry):
    cat_id = tree["security"].id
    assert registry.get_by_owning_entity(cat_id, "category") is None
    share = registry.upsert_settings(cat_id, "category", include_subcategories=False)
    assert share.id is not None
    assert share.public_enabled is False
    assert share.public_token is None
    assert share.include_subcategories is False


def test_enabling_public_link_generates_token(db, tree, registry):
    share = registry.upsert_settings(tree["security"].id, "category", public_enabled=True)
    assert token_codec.is_valid_format(share.public_token)
    assert registry.get_by_token(share.public_token, "category").id == share.id
    # Token gehört nur zur eigenen Art
    assert registry.get_by_token(share.public_token, "post") is None


def test_partial_update_keeps_other_fields(db, tree, registry):
    cat_id = tree["security"].id
    expires = _dt.datetime(2031, 5, 1, 8, 30)
    first = registry.upsert_settings(cat_id, "category", public_enabled=True, public_expires_at=expires)
    token = first.public_token
    second = registry.upsert_settings(cat_id, "category", include_subcategories=False)
    assert second.id == first.id
    assert second.public_enabled is True
    assert second.public_token == token
    assert second.public_expires_at == expires
    assert second.include_subcategories is False


def test_disabling_keeps_token_and_reenabling_reuses_it(db, tree, registry):
    cat_id = tree["security"].id
    token = registry.upsert_settings(cat_id, "category", public_enabled=True).public_token
    off = registry.upsert_settings(cat_id, "category", public_enabled=False)
    assert off.public_token == token
    on = registry.upsert_settings(cat_id, "category", public_enabled=True)
    assert on.public_token == token


def test_regenerate_replaces_old_token(db, tree, registry, retired):
    cat_id = tree["security"].id
    old = registry.upsert_settings(cat_id, "category", public_enabled=True).public_token
    new = registry.upsert_settings(cat_id, "category", regenerate_token=True).public_token
    assert new != old
    assert registry.get_by_token(old, "category") is None
    assert registry.get_by_token(new, "category") is not None
    assert old in retired


def test_iso_expiry_with_offset_is_stored_as_utc(db, tree, registry):
    share = registry.upsert_settings(tree["security"].id, "category", public_expires_at="2031-01-01T10:00:00+02:00")
    assert share.public_expires_at == _dt.datetime(2031, 1, 1, 8, 0)
    cleared = registry.upsert_settings(tree["security"].id, "category", public_expires_at=None)
    assert cleared.public_expires_at is None


@pytest.mark.parametrize("kwargs", [
    {"public_enabled": "yes"},
    {"include_subcategories": 1},
    {"public_expires_at": "next tuesday"},
    {"regenerate_token": "true"},
])
def test_invalid_settings_are_rejected(db, tree, registry, kwargs):
    with pytest.raises(ValidationError):
        registry.upsert_settings(tree["security"].id, "category", **kwargs)
    assert registry.get_by_owning_entity(tree["security"].id, "category") is None


def test_unknown_kind_is_a_programming_error(db, registry):
    with pytest.raises(ValueError):
        registry.get_by_owning_entity(1, "tag")


def test_malformed_token_never_hits_storage(db, registry):
    assert registry.get_by_token("abc", "category") is None


def test_token_collision_is_retried(db, tree, registry, monkeypatch):
    taken = registry.upsert_settings(tree["security"].id, "category", public_enabled=True).public_token
    fresh = token_codec.generate()
    candidates = iter([taken, taken, fresh])
    monkeypatch.setattr(token_codec, "generate", lambda nbytes=16: next(candidates))
    share = registry.upsert_settings(tree["web"].id, "category", public_enabled=True)
    assert share.public_token == fresh


def test_disable_cascades_invitations(db, tree, registry, retired):
    cat_id = tree["security"].id
    share = registry.upsert_settings(cat_id, "category", public_enabled=True)
    token = share.public_token
    db.add(Invitation(share_id=share.id, email="alice@example.com"))
    db.commit()

    assert registry.disable(cat_id, "category") is True
    assert registry.get_by_owning_entity(cat_id, "category") is None
    assert db.query(Invitation).count() == 0
    assert db.query(Share).count() == 0
    assert token in retired
    # zweites Mal: nichts mehr da
    assert registry.disable(cat_id, "category") is False


def test_post_and_category_shares_are_independent(db, tree, registry):
    a = registry.upsert_settings(tree["security"].id, "category", public_enabled=True)
    b = registry.upsert_settings(tree["security"].id, "post", public_enabled=True)
    assert a.id != b.id
    assert a.public_token != b.public_token


def test_serialize_share(db, tree, registry):
    share = registry.upsert_settings(tree["security"].id, "category", public_enabled=True)
    data = serialize_share(share)
    assert data["public_url"] == f"/sc/{share.public_token}"
    assert data["include_subcategories"] is True
    assert data["invitations"] == []
    assert serialize_share(None) is None
