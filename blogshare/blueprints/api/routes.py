# blogshare/blueprints/api/routes.py
"""
Einstellungs-API für den Eigentümer: Freigaben + Einladungen
pro Kategorie (per slugPath oder categoryId) und pro Post (per Slug).
"""
from __future__ import annotations
import logging
from typing import Any, Dict
from flask import Blueprint, jsonify, request
from sqlalchemy import select

from blogshare.db import get_session
from blogshare.errors import NotFoundError, ValidationError
from blogshare.models.category import Category
from blogshare.models.post import Post
from blogshare.services.category_service import list_categories_serialized, create_category, move_category
from blogshare.services.invitation_service import is_valid_email, serialize_invitation
from blogshare.services.path_resolver import split_slug_path
from blogshare.services.roles import require_admin_json
from blogshare.services.share_registry import UNSET, serialize_share
from blogshare.services.sharing import Sharing, build_sharing, page_cache

api_bp = Blueprint("api", __name__)
log = logging.getLogger(__name__)

# -----------------------
# Helpers
# -----------------------
def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}

def _param(data: Dict[str, Any], key: str):
    """Body hat Vorrang, sonst Query-String (GET/DELETE ohne Body)."""
    if key in data:
        return data[key]
    return request.args.get(key)

def _resolve_category(sharing: Sharing, data: Dict[str, Any]) -> Category:
    raw_id = _param(data, "categoryId")
    if raw_id not in (None, ""):
        try:
            cat = sharing.resolver.categories.get(int(raw_id))
        except (TypeError, ValueError):
            raise ValidationError("categoryId must be an integer") from None
    else:
        cat = sharing.resolver.resolve_by_slugs(split_slug_path(_param(data, "slugPath")))
    if cat is None:
        raise NotFoundError("Category not found")
    return cat

def _resolve_post(db, slug: str) -> Post:
    post = db.execute(select(Post).where(Post.slug == slug)).scalar_one_or_none()
    if post is None:
        raise NotFoundError("Post not found")
    return post

def _settings_kwargs(data: Dict[str, Any], kind: str) -> Dict[str, Any]:
    kwargs = {
        "public_enabled": data.get("publicEnabled", UNSET),
        "public_expires_at": data.get("publicExpiresAt", UNSET),
        "regenerate_token": data.get("regenerateToken", False) or False,
    }
    if kind == "category":
        kwargs["include_subcategories"] = data.get("includeSubcategories", UNSET)
    return kwargs

def _emails_from(data: Dict[str, Any]):
    emails = data.get("emails")
    if emails is None and data.get("email") is not None:
        emails = [data.get("email")]
    if not isinstance(emails, list) or not emails:
        raise ValidationError("At least one email is required")
    if not any(is_valid_email(e) for e in emails):
        raise ValidationError("No valid emails provided")
    return emails

def _invite(sharing: Sharing, entity_id: int, kind: str, data: Dict[str, Any]):
    emails = _emails_from(data)
    share = sharing.registry.ensure(entity_id, kind)
    result = sharing.invitations.invite(share.id, emails, data.get("expiresAt"))
    body: Dict[str, Any] = {"ok": True, "invitations": [serialize_invitation(i) for i in result.created]}
    if result.errors:
        body["errors"] = result.errors
    return jsonify(body)

def _revoke(sharing: Sharing, entity_id: int, kind: str, data: Dict[str, Any]):
    email = _param(data, "email")
    if not email:
        raise ValidationError("Email is required")
    share = sharing.registry.get_by_owning_entity(entity_id, kind)
    if share is None:
        raise NotFoundError("No share settings found")
    removed = sharing.invitations.revoke(share.id, email)
    if not removed:
        raise NotFoundError("Invitation not found")
    return jsonify({"ok": True})

def _list_invitations(sharing: Sharing, entity_id: int, kind: str):
    share = sharing.registry.get_by_owning_entity(entity_id, kind)
    invitations = sharing.invitations.list_for_share(share.id) if share else []
    return jsonify({"ok": True, "invitations": [serialize_invitation(i) for i in invitations]})

# -----------------------
# Kategorien
# -----------------------
@api_bp.get("/categories")
@require_admin_json
def api_list_categories():
    db = get_session()
    try:
        return jsonify({"ok": True, "categories": list_categories_serialized(db)})
    finally:
        db.close()

@api_bp.post("/categories")
@require_admin_json
def api_create_category():
    data = _payload()
    name = (data.get("name") or "").strip()
    parent_id = data.get("parent_id")
    if not name:
        return jsonify({"ok": False, "error": "name required"}), 400
    if parent_id is not None and not isinstance(parent_id, int):
        return jsonify({"ok": False, "error": "parent_id must be int or null"}), 400
    db = get_session()
    try:
        c = create_category(db, name, parent_id, data.get("slug"))
        return jsonify({"ok": True, "category": {"id": c.id, "name": c.name, "slug": c.slug, "parent_id": c.parent_id}})
    finally:
        db.close()

@api_bp.put("/categories/<int:cat_id>")
@require_admin_json
def api_move_category(cat_id: int):
    data = _payload()
    if "parent_id" not in data:
        return jsonify({"ok": False, "error": "parent_id required"}), 400
    parent_id = data.get("parent_id")
    if parent_id is not None and not isinstance(parent_id, int):
        return jsonify({"ok": False, "error": "parent_id must be int or null"}), 400
    db = get_session()
    try:
        if not move_category(db, cat_id, parent_id):
            raise NotFoundError("Category not found")
        # Scopes aller Kategorie-Freigaben können sich geändert haben
        page_cache().clear()
        log.info("Kategorie %s nach %s verschoben", cat_id, parent_id)
        return jsonify({"ok": True, "categories": list_categories_serialized(db)})
    finally:
        db.close()

# -----------------------
# Freigabe: Kategorie
# -----------------------
@api_bp.get("/share/categories")
@require_admin_json
def api_category_share_get():
    db = get_session()
    try:
        sharing = build_sharing(db)
        cat = _resolve_category(sharing, {})
        share = sharing.registry.get_by_owning_entity(cat.id, "category")
        return jsonify({
            "ok": True,
            "share": serialize_share(share),
            "categoryId": cat.id,
            "categoryName": cat.name,
            "categoryPath": sharing.resolver.display_path(cat.id),
        })
    finally:
        db.close()

@api_bp.put("/share/categories")
@require_admin_json
def api_category_share_put():
    data = _payload()
    db = get_session()
    try:
        sharing = build_sharing(db)
        cat = _resolve_category(sharing, data)
        share = sharing.registry.upsert_settings(cat.id, "category", **_settings_kwargs(data, "category"))
        return jsonify({"ok": True, "share": serialize_share(share)})
    finally:
        db.close()

@api_bp.delete("/share/categories")
@require_admin_json
def api_category_share_delete():
    db = get_session()
    try:
        sharing = build_sharing(db)
        cat = _resolve_category(sharing, _payload())
        removed = sharing.registry.disable(cat.id, "category")
        return jsonify({"ok": True, "removed": removed})
    finally:
        db.close()

@api_bp.get("/share/categories/invitations")
@require_admin_json
def api_category_invitations_get():
    db = get_session()
    try:
        sharing = build_sharing(db)
        cat = _resolve_category(sharing, {})
        return _list_invitations(sharing, cat.id, "category")
    finally:
        db.close()

@api_bp.post("/share/categories/invitations")
@require_admin_json
def api_category_invitations_post():
    data = _payload()
    db = get_session()
    try:
        sharing = build_sharing(db)
        cat = _resolve_category(sharing, data)
        return _invite(sharing, cat.id, "category", data)
    finally:
        db.close()

@api_bp.delete("/share/categories/invitations")
@require_admin_json
def api_category_invitations_delete():
    data = _payload()
    db = get_session()
    try:
        sharing = build_sharing(db)
        cat = _resolve_category(sharing, data)
        return _revoke(sharing, cat.id, "category", data)
    finally:
        db.close()

# -----------------------
# Freigabe: Post
# -----------------------
@api_bp.get("/share/posts/<string:slug>")
@require_admin_json
def api_post_share_get(slug: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        post = _resolve_post(db, slug)
        share = sharing.registry.get_by_owning_entity(post.id, "post")
        return jsonify({"ok": True, "share": serialize_share(share), "postId": post.id, "title": post.title})
    finally:
        db.close()

@api_bp.put("/share/posts/<string:slug>")
@require_admin_json
def api_post_share_put(slug: str):
    data = _payload()
    db = get_session()
    try:
        sharing = build_sharing(db)
        post = _resolve_post(db, slug)
        share = sharing.registry.upsert_settings(post.id, "post", **_settings_kwargs(data, "post"))
        return jsonify({"ok": True, "share": serialize_share(share)})
    finally:
        db.close()

@api_bp.delete("/share/posts/<string:slug>")
@require_admin_json
def api_post_share_delete(slug: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        post = _resolve_post(db, slug)
        return jsonify({"ok": True, "removed": sharing.registry.disable(post.id, "post")})
    finally:
        db.close()

@api_bp.get("/share/posts/<string:slug>/invitations")
@require_admin_json
def api_post_invitations_get(slug: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        return _list_invitations(sharing, _resolve_post(db, slug).id, "post")
    finally:
        db.close()

@api_bp.post("/share/posts/<string:slug>/invitations")
@require_admin_json
def api_post_invitations_post(slug: str):
    data = _payload()
    db = get_session()
    try:
        sharing = build_sharing(db)
        return _invite(sharing, _resolve_post(db, slug).id, "post", data)
    finally:
        db.close()

@api_bp.delete("/share/posts/<string:slug>/invitations")
@require_admin_json
def api_post_invitations_delete(slug: str):
    data = _payload()
    db = get_session()
    try:
        sharing = build_sharing(db)
        return _revoke(sharing, _resolve_post(db, slug).id, "post", data)
    finally:
        db.close()
