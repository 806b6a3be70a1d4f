# blogshare/blueprints/shared/routes.py
"""
Öffentliche Freigabe-Seiten (Token im Pfad) und Einladungs-Ansichten.

Jede Anfrage prüft Token/Einladung neu; erst danach darf der Seiten-Cache
gelesen werden. Antworten sind nie öffentlich cachebar.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from flask import Blueprint, current_app, jsonify
from sqlalchemy import select

from blogshare.db import get_session
from blogshare.errors import NotFoundError
from blogshare.models.category import Category
from blogshare.models.post import Post, Database, DatabaseItem
from blogshare.services.access_evaluator import EXPIRED, NOT_FOUND, Decision, Denied, Granted, expiring_soon
from blogshare.services.path_resolver import PathResolver, split_slug_path
from blogshare.services.roles import current_viewer, require_login_json
from blogshare.services.sharing import Sharing, build_sharing, page_cache
from blogshare.services.timeutil import isoformat

shared_bp = Blueprint("shared", __name__)
log = logging.getLogger(__name__)

@shared_bp.after_request
def _no_store(resp):
    resp.headers["Cache-Control"] = "private, no-store"
    resp.headers["X-Robots-Tag"] = "noindex"
    return resp

# -----------------------
# Serialisierung
# -----------------------
def _post_summary(post: Post, resolver: PathResolver) -> Dict[str, Any]:
    return {
        "id": post.id,
        "slug": post.slug,
        "title": post.title,
        "description": post.description,
        "category": resolver.display_path(post.category_id) or None,
        "date": isoformat(post.date),
        "status": post.status,
    }

def _post_detail(post: Post, resolver: PathResolver) -> Dict[str, Any]:
    data = _post_summary(post, resolver)
    data["content"] = post.content
    data["breadcrumbs"] = resolver.breadcrumbs(post.category_id)
    return data

def _database_summary(database: Database) -> Dict[str, Any]:
    return {"id": database.id, "slug": database.slug, "title": database.title}

def _item_title(database: Database, item: DatabaseItem) -> str:
    title_col = next((c for c in (database.columns or []) if isinstance(c, dict) and c.get("type") == "title"), None)
    value = (item.data or {}).get(title_col.get("id")) if title_col else None
    return str(value) if value else "Untitled"

def _grant_meta(grant: Granted) -> Dict[str, Any]:
    days = current_app.config["SHARE_EXPIRY_WARNING_DAYS"]
    return {
        "accessType": grant.access_type,
        "expiresAt": isoformat(grant.expires_at),
        "expiringSoon": expiring_soon(grant, current_app.config["SHARE_CLOCK"](), days),
    }

def _category_page(sharing: Sharing, grant: Granted) -> Dict[str, Any]:
    cat: Optional[Category] = sharing.resolver.categories.get(grant.entity_id)
    if cat is None:
        # Kategorie gelöscht, Freigabe verwaist
        raise NotFoundError()
    scoper, resolver = sharing.scoper, sharing.resolver
    return {
        "category": {
            "id": cat.id,
            "name": cat.name,
            "path": resolver.display_path(cat.id),
            "slugPath": resolver.ancestor_slugs(cat.id),
        },
        "breadcrumbs": resolver.breadcrumbs(cat.id),
        "includeSubcategories": grant.include_subcategories,
        "posts": [_post_summary(p, resolver) for p in scoper.list_posts(grant)],
        "children": scoper.child_categories(grant),
        "databases": [_database_summary(d) for d in scoper.list_databases(grant)],
    }

def _granted(sharing: Sharing, token: str, kind: str) -> Granted:
    decision = sharing.evaluator.evaluate_token(token, kind)
    if not decision.granted:
        decision.raise_error()
    return decision

def _cached(token: str, key, build):
    payload = page_cache().get_or_build(token, key, build)
    if payload is None:
        raise NotFoundError()
    return payload

def _live_category_page(sharing: Sharing, grant: Granted, page: Dict[str, Any]) -> Dict[str, Any]:
    """Gecachte Liste gegen den aktuellen Stand filtern (Verschobenes fällt raus)."""
    scoper = sharing.scoper
    posts = scoper.visible_post_ids(grant, [p["id"] for p in page["posts"]])
    databases = {d.id for d in scoper.list_databases(grant)}
    return {
        **page,
        "posts": [p for p in page["posts"] if p["id"] in posts],
        "children": [c for c in page["children"] if scoper.contains_category(grant, c["id"])],
        "databases": [d for d in page["databases"] if d["id"] in databases],
    }

# -----------------------
# Kategorie-Freigabe per Token
# Die Scope-Prüfung läuft immer am lebenden Datensatz, gecacht wird nur die Darstellung.
# -----------------------
@shared_bp.get("/sc/<token>")
def shared_category(token: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        grant = _granted(sharing, token, "category")
        page = _cached(token, ("category",), lambda: _category_page(sharing, grant))
        return jsonify({"ok": True, **_live_category_page(sharing, grant, page), **_grant_meta(grant)})
    finally:
        db.close()

@shared_bp.get("/sc/<token>/<post_slug>")
def shared_category_post(token: str, post_slug: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        grant = _granted(sharing, token, "category")
        post = sharing.scoper.find_post(grant, post_slug)
        if post is None:
            raise NotFoundError()
        data = _cached(token, ("post", post.id), lambda: _post_detail(post, sharing.resolver))
        return jsonify({"ok": True, "post": data, **_grant_meta(grant)})
    finally:
        db.close()

@shared_bp.get("/sc/<token>/db/<db_slug>")
def shared_database(token: str, db_slug: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        grant = _granted(sharing, token, "category")
        database = sharing.scoper.find_database(grant, db_slug)
        if database is None:
            raise NotFoundError()

        def build():
            return {
                **_database_summary(database),
                "columns": database.columns or [],
                "items": [{"id": it.id, "title": _item_title(database, it), "data": it.data} for it in database.items],
            }

        data = _cached(token, ("db", database.id), build)
        return jsonify({"ok": True, "database": data, **_grant_meta(grant)})
    finally:
        db.close()

@shared_bp.get("/sc/<token>/db/<db_slug>/<int:item_id>")
def shared_database_item(token: str, db_slug: str, item_id: int):
    db = get_session()
    try:
        sharing = build_sharing(db)
        grant = _granted(sharing, token, "category")
        item = sharing.scoper.find_database_item(grant, db_slug, item_id)
        if item is None:
            raise NotFoundError()

        def build():
            database = item.database
            return {
                "database": _database_summary(database),
                "item": {"id": item.id, "title": _item_title(database, item), "data": item.data},
                "columns": database.columns or [],
            }

        page = _cached(token, ("db", item.database_id, item.id), build)
        return jsonify({"ok": True, **page, **_grant_meta(grant)})
    finally:
        db.close()

# -----------------------
# Post-Freigabe per Token
# -----------------------
@shared_bp.get("/s/<token>")
def shared_post(token: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        grant = _granted(sharing, token, "post")
        post = db.get(Post, grant.entity_id)
        if not sharing.scoper.contains_post(grant, post):
            raise NotFoundError()
        data = _cached(token, ("post", post.id), lambda: _post_detail(post, sharing.resolver))
        return jsonify({"ok": True, "post": data, **_grant_meta(grant)})
    finally:
        db.close()

# -----------------------
# Token-Prüfung (für das Frontend)
# -----------------------
@shared_bp.get("/api/share/validate/<token>")
def validate_post_token(token: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        decision = sharing.evaluator.evaluate_token(token, "post")
        if not decision.granted:
            return jsonify({"valid": False, "reason": decision.reason})
        post = db.get(Post, decision.entity_id)
        if post is None:
            return jsonify({"valid": False, "reason": "not_found"})
        return jsonify({"valid": True, "slug": post.slug, "title": post.title})
    finally:
        db.close()

@shared_bp.get("/api/share/validate/category/<token>")
def validate_category_token(token: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        decision = sharing.evaluator.evaluate_token(token, "category")
        if not decision.granted:
            return jsonify({"valid": False, "reason": decision.reason})
        cat = sharing.resolver.categories.get(decision.entity_id)
        if cat is None:
            return jsonify({"valid": False, "reason": "not_found"})
        return jsonify({
            "valid": True,
            "categoryId": cat.id,
            "categoryName": cat.name,
            "categorySlugPath": sharing.resolver.ancestor_slugs(cat.id),
            "includeSubcategories": decision.include_subcategories,
        })
    finally:
        db.close()

# -----------------------
# Einladungen (angemeldet, kein Token)
# -----------------------
@shared_bp.get("/shared/categories/<path:slug_path>")
@require_login_json
def invited_category(slug_path: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        cat = sharing.resolver.resolve_by_slugs(split_slug_path(slug_path))
        if cat is None:
            raise NotFoundError()
        decision = sharing.evaluator.evaluate("category", entity_id=cat.id, viewer=current_viewer())
        if not decision.granted:
            decision.raise_error()
        return jsonify({"ok": True, **_category_page(sharing, decision), **_grant_meta(decision)})
    finally:
        db.close()

def _invited_post_decision(sharing: Sharing, post: Post, viewer) -> Decision:
    """Eigene Post-Freigabe oder Einladung auf die (kaskadierende) Kategorie des Posts."""
    decisions = [sharing.evaluator.evaluate("post", entity_id=post.id, viewer=viewer)]
    if post.category_id is not None:
        decisions.append(sharing.evaluator.evaluate("category", entity_id=post.category_id, viewer=viewer))
    for decision in decisions:
        if decision.granted and sharing.scoper.contains_post(decision, post):
            return decision
    if any(d.reason == EXPIRED for d in decisions if not d.granted):
        return Denied(EXPIRED)
    return Denied(NOT_FOUND)

@shared_bp.get("/shared/posts/<string:slug>")
@require_login_json
def invited_post(slug: str):
    db = get_session()
    try:
        sharing = build_sharing(db)
        post = db.execute(select(Post).where(Post.slug == slug)).scalar_one_or_none()
        if post is None:
            raise NotFoundError()
        decision = _invited_post_decision(sharing, post, current_viewer())
        if not decision.granted:
            decision.raise_error()
        return jsonify({"ok": True, "post": _post_detail(post, sharing.resolver), **_grant_meta(decision)})
    finally:
        db.close()

@shared_bp.get("/shared/me")
@require_login_json
def shared_with_me():
    viewer = current_viewer()
    if not viewer.email:
        return jsonify({"ok": True, "categories": [], "posts": []})
    db = get_session()
    try:
        sharing = build_sharing(db)
        categories, posts = [], []
        for inv in sharing.invitations.find_active_for_email(viewer.email):
            share = inv.share
            if share.kind == "category":
                cat = sharing.resolver.categories.get(share.entity_id)
                if cat is not None:
                    categories.append({
                        "id": cat.id,
                        "name": cat.name,
                        "slugPath": "/".join(sharing.resolver.ancestor_slugs(cat.id)),
                        "status": inv.status,
                        "expiresAt": isoformat(inv.expires_at),
                    })
            else:
                post = db.get(Post, share.entity_id)
                if post is not None:
                    posts.append({**_post_summary(post, sharing.resolver), "expiresAt": isoformat(inv.expires_at)})
        return jsonify({"ok": True, "categories": categories, "posts": posts})
    finally:
        db.close()
