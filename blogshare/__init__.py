import logging
import os
from datetime import timedelta
from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from blogshare.db import init_db
from blogshare.errors import ShareError
from blogshare.services.page_cache import PageCache
from blogshare.services.timeutil import utcnow

# Blueprints
from blogshare.blueprints import register_blueprints
from blogshare.blueprints.auth.routes import ensure_admin

log = logging.getLogger(__name__)


def create_app(test_config: dict | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)

    # Secrets / DB
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-change-me")
    db_path = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "data", "blogshare.db"))
    app.config["DATABASE_URL"] = os.getenv("DATABASE_URL", f"sqlite:///{db_path}")

    # Sessions härten
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=timedelta(hours=8),
    )

    # Freigaben
    app.config.update(
        SHARE_TOKEN_BYTES=int(os.getenv("SHARE_TOKEN_BYTES", "16")),
        SHARE_EXPIRY_WARNING_DAYS=int(os.getenv("SHARE_EXPIRY_WARNING_DAYS", "7")),
        SHARE_PAGE_CACHE_SECONDS=float(os.getenv("SHARE_PAGE_CACHE_SECONDS", "10")),
        SHARE_CLOCK=utcnow,
        ADMIN_PASSWORD=os.getenv("ADMIN_PASSWORD", "change-me"),
        ADMIN_EMAIL=os.getenv("ADMIN_EMAIL") or None,
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # DB initialisieren
    init_db(app.config["DATABASE_URL"])

    app.extensions["page_cache"] = PageCache(app, ttl_seconds=app.config["SHARE_PAGE_CACHE_SECONDS"])

    # Blueprints registrieren
    register_blueprints(app)

    with app.app_context():
        ensure_admin()

    # Fehler -> JSON
    @app.errorhandler(ShareError)
    def share_error(e: ShareError):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        return jsonify({"ok": False, "error": e.description, "reason": e.name.lower().replace(" ", "_")}), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e: Exception):
        log.exception("Unerwarteter Fehler")
        return jsonify({"ok": False, "error": "internal error"}), 500

    return app
