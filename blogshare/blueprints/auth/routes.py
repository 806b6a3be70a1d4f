import logging
from flask import Blueprint, current_app, jsonify, request, session
from passlib.hash import bcrypt
from time import time
from sqlalchemy import select
from blogshare.db import get_session
from blogshare.models.user import User
from blogshare.services.roles import current_viewer, require_login_json

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")
log = logging.getLogger(__name__)

# --- simpel: In-Memory Versuchszähler (pro Prozess) ---
_ATTEMPTS: dict[tuple[str, str], list[float]] = {}
MAX_ATTEMPTS = 5         # max. 5 Versuche ...
WINDOW_SECONDS = 10 * 60 # ... pro 10 Minuten

def _client_ip() -> str:
    # hinter Proxy: X-Forwarded-For berücksichtigen (einfachste Variante)
    fwd = request.headers.get("X-Forwarded-For")
    if fwd:
        return fwd.split(",")[0].strip()
    return request.remote_addr or "unknown"

def _is_locked(ip: str, username: str) -> bool:
    key = (ip, username.lower())
    now = time()
    attempts = [t for t in _ATTEMPTS.get(key, []) if now - t <= WINDOW_SECONDS]
    _ATTEMPTS[key] = attempts
    return len(attempts) >= MAX_ATTEMPTS

def _register_fail(ip: str, username: str) -> None:
    _ATTEMPTS.setdefault((ip, username.lower()), []).append(time())

def _clear_attempts(ip: str, username: str) -> None:
    _ATTEMPTS.pop((ip, username.lower()), None)

# === Helferfunktionen ===
def ensure_admin():
    """Erstellt den Eigentümer-Account, falls keiner existiert."""
    db = get_session()
    try:
        admin = db.execute(select(User).where(User.role == "admin")).scalars().first()
        if not admin:
            admin = User(
                username="admin",
                email=current_app.config.get("ADMIN_EMAIL"),
                password_hash=bcrypt.hash(current_app.config["ADMIN_PASSWORD"]),
                role="admin",
            )
            db.add(admin)
            db.commit()
            log.info("Default-Admin angelegt")
    finally:
        db.close()

def session_user(user: User) -> dict:
    return {"id": user.id, "username": user.username, "email": user.email, "role": user.role}

# === Login / Logout ===
@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or request.form
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    ip = _client_ip()

    if _is_locked(ip, username):
        return jsonify({"ok": False, "error": "too many attempts"}), 429

    db = get_session()
    try:
        user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if user and bcrypt.verify(password, user.password_hash):
            session.permanent = True  # nutzt PERMANENT_SESSION_LIFETIME
            session["user"] = session_user(user)
            _clear_attempts(ip, username)
            return jsonify({"ok": True, "user": session["user"]})
        _register_fail(ip, username)
        log.warning("Fehlgeschlagener Login für %r von %s", username, ip)
        return jsonify({"ok": False, "error": "invalid credentials"}), 401
    finally:
        db.close()

@auth_bp.post("/logout")
def logout():
    session.clear()
    return jsonify({"ok": True})

@auth_bp.get("/me")
@require_login_json
def me():
    viewer = current_viewer()
    return jsonify({"ok": True, "user": {"id": viewer.id, "email": viewer.email, "role": viewer.role}})
