# blogshare/services/roles.py
from functools import wraps
from typing import Callable, Optional
from flask import session, jsonify

from blogshare.services.access_evaluator import Viewer

# === Rollenmodell ===
# Es gibt nur den Eigentümer (admin) und normale Konten (user)
ROLE_ORDER = ["user", "admin"]
DEFAULT_ROLE = "user"

def _normalize_role(v: Optional[str]) -> str:
    if not v:
        return DEFAULT_ROLE
    v = str(v).strip().lower()
    # häufige Synonyme
    if v in {"administrator", "superuser", "superadmin", "owner"}:
        v = "admin"
    if v not in ROLE_ORDER:
        return DEFAULT_ROLE
    return v

def current_viewer() -> Optional[Viewer]:
    """Angemeldeter Betrachter aus der Session, sonst None."""
    user = session.get("user")
    if not user:
        return None
    email = user.get("email")
    return Viewer(
        id=user.get("id"),
        email=email.strip().lower() if isinstance(email, str) and email.strip() else None,
        role=_normalize_role(user.get("role")),
    )

def has_role(required: str) -> bool:
    """Prüft, ob aktuelle Rolle >= erforderlicher Rolle ist."""
    viewer = current_viewer()
    if viewer is None:
        return False
    return ROLE_ORDER.index(viewer.role) >= ROLE_ORDER.index(_normalize_role(required))

def require_login_json(fn: Callable) -> Callable:
    """Decorator für JSON-Routen: 401 statt Redirect."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_viewer() is None:
            return jsonify({"ok": False, "error": "login required", "reason": "login_required"}), 401
        return fn(*args, **kwargs)
    return wrapper

def require_admin_json(fn: Callable) -> Callable:
    """Nur der Eigentümer darf Freigaben verwalten."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not has_role("admin"):
            return jsonify({"ok": False, "error": "Unauthorized"}), 401
        return fn(*args, **kwargs)
    return wrapper
