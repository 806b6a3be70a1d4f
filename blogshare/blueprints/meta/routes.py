from flask import Blueprint, jsonify
from sqlalchemy import text
from blogshare.db import get_session

meta_bp = Blueprint("meta", __name__, url_prefix="")

@meta_bp.get("/health")
def health():
    db = get_session()
    try:
        db.execute(text("SELECT 1"))
        return jsonify({"status": "ok"}), 200
    except Exception as e:
        return jsonify({"status": "error", "error": str(e)}), 503
    finally:
        db.close()
