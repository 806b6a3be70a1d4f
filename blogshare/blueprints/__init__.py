from flask import Flask

from blogshare.blueprints.meta.routes import meta_bp
from blogshare.blueprints.auth.routes import auth_bp
from blogshare.blueprints.api.routes import api_bp
from blogshare.blueprints.shared.routes import shared_bp


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(meta_bp)                          # /health
    app.register_blueprint(auth_bp)                          # /auth
    app.register_blueprint(api_bp, url_prefix="/api")        # Einstellungen (Eigentümer)
    app.register_blueprint(shared_bp)                        # /sc, /s, /shared
