# blogshare/db.py
from __future__ import annotations
import logging
import os
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

# WICHTIG: die gemeinsame Base der Modelle verwenden, nicht neu definieren!
from blogshare.models.base import Base

log = logging.getLogger(__name__)

# --------------------------------------------------------------------
# Pfad: data/blogshare.db
# --------------------------------------------------------------------
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "data" / "blogshare.db"

DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")

def _make_engine(url: str):
    if url.startswith("sqlite:///"):
        # Ordner für die SQLite-Datei sicher anlegen
        db_file = url[len("sqlite:///"):]
        if db_file and db_file != ":memory:":
            Path(db_file).parent.mkdir(parents=True, exist_ok=True)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite:///") else {}
    return create_engine(url, echo=False, future=True, connect_args=connect_args)

@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, _record):
    # Ohne PRAGMA ignoriert SQLite ON DELETE CASCADE (Share -> Invitations)
    if dbapi_conn.__class__.__module__.startswith("sqlite3"):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

engine = None
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)

# --------------------------------------------------------------------
# Sessions
# --------------------------------------------------------------------
def get_session():
    """
    Liefert eine *neue* Session-Instanz zurück.
    Aufrufer ist für commit()/rollback()/close() verantwortlich.
    """
    if engine is None:
        init_db()
    return SessionLocal()

# --------------------------------------------------------------------
# Init DB (auf App-Start)
# --------------------------------------------------------------------
def init_db(url: str | None = None):
    """
    Initialisiert die Datenbank.
    - Optional: URL-Override (Tests/Config).
    - Registriert Modelle, legt fehlende Tabellen an.
    """
    global engine

    if engine is not None:
        engine.dispose()
    engine = _make_engine(url or DATABASE_URL)
    SessionLocal.configure(bind=engine)

    # Modelle importieren, damit ihre Tabellen bei Base registriert werden
    from blogshare.models import user, category, post, share  # noqa: F401

    # Tabellen erstellen (nur fehlende)
    Base.metadata.create_all(bind=engine)
    log.info("[DB] Tabellen bereit (%s)", engine.url.render_as_string(hide_password=True))
    return engine
