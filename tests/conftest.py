"""
tests/conftest.py
"""
from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from blogshare import create_app
from blogshare.db import get_session
from blogshare.models.category import Category
from blogshare.models.post import Post, Database, DatabaseItem
from blogshare.models.user import User
from blogshare.services.sharing import build_sharing


class FakeClock:
    """Steuerbare Uhr – SHARE_CLOCK zeigt auf diese Instanz."""

    def __init__(self, start: _dt.datetime):
        self.now = start

    def __call__(self) -> _dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + _dt.timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(_dt.datetime(2030, 1, 1, 12, 0, 0))


@pytest.fixture
def app_config() -> dict:
    """Pro Modul überschreibbar, z. B. um den Seiten-Cache einzuschalten."""
    return {}


@pytest.fixture
def app(tmp_path: Path, clock: FakeClock, app_config: dict) -> Flask:
    """Frische App auf einer temporären SQLite-Datei pro Test."""
    return create_app({
        "TESTING": True,
        "DATABASE_URL": f"sqlite:///{tmp_path / 'test.sqlite3'}",
        "SECRET_KEY": "test",
        "ADMIN_PASSWORD": "owner-pass",
        "ADMIN_EMAIL": "owner@example.com",
        "SHARE_CLOCK": clock,
        "SHARE_PAGE_CACHE_SECONDS": 0,
        "LOG_LEVEL": "WARNING",
        **app_config,
    })


@pytest.fixture
def client(app: Flask) -> Generator[FlaskClient, None, None]:
    with app.test_client() as client:
        yield client


@pytest.fixture
def db(app: Flask):
    session = get_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sharing(app: Flask, db):
    """Service-Bündel wie in einem Request."""
    with app.app_context():
        yield build_sharing(db)


# ---------------------------------------------------------------------------
# Seed-Helfer
# ---------------------------------------------------------------------------
def make_category(db, name: str, parent: Category | None = None, slug: str | None = None) -> Category:
    cat = Category(name=name, slug=slug or name.lower(), parent_id=parent.id if parent else None)
    db.add(cat)
    db.commit()
    return cat


def make_post(db, slug: str, category: Category | None = None, title: str | None = None) -> Post:
    post = Post(slug=slug, title=title or slug.title(), content=f"body of {slug}",
                category_id=category.id if category else None)
    db.add(post)
    db.commit()
    return post


def make_database(db, slug: str, category: Category, is_public: bool = True) -> Database:
    database = Database(
        slug=slug,
        title=slug.title(),
        is_public=is_public,
        category_id=category.id,
        columns=[{"id": "name", "type": "title"}, {"id": "score", "type": "number"}],
    )
    database.items.append(DatabaseItem(data={"name": "First row", "score": 3}))
    db.add(database)
    db.commit()
    return database


def make_user(db, username: str, email: str | None, role: str = "user") -> User:
    user = User(username=username, email=email, password_hash="!", role=role)
    db.add(user)
    db.commit()
    return user


def login_as(client: FlaskClient, user: User) -> None:
    with client.session_transaction() as sess:
        sess["user"] = {"id": user.id, "username": user.username, "email": user.email, "role": user.role}


@pytest.fixture
def tree(db):
    """Security (root) -> Web (child); Security2 als Geschwister mit Präfix-Kollision."""
    security = make_category(db, "Security")
    web = make_category(db, "Web", parent=security)
    security2 = make_category(db, "Security2")
    return {"security": security, "web": web, "security2": security2}


@pytest.fixture
def admin_client(client: FlaskClient, db) -> FlaskClient:
    admin = db.query(User).filter(User.role == "admin").one()
    login_as(client, admin)
    return client
