# blogshare/services/stores.py
"""
Schnittstellen, gegen die PathResolver und AccessEvaluator programmiert sind.

Die SQLAlchemy-Implementierungen sind SqlCategoryStore (hier),
ShareRegistry und InvitationManager. Tests können eigene Fakes übergeben.
"""
from __future__ import annotations
from typing import List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from blogshare.models.category import Category


class CategoryStore(Protocol):
    def get(self, category_id: int) -> Optional[Category]: ...
    def find_root(self, slug: str) -> Optional[Category]: ...
    def find_child(self, parent_id: int, slug: str) -> Optional[Category]: ...
    def children(self, parent_id: int) -> List[Category]: ...


class ShareStore(Protocol):
    def get_by_owning_entity(self, entity_id: int, kind: str): ...
    def get_by_token(self, token: str, kind: str): ...


class InvitationStore(Protocol):
    def find(self, share_id: int, email: str): ...
    def mark_accepted(self, invitation_id: int, identity) -> None: ...


class SqlCategoryStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, category_id: int) -> Optional[Category]:
        return self.db.get(Category, category_id)

    def find_root(self, slug: str) -> Optional[Category]:
        return self.db.execute(
            select(Category).where(Category.slug == slug, Category.parent_id.is_(None))
        ).scalars().first()

    def find_child(self, parent_id: int, slug: str) -> Optional[Category]:
        return self.db.execute(
            select(Category).where(Category.slug == slug, Category.parent_id == parent_id)
        ).scalars().first()

    def children(self, parent_id: int) -> List[Category]:
        return list(
            self.db.execute(
                select(Category)
                .where(Category.parent_id == parent_id)
                .order_by(Category.position.asc(), Category.name.asc())
            ).scalars()
        )
