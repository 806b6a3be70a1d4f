# blogshare/services/content_scoper.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from blogshare.models.post import Post, Database, DatabaseItem
from blogshare.services.access_evaluator import Granted
from blogshare.services.path_resolver import PathResolver


class ContentScoper:
    """
    Übersetzt eine Granted-Entscheidung in einen Filter auf den Content.

    Kategorie-Freigaben: exakt die Kategorie oder (kaskadierend) inkl. aller
    Nachfahren – bestimmt über IDs. Einzelne Posts: exakt diese ID.
    """

    def __init__(self, db: Session, resolver: PathResolver):
        self.db = db
        self.resolver = resolver
        self._ids: Dict[tuple, Set[int]] = {}

    def category_ids_for(self, grant: Granted) -> Set[int]:
        if grant.kind != "category":
            return set()
        key = (grant.entity_id, grant.include_subcategories)
        if key not in self._ids:
            ids = {grant.entity_id}
            if grant.include_subcategories:
                ids |= self.resolver.descendant_ids(grant.entity_id)
            self._ids[key] = ids
        return self._ids[key]

    def contains_category(self, grant: Granted, category_id: Optional[int]) -> bool:
        if grant.kind != "category" or category_id is None:
            return False
        return category_id in self.category_ids_for(grant)

    # -------------------------------------------------
    # Posts
    # -------------------------------------------------
    def post_query(self, grant: Granted):
        stmt = select(Post)
        if grant.kind == "category":
            stmt = stmt.where(Post.category_id.in_(self.category_ids_for(grant)))
        else:
            stmt = stmt.where(Post.id == grant.entity_id)
        return stmt.order_by(Post.date.desc(), Post.id.desc())

    def list_posts(self, grant: Granted) -> List[Post]:
        return list(self.db.execute(self.post_query(grant)).scalars())

    def contains_post(self, grant: Granted, post: Optional[Post]) -> bool:
        """
        Nachprüfung am Objekt selbst: ein inzwischen verschobener Post ist
        über eine alte Freigabe nicht mehr erreichbar.
        """
        if post is None:
            return False
        if grant.kind == "post":
            return post.id == grant.entity_id
        return self.contains_category(grant, post.category_id)

    def find_post(self, grant: Granted, slug: str) -> Optional[Post]:
        post = self.db.execute(select(Post).where(Post.slug == slug)).scalar_one_or_none()
        return post if self.contains_post(grant, post) else None

    def filter_posts(self, grant: Granted, posts) -> List[Post]:
        return [p for p in posts if self.contains_post(grant, p)]

    def visible_post_ids(self, grant: Granted, post_ids) -> Set[int]:
        """Welche der (z. B. gecachten) Post-IDs liegen JETZT noch im Scope?"""
        ids = list(post_ids)
        if not ids:
            return set()
        rows = self.db.execute(select(Post).where(Post.id.in_(ids))).scalars()
        return {p.id for p in self.filter_posts(grant, rows)}

    # -------------------------------------------------
    # Datenbanken (nur öffentlich markierte)
    # -------------------------------------------------
    def find_database(self, grant: Granted, db_slug: str) -> Optional[Database]:
        if grant.kind != "category":
            return None
        database = self.db.execute(
            select(Database).where(Database.slug == db_slug, Database.is_public.is_(True))
        ).scalar_one_or_none()
        if database is None or not self.contains_category(grant, database.category_id):
            return None
        return database

    def find_database_item(self, grant: Granted, db_slug: str, item_id: int) -> Optional[DatabaseItem]:
        database = self.find_database(grant, db_slug)
        if database is None:
            return None
        return self.db.execute(
            select(DatabaseItem).where(DatabaseItem.id == item_id, DatabaseItem.database_id == database.id)
        ).scalar_one_or_none()

    def list_databases(self, grant: Granted) -> List[Database]:
        if grant.kind != "category":
            return []
        return list(
            self.db.execute(
                select(Database)
                .where(Database.category_id.in_(self.category_ids_for(grant)), Database.is_public.is_(True))
                .order_by(Database.title.asc())
            ).scalars()
        )

    # -------------------------------------------------
    # Unterkategorien mit Post-Anzahl (nur bei Kaskade)
    # -------------------------------------------------
    def child_categories(self, grant: Granted) -> List[Dict[str, Any]]:
        if grant.kind != "category" or not grant.include_subcategories:
            return []
        base_slugs = self.resolver.ancestor_slugs(grant.entity_id)
        out = []
        for child in self.resolver.categories.children(grant.entity_id):
            ids = {child.id} | self.resolver.descendant_ids(child.id)
            count = self.db.execute(
                select(func.count(Post.id)).where(Post.category_id.in_(ids))
            ).scalar_one()
            out.append({
                "id": child.id,
                "name": child.name,
                "slug": child.slug,
                "slug_path": base_slugs + [child.slug],
                "count": count,
            })
        return out
