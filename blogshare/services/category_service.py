# blogshare/services/category_service.py
from __future__ import annotations
import re
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from blogshare.errors import NotFoundError, ValidationError
from blogshare.models.category import Category
from blogshare.services.path_resolver import PathResolver
from blogshare.services.stores import SqlCategoryStore

def slugify(name: str) -> str:
    slug = re.sub(r"[^\w-]+", "-", name.strip().lower()).strip("-")
    return slug[:120] or "cat"

def list_categories(db: Session) -> List[Category]:
    return db.execute(
        select(Category).order_by(Category.parent_id.nullsfirst(), Category.position.asc(), Category.name.asc())
    ).scalars().all()

def list_categories_serialized(db: Session) -> List[Dict[str, Any]]:
    cats = list_categories(db)
    resolver = PathResolver(SqlCategoryStore(db))
    return [
        {
            "id": c.id,
            "name": c.name,
            "slug": c.slug,
            "parent_id": c.parent_id,
            "path": resolver.display_path(c.id),
            "slug_path": "/".join(resolver.ancestor_slugs(c.id)),
        }
        for c in cats
    ]

def create_category(db: Session, name: str, parent_id: Optional[int] = None, slug: Optional[str] = None) -> Category:
    if parent_id is not None and db.get(Category, parent_id) is None:
        raise NotFoundError("Parent category not found")
    c = Category(name=name.strip(), parent_id=parent_id, slug=(slug or slugify(name)))
    db.add(c)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"slug '{c.slug}' already used by a sibling category") from None
    db.refresh(c)
    return c

def move_category(db: Session, cat_id: int, new_parent_id: Optional[int]) -> bool:
    """Umhängen; verweigert Zyklen (neuer Parent darf kein Nachfahre sein)."""
    c = db.get(Category, cat_id)
    if not c: return False
    if new_parent_id is not None:
        if db.get(Category, new_parent_id) is None:
            raise NotFoundError("Parent category not found")
        resolver = PathResolver(SqlCategoryStore(db))
        if new_parent_id == cat_id or cat_id in resolver.ancestor_ids(new_parent_id):
            raise ValidationError("category cannot become its own descendant")
    c.parent_id = new_parent_id
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"slug '{c.slug}' already used under the new parent") from None
    return True
