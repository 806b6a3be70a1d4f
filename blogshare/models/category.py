# blogshare/models/category.py
from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, ForeignKey, Index, UniqueConstraint, text
from blogshare.models.base import Base

class Category(Base):
    __tablename__ = "category"

    id:        Mapped[int]  = mapped_column(Integer, primary_key=True, autoincrement=True)
    name:      Mapped[str]  = mapped_column(String(96))
    slug:      Mapped[str]  = mapped_column(String(120))
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("category.id", ondelete="SET NULL"), nullable=True, index=True)
    position:  Mapped[int]  = mapped_column(Integer, default=0)

    parent = relationship("Category", remote_side="Category.id", backref="children")

    # Slug nur unter Geschwistern eindeutig; Wurzeln (parent_id NULL) brauchen einen eigenen Index
    __table_args__ = (
        UniqueConstraint("parent_id", "slug", name="uq_cat_parent_slug"),
        Index(
            "uq_cat_root_slug", "slug", unique=True,
            sqlite_where=text("parent_id IS NULL"),
            postgresql_where=text("parent_id IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Category {self.name}>"
