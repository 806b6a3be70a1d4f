# blogshare/models/post.py
from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, DateTime, Text, Boolean, ForeignKey, JSON
from blogshare.models.base import Base
from blogshare.models.category import Category

class Post(Base):
    __tablename__ = "post"

    id:          Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug:        Mapped[str] = mapped_column(String(160), unique=True, index=True)
    title:       Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content:     Mapped[str] = mapped_column(Text, default="")
    status:      Mapped[str] = mapped_column(String(16), default="published")
    date:        Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Kategorie-Zuweisung (Containment wird über IDs geprüft, nicht über Namen)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id", ondelete="SET NULL"), nullable=True, index=True)
    category:    Mapped[Category | None] = relationship(Category)

    def __repr__(self) -> str:
        return f"<Post {self.id}:{self.slug}>"


class Database(Base):
    __tablename__ = "content_database"

    id:          Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug:        Mapped[str] = mapped_column(String(160), unique=True, index=True)
    title:       Mapped[str] = mapped_column(String(255))
    is_public:   Mapped[bool] = mapped_column(Boolean, default=False)
    columns:     Mapped[list] = mapped_column(JSON, default=list)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id", ondelete="SET NULL"), nullable=True, index=True)

    items: Mapped[list["DatabaseItem"]] = relationship(
        back_populates="database",
        cascade="all, delete-orphan",
        order_by="DatabaseItem.id",
    )

    def __repr__(self) -> str:
        return f"<Database {self.slug}>"


class DatabaseItem(Base):
    __tablename__ = "content_database_item"

    id:          Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    database_id: Mapped[int] = mapped_column(ForeignKey("content_database.id", ondelete="CASCADE"))
    data:        Mapped[dict] = mapped_column(JSON, default=dict)

    database: Mapped[Database] = relationship(back_populates="items")
