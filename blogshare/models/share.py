# blogshare/models/share.py
from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, DateTime, Boolean, CheckConstraint, ForeignKey, UniqueConstraint
from blogshare.models.base import Base

SHARE_KINDS = ("category", "post")
INVITATION_STATUSES = ("pending", "accepted")

class Share(Base):
    """
    Freigabe-Konfiguration für genau eine Kategorie ODER einen Post.
    `kind` unterscheidet die beiden Fälle, `entity_id` zeigt auf die jeweilige Tabelle.
    """
    __tablename__ = "share"

    id:                    Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind:                  Mapped[str] = mapped_column(String(16))
    entity_id:             Mapped[int] = mapped_column(Integer)
    public_enabled:        Mapped[bool] = mapped_column(Boolean, default=False)
    public_token:          Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    public_expires_at:     Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    include_subcategories: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at:            Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at:            Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    invitations: Mapped[list["Invitation"]] = relationship(
        back_populates="share",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Invitation.invited_at.desc()",
    )

    __table_args__ = (
        UniqueConstraint("kind", "entity_id", name="uq_share_kind_entity"),
        CheckConstraint("kind IN (" + ", ".join(f"'{k}'" for k in SHARE_KINDS) + ")", name="ck_share_kind"),
    )

    def __repr__(self) -> str:
        return f"<Share {self.kind}:{self.entity_id}>"


class Invitation(Base):
    __tablename__ = "share_invitation"

    id:          Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    share_id:    Mapped[int] = mapped_column(ForeignKey("share.id", ondelete="CASCADE"))
    email:       Mapped[str] = mapped_column(String(254), index=True)
    status:      Mapped[str] = mapped_column(String(16), default="pending")
    user_id:     Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    invited_at:  Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    expires_at:  Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    share: Mapped[Share] = relationship(back_populates="invitations")

    __table_args__ = (
        UniqueConstraint("share_id", "email", name="uq_invitation_share_email"),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in INVITATION_STATUSES) + ")",
            name="ck_invitation_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Invitation {self.email} ({self.status})>"
