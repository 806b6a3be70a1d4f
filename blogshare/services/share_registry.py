# blogshare/services/share_registry.py
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from blogshare.errors import ValidationError
from blogshare.models.share import Share, SHARE_KINDS
from blogshare.services import token_codec
from blogshare.services.timeutil import parse_timestamp, isoformat

log = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def _check_kind(kind: str) -> str:
    if kind not in SHARE_KINDS:
        raise ValueError(f"unknown share kind: {kind!r}")
    return kind


class ShareRegistry:
    """
    Persistente Freigabe-Einstellungen pro Kategorie/Post.

    `on_token_changed` wird nach jedem Commit mit dem betroffenen (alten)
    Token aufgerufen, damit gecachte Seiten sofort verworfen werden.
    """

    def __init__(
        self,
        db: Session,
        token_bytes: int = token_codec.DEFAULT_TOKEN_BYTES,
        on_token_changed: Optional[Iterable[Callable[[str], None]]] = None,
    ):
        self.db = db
        self.token_bytes = token_bytes
        self.listeners = list(on_token_changed or [])

    # -------------------------------------------------
    # Lesen
    # -------------------------------------------------
    def get_by_owning_entity(self, entity_id: int, kind: str) -> Optional[Share]:
        return self.db.execute(
            select(Share).where(Share.kind == _check_kind(kind), Share.entity_id == entity_id)
        ).scalar_one_or_none()

    def get_by_token(self, token: str, kind: str) -> Optional[Share]:
        if not token_codec.is_valid_format(token):
            return None
        return self.db.execute(
            select(Share).where(Share.kind == _check_kind(kind), Share.public_token == token)
        ).scalar_one_or_none()

    def _token_taken(self, token: str) -> bool:
        return self.db.execute(
            select(Share.id).where(Share.public_token == token)
        ).first() is not None

    def _fresh_token(self) -> str:
        for _ in range(MAX_WRITE_ATTEMPTS):
            candidate = token_codec.generate(self.token_bytes)
            if not self._token_taken(candidate):
                return candidate
        raise RuntimeError("could not generate a unique share token")

    # -------------------------------------------------
    # Schreiben
    # -------------------------------------------------
    def upsert_settings(
        self,
        entity_id: int,
        kind: str,
        public_enabled: Any = UNSET,
        public_expires_at: Any = UNSET,
        include_subcategories: Any = UNSET,
        regenerate_token: bool = False,
    ) -> Share:
        """
        Teil-Update: nur übergebene Felder ändern sich.
        Legt die Freigabe bei Bedarf an. Ein neuer Token ersetzt den alten in
        derselben Zeile, alte Links lösen danach nicht mehr auf.
        """
        _check_kind(kind)
        if public_enabled is not UNSET and not isinstance(public_enabled, bool):
            raise ValidationError("publicEnabled must be a boolean")
        if include_subcategories is not UNSET and not isinstance(include_subcategories, bool):
            raise ValidationError("includeSubcategories must be a boolean")
        if not isinstance(regenerate_token, bool):
            raise ValidationError("regenerateToken must be a boolean")
        expires: Any = UNSET
        if public_expires_at is not UNSET:
            expires = parse_timestamp(public_expires_at, "publicExpiresAt")

        last_error: Optional[IntegrityError] = None
        for attempt in range(MAX_WRITE_ATTEMPTS):
            try:
                share, old_token = self._apply(
                    entity_id, kind, public_enabled, expires, include_subcategories, regenerate_token
                )
                self.db.commit()
            except IntegrityError as e:
                # Token-Kollision oder paralleles Anlegen -> neu lesen und wiederholen
                self.db.rollback()
                last_error = e
                log.warning("Share-Write kollidiert (%s:%s, Versuch %d)", kind, entity_id, attempt + 1)
                continue
            self.db.refresh(share)
            if old_token:
                self._notify(old_token)
            if share.public_token and share.public_token != old_token:
                log.info("Neuer Freigabe-Token für %s:%s (%s)", kind, entity_id,
                         token_codec.token_hint(share.public_token))
            return share
        raise last_error  # type: ignore[misc]

    def _apply(self, entity_id, kind, public_enabled, expires, include_subcategories, regenerate_token):
        share = self.get_by_owning_entity(entity_id, kind)
        old_token = share.public_token if share else None
        if share is None:
            share = Share(
                kind=kind,
                entity_id=entity_id,
                public_enabled=False,
                public_token=None,
                public_expires_at=None,
                include_subcategories=True,
            )
            self.db.add(share)

        if public_enabled is not UNSET:
            share.public_enabled = public_enabled
        if expires is not UNSET:
            share.public_expires_at = expires
        if include_subcategories is not UNSET:
            share.include_subcategories = include_subcategories

        if regenerate_token or (share.public_enabled and not share.public_token):
            share.public_token = self._fresh_token()

        self.db.flush()
        return share, old_token

    def ensure(self, entity_id: int, kind: str) -> Share:
        """Freigabe holen oder (ohne öffentlichen Link) anlegen – z. B. für die erste Einladung."""
        share = self.get_by_owning_entity(entity_id, kind)
        if share is not None:
            return share
        return self.upsert_settings(entity_id, kind)

    def disable(self, entity_id: int, kind: str) -> bool:
        """Löscht Freigabe + Einladungen (Cascade)."""
        share = self.get_by_owning_entity(entity_id, kind)
        if share is None:
            return False
        token = share.public_token
        self.db.delete(share)
        self.db.commit()
        log.info("Freigabe %s:%s entfernt", kind, entity_id)
        if token:
            self._notify(token)
        return True

    def _notify(self, token: str) -> None:
        for listener in self.listeners:
            listener(token)


def serialize_share(share: Optional[Share], include_invitations: bool = True) -> Optional[Dict[str, Any]]:
    if share is None:
        return None
    data: Dict[str, Any] = {
        "id": share.id,
        "kind": share.kind,
        "entity_id": share.entity_id,
        "public_enabled": share.public_enabled,
        "public_token": share.public_token,
        "public_url": public_url(share),
        "public_expires_at": isoformat(share.public_expires_at),
        "created_at": isoformat(share.created_at),
        "updated_at": isoformat(share.updated_at),
    }
    if share.kind == "category":
        data["include_subcategories"] = share.include_subcategories
    if include_invitations:
        from blogshare.services.invitation_service import serialize_invitation
        data["invitations"] = [serialize_invitation(i) for i in share.invitations]
    return data


def public_url(share: Share) -> Optional[str]:
    if not share.public_token:
        return None
    prefix = "/sc/" if share.kind == "category" else "/s/"
    return prefix + share.public_token
