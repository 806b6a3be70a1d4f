# blogshare/services/invitation_service.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from blogshare.errors import ValidationError
from blogshare.models.share import Invitation
from blogshare.models.user import User
from blogshare.services.timeutil import parse_timestamp, isoformat, utcnow

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and EMAIL_RE.fullmatch(email.strip()) is not None


@dataclass
class InviteResult:
    created: List[Invitation] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)


class InvitationManager:
    """Einladungen pro Freigabe, Schlüssel (share_id, email)."""

    def __init__(self, db: Session, now=utcnow):
        self.db = db
        self.now = now

    def find(self, share_id: int, email: str) -> Optional[Invitation]:
        return self.db.execute(
            select(Invitation).where(
                Invitation.share_id == share_id,
                Invitation.email == normalize_email(email),
            )
        ).scalar_one_or_none()

    def list_for_share(self, share_id: int) -> List[Invitation]:
        return list(
            self.db.execute(
                select(Invitation)
                .where(Invitation.share_id == share_id)
                .order_by(Invitation.invited_at.desc(), Invitation.id.desc())
            ).scalars()
        )

    def _user_id_for(self, email: str) -> Optional[int]:
        return self.db.execute(select(User.id).where(User.email == email)).scalar_one_or_none()

    def invite(self, share_id: int, emails: Iterable[Any], expires_at: Any = None) -> InviteResult:
        """
        Upsert je Adresse. Eine kaputte Adresse bricht den Rest nicht ab:
        jede Adresse läuft in einem eigenen SAVEPOINT.
        """
        if isinstance(emails, str) or not isinstance(emails, (list, tuple)):
            raise ValidationError("emails must be a list")
        if not emails:
            raise ValidationError("At least one email is required")
        expires = parse_timestamp(expires_at, "expiresAt")

        result = InviteResult()
        seen = set()
        for raw in emails:
            if not is_valid_email(raw):
                result.errors.append({"email": str(raw), "reason": "invalid email"})
                continue
            email = normalize_email(raw)
            if email in seen:
                continue
            seen.add(email)
            try:
                with self.db.begin_nested():
                    inv = self._upsert(share_id, email, expires)
                result.created.append(inv)
            except SQLAlchemyError:
                log.exception("Einladung für %s fehlgeschlagen", email)
                result.errors.append({"email": email, "reason": "Failed to create invitation"})
        self.db.commit()
        log.info("Freigabe %s: %d Einladung(en), %d Fehler", share_id, len(result.created), len(result.errors))
        return result

    def _upsert(self, share_id: int, email: str, expires) -> Invitation:
        inv = self.find(share_id, email)
        if inv is None:
            inv = Invitation(
                share_id=share_id,
                email=email,
                status="pending",
                user_id=self._user_id_for(email),
                invited_at=self.now(),
                expires_at=expires,
            )
            self.db.add(inv)
        else:
            # Re-Invite: zurück auf pending, Ablauf neu setzen
            inv.status = "pending"
            inv.accepted_at = None
            inv.expires_at = expires
            if inv.user_id is None:
                inv.user_id = self._user_id_for(email)
        self.db.flush()
        return inv

    def revoke(self, share_id: int, email: str) -> bool:
        """Idempotent: fehlende Einladung ist kein Fehler."""
        res = self.db.execute(
            delete(Invitation).where(
                Invitation.share_id == share_id,
                Invitation.email == normalize_email(email or ""),
            )
        )
        self.db.commit()
        return bool(res.rowcount)

    def mark_accepted(self, invitation_id: int, identity) -> None:
        inv = self.db.get(Invitation, invitation_id)
        if inv is None:
            return
        changed = False
        if inv.status != "accepted":
            inv.status = "accepted"
            changed = True
        if inv.accepted_at is None:
            inv.accepted_at = self.now()
            changed = True
        user_id = getattr(identity, "id", None)
        if inv.user_id is None and user_id is not None:
            inv.user_id = user_id
            changed = True
        if changed:
            self.db.commit()
            log.info("Einladung %s angenommen", invitation_id)

    def find_active_for_email(self, email: str) -> List[Invitation]:
        """Alle noch gültigen Einladungen einer Adresse (über alle Freigaben)."""
        now = self.now()
        return list(
            self.db.execute(
                select(Invitation)
                .options(selectinload(Invitation.share))
                .where(
                    Invitation.email == normalize_email(email),
                    or_(Invitation.expires_at.is_(None), Invitation.expires_at >= now),
                )
                .order_by(Invitation.invited_at.desc())
            ).scalars()
        )


def serialize_invitation(inv: Invitation) -> Dict[str, Any]:
    return {
        "id": inv.id,
        "email": inv.email,
        "status": inv.status,
        "user_id": inv.user_id,
        "invited_at": isoformat(inv.invited_at),
        "expires_at": isoformat(inv.expires_at),
        "accepted_at": isoformat(inv.accepted_at),
    }
