# blogshare/services/access_evaluator.py
"""
Entscheidet, ob ein Besucher eine private Kategorie / einen Post sehen darf.

Zwei unabhängige Wege:
  1) öffentlicher Token (anonym)
  2) Einladung per E-Mail (angemeldeter Betrachter)
Ergebnis ist immer genau eins von Granted, Denied("expired"), Denied("not_found").
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from blogshare.errors import ExpiredError, NotFoundError
from blogshare.models.share import SHARE_KINDS
from blogshare.services import token_codec
from blogshare.services.stores import InvitationStore, ShareStore
from blogshare.services.timeutil import utcnow

log = logging.getLogger(__name__)

NOT_FOUND = "not_found"
EXPIRED = "expired"


@dataclass(frozen=True)
class Viewer:
    """Vom Identity-Provider bestätigter Betrachter."""
    id: Optional[int]
    email: Optional[str]
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class Granted:
    kind: str
    entity_id: int
    share_id: Optional[int] = None
    include_subcategories: bool = False
    access_type: str = "public_token"  # public_token | invited | admin
    expires_at: Optional[datetime] = None

    granted = True


@dataclass(frozen=True)
class Denied:
    reason: str = NOT_FOUND

    granted = False

    def raise_error(self):
        if self.reason == EXPIRED:
            raise ExpiredError()
        raise NotFoundError()


Decision = Union[Granted, Denied]


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    return expires_at is not None and expires_at < now


class AccessEvaluator:
    def __init__(
        self,
        shares: ShareStore,
        invitations: InvitationStore,
        now: Callable[[], datetime] = utcnow,
        ancestor_ids: Optional[Callable[[int], List[int]]] = None,
    ):
        self.shares = shares
        self.invitations = invitations
        self.now = now
        self.ancestor_ids = ancestor_ids

    def evaluate_token(self, token, kind: str) -> Decision:
        """Öffentlicher Link. Rein lesend – beliebig oft wiederholbar."""
        if kind not in SHARE_KINDS:
            raise ValueError(f"unknown share kind: {kind!r}")
        if not token_codec.is_valid_format(token):
            return Denied(NOT_FOUND)
        share = self.shares.get_by_token(token, kind)
        # deaktiviert == nie existiert
        if share is None or not share.public_enabled:
            log.debug("Token %s abgelehnt (%s)", token_codec.token_hint(token), kind)
            return Denied(NOT_FOUND)
        if is_expired(share.public_expires_at, self.now()):
            return Denied(EXPIRED)
        return Granted(
            kind=kind,
            entity_id=share.entity_id,
            share_id=share.id,
            include_subcategories=bool(share.include_subcategories) if kind == "category" else False,
            access_type="public_token",
            expires_at=share.public_expires_at,
        )

    def evaluate_invitation(self, entity_id: int, kind: str, viewer: Optional[Viewer]) -> Decision:
        """
        Einladung auf die Freigabe des Ziels oder, bei Kategorien, auf die
        nächste Vorfahren-Freigabe mit include_subcategories.
        """
        if kind not in SHARE_KINDS:
            raise ValueError(f"unknown share kind: {kind!r}")
        if viewer is None:
            return Denied(NOT_FOUND)
        if viewer.is_admin:
            # Eigentümer sieht alles, auch ohne Freigabe
            share = self.shares.get_by_owning_entity(entity_id, kind)
            return Granted(kind=kind, entity_id=entity_id, share_id=share.id if share else None,
                           include_subcategories=(kind == "category"), access_type="admin")
        if not viewer.email:
            return Denied(NOT_FOUND)

        denials = []
        for owner_id in self._share_owners(entity_id, kind):
            share = self.shares.get_by_owning_entity(owner_id, kind)
            if share is None:
                continue
            inherited = owner_id != entity_id
            if inherited and not share.include_subcategories:
                continue
            decision = self._invited(share, entity_id, kind, viewer, inherited)
            if decision.granted:
                return decision
            denials.append(decision)
        if any(d.reason == EXPIRED for d in denials):
            return Denied(EXPIRED)
        return Denied(NOT_FOUND)

    def _share_owners(self, entity_id: int, kind: str) -> List[int]:
        """Ziel zuerst, dann Vorfahren von unten nach oben (nur Kategorien)."""
        if kind != "category" or self.ancestor_ids is None:
            return [entity_id]
        chain = list(reversed(self.ancestor_ids(entity_id)))
        return chain if chain else [entity_id]

    def _invited(self, share, entity_id: int, kind: str, viewer: Viewer, inherited: bool) -> Decision:
        invitation = self.invitations.find(share.id, viewer.email)
        if invitation is None:
            return Denied(NOT_FOUND)
        if is_expired(invitation.expires_at, self.now()):
            return Denied(EXPIRED)
        if invitation.status != "accepted" or invitation.user_id is None:
            self.invitations.mark_accepted(invitation.id, viewer)
        if kind == "category":
            # geerbt heißt: das Ziel liegt im kaskadierenden Teilbaum, seine Kinder also auch
            cascade = True if inherited else bool(share.include_subcategories)
        else:
            cascade = False
        return Granted(
            kind=kind,
            entity_id=entity_id,
            share_id=share.id,
            include_subcategories=cascade,
            access_type="invited",
            expires_at=invitation.expires_at,
        )

    def evaluate(
        self,
        kind: str,
        token=None,
        entity_id: Optional[int] = None,
        viewer: Optional[Viewer] = None,
    ) -> Decision:
        """
        Erst Token, dann Einladung; der erste Treffer gewinnt.
        Ohne Treffer: Expired, falls ein Weg abgelaufen ist, sonst NotFound.
        """
        denials = []
        if token is not None:
            decision = self.evaluate_token(token, kind)
            if decision.granted:
                return decision
            denials.append(decision)
        if entity_id is not None and viewer is not None:
            decision = self.evaluate_invitation(entity_id, kind, viewer)
            if decision.granted:
                return decision
            denials.append(decision)
        if any(d.reason == EXPIRED for d in denials):
            return Denied(EXPIRED)
        return Denied(NOT_FOUND)


def expiring_soon(decision: Decision, now: Optional[datetime] = None, days: int = 7) -> bool:
    """UI-Hinweis: Link läuft in weniger als `days` Tagen ab."""
    if not decision.granted or decision.expires_at is None:
        return False
    now = now or utcnow()
    return decision.expires_at - now < timedelta(days=days)
