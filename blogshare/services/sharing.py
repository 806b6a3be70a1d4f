# blogshare/services/sharing.py
from __future__ import annotations
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.orm import Session

from blogshare.services.access_evaluator import AccessEvaluator
from blogshare.services.content_scoper import ContentScoper
from blogshare.services.invitation_service import InvitationManager
from blogshare.services.page_cache import PageCache
from blogshare.services.path_resolver import PathResolver
from blogshare.services.share_registry import ShareRegistry
from blogshare.services.stores import SqlCategoryStore


@dataclass
class Sharing:
    """Alle Bausteine für einen Request, an eine Session gebunden."""
    resolver: PathResolver
    registry: ShareRegistry
    invitations: InvitationManager
    evaluator: AccessEvaluator
    scoper: ContentScoper


def page_cache() -> PageCache:
    return current_app.extensions["page_cache"]


def build_sharing(db: Session) -> Sharing:
    cfg = current_app.config
    now = cfg["SHARE_CLOCK"]
    resolver = PathResolver(SqlCategoryStore(db))
    registry = ShareRegistry(
        db,
        token_bytes=cfg["SHARE_TOKEN_BYTES"],
        on_token_changed=[page_cache().invalidate_token],
    )
    invitations = InvitationManager(db, now=now)
    return Sharing(
        resolver=resolver,
        registry=registry,
        invitations=invitations,
        evaluator=AccessEvaluator(registry, invitations, now=now, ancestor_ids=resolver.ancestor_ids),
        scoper=ContentScoper(db, resolver),
    )
