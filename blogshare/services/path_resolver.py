# blogshare/services/path_resolver.py
from __future__ import annotations
from collections import deque
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Union

from blogshare.errors import ValidationError
from blogshare.models.category import Category
from blogshare.services.stores import CategoryStore


def split_slug_path(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    slugPath kommt als "a/b/c" oder als ["a", "b", "c"].
    Leere Segmente fallen weg.
    """
    if value is None:
        raise ValidationError("slugPath is required")
    if isinstance(value, str):
        parts = value.split("/")
    elif isinstance(value, (list, tuple)):
        if not all(isinstance(p, str) for p in value):
            raise ValidationError("slugPath must contain strings")
        parts = list(value)
    else:
        raise ValidationError("slugPath must be a string or a list")
    slugs = [p.strip() for p in parts if p and p.strip()]
    if not slugs:
        raise ValidationError("slugPath is required")
    return slugs


class PathResolver:
    """
    Läuft über die parent_id-Zeiger des Kategorienbaums.

    Eine Instanz pro Request: geladene Kategorien werden gemerkt, damit
    mehrfache Pfad-Berechnungen (Breadcrumbs, Containment) die DB nicht
    erneut treffen.
    """

    def __init__(self, categories: CategoryStore):
        self.categories = categories
        self._nodes: Dict[int, Optional[Category]] = {}
        self._subtrees: Dict[int, FrozenSet[int]] = {}

    def _node(self, category_id: Optional[int]) -> Optional[Category]:
        if category_id is None:
            return None
        if category_id not in self._nodes:
            self._nodes[category_id] = self.categories.get(category_id)
        return self._nodes[category_id]

    def _remember(self, cat: Optional[Category]) -> Optional[Category]:
        if cat is not None:
            self._nodes[cat.id] = cat
        return cat

    # -------------------------------------------------
    # Abwärts: Slugs -> Kategorie
    # -------------------------------------------------
    def resolve_by_slugs(self, slugs: List[str]) -> Optional[Category]:
        """Kein Teil-Treffer: der erste fehlende Schritt liefert None."""
        if not slugs:
            return None
        current = self._remember(self.categories.find_root(slugs[0]))
        for slug in slugs[1:]:
            if current is None:
                return None
            current = self._remember(self.categories.find_child(current.id, slug))
        return current

    # -------------------------------------------------
    # Aufwärts: Kategorie -> Wurzel
    # -------------------------------------------------
    def _chain(self, category_id: Optional[int]) -> List[Category]:
        """Knoten von der Wurzel bis zum Ziel. Bricht bei Zyklen ab."""
        chain: List[Category] = []
        seen: Set[int] = set()
        node = self._node(category_id)
        while node is not None and node.id not in seen:
            seen.add(node.id)
            chain.append(node)
            node = self._node(node.parent_id)
        chain.reverse()
        return chain

    def ancestor_path(self, category_id: Optional[int]) -> List[str]:
        return [c.name for c in self._chain(category_id)]

    def ancestor_slugs(self, category_id: Optional[int]) -> List[str]:
        return [c.slug for c in self._chain(category_id)]

    def ancestor_ids(self, category_id: Optional[int]) -> List[int]:
        return [c.id for c in self._chain(category_id)]

    def display_path(self, category_id: Optional[int]) -> str:
        return "/".join(self.ancestor_path(category_id))

    def breadcrumbs(self, category_id: Optional[int]) -> List[dict]:
        crumbs = []
        slugs: List[str] = []
        for c in self._chain(category_id):
            slugs.append(c.slug)
            crumbs.append({"id": c.id, "name": c.name, "slug_path": "/".join(slugs)})
        return crumbs

    # -------------------------------------------------
    # Containment über IDs (kein String-Präfix)
    # Listen und Einzelprüfungen laufen beide über descendant_ids, damit sie
    # auch bei kaputten Zeigern dieselbe Menge sehen.
    # -------------------------------------------------
    def is_within(self, candidate_id: Optional[int], root_id: int, include_descendants: bool = True) -> bool:
        if candidate_id is None:
            return False
        if candidate_id == root_id:
            return True
        if not include_descendants:
            return False
        return candidate_id in self.descendant_ids(root_id)

    def descendant_ids(self, category_id: int) -> FrozenSet[int]:
        """Alle Nachfahren (ohne den Knoten selbst), Breitensuche, pro Instanz gemerkt."""
        if category_id in self._subtrees:
            return self._subtrees[category_id]
        found: Set[int] = set()
        queue = deque([category_id])
        while queue:
            parent = queue.popleft()
            for child in self.categories.children(parent):
                if child.id in found or child.id == category_id:
                    continue
                self._remember(child)
                found.add(child.id)
                queue.append(child.id)
        self._subtrees[category_id] = frozenset(found)
        return self._subtrees[category_id]
