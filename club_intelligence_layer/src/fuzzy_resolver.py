"""Fuzzy resolution of extracted tokens to canonical names.

Resolution order for a token:

1. exact match against the normalized index for the category
2. best edit-distance match above the similarity threshold
3. ``None`` (never raises for unknown tokens)

The stat-type index is built from the static pseudonym table. Entity indexes
(players, teams, oppositions, leagues) are loaded on demand from a
known-values source, normally the graph database, and reloaded once older
than ``index_ttl`` seconds.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from rapidfuzz.distance import OSA

from ..config.pseudonyms import STAT_TYPE_PSEUDONYMS, PseudonymTable

logger = logging.getLogger(__name__)

STAT_TYPE = "stat_type"
ENTITY_CATEGORIES = ("player", "team", "opposition", "league")

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(text: str) -> str:
    """Strip, drop punctuation, collapse whitespace and lowercase."""
    cleaned = _NON_WORD.sub("", text or "")
    return _WHITESPACE.sub(" ", cleaned).strip().lower()


def similarity(a: str, b: str) -> float:
    """Normalized edit similarity: (longest - distance) / longest.

    Distance is optimal string alignment, so a swap of two adjacent
    characters counts as a single edit.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - OSA.distance(a, b)) / longest


class FuzzyResolver:
    """Resolve tokens against the stat vocabulary and known entity names."""

    def __init__(
        self,
        source: Optional[Any] = None,
        threshold: float = 0.7,
        index_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        stat_pseudonyms: Optional[PseudonymTable] = None,
    ):
        """
        Args:
            source: object exposing ``async list_known_values(category)``
            threshold: minimum similarity for a fuzzy match (exclusive)
            index_ttl: seconds before an entity index is reloaded
            clock: time source, injectable for tests
            stat_pseudonyms: stat-type table to index
        """
        self.source = source
        self.threshold = threshold
        self.index_ttl = index_ttl
        self._clock = clock
        self._index: Dict[str, Dict[str, str]] = {}
        self._loaded_at: Dict[str, float] = {}

        stat_index: Dict[str, str] = {}
        for canonical, variants in (stat_pseudonyms or STAT_TYPE_PSEUDONYMS).items():
            for variant in [canonical, *variants]:
                stat_index.setdefault(normalize_name(variant), canonical)
        self._index[STAT_TYPE] = stat_index

    # ---------- index management ----------

    def set_known_values(self, category: str, values: Iterable[str]) -> None:
        index: Dict[str, str] = {}
        for value in values:
            if isinstance(value, str) and value.strip():
                index.setdefault(normalize_name(value), value)
        self._index[category] = index
        self._loaded_at[category] = self._clock()
        logger.debug(f"Indexed {len(index)} known values for '{category}'")

    def is_stale(self, category: str) -> bool:
        if category == STAT_TYPE:
            return False
        loaded_at = self._loaded_at.get(category)
        return loaded_at is None or self._clock() - loaded_at > self.index_ttl

    async def load(self, category: str) -> None:
        """Refresh the index for a category from the known-values source."""
        if self.source is None or category == STAT_TYPE:
            return
        values = await self.source.list_known_values(category)
        self.set_known_values(category, values)

    def clear_cache(self, category: Optional[str] = None) -> None:
        categories = [category] if category else list(self._loaded_at)
        for name in categories:
            if name == STAT_TYPE:
                continue
            self._index.pop(name, None)
            self._loaded_at.pop(name, None)

    # ---------- lookups ----------

    def resolve(self, token: str, category: str) -> Optional[str]:
        """Return the canonical value for ``token`` or ``None``."""
        normalized = normalize_name(token)
        index = self._index.get(category)
        if not normalized or not index:
            return None

        exact = index.get(normalized)
        if exact is not None:
            return exact

        best_value: Optional[str] = None
        best_score = 0.0
        for candidate, canonical in index.items():
            score = similarity(normalized, candidate)
            if score > best_score and score > self.threshold:
                best_score = score
                best_value = canonical

        if best_value is not None:
            logger.debug(f"Fuzzy resolved '{token}' -> '{best_value}' ({category}, {best_score:.2f})")
        return best_value

    async def resolve_async(self, token: str, category: str) -> Optional[str]:
        """Resolve after making sure the category index is fresh.

        A failing known-values source is logged and the stale (or empty)
        index is used instead.
        """
        if self.is_stale(category):
            try:
                await self.load(category)
            except Exception as e:
                logger.warning(f"Could not refresh '{category}' index: {e}")
        return self.resolve(token, category)

    def entity_exists(self, name: str, category: str) -> bool:
        return normalize_name(name) in self._index.get(category, {})

    def suggestions(self, token: str, category: str, limit: int = 3) -> List[str]:
        """Known values that start with, then contain, the token."""
        normalized = normalize_name(token)
        if not normalized:
            return []
        index = self._index.get(category, {})
        prefix = [v for k, v in index.items() if k.startswith(normalized)]
        contains = [v for k, v in index.items() if normalized in k and v not in prefix]
        return (prefix + contains)[:limit]

    def stats(self) -> Dict[str, int]:
        return {category: len(index) for category, index in self._index.items()}
