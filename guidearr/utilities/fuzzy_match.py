"""Fuzzy string matching for channel names.

Ranks candidate names by substring "bag" overlap, with rapidfuzz as the
tie-breaker. Used to suggest guide channels for a free-text name when a
stream carries no explicit EPG id.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rapidfuzz import fuzz
from unidecode import unidecode

from guidearr.config import Config

if TYPE_CHECKING:
    from guidearr.core.types import GuideSourceChannel

logger = logging.getLogger(__name__)


def normalize_text(value: str) -> str:
    """Normalize text for matching.

    Applies: unidecode, lowercase, strip punctuation, normalize whitespace.
    """
    # Normalize: strip accents (é→e, ü→u), lowercase
    normalized = unidecode(value).lower().strip()
    # Remove punctuation (hyphens become spaces)
    normalized = re.sub(r"[^\w\s]", " ", normalized)
    normalized = " ".join(normalized.split())
    return normalized


def substring_bag(value: str, size: int) -> Counter:
    """Multiset of all substrings of `size` characters.

    Strings shorter than `size` form a bag of themselves.
    """
    if not value:
        return Counter()
    if len(value) <= size:
        return Counter([value])
    return Counter(value[i : i + size] for i in range(len(value) - size + 1))


def bag_similarity(a: Counter, b: Counter) -> float:
    """Dice coefficient over two substring multisets (0.0 - 1.0)."""
    total = sum(a.values()) + sum(b.values())
    if total == 0:
        return 0.0
    shared = sum((a & b).values())
    return 2.0 * shared / total


@dataclass(frozen=True)
class ScoredName:
    """A candidate name with its ranking keys."""

    name: str
    score: float
    ratio: float
    index: int


class ChannelNameMatcher:
    """Closest-name lookup over a fixed set of candidate names.

    Bags are built once per candidate; queries are normalized the same way.
    Ranking is by bag score, then rapidfuzz ratio, then name, then input
    position, so the same inputs always produce the same order.
    """

    def __init__(self, names: list[str], bag_size: int | None = None):
        self.bag_size = bag_size or Config.MATCH_BAG_SIZE
        self._names = list(names)
        self._normalized = [normalize_text(name) for name in self._names]
        self._bags = [substring_bag(norm, self.bag_size) for norm in self._normalized]

    def __len__(self) -> int:
        return len(self._names)

    def rank(self, query: str) -> list[ScoredName]:
        """Score every candidate against the query, best first."""
        normalized_query = normalize_text(query or "")
        if not normalized_query:
            return []

        query_bag = substring_bag(normalized_query, self.bag_size)
        scored = [
            ScoredName(
                name=name,
                score=bag_similarity(query_bag, bag),
                ratio=fuzz.ratio(normalized_query, normalized),
                index=index,
            )
            for index, (name, normalized, bag) in enumerate(
                zip(self._names, self._normalized, self._bags)
            )
        ]
        scored.sort(key=lambda s: (-s.score, -s.ratio, s.name, s.index))
        return scored

    def closest_n(self, query: str, n: int) -> list[str]:
        """Top-n candidate names for the query. Empty query gives []."""
        if n <= 0:
            return []
        return [s.name for s in self.rank(query)[:n]]

    def closest(self, query: str) -> str | None:
        results = self.closest_n(query, 1)
        return results[0] if results else None


def match_channels(
    channels: list["GuideSourceChannel"],
    query: str,
    n: int | None = None,
    bag_size: int | None = None,
) -> list["GuideSourceChannel"]:
    """Find the guide channels whose primary display name best matches `query`.

    Channels sharing a display name collapse to the first one seen.
    """
    if n is None:
        n = Config.MATCH_RESULTS

    by_name: dict[str, "GuideSourceChannel"] = {}
    for channel in channels:
        by_name.setdefault(channel.display_name, channel)

    matcher = ChannelNameMatcher(list(by_name), bag_size=bag_size)
    names = matcher.closest_n(query, n)
    logger.debug("[MATCH] '%s' -> %s", query, names)
    return [by_name[name] for name in names]
