"""
Blendrec Diversity Enforcement
Artist hard-cut, bounded distinct-artist swap and partial shuffle
"""

import logging
import math
import random
from typing import Dict, List, Optional, Set

from ..schemas.recommend import ScoredCandidate

logger = logging.getLogger(__name__)

MAX_SWAPS = 3
MIN_SHUFFLE_ITEMS = 2


def _artist_key(item: ScoredCandidate) -> str:
    return (item.song.artist or "").lower() or "unknown"


def apply_artist_hardcut(
    ranked: List[ScoredCandidate],
    limit: int,
    max_per_artist: int = 1
) -> List[ScoredCandidate]:
    """
    Keep items in score order while each artist stays under max_per_artist.

    Args:
        ranked: candidates sorted by final_score descending
        limit: number of items to return
        max_per_artist: per-artist cap (case-insensitive)

    Returns:
        at most `limit` items
    """
    selected: List[ScoredCandidate] = []
    artist_counts: Dict[str, int] = {}

    for item in ranked:
        if len(selected) >= limit:
            break
        artist = _artist_key(item)
        current_count = artist_counts.get(artist, 0)
        if current_count < max_per_artist:
            selected.append(item)
            artist_counts[artist] = current_count + 1

    return selected


def promote_distinct_artists(
    selected: List[ScoredCandidate],
    ranked: List[ScoredCandidate],
    min_unique_artists: int = 2
) -> List[ScoredCandidate]:
    """
    Best-effort second pass toward min_unique_artists.

    Up to MAX_SWAPS not-yet-included items by unused artists replace
    duplicate-artist entries from the later half of the result. Entries
    before the midpoint are never demoted; fewer swaps happen silently when
    fewer alternates exist.
    """
    distinct = {_artist_key(item) for item in selected}
    if len(selected) < min_unique_artists or len(distinct) >= min_unique_artists:
        return selected

    result = list(selected)
    included_ids = {item.song.id for item in result}
    used_artists: Set[str] = set(distinct)

    alternates = []
    for item in ranked:
        if len(alternates) >= MAX_SWAPS:
            break
        artist = _artist_key(item)
        if item.song.id in included_ids or artist in used_artists:
            continue
        alternates.append(item)
        used_artists.add(artist)

    swaps = 0
    for alternate in alternates:
        counts: Dict[str, int] = {}
        for item in result:
            counts[_artist_key(item)] = counts.get(_artist_key(item), 0) + 1

        replace_at = next(
            (idx for idx, item in enumerate(result)
             if idx > len(result) / 2 and counts[_artist_key(item)] > 1),
            None
        )
        if replace_at is None:
            break
        result[replace_at] = alternate
        swaps += 1

    if swaps:
        logger.debug(f"Diversity second pass: {swaps} swaps")
    return result


def shuffle_head(
    items: List[ScoredCandidate],
    fraction: float = 0.2,
    rng: Optional[random.Random] = None
) -> List[ScoredCandidate]:
    """Shuffle the leading ceil(fraction * n) items (at least 2); the tail keeps its order"""
    if len(items) < MIN_SHUFFLE_ITEMS:
        return list(items)

    head_size = min(len(items), max(MIN_SHUFFLE_ITEMS, math.ceil(len(items) * fraction)))
    head = items[:head_size]
    (rng or random).shuffle(head)
    return head + items[head_size:]


def enforce_diversity(
    ranked: List[ScoredCandidate],
    limit: int,
    max_per_artist: int = 1,
    min_unique_artists: int = 2,
    shuffle_fraction: float = 0.2,
    rng: Optional[random.Random] = None
) -> List[ScoredCandidate]:
    """
    Reduce a score-descending list to at most `limit` diversified items.

    Pipeline: artist hard-cut -> distinct-artist swap -> head shuffle

    Args:
        ranked: candidates sorted by final_score descending
        limit: maximum number of items to return
        max_per_artist: per-artist cap in the first pass
        min_unique_artists: distinct-artist target of the second pass
        shuffle_fraction: share of the head to shuffle
        rng: random source (seeded in tests)

    Returns:
        diversified list
    """
    if not ranked or limit <= 0:
        return []

    selected = apply_artist_hardcut(ranked, limit, max_per_artist)
    selected = promote_distinct_artists(selected, ranked, min_unique_artists)
    return shuffle_head(selected, shuffle_fraction, rng)
