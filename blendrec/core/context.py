"""
Blendrec Scoring Context
Shared per-request signals fetched once for all candidates
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..providers.base import HistorySignals, SeasonalPattern

logger = logging.getLogger(__name__)


def time_bucket(hour: int) -> str:
    """
    Time-of-day bucket

    morning 5-10, afternoon 11-16, evening 17-20, night otherwise
    """
    if 5 <= hour <= 10:
        return "morning"
    if 11 <= hour <= 16:
        return "afternoon"
    if 17 <= hour <= 20:
        return "evening"
    return "night"


@dataclass
class ScoringContext:
    """Signals shared by every candidate in one request"""
    time_bucket: str
    seasonal_pattern: Optional[SeasonalPattern] = None
    feedback: Dict[str, float] = field(default_factory=dict)
    skip_penalties: Dict[str, float] = field(default_factory=dict)
    history_boosts: Dict[str, float] = field(default_factory=dict)


async def build_scoring_context(
    history: Optional[HistorySignals],
    user_id: Optional[str],
    song_ids: List[str],
    now: datetime,
    timeout_sec: float = 3.0
) -> ScoringContext:
    """
    Run the four context lookups concurrently.

    Each lookup has its own timeout; a failed lookup leaves its dimension
    empty (neutral) without affecting the others. Lookups are skipped when
    there is no history backend or no user id.

    Args:
        history: history/feedback backend
        user_id: requesting user
        song_ids: every candidate id (batched into one call per lookup)
        now: request time
        timeout_sec: per-lookup timeout

    Returns:
        ScoringContext
    """
    context = ScoringContext(time_bucket=time_bucket(now.hour))
    if history is None or not user_id or not song_ids:
        return context

    lookups = {
        "feedback": history.feedback_scores(user_id, song_ids),
        "skip_penalties": history.skip_penalties(user_id, song_ids),
        "history_boosts": history.history_correlation_boosts(user_id, song_ids),
        "seasonal_pattern": history.seasonal_pattern(user_id),
    }
    results = await asyncio.gather(
        *(asyncio.wait_for(coro, timeout=timeout_sec) for coro in lookups.values()),
        return_exceptions=True
    )

    for name, result in zip(lookups, results):
        if isinstance(result, asyncio.TimeoutError):
            logger.warning(f"Context lookup '{name}' timed out after {timeout_sec}s; using neutral default")
            continue
        if isinstance(result, Exception):
            logger.warning(f"Context lookup '{name}' failed; using neutral default: {result}")
            continue
        if result is not None:
            setattr(context, name, result)

    logger.debug(
        f"Scoring context: bucket={context.time_bucket}, feedback={len(context.feedback)}, "
        f"skips={len(context.skip_penalties)}, boosts={len(context.history_boosts)}, "
        f"seasonal={'yes' if context.seasonal_pattern else 'no'}"
    )
    return context
