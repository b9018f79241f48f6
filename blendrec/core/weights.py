"""
Blendrec Scoring Weights
Immutable per-signal weights for the blended score
"""

import logging
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, model_validator

logger = logging.getLogger(__name__)

# sums further than this from 1.0 are reported
WEIGHT_SUM_TOLERANCE = 0.05


class ScoringWeights(BaseModel):
    """
    Weight per signal dimension.

    Conventionally sums to 1.0. The sum is not normalized; a large deviation
    is logged so a bad override is visible without failing the request.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    external_similarity: float = 0.25
    history_correlation: float = 0.20
    dj_compatibility: float = 0.20
    explicit_feedback: float = 0.15
    skip_avoidance: float = 0.10
    temporal_fit: float = 0.05
    diversity_vs_queue: float = 0.05

    @model_validator(mode="after")
    def _warn_on_sum(self) -> "ScoringWeights":
        total = self.total()
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            logger.warning(f"Scoring weights sum to {total:.3f}, expected ~1.0: {self.to_dict()}")
        return self

    def total(self) -> float:
        return sum(self.to_dict().values())

    def to_dict(self) -> Dict[str, float]:
        return self.model_dump()

    def with_overrides(self, overrides: Optional[Mapping[str, float]]) -> "ScoringWeights":
        """Return a new weights object with the given fields replaced"""
        if not overrides:
            return self
        return ScoringWeights(**{**self.to_dict(), **dict(overrides)})


DEFAULT_WEIGHTS = ScoringWeights()
