"""
Blendrec DJ Schemas
DJ compatibility results
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class DJScoreResult(BaseModel):
    """Tempo/energy/key compatibility of a candidate following a seed"""
    model_config = ConfigDict(frozen=True)

    total_score: float
    tempo_score: float
    energy_score: float
    key_score: float
    tempo_relationship: str
    energy_relationship: str
    key_relationship: str
    is_recommended: bool
    summary: str
    tempo_diff: Optional[float] = None
    tempo_diff_percent: Optional[float] = None
    energy_diff: Optional[float] = None
