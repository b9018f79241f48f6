"""
Blendrec Recommendation Schemas
Candidates, provenance, options and results
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .songs import Song
from ..core.weights import ScoringWeights


EnergyDirection = Literal["rising", "falling", "stable", "any"]


class SourceType(str, Enum):
    """Gathering strategy that nominated a candidate"""
    LIBRARY_SIMILARITY = "library_similarity"
    SAME_ARTIST = "same_artist"
    SIMILAR_ARTIST = "similar_artist"
    GENRE_MATCH = "genre_match"
    HISTORY_CORRELATION = "history_correlation"
    LIKED = "liked"
    TEMPORAL = "temporal"


class CandidateSource(BaseModel):
    """One nomination of a song by a strategy"""
    model_config = ConfigDict(frozen=True)

    source: SourceType
    weight: float
    match_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class Candidate(BaseModel):
    """Song plus every source that nominated it (append-only during gathering)"""
    song: Song
    sources: List[CandidateSource] = Field(default_factory=list)

    def source_of(self, source: SourceType) -> Optional[CandidateSource]:
        for entry in self.sources:
            if entry.source == source:
                return entry
        return None


class SignalScores(BaseModel):
    """Per-dimension sub-scores of a candidate"""
    model_config = ConfigDict(frozen=True)

    external_similarity: float
    history_correlation: float
    dj_compatibility: float
    explicit_feedback: float
    skip_avoidance: float
    temporal_fit: float
    diversity_vs_queue: float


class ScoredCandidate(BaseModel):
    """Scored, immutable view of a candidate"""
    model_config = ConfigDict(frozen=True)

    song: Song
    sources: Tuple[CandidateSource, ...]
    scores: SignalScores
    final_score: float


class QueueContext(BaseModel):
    """What the caller currently has queued"""
    genres: List[str] = Field(default_factory=list)
    artists: List[str] = Field(default_factory=list)


class DJMatching(BaseModel):
    """DJ-style matching request; current_* override the seed's own attributes"""
    enabled: bool = False
    current_tempo: Optional[float] = None
    current_key: Optional[str] = None
    current_energy: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    energy_direction: EnergyDirection = "any"


class GatherOptions(BaseModel):
    """Exclusions and context for candidate gathering"""
    exclude_song_ids: List[str] = Field(default_factory=list)
    exclude_artists: List[str] = Field(default_factory=list)
    queue_context: Optional[QueueContext] = None


class RecommendOptions(GatherOptions):
    """Caller options for a blended recommendation request"""
    user_id: Optional[str] = None
    limit: int = Field(default=10, ge=1)
    dj_matching: Optional[DJMatching] = None
    weights: Optional[Union[ScoringWeights, Dict[str, float]]] = None
    max_per_artist: Optional[int] = Field(default=None, ge=1)
    min_unique_artists: Optional[int] = Field(default=None, ge=1)


class BlendedMetadata(BaseModel):
    """Provenance and aggregate information about a result"""
    total_candidates: int
    source_counts: Dict[str, int] = Field(default_factory=dict)
    avg_scores: Dict[str, float] = Field(default_factory=dict)
    unique_artists: int = 0
    time_bucket: Optional[str] = None
    elapsed_ms: Optional[float] = None


class BlendedResult(BaseModel):
    """Final ranked songs plus metadata"""
    songs: List[Song]
    scored: List[ScoredCandidate] = Field(default_factory=list)
    metadata: BlendedMetadata
