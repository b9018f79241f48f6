"""
Blendrec Collaborator Interfaces
Contracts for the services the pipeline consumes
"""

from typing import Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from ..schemas.songs import Song


class SimilarTrack(BaseModel):
    """Track reported similar by the similarity service"""
    artist: str
    title: str
    match_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    in_library: bool = False
    library_id: Optional[str] = None


class SimilarArtist(BaseModel):
    """Artist reported similar by the similarity service"""
    name: str
    match_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    in_library: bool = False


class SeasonalPattern(BaseModel):
    """User listening preferences for the current season / time slot"""
    preferred_genres: List[str] = Field(default_factory=list)
    preferred_artists: List[str] = Field(default_factory=list)


class RelatedGenre(BaseModel):
    genre: str
    score: float


class DJAttributes(BaseModel):
    """Tempo / key / energy of a song; None means unknown"""
    tempo: Optional[float] = None
    key: Optional[str] = None
    energy: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    estimated: bool = False


class SimilarityProvider(Protocol):
    async def similar_tracks(self, artist: str, title: str, limit: int) -> List[SimilarTrack]:
        ...

    async def similar_artists(self, artist: str, limit: int) -> List[SimilarArtist]:
        ...

    async def top_tracks_for_artist(self, artist: str, limit: int) -> List[SimilarTrack]:
        ...


class CatalogueProvider(Protocol):
    async def search(self, query: str, offset: int, limit: int) -> List[Song]:
        ...

    async def random_songs(self, count: int) -> List[Song]:
        ...


class HistorySignals(Protocol):
    async def feedback_scores(self, user_id: str, song_ids: Sequence[str]) -> Dict[str, float]:
        """songId -> -1..1"""
        ...

    async def skip_penalties(self, user_id: str, song_ids: Sequence[str]) -> Dict[str, float]:
        """songId -> 0..1"""
        ...

    async def history_correlation_boosts(self, user_id: str, song_ids: Sequence[str]) -> Dict[str, float]:
        """songId -> 0..1"""
        ...

    async def seasonal_pattern(self, user_id: str) -> Optional[SeasonalPattern]:
        ...


class GenreHierarchy(Protocol):
    def normalize(self, genre: str) -> str:
        ...

    def similarity(self, genre_a: str, genre_b: str) -> float:
        ...

    def related_genres(self, genre: str, n: int) -> List[RelatedGenre]:
        ...


class DJAttributeResolver(Protocol):
    async def resolve(self, songs: Sequence[Song]) -> Dict[str, DJAttributes]:
        """songId -> attributes (possibly estimated)"""
        ...
