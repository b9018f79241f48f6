"""
Blendrec Configuration
Environment-driven settings for the blended recommendation pipeline
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Result shaping
    DEFAULT_LIMIT: int = Field(default=10, ge=1, le=100, description="Default number of recommendations")
    MAX_PER_ARTIST: int = Field(default=1, ge=1, description="Max songs per artist in the final list")
    MIN_UNIQUE_ARTISTS: int = Field(default=2, ge=1, description="Distinct artists the second diversity pass aims for")
    SHUFFLE_FRACTION: float = Field(default=0.2, ge=0.0, le=1.0, description="Leading share of results to shuffle")

    # Candidate limits per gathering strategy
    LIBRARY_SIMILARITY_LIMIT: int = Field(default=20, ge=1, description="Similar tracks requested from the similarity service")
    LIBRARY_SIMILARITY_LOOKUPS: int = Field(default=5, ge=0, description="Catalogue lookups for similar tracks without a library id")
    SAME_ARTIST_LIMIT: int = Field(default=2, ge=0, le=2, description="Hard cap on same-artist candidates")
    SIMILAR_ARTIST_FETCH: int = Field(default=10, ge=1, description="Similar artists requested from the similarity service")
    SIMILAR_ARTIST_SEARCHES: int = Field(default=3, ge=0, description="Similar artists actually searched in the catalogue")
    SIMILAR_ARTIST_LIMIT: int = Field(default=10, ge=0, description="Max similar-artist candidates")
    GENRE_LIMIT: int = Field(default=10, ge=0, description="Max genre-match candidates")
    GENRE_POOL_FLOOR: int = Field(default=100, ge=1, description="Minimum random pool size for genre matching")
    GENRE_MIN_SIMILARITY: float = Field(default=0.3, ge=0.0, le=1.0, description="Genre similarity needed to keep a pooled song")

    # Rate limiting and timeouts
    SEARCH_THROTTLE_MS: int = Field(default=100, ge=0, description="Delay between successive external calls (ms)")
    CALL_TIMEOUT_SEC: float = Field(default=5.0, gt=0.0, description="Timeout for one external call inside the gatherer")
    LOOKUP_TIMEOUT_SEC: float = Field(default=3.0, gt=0.0, description="Timeout for one scoring-context lookup")
    ENRICH_TIMEOUT_SEC: float = Field(default=5.0, gt=0.0, description="Timeout for DJ attribute enrichment")

    # Cache
    REDIS_URL: Optional[str] = Field(default=None, description="Redis URL for the library-artist cache (memory cache if unset)")
    ARTIST_CACHE_TTL_SEC: int = Field(default=300, ge=0, description="Library-artist cache TTL (seconds)")

    # Similarity service (Last.fm)
    LASTFM_API_KEY: Optional[str] = Field(default=None, description="Last.fm API key; similarity strategies are skipped without it")
    LASTFM_MAX_RPS: float = Field(default=5.0, gt=0.0, description="Last.fm request ceiling (requests/second)")

    # Catalogue (Subsonic / Navidrome)
    SUBSONIC_URL: Optional[str] = Field(default=None, description="Subsonic-compatible server base URL")
    SUBSONIC_USER: str = Field(default="", description="Subsonic user name")
    SUBSONIC_PASSWORD: str = Field(default="", description="Subsonic password")

    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


def get_settings() -> Settings:
    return Settings()
