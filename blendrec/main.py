"""
Blendrec Pipeline Wiring
Builds a BlendedScorer from settings
"""

import logging
from typing import Any, Optional

from .core.cache import MemoryTTLCache, RedisTTLCache, TTLCache
from .core.candidates import CandidateGatherer
from .core.config import Settings, get_settings
from .core.engine import BlendedScorer
from .providers.dj_attributes import EstimatingDJAttributeResolver
from .providers.genres import StaticGenreHierarchy
from .providers.lastfm import LastFmSimilarityProvider
from .providers.subsonic import SubsonicCatalogue
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def build_artist_cache(settings: Settings) -> TTLCache:
    """Redis cache when REDIS_URL is set and reachable, memory cache otherwise"""
    if settings.REDIS_URL:
        cache = RedisTTLCache(settings.REDIS_URL)
        if await cache.connect():
            return cache
        await cache.close()
        logger.warning("Falling back to in-memory artist cache")
    return MemoryTTLCache()


async def build_scorer(settings: Optional[Settings] = None, **overrides: Any) -> BlendedScorer:
    """
    Assemble the recommendation pipeline.

    Every collaborator can be passed explicitly (catalogue, similarity,
    history, dj_resolver, genres, artist_cache, sleep, clock, rng);
    missing ones are built from settings.

    Args:
        settings: Settings (loaded from the environment when omitted)
        **overrides: collaborator overrides

    Returns:
        BlendedScorer; await its aclose() to release the clients built here

    Raises:
        ValueError: no catalogue given and SUBSONIC_URL not configured
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    logger.info("=" * 60)
    logger.info("Blendrec pipeline starting...")
    logger.info("=" * 60)

    closers = []
    catalogue = overrides.get("catalogue")
    if catalogue is None:
        if not settings.SUBSONIC_URL:
            raise ValueError("No catalogue configured (set SUBSONIC_URL or pass catalogue=)")
        catalogue = SubsonicCatalogue(
            settings.SUBSONIC_URL,
            settings.SUBSONIC_USER,
            settings.SUBSONIC_PASSWORD,
            timeout_sec=settings.CALL_TIMEOUT_SEC
        )
        closers.append(catalogue.aclose)
        logger.info(f"Catalogue: Subsonic at {settings.SUBSONIC_URL}")

    if "similarity" in overrides:
        similarity = overrides["similarity"]
    elif settings.LASTFM_API_KEY:
        similarity = LastFmSimilarityProvider(
            settings.LASTFM_API_KEY,
            max_rps=settings.LASTFM_MAX_RPS,
            timeout_sec=settings.CALL_TIMEOUT_SEC
        )
        closers.append(similarity.aclose)
        logger.info(f"Similarity: Last.fm ({settings.LASTFM_MAX_RPS} req/s)")
    else:
        similarity = None
        logger.warning("LASTFM_API_KEY not set; similarity strategies disabled")

    genres = overrides.get("genres") or StaticGenreHierarchy()
    artist_cache = overrides.get("artist_cache")
    if artist_cache is None:
        artist_cache = await build_artist_cache(settings)
        if isinstance(artist_cache, RedisTTLCache):
            closers.append(artist_cache.close)

    gatherer_kwargs = {}
    if "sleep" in overrides:
        gatherer_kwargs["sleep"] = overrides["sleep"]
    gatherer = CandidateGatherer(
        catalogue,
        genres,
        similarity=similarity,
        artist_cache=artist_cache,
        settings=settings,
        **gatherer_kwargs
    )

    scorer_kwargs = {}
    if "clock" in overrides:
        scorer_kwargs["clock"] = overrides["clock"]
    scorer = BlendedScorer(
        gatherer,
        history=overrides.get("history"),
        dj_resolver=overrides.get("dj_resolver") or EstimatingDJAttributeResolver(),
        genres=genres,
        settings=settings,
        rng=overrides.get("rng"),
        closers=closers,
        **scorer_kwargs
    )

    logger.info("Blendrec pipeline ready")
    return scorer
