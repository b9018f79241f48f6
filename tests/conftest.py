"""
Shared pytest fixtures for blendrec tests.

Tests use the doubles in doubles.py instead of real services. No network,
environment variables or real caches are used.
"""

from datetime import datetime

import pytest

from blendrec.core.cache import MemoryTTLCache
from blendrec.core.config import Settings
from blendrec.providers.genres import StaticGenreHierarchy

from doubles import SleepRecorder, make_song


@pytest.fixture
def settings():
    """Default settings with nothing read from the environment."""
    return Settings(
        _env_file=None,
        REDIS_URL=None,
        LASTFM_API_KEY=None,
        SUBSONIC_URL=None,
        LOOKUP_TIMEOUT_SEC=0.05,
        CALL_TIMEOUT_SEC=0.5,
    )


@pytest.fixture
def genres():
    return StaticGenreHierarchy()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def artist_cache():
    return MemoryTTLCache()


@pytest.fixture
def fixed_clock():
    """Request time: a weekday morning."""
    return lambda: datetime(2026, 3, 2, 8, 30)


@pytest.fixture
def seed():
    return make_song("r1", "Radiohead", "Karma Police", tempo=82.0)


@pytest.fixture
def radiohead_catalogue_songs(seed):
    """Seed plus two more Radiohead tracks and some other artists."""
    return [
        seed,
        make_song("r2", "Radiohead", "No Surprises", tempo=80.0),
        make_song("r3", "Radiohead", "Lucky", tempo=126.0),
        make_song("r4", "Radiohead", "Airbag", tempo=90.0),
        make_song("ty1", "Thom Yorke", "Black Swan", tempo=84.0),
        make_song("ma1", "Massive Attack", "Teardrop", tempo=77.0, genre="trip hop"),
        make_song("ma2", "Massive Attack feat. Liz Fraser", "Teardrop (Live)", tempo=77.0),
        make_song("ph1", "Portishead", "Roads", tempo=68.0, genre="trip hop"),
    ]
