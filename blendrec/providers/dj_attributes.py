"""
Blendrec DJ Attribute Resolver
Tempo / key / energy lookup with genre- and tempo-based energy estimation
"""

import logging
import re
from typing import Dict, Optional, Sequence

from .base import DJAttributes
from ..core.cache import TTLCache
from ..schemas.songs import Song

logger = logging.getLogger(__name__)

GENRE_ENERGY: Dict[str, float] = {
    # high
    "metal": 0.95, "death metal": 0.95, "black metal": 0.92, "thrash metal": 0.93,
    "metalcore": 0.90, "hardcore": 0.95, "dubstep": 0.90, "drum and bass": 0.88,
    "dnb": 0.88, "jungle": 0.85, "punk": 0.88, "punk rock": 0.85, "hardcore punk": 0.92,
    # medium-high
    "rock": 0.75, "hard rock": 0.80, "alternative rock": 0.72, "grunge": 0.75,
    "electronic": 0.78, "edm": 0.82, "house": 0.78, "techno": 0.80, "trance": 0.82,
    "hip hop": 0.72, "rap": 0.75, "trap": 0.78, "grime": 0.80, "dancehall": 0.75,
    "reggaeton": 0.78, "funk": 0.72, "disco": 0.75, "ska": 0.75,
    # medium
    "pop": 0.65, "synth pop": 0.65, "dance": 0.70, "indie rock": 0.62, "indie": 0.60,
    "alternative": 0.60, "r&b": 0.58, "rnb": 0.58, "soul": 0.55, "neo soul": 0.52,
    "country": 0.55, "world": 0.55, "latin": 0.62, "reggae": 0.50, "dub": 0.48,
    # medium-low
    "folk": 0.42, "folk rock": 0.48, "singer songwriter": 0.40, "acoustic": 0.38,
    "blues": 0.45, "jazz": 0.45, "smooth jazz": 0.35, "bossa nova": 0.35,
    "trip hop": 0.42, "downtempo": 0.38, "chill": 0.35, "chillout": 0.35, "lo fi": 0.35,
    # low
    "ambient": 0.20, "new age": 0.22, "classical": 0.40, "baroque": 0.35,
    "drone": 0.18, "dark ambient": 0.22, "soundtrack": 0.45,
}

_SEPARATOR_RE = re.compile(r"[/\-_]")
_SPACE_RE = re.compile(r"\s+")
_STRIP_RE = re.compile(r"[^a-z0-9\s&]")


def _normalize(genre: str) -> str:
    text = _SEPARATOR_RE.sub(" ", genre.lower().strip())
    return _STRIP_RE.sub("", _SPACE_RE.sub(" ", text)).strip()


def genre_energy(genre: Optional[str]) -> Optional[float]:
    """Exact table hit, else the longest table genre contained in (or containing) it"""
    if not genre:
        return None
    normalized = _normalize(genre)
    if not normalized:
        return None
    if normalized in GENRE_ENERGY:
        return GENRE_ENERGY[normalized]

    best = None
    for known, energy in GENRE_ENERGY.items():
        if known in normalized or normalized in known:
            if best is None or len(known) > len(best[0]):
                best = (known, energy)
    return best[1] if best else None


def bpm_energy_adjustment(bpm: float) -> float:
    if bpm <= 60:
        return -0.15
    if bpm <= 80:
        return -0.08
    if bpm <= 100:
        return -0.03
    if bpm <= 120:
        return 0.0
    if bpm <= 140:
        return 0.05
    if bpm <= 160:
        return 0.10
    if bpm <= 180:
        return 0.15
    return 0.20


def bpm_energy(bpm: float) -> float:
    """Energy band for songs with a tempo but no usable genre"""
    if bpm <= 70:
        return 0.35
    if bpm <= 90:
        return 0.45
    if bpm <= 110:
        return 0.55
    if bpm <= 130:
        return 0.65
    if bpm <= 150:
        return 0.75
    if bpm <= 170:
        return 0.85
    return 0.90


def estimate_energy(genre: Optional[str], bpm: Optional[float]) -> Optional[float]:
    """
    Estimate energy (0-1) from genre and tempo.

    Args:
        genre: song genre tag
        bpm: song tempo

    Returns:
        rounded estimate, or None when neither hint is usable
    """
    base = genre_energy(genre)
    has_bpm = bpm is not None and bpm > 0

    if base is not None:
        energy = base + (bpm_energy_adjustment(bpm) if has_bpm else 0.0)
    elif has_bpm:
        energy = bpm_energy(bpm)
    else:
        return None

    return round(max(0.0, min(1.0, energy)), 2)


def make_dj_cache_key(song_id: str) -> str:
    return f"dj-attrs:{song_id}"


class EstimatingDJAttributeResolver:
    """
    DJAttributeResolver over song records.

    Resolution order per attribute: the song's own value, then a cached
    record. Energy alone may be estimated; tempo and key stay None when
    unknown.
    """

    def __init__(self, cache: Optional[TTLCache] = None, cache_ttl_sec: int = 3600):
        self.cache = cache
        self.cache_ttl_sec = cache_ttl_sec

    async def _cached(self, song_id: str) -> Optional[DJAttributes]:
        if self.cache is None:
            return None
        data = await self.cache.get(make_dj_cache_key(song_id))
        if not data:
            return None
        return DJAttributes(**data)

    async def resolve(self, songs: Sequence[Song]) -> Dict[str, DJAttributes]:
        resolved: Dict[str, DJAttributes] = {}
        estimated_count = 0

        for song in songs:
            tempo, key, energy = song.tempo, song.key, song.energy

            if tempo is None or key is None or energy is None:
                cached = await self._cached(song.id)
                if cached is not None:
                    tempo = tempo if tempo is not None else cached.tempo
                    key = key if key is not None else cached.key
                    energy = energy if energy is not None else cached.energy

            estimated = False
            if energy is None:
                energy = estimate_energy(song.genre, tempo)
                estimated = energy is not None
                estimated_count += int(estimated)

            attrs = DJAttributes(tempo=tempo, key=key, energy=energy, estimated=estimated)
            resolved[song.id] = attrs

            if self.cache is not None and not estimated and (tempo is not None or key is not None or energy is not None):
                await self.cache.set(make_dj_cache_key(song.id), attrs.model_dump(), self.cache_ttl_sec)

        logger.debug(f"DJ attributes resolved for {len(resolved)} songs ({estimated_count} estimated energy)")
        return resolved
