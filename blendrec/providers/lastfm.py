"""
Blendrec Last.fm Adapter
SimilarityProvider backed by the Last.fm web API
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .base import SimilarArtist, SimilarTrack
from ..core.errors import ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)

LASTFM_BASE_URL = "https://ws.audioscrobbler.com/2.0/"
SERVER_ERROR_BACKOFF_SEC = 60.0
DEFAULT_RETRY_AFTER_SEC = 60.0

# Last.fm API error number -> our code
_API_ERROR_CODES = {
    6: "NOT_FOUND",
    10: "INVALID_API_KEY",
    11: "SERVICE_UNAVAILABLE",
    16: "SERVICE_UNAVAILABLE",
    26: "INVALID_API_KEY",
    29: "RATE_LIMITED",
}


class LastFmError(ProviderError):
    """Error payload returned by the Last.fm API"""

    def __init__(self, message: str, code: str = "INVALID_RESPONSE", api_error: Optional[int] = None):
        super().__init__(message, code=code)
        self.api_error = api_error


class TokenBucket:
    """Token-bucket limiter; acquire() waits until a token is available"""

    def __init__(
        self,
        rate_per_sec: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.rate = rate_per_sec
        self.capacity = rate_per_sec
        self.tokens = rate_per_sec
        self._clock = clock
        self._sleep = sleep
        self._last_refill = clock()

    async def acquire(self) -> None:
        now = self._clock()
        self.tokens = min(self.capacity, self.tokens + (now - self._last_refill) * self.rate)
        self._last_refill = now

        if self.tokens < 1:
            await self._sleep((1 - self.tokens) / self.rate)
            self.tokens = 1
            self._last_refill = self._clock()

        self.tokens -= 1


def _match(value: Any) -> Optional[float]:
    """Last.fm sends match as a string in [0, 1]"""
    if value is None:
        return None
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return None


def _artist_name(artist: Any) -> str:
    # string on some endpoints, {"name": ...} on others
    if isinstance(artist, dict):
        return artist.get("name") or artist.get("#text") or ""
    return artist or ""


def _as_list(value: Any) -> List[Dict]:
    # single results arrive as a bare object
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return list(value)


class LastFmSimilarityProvider:
    """
    Async Last.fm client for track/artist similarity.

    A 429 response marks the service unavailable for the Retry-After window
    and a 5xx for SERVER_ERROR_BACKOFF_SEC; while unavailable, calls raise
    ProviderUnavailable without touching the network.
    """

    def __init__(
        self,
        api_key: str,
        max_rps: float = 5.0,
        timeout_sec: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Args:
            api_key: Last.fm API key
            max_rps: request ceiling (token bucket)
            timeout_sec: HTTP timeout
            client: shared AsyncClient (owned by the caller)
            transport: transport for an internally created client (tests)
            clock: monotonic clock
            sleep: awaitable used by the rate limiter
        """
        if not api_key:
            raise ValueError("Last.fm API key is required")
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_sec, transport=transport)
        self._clock = clock
        self._limiter = TokenBucket(max_rps, clock=clock, sleep=sleep)
        self._unavailable_until = 0.0

    def is_available(self) -> bool:
        return self._clock() >= self._unavailable_until

    def _mark_unavailable(self, seconds: float) -> None:
        self._unavailable_until = self._clock() + seconds
        logger.warning(f"Last.fm marked unavailable for {seconds:.0f}s")

    async def _request(self, method: str, **params: Any) -> Dict:
        if not self.is_available():
            raise ProviderUnavailable(
                "Last.fm service is temporarily unavailable",
                retry_after_sec=self._unavailable_until - self._clock()
            )

        await self._limiter.acquire()

        query = {"method": method, "api_key": self.api_key, "format": "json"}
        query.update({k: str(v) for k, v in params.items()})

        try:
            response = await self._client.get(LASTFM_BASE_URL, params=query)
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to connect to Last.fm: {e}", code="NETWORK_ERROR") from e

        if response.status_code == 429:
            try:
                retry_after = float(response.headers.get("Retry-After", DEFAULT_RETRY_AFTER_SEC))
            except ValueError:
                retry_after = DEFAULT_RETRY_AFTER_SEC
            self._mark_unavailable(retry_after)
            raise ProviderUnavailable("Last.fm rate limit exceeded", retry_after_sec=retry_after)
        if response.status_code >= 500:
            self._mark_unavailable(SERVER_ERROR_BACKOFF_SEC)
            raise ProviderUnavailable(
                f"Last.fm server error: {response.status_code}",
                retry_after_sec=SERVER_ERROR_BACKOFF_SEC
            )
        if response.status_code >= 400:
            raise ProviderError(f"Last.fm HTTP {response.status_code}", code="NETWORK_ERROR")

        try:
            data = response.json()
        except ValueError as e:
            raise LastFmError(f"Invalid JSON from Last.fm: {e}") from e

        if isinstance(data, dict) and data.get("error"):
            api_error = int(data["error"])
            raise LastFmError(
                data.get("message") or "Unknown Last.fm API error",
                code=_API_ERROR_CODES.get(api_error, "INVALID_RESPONSE"),
                api_error=api_error
            )
        return data

    # =========================================================================
    # SimilarityProvider
    # =========================================================================

    async def similar_tracks(self, artist: str, title: str, limit: int = 20) -> List[SimilarTrack]:
        data = await self._request("track.getsimilar", artist=artist, track=title, limit=limit, autocorrect=1)
        tracks = _as_list((data.get("similartracks") or {}).get("track"))
        return [
            SimilarTrack(
                artist=_artist_name(t.get("artist")),
                title=t.get("name", ""),
                match_score=_match(t.get("match"))
            )
            for t in tracks
            if t.get("name")
        ]

    async def similar_artists(self, artist: str, limit: int = 20) -> List[SimilarArtist]:
        data = await self._request("artist.getsimilar", artist=artist, limit=limit, autocorrect=1)
        artists = _as_list((data.get("similarartists") or {}).get("artist"))
        return [
            SimilarArtist(name=a["name"], match_score=_match(a.get("match")))
            for a in artists
            if a.get("name")
        ]

    async def top_tracks_for_artist(self, artist: str, limit: int = 10) -> List[SimilarTrack]:
        data = await self._request("artist.gettoptracks", artist=artist, limit=limit, autocorrect=1)
        tracks = _as_list((data.get("toptracks") or {}).get("track"))
        return [
            SimilarTrack(artist=_artist_name(t.get("artist")) or artist, title=t.get("name", ""))
            for t in tracks
            if t.get("name")
        ]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
