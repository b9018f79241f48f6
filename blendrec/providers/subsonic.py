"""
Blendrec Subsonic Adapter
CatalogueProvider for Subsonic-compatible servers (Navidrome, Airsonic, ...)
"""

import hashlib
import logging
import secrets
from typing import Any, Dict, List, Optional

import httpx

from ..core.errors import ProviderError
from ..schemas.songs import Song

logger = logging.getLogger(__name__)

API_VERSION = "1.16.1"
CLIENT_NAME = "blendrec"
MAX_RANDOM_SONGS = 500


def make_auth_params(user: str, password: str, salt: Optional[str] = None) -> Dict[str, str]:
    """
    Subsonic token auth: t = md5(password + salt)

    Args:
        user: account name
        password: plain password
        salt: random salt (generated when omitted)

    Returns:
        query parameters u / t / s / v / c / f
    """
    salt = salt or secrets.token_hex(6)
    token = hashlib.md5((password + salt).encode("utf-8")).hexdigest()
    return {"u": user, "t": token, "s": salt, "v": API_VERSION, "c": CLIENT_NAME, "f": "json"}


def song_from_subsonic(entry: Dict[str, Any]) -> Song:
    """Map a Subsonic child entry onto Song; bpm 0 means unknown"""
    bpm = entry.get("bpm")
    return Song(
        id=str(entry["id"]),
        title=entry.get("title") or "",
        artist=entry.get("artist") or "",
        genre=entry.get("genre"),
        album=entry.get("album"),
        duration=entry.get("duration"),
        tempo=float(bpm) if bpm else None,
    )


class SubsonicCatalogue:
    """Async catalogue search over the Subsonic REST API"""

    def __init__(
        self,
        base_url: str,
        user: str,
        password: str,
        timeout_sec: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            base_url: server root, e.g. http://localhost:4533
            user: account name
            password: account password
            timeout_sec: HTTP timeout
            client: shared AsyncClient (owned by the caller)
            transport: transport for an internally created client (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.user = user
        self.password = password
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_sec, transport=transport)

    async def _request(self, endpoint: str, **params: Any) -> Dict:
        query = make_auth_params(self.user, self.password)
        query.update({k: str(v) for k, v in params.items()})
        url = f"{self.base_url}/rest/{endpoint}"

        try:
            response = await self._client.get(url, params=query)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"Subsonic request failed ({endpoint}): {e}", code="NETWORK_ERROR") from e
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from Subsonic ({endpoint}): {e}", code="INVALID_RESPONSE") from e

        body = data.get("subsonic-response") or {}
        if body.get("status") != "ok":
            error = body.get("error") or {}
            raise ProviderError(
                f"Subsonic error {error.get('code')}: {error.get('message', 'unknown error')}",
                code="API_ERROR"
            )
        return body

    async def search(self, query: str, offset: int = 0, limit: int = 20) -> List[Song]:
        body = await self._request(
            "search3",
            query=query,
            songCount=limit,
            songOffset=offset,
            artistCount=0,
            albumCount=0
        )
        entries = (body.get("searchResult3") or {}).get("song") or []
        return [song_from_subsonic(e) for e in entries]

    async def random_songs(self, count: int) -> List[Song]:
        size = min(count, MAX_RANDOM_SONGS)
        body = await self._request("getRandomSongs", size=size)
        entries = (body.get("randomSongs") or {}).get("song") or []
        logger.debug(f"Random pool: {len(entries)} songs (requested {count})")
        return [song_from_subsonic(e) for e in entries]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
