"""
Blendrec Candidate Gathering
Runs the sourcing strategies in priority order and merges their nominations
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from .cache import TTLCache, make_artist_cache_key
from .config import Settings
from .task_queue import SerialTaskQueue
from ..providers.base import CatalogueProvider, GenreHierarchy, SimilarityProvider, SimilarTrack
from ..schemas.recommend import Candidate, CandidateSource, GatherOptions, SourceType
from ..schemas.songs import Song

logger = logging.getLogger(__name__)

# Source confidence weights
SOURCE_WEIGHTS: Dict[SourceType, float] = {
    SourceType.LIBRARY_SIMILARITY: 1.0,
    SourceType.SAME_ARTIST: 0.8,
    SourceType.SIMILAR_ARTIST: 0.7,
    SourceType.GENRE_MATCH: 0.6,
}

SAME_ARTIST_MATCH_SCORE = 0.6
DEFAULT_MATCH_SCORE = 0.5
MAX_QUEUE_GENRES = 5


class CandidateCollector:
    """
    Merges nominations keyed by song id.

    The first song record seen for an id is kept; later nominations only
    append their source. Exclusions are applied before insertion.
    """

    def __init__(
        self,
        exclude_song_ids: Sequence[str] = (),
        exclude_artists: Sequence[str] = ()
    ):
        self.candidates: Dict[str, Candidate] = {}
        self._excluded_ids = {sid.lower() for sid in exclude_song_ids if sid}
        self._excluded_artists = [a.lower() for a in exclude_artists if a]

    def is_excluded_artist(self, artist: Optional[str]) -> bool:
        if not artist:
            return False
        artist_lower = artist.lower()
        return any(excluded in artist_lower for excluded in self._excluded_artists)

    def add(self, song: Song, source: CandidateSource) -> bool:
        """Returns True if the song was newly inserted or gained a source"""
        if not song.id or song.id.lower() in self._excluded_ids:
            return False
        if self.is_excluded_artist(song.artist):
            return False

        existing = self.candidates.get(song.id)
        if existing is not None:
            existing.sources.append(source)
        else:
            self.candidates[song.id] = Candidate(song=song, sources=[source])
        return True


def _loose_match(song: Song, artist: str, title: str) -> bool:
    """Case-insensitive containment match in either direction"""
    song_artist = (song.artist or "").lower()
    song_title = (song.title or "").lower()
    artist, title = artist.lower(), title.lower()
    if not song_artist or not song_title:
        return False
    artist_match = artist in song_artist or song_artist in artist
    title_match = title in song_title or song_title in title
    return artist_match and title_match


def build_target_genres(
    genres: GenreHierarchy,
    seed_genre: Optional[str],
    queue_genres: Optional[Sequence[str]]
) -> List[str]:
    """Queue-context genres first (up to 5), then the seed's own genre"""
    targets: List[str] = []
    for genre in (queue_genres or [])[:MAX_QUEUE_GENRES]:
        normalized = genres.normalize(genre)
        if normalized and normalized not in targets:
            targets.append(normalized)
    if seed_genre:
        normalized = genres.normalize(seed_genre)
        if normalized and normalized not in targets:
            targets.append(normalized)
    return targets


class CandidateGatherer:
    """
    Gathers next-song candidates for a seed.

    Strategies (fixed priority order, each best-effort):
        1. library similarity  - similar tracks that exist in the catalogue
        2. same artist         - up to 2 other songs by the seed artist
        3. similar artist      - songs by the top 3 similar artists
        4. genre match         - random catalogue pool ranked by genre similarity

    All external calls go through one SerialTaskQueue per run, so they never
    overlap and are spaced by SEARCH_THROTTLE_MS.
    """

    def __init__(
        self,
        catalogue: CatalogueProvider,
        genres: GenreHierarchy,
        similarity: Optional[SimilarityProvider] = None,
        artist_cache: Optional[TTLCache] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep
    ):
        """
        Args:
            catalogue: local library search
            genres: genre normalization and similarity
            similarity: external similarity service (strategies 1 and 3 are skipped without it)
            artist_cache: library-artist presence cache
            settings: limits, throttle and timeouts
            sleep: awaitable used for spacing between calls
        """
        self.catalogue = catalogue
        self.genres = genres
        self.similarity = similarity
        self.artist_cache = artist_cache
        self.settings = settings or Settings()
        self._sleep = sleep

    def _new_queue(self) -> SerialTaskQueue:
        return SerialTaskQueue(
            spacing_sec=self.settings.SEARCH_THROTTLE_MS / 1000.0,
            call_timeout_sec=self.settings.CALL_TIMEOUT_SEC,
            sleep=self._sleep
        )

    async def gather(self, seed: Song, options: Optional[GatherOptions] = None) -> Dict[str, Candidate]:
        """
        Run every strategy and merge their nominations.

        Args:
            seed: reference song
            options: exclusions and queue context

        Returns:
            {song_id: Candidate}; never raises for collaborator failures
        """
        options = options or GatherOptions()
        exclude_ids = list(options.exclude_song_ids)
        if seed.id:
            exclude_ids.append(seed.id)
        collector = CandidateCollector(exclude_ids, options.exclude_artists)
        queue_genres = options.queue_context.genres if options.queue_context else None

        strategies = [
            ("library similarity", lambda q: self._gather_library_similarity(q, seed, collector)),
            ("same artist", lambda q: self._gather_same_artist(q, seed, collector)),
            ("similar artists", lambda q: self._gather_similar_artists(q, seed, collector)),
            ("genre match", lambda q: self._gather_genre_based(q, seed, queue_genres, collector)),
        ]

        async with self._new_queue() as queue:
            for name, strategy in strategies:
                try:
                    count = await strategy(queue)
                    logger.info(f"Strategy '{name}': {count} candidates")
                except Exception as e:
                    logger.warning(f"Strategy '{name}' failed, contributing no candidates: {e}")

        logger.info(f"Gathered {len(collector.candidates)} unique candidates for '{seed.artist} - {seed.title}'")
        return collector.candidates

    # =========================================================================
    # Strategies
    # =========================================================================

    async def _gather_library_similarity(
        self,
        queue: SerialTaskQueue,
        seed: Song,
        collector: CandidateCollector
    ) -> int:
        if self.similarity is None:
            return 0

        similar: List[SimilarTrack] = await queue.run(
            lambda: self.similarity.similar_tracks(seed.artist, seed.title, self.settings.LIBRARY_SIMILARITY_LIMIT),
            default=[],
            label="similar_tracks"
        )
        if not similar:
            return 0

        # known library items first; only tracks without a library id use the lookup budget
        ordered = sorted(similar, key=lambda t: not t.in_library)
        count = 0
        lookups = 0
        for track in ordered:
            if not track.library_id:
                if lookups >= self.settings.LIBRARY_SIMILARITY_LOOKUPS:
                    continue
                lookups += 1
            query = f"{track.artist} {track.title}"
            results: List[Song] = await queue.run(
                lambda: self.catalogue.search(query, 0, 3),
                default=[],
                label=f"search '{query}'"
            )
            match = None
            if track.library_id:
                match = next((s for s in results if s.id == track.library_id), None)
            if match is None:
                match = next((s for s in results if _loose_match(s, track.artist, track.title)), None)
            if match is None:
                continue

            match_score = track.match_score if track.match_score is not None else DEFAULT_MATCH_SCORE
            if collector.add(match, CandidateSource(
                source=SourceType.LIBRARY_SIMILARITY,
                weight=SOURCE_WEIGHTS[SourceType.LIBRARY_SIMILARITY],
                match_score=match_score
            )):
                count += 1

        logger.debug(f"Library similarity: {count} library matches from {len(similar)} similar tracks")
        return count

    async def _gather_same_artist(
        self,
        queue: SerialTaskQueue,
        seed: Song,
        collector: CandidateCollector
    ) -> int:
        if not seed.artist:
            return 0

        songs: List[Song] = await queue.run(
            lambda: self.catalogue.search(seed.artist, 0, 20),
            default=[],
            label=f"search artist '{seed.artist}'"
        )
        artist_lower = seed.artist.lower()
        title_lower = (seed.title or "").lower()

        count = 0
        for song in songs:
            if count >= self.settings.SAME_ARTIST_LIMIT:
                break
            if song.artist_key != artist_lower or (song.title or "").lower() == title_lower:
                continue
            if collector.add(song, CandidateSource(
                source=SourceType.SAME_ARTIST,
                weight=SOURCE_WEIGHTS[SourceType.SAME_ARTIST],
                match_score=SAME_ARTIST_MATCH_SCORE
            )):
                count += 1
        return count

    async def _gather_similar_artists(
        self,
        queue: SerialTaskQueue,
        seed: Song,
        collector: CandidateCollector
    ) -> int:
        if self.similarity is None or not seed.artist:
            return 0

        similar = await queue.run(
            lambda: self.similarity.similar_artists(seed.artist, self.settings.SIMILAR_ARTIST_FETCH),
            default=[],
            label="similar_artists"
        )
        artists = [a for a in similar if not collector.is_excluded_artist(a.name)]
        artists = artists[:self.settings.SIMILAR_ARTIST_SEARCHES]

        total = 0
        for artist in artists:
            if total >= self.settings.SIMILAR_ARTIST_LIMIT:
                break

            cache_key = make_artist_cache_key(artist.name)
            if self.artist_cache is not None and await self.artist_cache.get(cache_key) is False:
                logger.debug(f"Skipping '{artist.name}': cached as not in library")
                continue

            songs: Optional[List[Song]] = await queue.run(
                lambda: self.catalogue.search(artist.name, 0, 3),
                default=None,
                label=f"search artist '{artist.name}'"
            )
            if songs is None:
                continue

            name_lower = artist.name.lower()
            matching = [
                s for s in songs
                if s.artist_key == name_lower or s.artist_key.startswith(name_lower)
            ]
            if self.artist_cache is not None:
                await self.artist_cache.set(cache_key, bool(matching), self.settings.ARTIST_CACHE_TTL_SEC)

            match_score = artist.match_score if artist.match_score is not None else DEFAULT_MATCH_SCORE
            for song in matching:
                if total >= self.settings.SIMILAR_ARTIST_LIMIT:
                    break
                if collector.add(song, CandidateSource(
                    source=SourceType.SIMILAR_ARTIST,
                    weight=SOURCE_WEIGHTS[SourceType.SIMILAR_ARTIST],
                    match_score=match_score
                )):
                    total += 1

        logger.debug(f"Similar artists: {total} songs from {len(artists)} artists")
        return total

    async def _gather_genre_based(
        self,
        queue: SerialTaskQueue,
        seed: Song,
        queue_genres: Optional[Sequence[str]],
        collector: CandidateCollector
    ) -> int:
        targets = build_target_genres(self.genres, seed.genre, queue_genres)
        if not targets:
            return 0

        pool_size = max(self.settings.GENRE_LIMIT * 10, self.settings.GENRE_POOL_FLOOR)
        pool: List[Song] = await queue.run(
            lambda: self.catalogue.random_songs(pool_size),
            default=[],
            label=f"random_songs({pool_size})"
        )

        scored = []
        for song in pool:
            if collector.is_excluded_artist(song.artist):
                continue
            song_genre = self.genres.normalize(song.genre or "")
            if not song_genre:
                continue
            best = max(self.genres.similarity(song_genre, target) for target in targets)
            if best >= self.settings.GENRE_MIN_SIMILARITY:
                scored.append((song, best))

        scored.sort(key=lambda x: x[1], reverse=True)

        count = 0
        for song, score in scored[:self.settings.GENRE_LIMIT]:
            if collector.add(song, CandidateSource(
                source=SourceType.GENRE_MATCH,
                weight=SOURCE_WEIGHTS[SourceType.GENRE_MATCH],
                match_score=min(1.0, score)
            )):
                count += 1

        logger.debug(f"Genre match: {count} songs for genres {targets[:3]}")
        return count
