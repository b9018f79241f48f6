"""
Blendrec Recommendation Engine
Blended multi-signal scoring of gathered candidates
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set

import numpy as np

from .candidates import CandidateGatherer
from .config import Settings
from .context import ScoringContext, build_scoring_context, time_bucket
from .diversity import enforce_diversity
from .dj_scoring import calculate_dj_score
from .weights import DEFAULT_WEIGHTS, ScoringWeights
from ..providers.base import DJAttributeResolver, DJAttributes, GenreHierarchy, HistorySignals, SeasonalPattern
from ..schemas.recommend import (
    BlendedMetadata,
    BlendedResult,
    Candidate,
    RecommendOptions,
    ScoredCandidate,
    SignalScores,
    SourceType,
)
from ..schemas.songs import Song
from ..utils.timing import Timer

logger = logging.getLogger(__name__)

NEUTRAL = 0.5
QUEUED_ARTIST_PENALTY = 0.3
TEMPORAL_GENRE_THRESHOLD = 0.5
TEMPORAL_ARTIST_FLOOR = 0.8


# =============================================================================
# Per-candidate signals
# =============================================================================

def temporal_fit(
    song: Song,
    pattern: Optional[SeasonalPattern],
    genres: Optional[GenreHierarchy]
) -> float:
    """
    Fit against the user's seasonal pattern.

    0.5 baseline; the first preferred genre with similarity > 0.5 lifts it to
    0.5 + s * 0.5; an exact preferred-artist match lifts it to at least 0.8.
    """
    score = NEUTRAL
    if pattern is None:
        return score

    if song.genre and genres is not None:
        for preferred in pattern.preferred_genres:
            similarity = genres.similarity(song.genre, preferred)
            if similarity > TEMPORAL_GENRE_THRESHOLD:
                score = min(1.0, NEUTRAL + similarity * 0.5)
                break

    if song.artist and song.artist in pattern.preferred_artists:
        score = max(score, TEMPORAL_ARTIST_FLOOR)

    return score


def score_candidate(
    candidate: Candidate,
    context: ScoringContext,
    weights: ScoringWeights,
    dj_score: Optional[float] = None,
    queued_artists: Optional[Set[str]] = None,
    genres: Optional[GenreHierarchy] = None
) -> ScoredCandidate:
    """
    Score one candidate. Reads nothing but its own inputs, so results do not
    depend on the other candidates.

    Args:
        candidate: gathered candidate
        context: shared scoring context
        weights: signal weights
        dj_score: DJ compatibility total (None -> neutral)
        queued_artists: lowercased artists already queued by the caller
        genres: genre hierarchy for the temporal signal

    Returns:
        ScoredCandidate
    """
    song = candidate.song

    library = candidate.source_of(SourceType.LIBRARY_SIMILARITY)
    if library is not None and library.match_score is not None:
        external_similarity = library.match_score
    else:
        external_similarity = NEUTRAL

    feedback = context.feedback.get(song.id)
    penalty = context.skip_penalties.get(song.id)

    scores = SignalScores(
        external_similarity=external_similarity,
        history_correlation=context.history_boosts.get(song.id, 0.0),
        dj_compatibility=dj_score if dj_score is not None else NEUTRAL,
        explicit_feedback=(feedback + 1) / 2 if feedback is not None else NEUTRAL,
        skip_avoidance=1 - penalty if penalty is not None else 1.0,
        temporal_fit=temporal_fit(song, context.seasonal_pattern, genres),
        diversity_vs_queue=(
            QUEUED_ARTIST_PENALTY if queued_artists and song.artist_key in queued_artists else 1.0
        ),
    )

    weight_map = weights.to_dict()
    final_score = sum(getattr(scores, name) * weight for name, weight in weight_map.items())

    return ScoredCandidate(
        song=song,
        sources=tuple(candidate.sources),
        scores=scores,
        final_score=final_score,
    )


def average_scores(items: List[ScoredCandidate]) -> Dict[str, float]:
    """Mean of every sub-score (and the final score) over items"""
    if not items:
        return {}
    names = list(SignalScores.model_fields)
    matrix = np.array([[getattr(item.scores, name) for name in names] for item in items], dtype=np.float64)
    means = matrix.mean(axis=0)
    averages = {name: float(value) for name, value in zip(names, means)}
    averages["final_score"] = float(np.mean([item.final_score for item in items]))
    return averages


def count_sources(candidates: Dict[str, Candidate]) -> Dict[str, int]:
    """Nominations per source over every gathered candidate"""
    counts: Dict[str, int] = {}
    for candidate in candidates.values():
        for entry in candidate.sources:
            counts[entry.source.value] = counts.get(entry.source.value, 0) + 1
    return counts


# =============================================================================
# Engine
# =============================================================================

class BlendedScorer:
    """
    Blended recommendation entry point.

    Pipeline:
    1. candidate gathering (sequential strategies)
    2. shared scoring context (concurrent lookups)
    3. optional DJ attribute enrichment
    4. per-candidate scoring, sort by final score
    5. diversity enforcement
    6. metadata
    """

    def __init__(
        self,
        gatherer: CandidateGatherer,
        history: Optional[HistorySignals] = None,
        dj_resolver: Optional[DJAttributeResolver] = None,
        genres: Optional[GenreHierarchy] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
        closers: Optional[List[Callable[[], Awaitable[None]]]] = None
    ):
        """
        Args:
            gatherer: candidate gatherer
            history: history/feedback signals (context lookups skipped if None)
            dj_resolver: DJ attribute resolver (song records used as-is if None)
            genres: genre hierarchy for temporal fit (defaults to the gatherer's)
            settings: limits and timeouts
            clock: returns the request time
            rng: random source for the head shuffle
            closers: cleanup coroutines for collaborators this scorer owns
        """
        self.gatherer = gatherer
        self.history = history
        self.dj_resolver = dj_resolver
        self.genres = genres if genres is not None else gatherer.genres
        self.settings = settings or gatherer.settings
        self.clock = clock
        self.rng = rng
        self._closers = list(closers or [])

    def _resolve_weights(self, options: RecommendOptions) -> ScoringWeights:
        if options.weights is None:
            return DEFAULT_WEIGHTS
        if isinstance(options.weights, ScoringWeights):
            return options.weights
        return DEFAULT_WEIGHTS.with_overrides(options.weights)

    async def _enrich(self, songs: List[Song]) -> Dict[str, DJAttributes]:
        """DJ attributes per song id; empty on failure"""
        if self.dj_resolver is None:
            return {
                s.id: DJAttributes(tempo=s.tempo, key=s.key, energy=s.energy)
                for s in songs
                if s.has_dj_attributes()
            }
        try:
            return await asyncio.wait_for(
                self.dj_resolver.resolve(songs),
                timeout=self.settings.ENRICH_TIMEOUT_SEC
            )
        except asyncio.TimeoutError:
            logger.warning(f"DJ enrichment timed out after {self.settings.ENRICH_TIMEOUT_SEC}s; using neutral DJ scores")
        except Exception as e:
            logger.warning(f"DJ enrichment failed; using neutral DJ scores: {e}")
        return {}

    async def _dj_scores(
        self,
        seed: Song,
        candidates: Dict[str, Candidate],
        options: RecommendOptions
    ) -> Dict[str, float]:
        matching = options.dj_matching
        if matching is None or not matching.enabled:
            return {}

        with Timer("DJ enrichment"):
            enriched = await self._enrich([seed] + [c.song for c in candidates.values()])

        seed_attrs = enriched.get(seed.id) or DJAttributes()
        dj_seed = seed.model_copy(update={
            "tempo": matching.current_tempo if matching.current_tempo is not None else (seed.tempo if seed.tempo is not None else seed_attrs.tempo),
            "key": matching.current_key or seed.key or seed_attrs.key,
            "energy": matching.current_energy if matching.current_energy is not None else (seed.energy if seed.energy is not None else seed_attrs.energy),
        })
        if not dj_seed.has_dj_attributes():
            logger.info("Seed has no DJ attributes; DJ compatibility stays neutral")
            return {}

        scores: Dict[str, float] = {}
        for song_id, candidate in candidates.items():
            attrs = enriched.get(song_id)
            if attrs is None:
                continue
            dj_song = candidate.song.model_copy(update={
                "tempo": attrs.tempo,
                "key": attrs.key,
                "energy": attrs.energy,
            })
            result = calculate_dj_score(dj_seed, dj_song, direction=matching.energy_direction)
            scores[song_id] = result.total_score
        return scores

    async def recommend(self, seed: Song, options: Optional[RecommendOptions] = None) -> BlendedResult:
        """
        Blended recommendation for a seed song.

        Args:
            seed: reference song (may carry DJ attributes)
            options: limit, exclusions, context, DJ matching, weight overrides

        Returns:
            BlendedResult; an empty song list (total_candidates=0) when nothing
            was gathered
        """
        options = options or RecommendOptions(limit=self.settings.DEFAULT_LIMIT)
        now = self.clock()

        with Timer("recommend") as total_timer:
            # 1) candidates
            with Timer("candidate gathering"):
                candidates = await self.gatherer.gather(seed, options)

            if not candidates:
                logger.info(f"No candidates for '{seed.artist} - {seed.title}'")
                return BlendedResult(
                    songs=[],
                    scored=[],
                    metadata=BlendedMetadata(
                        total_candidates=0,
                        time_bucket=time_bucket(now.hour),
                    )
                )

            # 2) shared context
            with Timer("scoring context"):
                context = await build_scoring_context(
                    self.history,
                    options.user_id,
                    list(candidates.keys()),
                    now,
                    timeout_sec=self.settings.LOOKUP_TIMEOUT_SEC
                )

            # 3) DJ enrichment
            dj_scores = await self._dj_scores(seed, candidates, options)

            # 4) score and sort
            weights = self._resolve_weights(options)
            queued_artists = set()
            if options.queue_context:
                queued_artists = {a.lower() for a in options.queue_context.artists if a}

            scored = [
                score_candidate(
                    candidate,
                    context,
                    weights,
                    dj_score=dj_scores.get(song_id),
                    queued_artists=queued_artists,
                    genres=self.genres
                )
                for song_id, candidate in candidates.items()
            ]
            scored.sort(key=lambda x: x.final_score, reverse=True)

            # 5) diversity
            final = enforce_diversity(
                scored,
                limit=options.limit,
                max_per_artist=options.max_per_artist or self.settings.MAX_PER_ARTIST,
                min_unique_artists=options.min_unique_artists or self.settings.MIN_UNIQUE_ARTISTS,
                shuffle_fraction=self.settings.SHUFFLE_FRACTION,
                rng=self.rng
            )

        # 6) metadata
        metadata = BlendedMetadata(
            total_candidates=len(candidates),
            source_counts=count_sources(candidates),
            avg_scores=average_scores(final),
            unique_artists=len({item.song.artist_key or "unknown" for item in final}),
            time_bucket=context.time_bucket,
            elapsed_ms=total_timer.elapsed_ms,
        )
        logger.info(
            f"Recommended {len(final)}/{len(candidates)} for '{seed.artist} - {seed.title}' "
            f"(sources={metadata.source_counts}, artists={metadata.unique_artists}, {metadata.elapsed_ms:.0f}ms)"
        )
        return BlendedResult(songs=[item.song for item in final], scored=final, metadata=metadata)

    async def aclose(self) -> None:
        """Close the collaborators this scorer owns (HTTP clients, Redis)"""
        closers, self._closers = self._closers, []
        for close in closers:
            try:
                await close()
            except Exception as e:
                logger.warning(f"Closing collaborator failed: {e}")
