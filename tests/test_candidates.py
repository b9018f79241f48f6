"""
Tests for CandidateGatherer

- strategy behavior (library similarity, same artist, similar artist, genre)
- merging and exclusions
- failure isolation
- sequential call ordering and spacing
- library-artist cache
"""

import asyncio

import pytest

from blendrec.core.cache import make_artist_cache_key
from blendrec.core.candidates import CandidateCollector, CandidateGatherer, build_target_genres
from blendrec.providers.base import SimilarArtist, SimilarTrack
from blendrec.schemas.recommend import CandidateSource, GatherOptions, QueueContext, SourceType

from doubles import FailingCatalogue, FailingSimilarity, FakeCatalogue, FakeSimilarity, make_song


def gather(gatherer, seed, options=None):
    return asyncio.run(gatherer.gather(seed, options))


class TestSameArtist:

    def test_caps_at_two_and_skips_seed_title(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        gatherer = CandidateGatherer(FakeCatalogue(radiohead_catalogue_songs), genres, settings=settings, sleep=sleep)

        candidates = gather(gatherer, seed)

        same_artist = [c for c in candidates.values() if c.source_of(SourceType.SAME_ARTIST)]
        assert len(same_artist) == 2
        assert "r1" not in candidates
        for candidate in same_artist:
            entry = candidate.source_of(SourceType.SAME_ARTIST)
            assert entry.weight == 0.8
            assert entry.match_score == 0.6

    def test_requires_exact_artist(self, genres, settings, sleep):
        seed = make_song("s1", "Air", "La Femme d'Argent")
        songs = [seed, make_song("x1", "Airbourne", "Runnin' Wild"), make_song("a2", "AIR", "Sexy Boy")]
        gatherer = CandidateGatherer(FakeCatalogue(songs), genres, settings=settings, sleep=sleep)

        candidates = gather(gatherer, seed)

        assert set(candidates) == {"a2"}


class TestLibrarySimilarity:

    def test_keeps_only_catalogue_tracks(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        similarity = FakeSimilarity(tracks=[
            SimilarTrack(artist="Thom Yorke", title="Black Swan", match_score=0.9),
            SimilarTrack(artist="Nobody", title="Not In Library", match_score=0.8),
        ])
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        entry = candidates["ty1"].source_of(SourceType.LIBRARY_SIMILARITY)
        assert entry.weight == 1.0
        assert entry.match_score == 0.9
        assert all(c.song.artist != "Nobody" for c in candidates.values())

    def test_missing_match_defaults_to_half(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        similarity = FakeSimilarity(tracks=[SimilarTrack(artist="Thom Yorke", title="Black Swan")])
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        assert candidates["ty1"].source_of(SourceType.LIBRARY_SIMILARITY).match_score == 0.5

    def test_library_id_resolves_exact_song(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        similarity = FakeSimilarity(tracks=[
            SimilarTrack(artist="Massive Attack", title="Teardrop", match_score=0.7, in_library=True, library_id="ma1"),
        ])
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        assert candidates["ma1"].source_of(SourceType.LIBRARY_SIMILARITY) is not None
        assert "ma2" not in candidates

    def test_library_id_tracks_bypass_lookup_budget(self, seed, genres, settings, sleep):
        songs = [make_song(f"s{i}", f"Artist {i}", f"Song {i}") for i in range(8)]
        similarity = FakeSimilarity(tracks=[
            SimilarTrack(artist=f"Artist {i}", title=f"Song {i}", match_score=0.9, in_library=True, library_id=f"s{i}")
            for i in range(8)
        ])
        gatherer = CandidateGatherer(
            FakeCatalogue(songs), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        library = [c for c in candidates.values() if c.source_of(SourceType.LIBRARY_SIMILARITY)]
        assert len(library) == 8

    def test_unidentified_tracks_capped_at_lookup_budget(self, seed, genres, settings, sleep):
        songs = [make_song(f"s{i}", f"Artist {i}", f"Song {i}") for i in range(8)]
        log = []
        similarity = FakeSimilarity(tracks=[
            SimilarTrack(artist=f"Artist {i}", title=f"Song {i}", match_score=0.9)
            for i in range(8)
        ])
        gatherer = CandidateGatherer(
            FakeCatalogue(songs, log), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        library = [c for c in candidates.values() if c.source_of(SourceType.LIBRARY_SIMILARITY)]
        assert sorted(c.song.id for c in library) == ["s0", "s1", "s2", "s3", "s4"]
        assert "search:Artist 5 Song 5" not in log


class TestSimilarArtists:

    def test_searches_top_three_and_matches_prefix(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        log = []
        similarity = FakeSimilarity(artists=[
            SimilarArtist(name="Massive Attack", match_score=0.8),
            SimilarArtist(name="Portishead", match_score=0.7),
            SimilarArtist(name="Unknown Band", match_score=0.6),
            SimilarArtist(name="Thom Yorke", match_score=0.5),
        ], log=log)
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs, log=log), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        assert candidates["ma1"].source_of(SourceType.SIMILAR_ARTIST).match_score == 0.8
        assert candidates["ma2"].source_of(SourceType.SIMILAR_ARTIST) is not None
        assert candidates["ph1"].source_of(SourceType.SIMILAR_ARTIST).weight == 0.7
        # fourth artist is beyond the search budget
        assert "search:Thom Yorke" not in log
        assert "ty1" not in candidates

    def test_cached_absent_artist_is_not_searched(self, seed, radiohead_catalogue_songs, genres, settings, sleep, artist_cache):
        log = []
        asyncio.run(artist_cache.set(make_artist_cache_key("Portishead"), False, 300))
        similarity = FakeSimilarity(artists=[
            SimilarArtist(name="Portishead", match_score=0.7),
            SimilarArtist(name="Unknown Band", match_score=0.6),
        ], log=log)
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs, log=log), genres,
            similarity=similarity, artist_cache=artist_cache, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        assert "search:Portishead" not in log
        assert "ph1" not in candidates
        assert asyncio.run(artist_cache.get(make_artist_cache_key("Unknown Band"))) is False

    def test_found_artist_is_cached_present(self, seed, radiohead_catalogue_songs, genres, settings, sleep, artist_cache):
        similarity = FakeSimilarity(artists=[SimilarArtist(name="Massive Attack", match_score=0.8)])
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs), genres,
            similarity=similarity, artist_cache=artist_cache, settings=settings, sleep=sleep
        )

        gather(gatherer, seed)

        assert asyncio.run(artist_cache.get("lib-artist:massive attack")) is True


class TestGenreMatch:

    def test_ranks_pool_by_genre_similarity(self, genres, settings, sleep):
        seed = make_song("s1", "Seed Artist", "Seed", genre="indie rock")
        songs = [
            make_song("g1", "A", "Exact", genre="Indie Rock"),
            make_song("g2", "B", "Parent", genre="rock"),
            make_song("g3", "C", "Sibling", genre="grunge"),
            make_song("g4", "D", "Unrelated", genre="smooth jazz"),
            make_song("g5", "E", "No Genre"),
        ]
        gatherer = CandidateGatherer(FakeCatalogue(songs), genres, settings=settings, sleep=sleep)

        candidates = gather(gatherer, seed)

        assert set(candidates) == {"g1", "g2", "g3"}
        assert candidates["g1"].source_of(SourceType.GENRE_MATCH).match_score == 1.0
        assert candidates["g2"].source_of(SourceType.GENRE_MATCH).match_score == pytest.approx(0.8)
        assert candidates["g3"].source_of(SourceType.GENRE_MATCH).match_score == pytest.approx(0.6)
        assert candidates["g1"].source_of(SourceType.GENRE_MATCH).weight == 0.6

    def test_pool_size_has_floor(self, genres, settings, sleep):
        log = []
        seed = make_song("s1", "Seed Artist", "Seed", genre="rock")
        gatherer = CandidateGatherer(FakeCatalogue([], log=log), genres, settings=settings, sleep=sleep)

        gather(gatherer, seed)

        assert "random_songs:100" in log

    def test_target_genres_queue_first_then_seed(self, genres):
        targets = build_target_genres(genres, "Trip Hop", ["Hip-Hop", "rap", "jazz", "folk", "metal", "pop", "soul"])

        # "rap" normalizes to "hip hop"; only the first five queue genres count
        assert targets == ["hip hop", "jazz", "folk", "metal", "trip hop"]


class TestMergingAndExclusion:

    def test_repeat_nomination_appends_source(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        similarity = FakeSimilarity(tracks=[SimilarTrack(artist="Radiohead", title="No Surprises", match_score=0.7)])
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        sources = [entry.source for entry in candidates["r2"].sources]
        assert sources == [SourceType.LIBRARY_SIMILARITY, SourceType.SAME_ARTIST]

    def test_first_seen_song_record_wins(self):
        collector = CandidateCollector()
        first = make_song("x", "Artist", "Original Title")
        second = make_song("x", "Artist", "Other Title")
        source = CandidateSource(source=SourceType.GENRE_MATCH, weight=0.6, match_score=0.5)

        collector.add(first, source)
        collector.add(second, source)

        assert collector.candidates["x"].song.title == "Original Title"
        assert len(collector.candidates["x"].sources) == 2

    def test_excluded_ids_case_insensitive(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        gatherer = CandidateGatherer(FakeCatalogue(radiohead_catalogue_songs), genres, settings=settings, sleep=sleep)

        candidates = gather(gatherer, seed, GatherOptions(exclude_song_ids=["R2"]))

        assert "r2" not in candidates
        assert {"r3", "r4"} <= set(candidates)

    def test_excluded_artist_substring(self, genres, settings, sleep):
        seed = make_song("s1", "Seed", "Seed", genre="trip hop")
        songs = [
            make_song("ma1", "Massive Attack", "Teardrop", genre="trip hop"),
            make_song("ma2", "Massive Attack feat. Liz Fraser", "Live", genre="trip hop"),
            make_song("ph1", "Portishead", "Roads", genre="trip hop"),
        ]
        gatherer = CandidateGatherer(FakeCatalogue(songs), genres, settings=settings, sleep=sleep)

        candidates = gather(gatherer, seed, GatherOptions(exclude_artists=["massive"]))

        assert set(candidates) == {"ph1"}

    def test_queue_context_genres_drive_genre_strategy(self, genres, settings, sleep):
        seed = make_song("s1", "Seed", "Seed")
        songs = [make_song("j1", "Miles", "So What", genre="jazz")]
        gatherer = CandidateGatherer(FakeCatalogue(songs), genres, settings=settings, sleep=sleep)

        candidates = gather(gatherer, seed, GatherOptions(queue_context=QueueContext(genres=["Jazz"])))

        assert "j1" in candidates


class TestFailureIsolation:

    def test_all_strategies_failing_yields_empty(self, seed, genres, settings, sleep):
        seed = seed.model_copy(update={"genre": "rock"})
        gatherer = CandidateGatherer(
            FailingCatalogue(), genres,
            similarity=FailingSimilarity(), settings=settings, sleep=sleep
        )

        assert gather(gatherer, seed) == {}

    def test_failing_similarity_keeps_catalogue_strategies(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs), genres,
            similarity=FailingSimilarity(), settings=settings, sleep=sleep
        )

        candidates = gather(gatherer, seed)

        assert len(candidates) == 2
        assert all(c.source_of(SourceType.SAME_ARTIST) for c in candidates.values())

    def test_no_similarity_provider_skips_external_strategies(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        log = []
        gatherer = CandidateGatherer(FakeCatalogue(radiohead_catalogue_songs, log=log), genres, settings=settings, sleep=sleep)

        gather(gatherer, seed)

        assert log == ["search:Radiohead"]


class TestSequentialCalls:

    def test_calls_follow_strategy_order_with_spacing(self, seed, radiohead_catalogue_songs, genres, settings, sleep):
        log = []
        seed = seed.model_copy(update={"genre": "alternative rock"})
        similarity = FakeSimilarity(
            tracks=[SimilarTrack(artist="Thom Yorke", title="Black Swan", match_score=0.9)],
            artists=[SimilarArtist(name="Portishead", match_score=0.7)],
            log=log,
        )
        gatherer = CandidateGatherer(
            FakeCatalogue(radiohead_catalogue_songs, log=log), genres,
            similarity=similarity, settings=settings, sleep=sleep
        )

        gather(gatherer, seed)

        assert log == [
            "similar_tracks",
            "search:Thom Yorke Black Swan",
            "search:Radiohead",
            "similar_artists",
            "search:Portishead",
            "random_songs:100",
        ]
        assert sleep.delays == [pytest.approx(0.1)] * (len(log) - 1)
