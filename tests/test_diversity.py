"""
Tests for diversity enforcement (hard-cut, second pass, head shuffle)
"""

import random

from blendrec.core.diversity import apply_artist_hardcut, enforce_diversity, promote_distinct_artists, shuffle_head

from doubles import make_scored


def ranked_list(artists):
    """Score-descending list; ids are '<artist><index>'."""
    n = len(artists)
    return [make_scored(f"{a}{i}", a, 1.0 - i / (n + 1)) for i, a in enumerate(artists)]


class TestHardcut:

    def test_single_artist_input_yields_one_item(self):
        ranked = ranked_list(["Radiohead"] * 10)

        result = enforce_diversity(ranked, limit=5, max_per_artist=1, rng=random.Random(0))

        assert len(result) == 1
        assert result[0].song.artist == "Radiohead"

    def test_artist_match_is_case_insensitive(self):
        ranked = ranked_list(["Bjork", "BJORK", "bjork", "Moby"])

        result = apply_artist_hardcut(ranked, limit=5, max_per_artist=1)

        assert [item.song.id for item in result] == ["Bjork0", "Moby3"]

    def test_never_two_same_artist_when_enough_artists(self):
        rng = random.Random(7)
        for _ in range(50):
            artists = [rng.choice("ABCDEFGH") for _ in range(30)]
            ranked = ranked_list(artists)
            limit = rng.randint(1, 8)

            result = enforce_diversity(ranked, limit=limit, max_per_artist=1, rng=rng)

            kept = [item.song.artist for item in result]
            assert len(kept) == len(set(kept))
            assert len(result) == min(limit, len(set(artists)))

    def test_respects_limit(self):
        ranked = ranked_list(list("ABCDEFGHIJ"))

        assert len(enforce_diversity(ranked, limit=4, rng=random.Random(1))) == 4

    def test_empty_input(self):
        assert enforce_diversity([], limit=5) == []


class TestSecondPass:

    def test_swaps_in_later_half_only(self):
        ranked = ranked_list(["A"] * 6 + ["B", "C", "D", "E"])
        selected = apply_artist_hardcut(ranked, limit=6, max_per_artist=6)

        result = promote_distinct_artists(selected, ranked, min_unique_artists=2)

        assert [item.song.id for item in result[:4]] == ["A0", "A1", "A2", "A3"]
        # three alternates exist, but only two slots sit past the midpoint
        assert [item.song.artist for item in result[4:]] == ["B", "C"]

    def test_not_triggered_when_target_met(self):
        ranked = ranked_list(["A", "A", "B", "C"])
        selected = apply_artist_hardcut(ranked, limit=4, max_per_artist=2)

        assert promote_distinct_artists(selected, ranked, min_unique_artists=2) == selected

    def test_best_effort_with_no_alternates(self):
        ranked = ranked_list(["A"] * 4)
        selected = apply_artist_hardcut(ranked, limit=4, max_per_artist=4)

        assert promote_distinct_artists(selected, ranked, min_unique_artists=3) == selected

    def test_full_pipeline_promotes_other_artist(self):
        ranked = ranked_list(["A", "A", "A", "A", "B"])

        result = enforce_diversity(ranked, limit=3, max_per_artist=3, min_unique_artists=2, rng=random.Random(3))

        assert result[2].song.artist == "B"
        assert {item.song.id for item in result[:2]} == {"A0", "A1"}


class TestShuffle:

    def test_only_head_is_shuffled(self):
        ranked = ranked_list(list("ABCDEFGHIJ"))

        result = enforce_diversity(ranked, limit=10, rng=random.Random(42))

        assert result[2:] == ranked[2:]
        assert {item.song.id for item in result[:2]} == {item.song.id for item in ranked[:2]}

    def test_head_size_grows_with_result(self):
        ranked = ranked_list([f"artist{i}" for i in range(20)])

        result = shuffle_head(ranked, fraction=0.2, rng=random.Random(5))

        assert result[4:] == ranked[4:]
        assert {item.song.id for item in result[:4]} == {item.song.id for item in ranked[:4]}

    def test_single_item_unchanged(self):
        ranked = ranked_list(["A"])

        assert shuffle_head(ranked, rng=random.Random(0)) == ranked

    def test_seeded_rng_is_deterministic(self):
        ranked = ranked_list(list("ABCDEFGHIJ"))

        first = enforce_diversity(ranked, limit=10, rng=random.Random(9))
        second = enforce_diversity(ranked, limit=10, rng=random.Random(9))

        assert first == second
