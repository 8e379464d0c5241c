from app.engine.xp import RANKS, current_rank, next_rank


class TestCurrentRank:
    def test_zero_xp_is_novice(self):
        assert current_rank(0).name == "Novice"

    def test_exact_threshold_reaches_rank(self):
        assert current_rank(10).name == "Apprentice"
        assert current_rank(9).name == "Novice"

    def test_top_rank(self):
        assert current_rank(10_000).name == "Legend"

    def test_negative_xp_safe(self):
        assert current_rank(-5).name == "Novice"

    def test_every_threshold_maps_to_its_rank(self):
        for rank in RANKS:
            assert current_rank(rank.min_xp) == rank


class TestNextRank:
    def test_next_from_zero(self):
        assert next_rank(0).name == "Apprentice"

    def test_none_at_top(self):
        assert next_rank(RANKS[-1].min_xp) is None

    def test_ranks_are_ascending(self):
        thresholds = [r.min_xp for r in RANKS]
        assert thresholds == sorted(thresholds)
        assert thresholds[0] == 0
