# tests/test_match_db.py

import pytest

from keeper.errors import InvalidStateError, NotFoundError
from keeper.schemas import ParseState
from tests.helpers import make_match, ts


class TestMatches:

    def test_insert_is_idempotent(self, match_store):
        assert match_store.insert_match(make_match(1, kills=5)) is True
        assert match_store.insert_match(make_match(1, kills=99)) is False
        assert match_store.get_match(1).kills == 5

    def test_round_trip_keeps_fields(self, match_store):
        match_store.insert_match(make_match(1, radiant_win=False, player_slot=130, role=3, partner_slot=None))
        stored = match_store.get_match(1)

        assert stored.radiant_win is False
        assert stored.is_radiant is False
        assert stored.is_win is True
        assert stored.role == 3
        assert stored.parse_state is ParseState.PARSED

    def test_missing_match(self, match_store):
        with pytest.raises(NotFoundError):
            match_store.get_match(42)

    def test_ordering_and_ranges(self, match_store):
        match_store.insert_match(make_match(1, start_time=ts(2026, 10, 12, 8)))
        match_store.insert_match(make_match(2, start_time=ts(2026, 10, 14, 8)))
        match_store.insert_match(make_match(3, start_time=ts(2026, 10, 13, 8)))

        assert [m.match_id for m in match_store.get_all_matches()] == [2, 3, 1]
        assert [m.match_id for m in match_store.get_recent_matches(2)] == [2, 3]
        since = match_store.get_matches_since(ts(2026, 10, 13), ts(2026, 10, 14))
        assert [m.match_id for m in since] == [3]
        assert match_store.get_oldest_match_timestamp() == ts(2026, 10, 12, 8)

    def test_clear_all(self, match_store):
        match_store.insert_match(make_match(1))
        match_store.replace_cs_series(1, [0, 5], [0, 1])
        match_store.add_item_timing(1, 116, 900)

        match_store.clear_all()

        assert match_store.get_all_matches() == []
        assert match_store.get_cs_series(1) == []
        assert match_store.get_item_timing(1, 116) is None


class TestParseState:

    def test_lifecycle(self, match_store):
        match_store.insert_match(make_match(1, parse_state=ParseState.UNPARSED))

        match_store.set_parse_state(1, ParseState.PARSING)
        match_store.set_parse_state(1, ParseState.FAILED)
        match_store.set_parse_state(1, ParseState.PARSING)
        match_store.set_parse_state(1, ParseState.PARSED)

        assert match_store.get_match(1).parse_state is ParseState.PARSED
        assert match_store.get_unparsed_matches() == []

    @pytest.mark.parametrize("start, target", [
        (ParseState.UNPARSED, ParseState.PARSED),
        (ParseState.UNPARSED, ParseState.FAILED),
        (ParseState.PARSED, ParseState.PARSING),
        (ParseState.FAILED, ParseState.PARSED),
    ])
    def test_illegal_transitions(self, match_store, start, target):
        match_store.insert_match(make_match(1, parse_state=start))

        with pytest.raises(InvalidStateError):
            match_store.set_parse_state(1, target)
        assert match_store.get_match(1).parse_state is start

    def test_unknown_match(self, match_store):
        with pytest.raises(NotFoundError):
            match_store.set_parse_state(7, ParseState.PARSING)

    def test_reset_stuck_parsing(self, match_store):
        match_store.insert_match(make_match(1, parse_state=ParseState.PARSING))
        match_store.insert_match(make_match(2, parse_state=ParseState.PARSED))

        assert match_store.reset_stuck_parsing() == 1
        assert match_store.get_match(1).parse_state is ParseState.UNPARSED
        assert match_store.get_match(2).parse_state is ParseState.PARSED


class TestSeries:

    def test_cs_minute_is_the_array_index(self, match_store):
        match_store.replace_cs_series(1, [0, 4, 9, 15], [0, 0, 1, 2])

        cs = match_store.get_cs_at_minute(1, 2)
        assert (cs.last_hits, cs.denies) == (9, 1)
        assert match_store.get_cs_at_minute(1, 4) is None

    def test_replace_cs_series(self, match_store):
        match_store.replace_cs_series(1, [0, 4, 9], [0, 0, 1])
        match_store.replace_cs_series(1, [0, 6], [0, 2])

        assert [c.last_hits for c in match_store.get_cs_series(1)] == [0, 6]

    def test_networth_per_slot(self, match_store):
        match_store.replace_player_networth(1, 0, [600, 1200, 2000])
        match_store.replace_player_networth(1, 128, [600, 900])

        assert match_store.get_networth_at_minute(1, 0, 2) == 2000
        assert match_store.get_networth_at_minute(1, 128, 2) is None

    def test_item_timing_keeps_first_purchase(self, match_store):
        assert match_store.add_item_timing(1, 116, 900) is True
        assert match_store.add_item_timing(1, 116, 1500) is False
        assert match_store.get_item_timing(1, 116) == 900
        assert [t.item_id for t in match_store.get_item_timings_for_match(1)] == [116]

    def test_partner_slot(self, match_store):
        match_store.insert_match(make_match(1))
        match_store.set_role(1, 5)
        match_store.set_partner_slot(1, 2)

        assert match_store.get_match(1).partner_slot == 2
        assert match_store.get_match(1).role == 5


class TestAggregates:

    def test_default_baselines_without_matches(self, match_store):
        baselines = match_store.get_recent_averages()

        assert baselines.avg_kills == 10.0
        assert baselines.avg_gpm == 400.0
        assert baselines.avg_deaths == 5.0
        assert baselines.avg_hero_damage == 15000.0
        assert baselines.avg_cs_at_10 is None

    def test_baselines_from_recent_matches(self, match_store):
        match_store.insert_match(make_match(1, start_time=ts(2026, 10, 10), kills=4, gold_per_min=300))
        match_store.insert_match(make_match(2, start_time=ts(2026, 10, 11), kills=8, gold_per_min=500))
        match_store.insert_match(make_match(3, start_time=ts(2026, 10, 12), parse_state=ParseState.UNPARSED))
        match_store.replace_cs_series(1, list(range(11)), [0] * 11)        # minute 10 -> 10
        match_store.replace_cs_series(2, [i * 5 for i in range(11)], [0] * 11)  # minute 10 -> 50
        match_store.replace_cs_series(3, [i * 9 for i in range(11)], [0] * 11)  # unparsed: ignored

        baselines = match_store.get_recent_averages()

        assert baselines.avg_kills == pytest.approx((4 + 8 + 8) / 3)
        assert baselines.avg_gpm == pytest.approx((300 + 500 + 500) / 3)
        assert baselines.avg_cs_at_10 == pytest.approx(30.0)

    def test_hero_pools(self, match_store):
        match_store.insert_match(make_match(1, start_time=ts(2026, 9, 1), hero_id=10))
        match_store.insert_match(make_match(2, start_time=ts(2026, 10, 13), hero_id=20))
        match_store.insert_match(make_match(3, start_time=ts(2026, 10, 14), hero_id=20))
        match_store.insert_match(make_match(4, start_time=ts(2026, 9, 2), hero_id=30))

        assert match_store.recent_hero_ids(3) == [20, 20, 30]
        assert match_store.unfamiliar_hero_ids(ts(2026, 10, 7)) == [10, 30]
        assert match_store.hero_game_count(20) == 2

    def test_last_hits_at_minute_only_parsed(self, match_store):
        match_store.insert_match(make_match(1, start_time=ts(2026, 10, 12), hero_id=5))
        match_store.insert_match(make_match(2, start_time=ts(2026, 10, 13), hero_id=6))
        match_store.insert_match(make_match(3, start_time=ts(2026, 10, 14), parse_state=ParseState.UNPARSED))
        for match_id in (1, 2, 3):
            match_store.replace_cs_series(match_id, [match_id * 10] * 11, [0] * 11)

        points = match_store.last_hits_at_minute(10)
        assert [(p.match_id, p.last_hits) for p in points] == [(2, 20), (1, 10)]
        assert [p.match_id for p in match_store.last_hits_at_minute(10, hero_id=5)] == [1]
        assert match_store.last_hits_at_minute(11) == []
