import math

import pytest

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import (
    InvalidCandleError,
    PreconditionViolationError,
)
from klinepulse.state.candle_store import CandleStore

from tests.conftest import make_candles


def candle(time: int, close: float = 100.0) -> Candle:
    return Candle(time=time, open=close, high=close + 1, low=close - 1, close=close, volume=2.0)


class TestCandleValidation:
    @pytest.mark.parametrize("bad", [
        Candle(time=-1, open=1, high=1, low=1, close=1, volume=1),
        Candle(time=True, open=1, high=1, low=1, close=1, volume=1),
        Candle(time=1.5, open=1, high=1, low=1, close=1, volume=1),
        Candle(time=10, open=math.nan, high=1, low=1, close=1, volume=1),
        Candle(time=10, open=1, high=math.inf, low=1, close=1, volume=1),
        Candle(time=10, open=1, high=1, low=2, close=1, volume=1),
    ])
    def test_invalid_candles_rejected(self, bad):
        with pytest.raises(InvalidCandleError):
            bad.validate()

    def test_valid_candle(self):
        candle(0).validate()


class TestUpsert:
    def test_append_newer_time_grows(self):
        store = CandleStore()
        store.seed(make_candles(3))
        last = store.snapshot().last
        assert store.upsert(candle(last.time + 60)) is True
        assert len(store) == 4

    def test_same_time_replaces_in_place(self):
        store = CandleStore()
        store.seed(make_candles(3))
        last = store.snapshot().last
        assert store.upsert(candle(last.time, close=123.0)) is False
        snap = store.snapshot()
        assert len(snap) == 3
        assert snap.last.close == 123.0

    def test_replaces_older_candle(self):
        store = CandleStore()
        candles = make_candles(5)
        store.seed(candles)
        store.upsert(candle(candles[1].time, close=7.0))
        snap = store.snapshot()
        assert len(snap) == 5
        assert snap.candles[1].close == 7.0

    def test_out_of_order_insert_keeps_times_sorted(self):
        store = CandleStore()
        store.seed([candle(0), candle(120)])
        assert store.upsert(candle(60)) is True
        assert [c.time for c in store.snapshot().candles] == [0, 60, 120]

    def test_capacity_evicts_oldest(self):
        store = CandleStore(capacity=3)
        store.seed([candle(0), candle(60), candle(120)])
        store.upsert(candle(180))
        times = [c.time for c in store.snapshot().candles]
        assert times == [60, 120, 180]
        assert len(store) == 3

    def test_full_store_drops_candle_older_than_window(self):
        store = CandleStore(capacity=3)
        store.seed([candle(60), candle(120), candle(180)])
        before = store.snapshot()

        assert store.upsert(candle(0)) is False
        assert store.version == before.version
        assert store.snapshot() is before
        assert [c.time for c in store.snapshot().candles] == [60, 120, 180]

    def test_full_store_new_time_raises_minimum(self):
        store = CandleStore(capacity=3)
        store.seed([candle(60), candle(180), candle(240)])
        assert store.upsert(candle(120)) is True
        assert store.snapshot().candles[0].time == 120
        assert len(store) == 3

    def test_invalid_candle_leaves_store_unchanged(self):
        store = CandleStore()
        store.seed(make_candles(3))
        before = store.snapshot()
        with pytest.raises(InvalidCandleError):
            store.upsert(Candle(time=10**10, open=1, high=0, low=1, close=1, volume=1))
        assert store.snapshot() is before
        assert store.version == before.version

    def test_empty_store_accepts_first_candle(self):
        store = CandleStore()
        assert store.upsert(candle(60)) is True
        assert store.snapshot().closes == [100.0]


class TestSeed:
    def test_seed_keeps_last_capacity(self):
        store = CandleStore(capacity=10)
        candles = make_candles(25)
        store.seed(candles)
        snap = store.snapshot()
        assert len(snap) == 10
        assert snap.candles[0] == candles[15]

    def test_seed_rejects_unsorted(self):
        store = CandleStore()
        with pytest.raises(PreconditionViolationError):
            store.seed([candle(120), candle(60)])

    def test_seed_rejects_duplicates(self):
        store = CandleStore()
        with pytest.raises(PreconditionViolationError):
            store.seed([candle(60), candle(60)])

    def test_seed_replaces_previous_content(self):
        store = CandleStore()
        store.seed(make_candles(5))
        store.seed([candle(0)])
        assert len(store) == 1


class TestSnapshot:
    def test_snapshot_cached_until_mutation(self):
        store = CandleStore()
        store.seed(make_candles(3))
        first = store.snapshot()
        assert store.snapshot() is first
        store.upsert(candle(first.last.time + 60))
        second = store.snapshot()
        assert second is not first
        assert second.version > first.version
        # el snapshot anterior no cambia
        assert len(first) == 3

    def test_empty_snapshot(self):
        snap = CandleStore().snapshot()
        assert len(snap) == 0
        assert snap.last is None
