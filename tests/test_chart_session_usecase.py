import asyncio

import pytest

from klinepulse.application.use_cases.chart_session_usecase import (
    CHART_SNAPSHOT_TOPIC,
    ChartSessionUseCase,
)
from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import ValidationError
from klinepulse.domain.services.feed_state_machine import ConnectionState, FeedState
from klinepulse.domain.value_objects.indicator_set import IndicatorSet
from klinepulse.domain.value_objects.kline_update import KlineUpdate

from tests.conftest import kline_message, make_candles

INTERVALS = ["1m", "5m", "1h"]


@pytest.fixture
def chart(provider, publisher, session_factory):
    return ChartSessionUseCase(
        provider=provider,
        publisher=publisher,
        feed_factory=session_factory,
        capacity=1000,
        history_limit=500,
        available_intervals=INTERVALS,
        toggles=IndicatorSet(sma=True),
    )


async def test_select_seeds_then_starts_stream(chart, provider, publisher, session_factory):
    candles = make_candles(30, close=100.0)
    provider.candles[("1m", "BTCUSDT")] = candles

    snapshot = await chart.select("btcusdt", "1m")

    assert provider.candle_calls == [("1m", "BTCUSDT", 500)]
    published = publisher.of(CHART_SNAPSHOT_TOPIC)
    assert published[0].loading is True
    assert published[0].candles == ()
    assert published[-1] is snapshot
    assert snapshot.loading is False
    assert len(snapshot.candles) == 30
    assert len(snapshot.indicators.sma) == 11
    assert all(v == 100.0 for v in snapshot.indicators.sma)

    session = session_factory.last
    assert session.started
    assert session.url == "wss://test/ws/btcusdt@kline_1m"


async def test_closed_candle_replaces_then_appends(chart, provider, publisher, session_factory):
    candles = make_candles(30, close=100.0)
    provider.candles[("1m", "BTCUSDT")] = candles
    await chart.select("BTCUSDT", "1m")
    session = session_factory.last

    last = candles[-1]
    await session.on_candle(Candle(last.time, 100, 130, 100, 130.0, 3.0))
    snap = chart.snapshot
    assert len(snap.candles) == 30
    assert snap.candles[-1].close == 130.0
    # SMA recalculada sobre la misma versión
    assert snap.indicators.sma[-1] == pytest.approx((19 * 100 + 130) / 20)

    await session.on_candle(Candle(last.time + 60, 100, 100, 100, 100.0, 1.0))
    snap = chart.snapshot
    assert len(snap.candles) == 31
    assert len(snap.indicators.sma) == 12
    assert publisher.of(CHART_SNAPSHOT_TOPIC)[-1] is snap


async def test_invalid_closed_candle_is_ignored(chart, provider, publisher, session_factory):
    provider.candles[("1m", "BTCUSDT")] = make_candles(5)
    await chart.select("BTCUSDT", "1m")
    before = chart.snapshot
    count = len(publisher.events)

    await session_factory.last.on_candle(Candle(10**10, 1, 0, 5, 1, 1))

    assert chart.snapshot is before
    assert len(publisher.events) == count


async def test_candle_older_than_full_window_not_republished(provider, publisher, session_factory):
    chart = ChartSessionUseCase(
        provider=provider,
        publisher=publisher,
        feed_factory=session_factory,
        capacity=5,
        available_intervals=INTERVALS,
    )
    candles = make_candles(5)
    provider.candles[("1m", "BTCUSDT")] = candles
    await chart.select("BTCUSDT", "1m")
    before = chart.snapshot
    count = len(publisher.events)

    await session_factory.last.on_candle(Candle(candles[0].time - 60, 1, 1, 1, 1, 1))

    assert chart.snapshot is before
    assert len(publisher.events) == count


async def test_fetch_failure_seeds_empty_and_still_streams(chart, provider, session_factory):
    provider.fail_candles = True
    snapshot = await chart.select("BTCUSDT", "1m")
    assert snapshot.loading is False
    assert snapshot.candles == ()
    assert session_factory.last.started


async def test_invalid_interval_rejected(chart, provider, session_factory):
    with pytest.raises(ValidationError):
        await chart.select("BTCUSDT", "2m")
    assert provider.candle_calls == []
    assert session_factory.sessions == []


async def test_selection_change_tears_down_previous_session(chart, provider, session_factory):
    provider.candles[("1m", "BTCUSDT")] = make_candles(10)
    provider.candles[("5m", "BTCUSDT")] = make_candles(3, step=300)

    await chart.select("BTCUSDT", "1m")
    first = session_factory.last
    await chart.select("BTCUSDT", "5m")

    assert first.stopped_with is not None
    assert session_factory.last is not first
    assert chart.snapshot.interval == "5m"
    assert len(chart.snapshot.candles) == 3

    # Callbacks tardíos de la sesión vieja no tocan el store nuevo
    version = chart.snapshot.version
    await first.on_candle(Candle(10**9, 1, 1, 1, 1, 1))
    assert chart.snapshot.version == version


async def test_superseded_fetch_never_seeds(chart, provider, session_factory):
    provider.candles[("1m", "BTCUSDT")] = make_candles(10)
    provider.candles[("1h", "BTCUSDT")] = make_candles(2, step=3600)
    provider.gate = asyncio.Event()

    first = asyncio.create_task(chart.select("BTCUSDT", "1m"))
    await asyncio.sleep(0)
    second = asyncio.create_task(chart.select("BTCUSDT", "1h"))
    await asyncio.sleep(0)
    provider.gate.set()
    await asyncio.gather(first, second)

    assert len(session_factory.sessions) == 1
    assert session_factory.last.interval == "1h"
    assert chart.snapshot.interval == "1h"
    assert len(chart.snapshot.candles) == 2


async def test_toggles_recompute(chart, provider):
    provider.candles[("1m", "BTCUSDT")] = make_candles(40)
    await chart.select("BTCUSDT", "1m")

    snap = await chart.toggle("rsi")
    assert snap.toggles.rsi is True
    assert len(snap.indicators.rsi) == 26

    snap = await chart.set_toggles(IndicatorSet(macd=True))
    assert snap.indicators.sma is None
    assert snap.indicators.macd is not None

    with pytest.raises(ValidationError):
        await chart.toggle("bollinger")


async def test_feed_state_is_carried_in_snapshot(chart, provider, publisher, session_factory):
    provider.candles[("1m", "BTCUSDT")] = make_candles(3)
    await chart.select("BTCUSDT", "1m")

    offline = FeedState(connection=ConnectionState.CLOSED_ABNORMAL, attempts=5)
    await session_factory.last.on_state(offline)

    snap = publisher.of(CHART_SNAPSHOT_TOPIC)[-1]
    assert snap.offline is True
    assert snap.connection_state is ConnectionState.CLOSED_ABNORMAL
    assert len(snap.candles) == 3


async def test_bar_updates_forwarded_to_listener(provider, publisher, session_factory):
    received = []

    async def listener(update):
        received.append(update)

    chart = ChartSessionUseCase(provider, publisher, session_factory, bar_listener=listener)
    await chart.select("BTCUSDT", "1m")
    update = KlineUpdate.from_message(kline_message(0, is_closed=False))
    await session_factory.last.on_bar(update)
    assert received == [update]


async def test_stop_tears_down_session(chart, provider, session_factory):
    await chart.select("BTCUSDT", "1m")
    await chart.stop()
    assert session_factory.last.stopped_with == "shutdown"
    assert chart.session is None
