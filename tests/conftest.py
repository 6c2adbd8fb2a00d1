"""Fixtures y dobles de prueba compartidos."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest

from klinepulse.application.ports.event_publisher import IEventPublisher
from klinepulse.application.ports.live_feed import ILiveFeedSession
from klinepulse.application.ports.market_data_provider import IMarketDataProvider
from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import FetchFailureError
from klinepulse.domain.services.feed_state_machine import ConnectionState, FeedState
from klinepulse.domain.value_objects.market_summary import InstrumentInfo


def make_candles(count: int, close: float = 100.0, start: int = 1_700_000_000, step: int = 60) -> List[Candle]:
    return [
        Candle(time=start + i * step, open=close, high=close, low=close, close=close, volume=1.0)
        for i in range(count)
    ]


def kline_message(
    open_time_ms: int,
    close: float = 100.0,
    is_closed: bool = True,
    symbol: str = "BTCUSDT",
    interval: str = "1m",
    high: Optional[float] = None,
    low: Optional[float] = None,
    volume: float = 10.0,
    taker_buy_base: float = 4.0,
) -> str:
    high = close if high is None else high
    low = close if low is None else low
    return json.dumps({
        "e": "kline",
        "E": open_time_ms + 1,
        "s": symbol,
        "k": {
            "t": open_time_ms,
            "T": open_time_ms + 59_999,
            "s": symbol,
            "i": interval,
            "f": 100,
            "L": 200,
            "o": str(close),
            "c": str(close),
            "h": str(high),
            "l": str(low),
            "v": str(volume),
            "n": 101,
            "x": is_closed,
            "q": "1000.5",
            "V": str(taker_buy_base),
            "Q": "400.25",
            "B": "0",
        },
    })


class RecordingPublisher(IEventPublisher):
    """Publisher en memoria que guarda (topic, data)."""

    def __init__(self) -> None:
        self.events: List[tuple[str, Any]] = []

    async def publish(self, topic: str, data: Any) -> None:
        self.events.append((topic, data))

    def of(self, topic: str) -> List[Any]:
        return [data for t, data in self.events if t == topic]


class FakeProvider(IMarketDataProvider):
    """Proveedor con respuestas programables por (interval, symbol)."""

    def __init__(self) -> None:
        self.candles: Dict[tuple[str, str], List[Candle]] = {}
        self.info: Dict[str, InstrumentInfo] = {}
        self.fail_candles = False
        self.fail_info = False
        self.candle_calls: List[tuple[str, str, int]] = []
        self.gate = None  # asyncio.Event opcional para pausar fetch_candles

    async def fetch_candles(self, interval: str, symbol: str, limit: int = 500) -> List[Candle]:
        self.candle_calls.append((interval, symbol, limit))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_candles:
            raise FetchFailureError("boom", endpoint="klines", status=500)
        return list(self.candles.get((interval, symbol), []))

    async def fetch_instrument_info(self, symbol: str) -> InstrumentInfo:
        if self.fail_info:
            raise FetchFailureError("boom", endpoint="ticker/24hr", status=500)
        return self.info[symbol]

    def stream_url(self, interval: str, symbol: str) -> str:
        return f"wss://test/ws/{symbol.lower()}@kline_{interval}"


class FakeSession(ILiveFeedSession):
    """Sesión controlada a mano: el test invoca los callbacks."""

    def __init__(self, symbol, interval, url, on_candle, on_bar=None, on_state=None) -> None:
        self.symbol = symbol
        self.interval = interval
        self.url = url
        self.on_candle = on_candle
        self.on_bar = on_bar
        self.on_state = on_state
        self.started = False
        self.stopped_with: Optional[str] = None
        self._state = FeedState()

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def stats(self) -> dict:
        return {"symbol": self.symbol, "interval": self.interval, "state": self._state.connection.value}

    async def start(self) -> None:
        self.started = True
        self._state = FeedState(connection=ConnectionState.OPEN, url=self.url)

    async def stop(self, reason: str = "teardown") -> None:
        self.stopped_with = reason
        self._state = FeedState(connection=ConnectionState.CLOSED_NORMAL, url=self.url)


class SessionFactory:
    """Factory que recuerda todas las sesiones creadas."""

    def __init__(self) -> None:
        self.sessions: List[FakeSession] = []

    def __call__(self, symbol, interval, url, on_candle, on_bar=None, on_state=None) -> FakeSession:
        session = FakeSession(symbol, interval, url, on_candle, on_bar, on_state)
        self.sessions.append(session)
        return session

    @property
    def last(self) -> FakeSession:
        return self.sessions[-1]


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def session_factory() -> SessionFactory:
    return SessionFactory()
