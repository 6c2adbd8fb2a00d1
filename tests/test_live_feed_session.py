import asyncio

import pytest
from websockets.exceptions import ConnectionClosed

from klinepulse.domain.services.feed_state_machine import ConnectionState, ReconnectPolicy
from klinepulse.infrastructure.external.live_feed_session import LiveFeedSession

from tests.conftest import kline_message

URL = "wss://test/ws/btcusdt@kline_1m"


class FakeConnection:
    """Conexión en memoria: entrega `messages` y luego cierra o espera."""

    def __init__(self, messages=(), close_code=1000, close_reason="", error=None, hold=False):
        self._messages = list(messages)
        self.close_code = None
        self.close_reason = None
        self._final_code = close_code
        self._final_reason = close_reason
        self._error = error
        self._hold = hold
        self._closed = asyncio.Event()
        self.closed_with = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message
            await asyncio.sleep(0)
        if self._hold:
            await self._closed.wait()
        if self._error is not None:
            raise self._error
        if self.close_code is None:
            self.close_code = self._final_code
            self.close_reason = self._final_reason

    async def close(self, code=1000, reason=""):
        self.closed_with = (code, reason)
        self.close_code = code
        self.close_reason = reason
        self._closed.set()


class FakeConnector:
    """Reemplazo de websockets.connect: devuelve conexiones en orden."""

    def __init__(self, *scripted):
        self._scripted = list(scripted)
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self._scripted.pop(0) if self._scripted else OSError("connection refused")
        if isinstance(item, BaseException):
            raise item
        return item


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condición no alcanzada a tiempo")
        await asyncio.sleep(0.001)


class Recorder:
    def __init__(self):
        self.candles = []
        self.bars = []
        self.states = []

    async def on_candle(self, candle):
        self.candles.append(candle)

    async def on_bar(self, update):
        self.bars.append(update)

    async def on_state(self, state):
        self.states.append(state)


def make_session(connector, recorder, policy=ReconnectPolicy()):
    return LiveFeedSession(
        symbol="BTCUSDT",
        interval="1m",
        url=URL,
        on_candle=recorder.on_candle,
        on_bar=recorder.on_bar,
        on_state=recorder.on_state,
        policy=policy,
        connect=connector,
    )


async def test_messages_flow_and_teardown_closes_with_1000():
    conn = FakeConnection(
        messages=[
            kline_message(60_000, close=10.0, is_closed=False),
            "{malformed",
            kline_message(60_000, close=11.0, is_closed=True),
        ],
        hold=True,
    )
    connector = FakeConnector(conn)
    recorder = Recorder()
    session = make_session(connector, recorder)

    await session.start()
    await wait_until(lambda: len(recorder.candles) == 1)

    assert session.state.connection is ConnectionState.OPEN
    assert len(recorder.bars) == 2
    assert recorder.candles[0].time == 60
    assert recorder.candles[0].close == 11.0
    assert connector.calls[0][0] == URL

    await session.stop("selection change")
    assert conn.closed_with == (1000, "selection change")
    assert session.state.connection is ConnectionState.CLOSED_NORMAL
    stats = session.stats
    assert stats["messages_received"] == 3
    assert stats["messages_dropped"] == 1
    assert stats["candles_committed"] == 1


async def test_server_normal_close_does_not_reconnect():
    connector = FakeConnector(FakeConnection(close_code=1000))
    recorder = Recorder()
    session = make_session(connector, recorder, ReconnectPolicy(base_delay_ms=1, max_delay_ms=1))

    await session.start()
    await wait_until(lambda: session.state.connection is ConnectionState.CLOSED_NORMAL)
    await asyncio.sleep(0.02)
    assert len(connector.calls) == 1


async def test_going_away_close_reconnects():
    second = FakeConnection(hold=True)
    connector = FakeConnector(FakeConnection(close_code=1001), second)
    recorder = Recorder()
    session = make_session(connector, recorder, ReconnectPolicy(base_delay_ms=1, max_delay_ms=1))

    await session.start()
    await wait_until(lambda: len(connector.calls) == 2 and session.state.connection is ConnectionState.OPEN)
    assert session.state.attempts == 0

    await session.stop()
    assert second.closed_with == (1000, "teardown")


async def test_connection_closed_without_frame_is_abnormal():
    connector = FakeConnector(
        FakeConnection(error=ConnectionClosed(None, None)),
        FakeConnection(hold=True),
    )
    recorder = Recorder()
    session = make_session(connector, recorder, ReconnectPolicy(base_delay_ms=1, max_delay_ms=1))

    await session.start()
    await wait_until(lambda: len(connector.calls) == 2)
    await session.stop()


async def test_exhausted_reconnects_go_offline():
    connector = FakeConnector()  # cada intento falla con OSError
    recorder = Recorder()
    session = make_session(
        connector, recorder, ReconnectPolicy(base_delay_ms=1, max_delay_ms=4, max_attempts=2),
    )

    await session.start()
    await wait_until(lambda: session.state.offline)

    assert len(connector.calls) == 3
    assert recorder.states[-1].offline
    assert session.stats["last_error"]["error"] == "RECONNECT_EXHAUSTED"

    await asyncio.sleep(0.02)
    assert len(connector.calls) == 3


async def test_connect_timeout_reported_as_transport_error():
    connector = FakeConnector(asyncio.TimeoutError())
    recorder = Recorder()
    session = make_session(connector, recorder, ReconnectPolicy(base_delay_ms=10_000, max_delay_ms=10_000))

    await session.start()
    await wait_until(lambda: session.state.connection is ConnectionState.RECONNECT_SCHEDULED)

    assert session.stats["last_error"]["error"] == "FEED_CONNECTION"
    await session.stop()


async def test_stop_cancels_pending_reconnect():
    connector = FakeConnector()
    recorder = Recorder()
    session = make_session(connector, recorder, ReconnectPolicy(base_delay_ms=30, max_delay_ms=30))

    await session.start()
    await wait_until(lambda: session.state.connection is ConnectionState.RECONNECT_SCHEDULED)

    await session.stop()
    assert session.state.connection is ConnectionState.CLOSED_NORMAL

    # Pasada la ventana de backoff no hay nuevos intentos
    await asyncio.sleep(0.1)
    assert len(connector.calls) == 1
    assert session.state.connection is ConnectionState.CLOSED_NORMAL


async def test_stop_is_idempotent():
    connector = FakeConnector(FakeConnection(hold=True))
    session = make_session(connector, Recorder())
    await session.start()
    await wait_until(lambda: session.state.connection is ConnectionState.OPEN)
    await session.stop()
    await session.stop()
    assert session.state.connection is ConnectionState.CLOSED_NORMAL


@pytest.mark.parametrize("kwarg", ["ping_interval", "close_timeout", "max_size"])
async def test_connect_receives_client_options(kwarg):
    connector = FakeConnector(FakeConnection(hold=True))
    session = make_session(connector, Recorder())
    await session.start()
    await wait_until(lambda: connector.calls)
    assert kwarg in connector.calls[0][1]
    await session.stop()
