import pytest

from klinepulse.container import Container, create_test_container, init_container
from klinepulse.infrastructure.external.binance_adapter import BinanceAdapter
from klinepulse.infrastructure.external.live_feed_session import LiveFeedSession
from klinepulse.shared.config.settings import Settings


async def _noop(*args):
    return None


def test_settings_defaults():
    settings = Settings()
    assert settings.default_symbol == "BTCUSDT"
    assert settings.max_candles_buffer == 1000
    assert settings.summary_throttle_ms == 5000
    assert "1M" in settings.available_intervals


def test_live_feed_uses_configured_policy():
    settings = Settings(ws_reconnect_base_delay_ms=500, ws_reconnect_max_attempts=3)
    container = Container(settings=settings)
    session = container.create_live_feed("BTCUSDT", "1m", "wss://x", _noop)
    assert isinstance(session, LiveFeedSession)
    assert session._policy.base_delay_ms == 500
    assert session._policy.max_attempts == 3


def test_singletons_and_wiring():
    container = Container()
    assert isinstance(container.market_data_provider, BinanceAdapter)
    assert container.chart_session is container.chart_session
    assert container.event_bus is container.event_bus
    assert container.indicator_calculator.rsi_period == 14


def test_init_container_uses_given_settings():
    settings = Settings(default_symbol="ETHUSDT")
    container = init_container(settings)
    assert container.settings is settings
    assert isinstance(init_container().settings, Settings)


def test_override_unknown_dependency():
    with pytest.raises(ValueError):
        create_test_container(not_a_dependency=object())
