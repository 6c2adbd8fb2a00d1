"""External systems - APIs and streaming."""

from klinepulse.infrastructure.external.binance_adapter import BinanceAdapter
from klinepulse.infrastructure.external.live_feed_session import LiveFeedSession

__all__ = [
    "BinanceAdapter",
    "LiveFeedSession",
]
