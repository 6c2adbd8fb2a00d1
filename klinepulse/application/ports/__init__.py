"""Application ports - Interfaces to infrastructure."""
from klinepulse.application.ports.event_publisher import IEventPublisher
from klinepulse.application.ports.live_feed import ILiveFeedSession, LiveFeedFactory
from klinepulse.application.ports.market_data_provider import IMarketDataProvider

__all__ = [
    "IEventPublisher",
    "ILiveFeedSession",
    "LiveFeedFactory",
    "IMarketDataProvider",
]
