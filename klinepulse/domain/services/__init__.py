"""Domain services - Pure business logic with no external dependencies."""
from klinepulse.domain.services.feed_state_machine import (
    ConnectionState,
    FeedState,
    ReconnectPolicy,
    transition,
)
from klinepulse.domain.services.indicator_calculator import IndicatorCalculator

__all__ = [
    "ConnectionState",
    "FeedState",
    "ReconnectPolicy",
    "transition",
    "IndicatorCalculator",
]
