"""Domain entities."""
from klinepulse.domain.entities.candle import Candle

__all__ = ["Candle"]
