"""Domain value objects."""
from klinepulse.domain.value_objects.indicator_set import IndicatorSeries, IndicatorSet, MACDResult
from klinepulse.domain.value_objects.kline_update import KlineUpdate
from klinepulse.domain.value_objects.market_summary import InstrumentInfo, LiveSummary, PriceComparison

__all__ = [
    "IndicatorSeries",
    "IndicatorSet",
    "MACDResult",
    "KlineUpdate",
    "InstrumentInfo",
    "LiveSummary",
    "PriceComparison",
]
