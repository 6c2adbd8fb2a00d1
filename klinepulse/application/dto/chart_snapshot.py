"""
KlinePulse – Application DTO: Chart Snapshot
==============================================
Unidad atómica publicada a la presentación: velas + indicadores
recalculados sobre ESA MISMA versión de velas. Nunca se publica una
sin la otra.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.services.feed_state_machine import ConnectionState
from klinepulse.domain.value_objects.indicator_set import IndicatorSeries, IndicatorSet


@dataclass(frozen=True)
class ChartSnapshot:
    """Estado publicable del chart para un (symbol, interval)."""

    symbol: str
    interval: str
    version: int = 0
    candles: Tuple[Candle, ...] = ()
    indicators: IndicatorSeries = field(default_factory=IndicatorSeries)
    toggles: IndicatorSet = field(default_factory=IndicatorSet)
    loading: bool = False
    connection_state: ConnectionState = ConnectionState.IDLE
    offline: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "version": self.version,
            "loading": self.loading,
            "connection_state": self.connection_state.value,
            "offline": self.offline,
            "toggles": self.toggles.to_dict(),
            "candles": [c.to_dict() for c in self.candles],
            "indicators": self.indicators.to_dict(),
        }
