"""
KlinePulse – Domain Value Objects: InstrumentInfo / LiveSummary / PriceComparison
===================================================================================
Instantáneas de display que NO forman parte del core de streaming:

- InstrumentInfo  → ticker 24h (REST), snapshot inicial / refresh.
- LiveSummary     → resumen de la barra en curso, recalculado con throttle.
- PriceComparison → precio actual vs cierre de hace un minuto.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class InstrumentInfo:
    """Ticker 24h de un símbolo."""

    symbol: str
    last_price: float
    price_change_percent: float
    volume: float
    high_price: float = 0.0
    low_price: float = 0.0
    open_price: float = 0.0
    quote_volume: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class LiveSummary:
    """Resumen de display. Los campos de barra son None hasta el primer update."""

    symbol: str
    price: float
    last_update_ms: int
    price_change_percent: Optional[float] = None
    volume_24h: Optional[float] = None
    open_price: Optional[float] = None
    high_price: Optional[float] = None
    low_price: Optional[float] = None
    trade_count: Optional[int] = None
    interval: Optional[str] = None
    is_closed: Optional[bool] = None
    candle_start_ms: Optional[int] = None
    candle_end_ms: Optional[int] = None
    base_asset_volume: Optional[float] = None
    quote_asset_volume: Optional[float] = None
    taker_buy_base_volume: Optional[float] = None
    taker_buy_quote_volume: Optional[float] = None
    first_trade_id: Optional[int] = None
    last_trade_id: Optional[int] = None
    buyer_ratio: Optional[float] = None   # % del volumen comprado por takers
    price_range: Optional[float] = None   # (high - low) / low en %

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PriceComparison:
    """Variación del precio actual contra el cierre del minuto anterior."""

    current: float
    one_minute_ago: float
    difference: float
    percent_change: float

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "one_minute_ago": self.one_minute_ago,
            "difference": round(self.difference, 8),
            "percent_change": round(self.percent_change, 4),
        }
