"""
KlinePulse – Domain Value Object: KlineUpdate
===============================================
Actualización de barra recibida del stream `<symbol>@kline_<interval>`.

FORMATO (Binance):
    {"e": "kline", "E": 1672515782136, "s": "BTCUSDT",
     "k": {"t": 1672515780000, "T": 1672515839999, "s": "BTCUSDT",
           "i": "1m", "f": 100, "L": 200,
           "o": "0.0010", "c": "0.0020", "h": "0.0025", "l": "0.0015",
           "v": "1000", "n": 100, "x": false,
           "q": "1.0000", "V": "500", "Q": "0.500", "B": "123456"}}

- Los precios y volúmenes llegan como strings → se convierten a float.
- `x` indica barra CERRADA: solo esas se consolidan en el store.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import ParseFailureError


@dataclass(frozen=True, slots=True)
class KlineUpdate:
    """Una actualización de barra (cerrada o en progreso)."""

    symbol: str
    interval: str
    open_time: int               # ms
    close_time: int              # ms
    open: float
    high: float
    low: float
    close: float
    volume: float                # volumen del activo base
    quote_volume: float
    trade_count: int
    taker_buy_base_volume: float
    taker_buy_quote_volume: float
    first_trade_id: int
    last_trade_id: int
    is_closed: bool

    @classmethod
    def from_message(cls, raw: str | bytes) -> "KlineUpdate":
        """
        Parsear un mensaje crudo del stream.

        Raises:
            ParseFailureError: JSON inválido, falta `k` o algún campo no convierte.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ParseFailureError(f"Mensaje no-JSON: {e}", raw=_preview(raw)) from e

        kline = data.get("k") if isinstance(data, dict) else None
        if not isinstance(kline, dict):
            raise ParseFailureError("Mensaje sin payload de kline 'k'", raw=_preview(raw))

        try:
            return cls(
                symbol=str(kline.get("s") or data.get("s", "")),
                interval=str(kline.get("i", "")),
                open_time=int(kline["t"]),
                close_time=int(kline["T"]),
                open=float(kline["o"]),
                high=float(kline["h"]),
                low=float(kline["l"]),
                close=float(kline["c"]),
                volume=float(kline["v"]),
                quote_volume=float(kline.get("q", 0)),
                trade_count=int(kline.get("n", 0)),
                taker_buy_base_volume=float(kline.get("V", 0)),
                taker_buy_quote_volume=float(kline.get("Q", 0)),
                first_trade_id=int(kline.get("f", 0)),
                last_trade_id=int(kline.get("L", 0)),
                is_closed=_parse_flag(kline["x"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseFailureError(f"Kline malformada: {e!r}", raw=_preview(raw)) from e

    def to_candle(self) -> Candle:
        """Vela del store: time en segundos (apertura de la barra)."""
        return Candle(
            time=self.open_time // 1000,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "open_time": self.open_time,
            "close_time": self.close_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "quote_volume": self.quote_volume,
            "trade_count": self.trade_count,
            "taker_buy_base_volume": self.taker_buy_base_volume,
            "taker_buy_quote_volume": self.taker_buy_quote_volume,
            "first_trade_id": self.first_trade_id,
            "last_trade_id": self.last_trade_id,
            "is_closed": self.is_closed,
        }


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"flag 'x' no booleano: {value!r}")


def _preview(raw: Any) -> str:
    return str(raw)[:200]
