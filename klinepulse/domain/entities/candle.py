"""
KlinePulse – Domain Entity: Candle
====================================
Vela OHLCV inmutable identificada por su tiempo de apertura.

Decisiones de diseño:
- frozen=True → una vela del store nunca se modifica; una revisión de la
  vela abierta se representa como una vela NUEVA con el mismo `time`.
- Se usa dataclass por rendimiento (más ligera que Pydantic para hot-path).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from klinepulse.domain.exceptions.domain_errors import InvalidCandleError


@dataclass(frozen=True, slots=True)
class Candle:
    """Vela OHLCV con timestamp de apertura en segundos."""

    time: int          # apertura de la barra en el exchange (epoch seg)
    open: float
    high: float
    low: float
    close: float
    volume: float

    def validate(self) -> None:
        """
        Lanza InvalidCandleError si la vela no puede entrar en una serie.

        Reglas: `time` entero >= 0 (bool no cuenta), OHLC finitos, high >= low.
        """
        if isinstance(self.time, bool) or not isinstance(self.time, int) or self.time < 0:
            raise InvalidCandleError(
                f"time debe ser un entero no negativo, recibido {self.time!r}",
                time=self.time,
            )
        for name in ("open", "high", "low", "close"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidCandleError(
                    f"{name} no finito en vela {self.time}: {value!r}",
                    time=self.time,
                )
        if self.high < self.low:
            raise InvalidCandleError(
                f"high < low en vela {self.time}: {self.high} < {self.low}",
                time=self.time,
            )

    def to_dict(self) -> dict:
        """Serialización para WebSocket / frontend."""
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }
