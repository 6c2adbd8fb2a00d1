"""
KlinePulse – Domain Value Objects: IndicatorSet / IndicatorSeries
===================================================================
- IndicatorSet    → toggles por request (qué indicadores calcular).
- MACDResult      → triple (macd, signal, histogram).
- IndicatorSeries → series derivadas, alineadas a un SUFIJO de las velas.

Las series nunca se persisten: se recalculan desde cero en cada mutación
del store, así que son inmutables (tuplas) y seguras de compartir.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Optional, Sequence, Tuple

from klinepulse.domain.exceptions.domain_errors import ValidationError


@dataclass(frozen=True, slots=True)
class IndicatorSet:
    """Toggles de indicadores. Sin orden ni dependencias entre ellos."""

    rsi: bool = False
    macd: bool = False
    ema: bool = False
    sma: bool = False

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def toggled(self, name: str) -> "IndicatorSet":
        """Nueva instancia con `name` invertido."""
        if name not in self.names():
            raise ValidationError(f"Indicador desconocido: {name}", field="indicator", value=name)
        return replace(self, **{name: not getattr(self, name)})

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.names()}


@dataclass(frozen=True, slots=True)
class MACDResult:
    """Línea MACD, señal e histograma (cada uno alineado a su propio sufijo)."""

    macd: Tuple[float, ...] = ()
    signal: Tuple[float, ...] = ()
    histogram: Tuple[float, ...] = ()

    def to_dict(self) -> dict:
        return {
            "macd": list(self.macd),
            "signal": list(self.signal),
            "histogram": list(self.histogram),
        }


@dataclass(frozen=True, slots=True)
class IndicatorSeries:
    """Series calculadas para los toggles activos (None = desactivado)."""

    rsi: Optional[Tuple[float, ...]] = None
    ema: Optional[Tuple[float, ...]] = None
    sma: Optional[Tuple[float, ...]] = None
    macd: Optional[MACDResult] = None
    # tiempos de las velas de origen, para alinear cada serie a su sufijo
    times: Tuple[int, ...] = field(default=(), repr=False)

    def to_dict(self) -> dict:
        result: dict = {}
        if self.rsi is not None:
            result["rsi"] = align_to_suffix(self.times, self.rsi)
        if self.ema is not None:
            result["ema"] = align_to_suffix(self.times, self.ema)
        if self.sma is not None:
            result["sma"] = align_to_suffix(self.times, self.sma)
        if self.macd is not None:
            result["macd"] = {
                "macd": align_to_suffix(self.times, self.macd.macd),
                "signal": align_to_suffix(self.times, self.macd.signal),
                "histogram": align_to_suffix(self.times, self.macd.histogram),
            }
        return result


def align_to_suffix(times: Sequence[int], values: Sequence[float]) -> list[dict]:
    """Emparejar `values` con los últimos len(values) tiempos."""
    offset = len(times) - len(values)
    if offset < 0:
        raise ValueError("La serie es más larga que las velas de origen")
    return [
        {"time": times[offset + i], "value": value}
        for i, value in enumerate(values)
    ]
