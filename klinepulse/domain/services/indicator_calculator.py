"""
KlinePulse – Domain Service: Indicator Calculator
===================================================
Cálculos de indicadores técnicos puros sobre series de cierres.

A diferencia de un motor incremental, cada función recibe la serie
COMPLETA y devuelve la serie derivada completa. La serie de velas puede
mutar en sitio (la última vela se revisa), así que se recalcula desde
cero en cada mutación.

CONTRATO DE LONGITUDES (n = len(prices)):
    SMA(p, period)  → max(0, n - period + 1)
    EMA(p, period)  → max(0, n - period + 1)
    RSI(p, period)  → max(0, n - period)      (vacío si n < period + 1)
    MACD(p)         → macd: n - 25, signal: n - 33, histogram: n - 33

Todas las series quedan alineadas al FINAL de la serie de entrada.

VENTAJA:
- Testeo unitario sin mocks
- Sin dependencias de librerías externas en el dominio
- Fórmulas explícitas y auditables, resultados bit-idénticos entre llamadas
"""

from __future__ import annotations

from typing import List, Sequence

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.value_objects.indicator_set import (
    IndicatorSeries,
    IndicatorSet,
    MACDResult,
)

# Períodos fijos del MACD (no configurables)
MACD_FAST_PERIOD = 12
MACD_SLOW_PERIOD = 26
MACD_SIGNAL_PERIOD = 9


class IndicatorCalculator:
    """
    Calculadora de indicadores técnicos puros.

    RESPONSABILIDAD:
    Implementar las fórmulas matemáticas de indicadores.
    NO mantiene estado (stateless).
    """

    def __init__(self, rsi_period: int = 14, ema_period: int = 20, sma_period: int = 20) -> None:
        self.rsi_period = rsi_period
        self.ema_period = ema_period
        self.sma_period = sma_period

    @staticmethod
    def sma(prices: Sequence[float], period: int) -> List[float]:
        """
        Calcula SMA (Simple Moving Average).

        FÓRMULA:
        SMA_i = sum(prices[i - period + 1 : i + 1]) / period
        """
        if len(prices) < period:
            return []

        return [
            sum(prices[i - period + 1 : i + 1]) / period
            for i in range(period - 1, len(prices))
        ]

    @staticmethod
    def ema(prices: Sequence[float], period: int) -> List[float]:
        """
        Calcula EMA (Exponential Moving Average).

        FÓRMULA:
        EMA_t = (price_t - EMA_{t-1}) × k + EMA_{t-1}
        k = 2 / (period + 1)

        INICIALIZACIÓN:
        EMA inicial = SMA de los primeros `period` valores (misma expresión
        que sma(), así EMA[0] == SMA[0] exactamente).
        """
        if len(prices) < period:
            return []

        k = 2 / (period + 1)
        result = [sum(prices[0:period]) / period]
        for price in prices[period:]:
            prev = result[-1]
            result.append((price - prev) * k + prev)
        return result

    @staticmethod
    def rsi(prices: Sequence[float], period: int = 14) -> List[float]:
        """
        Calcula RSI (Relative Strength Index) con suavizado de Wilder.

        Paso 1 – Promedios iniciales sobre las primeras `period` deltas.
        Paso 2 – Para cada índice i en [period, n):
            avg_gain = (avg_gain × (period − 1) + gain_i) / period
            avg_loss = (avg_loss × (period − 1) + loss_i) / period
            RSI_i    = 100 − 100 / (1 + avg_gain / avg_loss)

        La delta del índice `period` entra en el promedio inicial Y en el
        primer paso de suavizado. No corregir: los valores del chart
        dependen de esta forma exacta.

        Edge case: avg_loss == 0 → RS infinito → RSI = 100 exacto
        (mismo resultado que 100 - 100/(1+inf) en IEEE-754).
        """
        if len(prices) < period + 1:
            return []

        gains = 0.0
        losses = 0.0
        for i in range(1, period + 1):
            change = prices[i] - prices[i - 1]
            if change > 0:
                gains += change
            else:
                losses -= change

        avg_gain = gains / period
        avg_loss = losses / period

        result: List[float] = []
        for i in range(period, len(prices)):
            change = prices[i] - prices[i - 1]
            gain = change if change > 0 else 0.0
            loss = -change if change < 0 else 0.0

            avg_gain = (avg_gain * (period - 1) + gain) / period
            avg_loss = (avg_loss * (period - 1) + loss) / period

            if avg_loss == 0:
                result.append(100.0)
                continue
            rs = avg_gain / avg_loss
            result.append(100 - 100 / (1 + rs))

        return result

    @classmethod
    def macd(cls, prices: Sequence[float]) -> MACDResult:
        """
        Calcula MACD 12/26/9.

        macd      = EMA12 − EMA26 (emparejadas desde el final)
        signal    = EMA(macd, 9)
        histogram = macd[sufijo] − signal
        """
        ema_fast = cls.ema(prices, MACD_FAST_PERIOD)
        ema_slow = cls.ema(prices, MACD_SLOW_PERIOD)

        if not ema_fast or not ema_slow:
            return MACDResult()

        min_length = min(len(ema_fast), len(ema_slow))
        fast_offset = len(ema_fast) - min_length
        slow_offset = len(ema_slow) - min_length
        macd_line = [
            ema_fast[fast_offset + i] - ema_slow[slow_offset + i]
            for i in range(min_length)
        ]

        signal_line = cls.ema(macd_line, MACD_SIGNAL_PERIOD)
        signal_offset = len(macd_line) - len(signal_line)
        histogram = [
            macd_line[signal_offset + i] - signal
            for i, signal in enumerate(signal_line)
        ]

        return MACDResult(
            macd=tuple(macd_line),
            signal=tuple(signal_line),
            histogram=tuple(histogram),
        )

    # ════════════════════════════════════════════════════════════════
    #  SERIE COMPLETA PARA EL CHART
    # ════════════════════════════════════════════════════════════════

    def compute(self, candles: Sequence[Candle], toggles: IndicatorSet) -> IndicatorSeries:
        """Calcular los indicadores activos sobre los cierres de `candles`."""
        closes = [c.close for c in candles]
        return IndicatorSeries(
            rsi=tuple(self.rsi(closes, self.rsi_period)) if toggles.rsi else None,
            ema=tuple(self.ema(closes, self.ema_period)) if toggles.ema else None,
            sma=tuple(self.sma(closes, self.sma_period)) if toggles.sma else None,
            macd=self.macd(closes) if toggles.macd else None,
            times=tuple(c.time for c in candles),
        )
