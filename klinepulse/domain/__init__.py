"""
KlinePulse – Domain Layer
===========================
Núcleo puro del sistema. CERO dependencias externas.

Este módulo contiene:
- entities/: Entidades de negocio (Candle)
- value_objects/: Objetos inmutables (KlineUpdate, IndicatorSet, LiveSummary)
- services/: Servicios de dominio puros (IndicatorCalculator, máquina de estados del feed)
- exceptions/: Excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de:
- infrastructure/
- presentation/
- application/
- Frameworks externos (FastAPI, websockets, httpx, etc.)
"""

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.value_objects.indicator_set import IndicatorSeries, IndicatorSet
from klinepulse.domain.value_objects.kline_update import KlineUpdate

__all__ = [
    "Candle",
    "IndicatorSeries",
    "IndicatorSet",
    "KlineUpdate",
]
