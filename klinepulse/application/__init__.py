"""
KlinePulse – Application Layer
================================
Capa de casos de uso y orquestación.

Este módulo contiene:
- use_cases/: Casos de uso (orquestador del chart, resumen, comparación)
- ports/: Interfaces hacia infraestructura
- dto/: Data Transfer Objects

REGLA DE DEPENDENCIA:
Esta capa puede importar de:
- domain/ (entidades, servicios)
- state/ (store de velas en memoria)
- ports/ propios (interfaces hacia infra)

NO puede importar de:
- infrastructure/ (implementaciones concretas)
- presentation/ (API)
"""

from klinepulse.application.use_cases.chart_session_usecase import ChartSessionUseCase
from klinepulse.application.use_cases.live_summary_usecase import LiveSummaryUseCase
from klinepulse.application.use_cases.price_comparison_usecase import PriceComparisonUseCase

__all__ = [
    "ChartSessionUseCase",
    "LiveSummaryUseCase",
    "PriceComparisonUseCase",
]
