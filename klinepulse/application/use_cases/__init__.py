"""Application use cases - Business logic orchestration."""

from klinepulse.application.use_cases.chart_session_usecase import (
    CHART_SNAPSHOT_TOPIC,
    ChartSessionUseCase,
)
from klinepulse.application.use_cases.live_summary_usecase import (
    LIVE_SUMMARY_TOPIC,
    LiveSummaryUseCase,
)
from klinepulse.application.use_cases.price_comparison_usecase import PriceComparisonUseCase

__all__ = [
    "CHART_SNAPSHOT_TOPIC",
    "ChartSessionUseCase",
    "LIVE_SUMMARY_TOPIC",
    "LiveSummaryUseCase",
    "PriceComparisonUseCase",
]
