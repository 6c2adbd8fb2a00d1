"""Application DTOs - Data Transfer Objects for use cases."""
from klinepulse.application.dto.chart_snapshot import ChartSnapshot

__all__ = ["ChartSnapshot"]
