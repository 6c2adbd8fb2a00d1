"""
KlinePulse – API Schemas (Pydantic)
=====================================
Schemas de validación para request/response de la API REST.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    service: str


class SelectionRequest(BaseModel):
    """Body para cambiar (symbol, interval). Sin symbol se mantiene el actual."""
    symbol: Optional[str] = Field(default=None, min_length=1)
    interval: str


class IndicatorTogglesRequest(BaseModel):
    """Toggles parciales: los campos omitidos conservan su valor."""
    rsi: Optional[bool] = None
    macd: Optional[bool] = None
    ema: Optional[bool] = None
    sma: Optional[bool] = None


class PriceComparisonResponse(BaseModel):
    current: float
    one_minute_ago: float
    difference: float
    percent_change: float
