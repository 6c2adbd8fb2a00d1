"""
KlinePulse – Domain Exceptions
================================
Excepciones específicas del dominio.

JERARQUÍA:
    DomainError (base)
    ├── InvalidCandleError          → OHLC o timestamp inválido, el store no se toca
    ├── PreconditionViolationError  → seed() recibió velas fuera de orden
    ├── ParseFailureError           → mensaje del stream malformado (se descarta)
    ├── FeedConnectionError         → fallo de transporte (= cierre anormal)
    ├── ReconnectExhaustedError     → se agotaron las reconexiones (offline)
    ├── FetchFailureError           → fallo REST (klines / ticker)
    └── ValidationError             → parámetros inválidos desde la API
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class InvalidCandleError(DomainError):
    """Vela con OHLC no finito, high < low o timestamp inválido."""

    def __init__(self, message: str, time: Any = None):
        super().__init__(message, code="INVALID_CANDLE")
        self.time = time


class PreconditionViolationError(DomainError):
    """El llamador no respetó el contrato (p.ej. seed no ascendente)."""

    def __init__(self, message: str):
        super().__init__(message, code="PRECONDITION_VIOLATION")


class ParseFailureError(DomainError):
    """Mensaje del stream que no se puede interpretar como kline."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message, code="PARSE_FAILURE")
        self.raw = raw


class FeedConnectionError(DomainError):
    """Fallo a nivel de transporte en la conexión del stream."""

    def __init__(self, message: str, close_code: Optional[int] = None):
        super().__init__(message, code="FEED_CONNECTION")
        self.close_code = close_code


class ReconnectExhaustedError(DomainError):
    """Se alcanzó el máximo de reconexiones anormales de la sesión."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message, code="RECONNECT_EXHAUSTED")
        self.attempts = attempts


class FetchFailureError(DomainError):
    """Fallo al pedir datos REST (histórico o ticker)."""

    def __init__(self, message: str, endpoint: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, code="FETCH_FAILURE")
        self.endpoint = endpoint
        self.status = status


class ValidationError(DomainError):
    """Error de validación general de datos de dominio."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field
        self.value = value
