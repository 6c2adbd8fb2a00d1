"""Domain exceptions."""
from klinepulse.domain.exceptions.domain_errors import (
    DomainError,
    InvalidCandleError,
    PreconditionViolationError,
    ParseFailureError,
    FeedConnectionError,
    ReconnectExhaustedError,
    FetchFailureError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "InvalidCandleError",
    "PreconditionViolationError",
    "ParseFailureError",
    "FeedConnectionError",
    "ReconnectExhaustedError",
    "FetchFailureError",
    "ValidationError",
]
