"""
KlinePulse – Application Port: Live Feed
==========================================
Interfaz de una sesión de streaming para un par (symbol, interval).

El orquestador solo necesita arrancarla, detenerla y leer su estado; la
infraestructura decide el transporte (websockets contra Binance).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.services.feed_state_machine import FeedState
from klinepulse.domain.value_objects.kline_update import KlineUpdate


class ILiveFeedSession(ABC):
    """Sesión de streaming con reconexión propia."""

    @property
    @abstractmethod
    def state(self) -> FeedState:
        pass

    @property
    @abstractmethod
    def stats(self) -> dict:
        pass

    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    async def stop(self, reason: str = "teardown") -> None:
        """Cerrar con código normal y cancelar timers. Idempotente."""
        pass


# factory(symbol, interval, url, on_candle, on_bar, on_state) → sesión
LiveFeedFactory = Callable[
    [
        str,
        str,
        str,
        Callable[[Candle], Awaitable[None]],
        Optional[Callable[[KlineUpdate], Awaitable[None]]],
        Optional[Callable[[FeedState], Awaitable[None]]],
    ],
    ILiveFeedSession,
]
