"""
KlinePulse – Application Port: Market Data Provider
=====================================================
Interfaz hacia el exchange: histórico REST, ticker y URL del stream.

Los use cases solicitan datos; la infraestructura decide CÓMO
obtenerlos (Binance REST, fixtures en tests, etc.)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.value_objects.market_summary import InstrumentInfo


class IMarketDataProvider(ABC):
    """
    Interfaz para proveer datos de mercado.

    IMPLEMENTACIONES POSIBLES:
    - BinanceAdapter (producción)
    - Proveedor en memoria (testing)
    """

    @abstractmethod
    async def fetch_candles(
        self,
        interval: str,
        symbol: str,
        limit: int = 500,
    ) -> List[Candle]:
        """
        Obtiene velas históricas.

        Returns:
            Lista de velas ordenadas por time ASC, sin duplicados,
            lista para CandleStore.seed()

        Raises:
            FetchFailureError: fallo de red, HTTP o payload inválido
        """
        pass

    @abstractmethod
    async def fetch_instrument_info(self, symbol: str) -> InstrumentInfo:
        """
        Obtiene el ticker 24h de un símbolo.

        Raises:
            FetchFailureError: fallo de red, HTTP o payload inválido
        """
        pass

    @abstractmethod
    def stream_url(self, interval: str, symbol: str) -> str:
        """URL del stream de klines para (interval, symbol). Función pura."""
        pass
