"""
KlinePulse – Price Comparison Use Case
========================================
Precio actual (ticker 24h) contra el cierre de la vela de 1m anterior.
"""

from __future__ import annotations

from typing import Optional

from klinepulse.application.ports.market_data_provider import IMarketDataProvider
from klinepulse.domain.exceptions.domain_errors import FetchFailureError
from klinepulse.domain.value_objects.market_summary import PriceComparison
from klinepulse.shared.logging.logger import get_logger

logger = get_logger("price_comparison")


class PriceComparisonUseCase:

    def __init__(self, provider: IMarketDataProvider) -> None:
        self._provider = provider

    async def compare(self, symbol: str) -> Optional[PriceComparison]:
        """None si falla algún fetch o faltan datos."""
        try:
            info = await self._provider.fetch_instrument_info(symbol)
            # Las 2 últimas velas de 1m: [0] = minuto anterior, [1] = en curso
            candles = await self._provider.fetch_candles("1m", symbol, limit=2)
        except FetchFailureError as e:
            logger.error("Comparación de precio %s falló: %s", symbol, e.message)
            return None

        if len(candles) < 2:
            logger.warning("Comparación de precio %s: solo %d velas de 1m", symbol, len(candles))
            return None

        one_minute_ago = candles[0].close
        if one_minute_ago == 0:
            return None

        difference = info.last_price - one_minute_ago
        return PriceComparison(
            current=info.last_price,
            one_minute_ago=one_minute_ago,
            difference=difference,
            percent_change=difference / one_minute_ago * 100,
        )
