"""
KlinePulse – Live Summary Use Case
====================================
Resumen de display del instrumento: snapshot REST inicial (ticker 24h)
más las métricas de la barra en curso que llegan por el stream.

THROTTLE:
- on_bar() recalcula como mucho una vez cada `throttle_ms` (reloj
  monotónico). Los updates dentro de la ventana se saltan SOLO para el
  resumen; el chart sigue recibiendo todas las velas cerradas.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Optional

from klinepulse.application.ports.event_publisher import IEventPublisher
from klinepulse.application.ports.market_data_provider import IMarketDataProvider
from klinepulse.domain.exceptions.domain_errors import FetchFailureError
from klinepulse.domain.value_objects.kline_update import KlineUpdate
from klinepulse.domain.value_objects.market_summary import LiveSummary
from klinepulse.shared.logging.logger import get_logger

logger = get_logger("live_summary")

LIVE_SUMMARY_TOPIC = "live_summary"


def _now_ms() -> int:
    return int(time.time() * 1000)


class LiveSummaryUseCase:
    """
    Mantiene el último LiveSummary y lo publica en el EventBus.

    `clock` devuelve segundos monotónicos; se inyecta en tests.
    """

    def __init__(
        self,
        provider: IMarketDataProvider,
        publisher: IEventPublisher,
        throttle_ms: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._publisher = publisher
        self._throttle_s = throttle_ms / 1000
        self._clock = clock
        self._last_bar_at: Optional[float] = None
        self._latest: Optional[LiveSummary] = None
        self._skipped = 0

    @property
    def latest(self) -> Optional[LiveSummary]:
        return self._latest

    @property
    def skipped(self) -> int:
        """Updates descartados por el throttle (monitoreo)."""
        return self._skipped

    async def refresh(self, symbol: str) -> Optional[LiveSummary]:
        """Snapshot inicial desde el ticker 24h. Si falla se conserva el anterior."""
        try:
            info = await self._provider.fetch_instrument_info(symbol)
        except FetchFailureError as e:
            logger.error("No se pudo refrescar el resumen de %s: %s", symbol, e.message)
            return self._latest

        base = self._latest if self._latest is not None and self._latest.symbol == info.symbol else None
        if base is None:
            summary = LiveSummary(
                symbol=info.symbol,
                price=info.last_price,
                last_update_ms=_now_ms(),
                price_change_percent=info.price_change_percent,
                volume_24h=info.volume,
            )
        else:
            summary = replace(
                base,
                price=info.last_price,
                last_update_ms=_now_ms(),
                price_change_percent=info.price_change_percent,
                volume_24h=info.volume,
            )

        await self._store(summary)
        logger.info("Resumen %s refrescado: %.8g (%+.2f%%)",
                    info.symbol, info.last_price, info.price_change_percent)
        return summary

    async def on_bar(self, update: KlineUpdate) -> bool:
        """Aplicar un update de barra. Devuelve False si el throttle lo saltó."""
        now = self._clock()
        if self._last_bar_at is not None and now - self._last_bar_at < self._throttle_s:
            self._skipped += 1
            return False
        self._last_bar_at = now

        # Métricas derivadas
        buyer_ratio = (
            update.taker_buy_base_volume / update.volume * 100 if update.volume > 0 else 0.0
        )
        price_range = (
            (update.high - update.low) / update.low * 100
            if update.high > 0 and update.low > 0 else 0.0
        )

        previous = self._latest if self._latest is not None and self._latest.symbol == update.symbol else None
        summary = LiveSummary(
            symbol=update.symbol,
            price=update.close,
            last_update_ms=_now_ms(),
            price_change_percent=previous.price_change_percent if previous else None,
            volume_24h=previous.volume_24h if previous else None,
            open_price=update.open,
            high_price=update.high,
            low_price=update.low,
            trade_count=update.trade_count,
            interval=update.interval,
            is_closed=update.is_closed,
            candle_start_ms=update.open_time,
            candle_end_ms=update.close_time,
            base_asset_volume=update.volume,
            quote_asset_volume=update.quote_volume,
            taker_buy_base_volume=update.taker_buy_base_volume,
            taker_buy_quote_volume=update.taker_buy_quote_volume,
            first_trade_id=update.first_trade_id,
            last_trade_id=update.last_trade_id,
            buyer_ratio=buyer_ratio,
            price_range=price_range,
        )
        await self._store(summary)
        return True

    async def _store(self, summary: LiveSummary) -> None:
        self._latest = summary
        await self._publisher.publish(LIVE_SUMMARY_TOPIC, summary)
