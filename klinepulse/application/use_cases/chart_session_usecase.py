"""
KlinePulse – Chart Session Use Case (orquestador)
===================================================
Coordina, para la selección activa (symbol, interval):
  CandleStore + LiveFeedSession + IndicatorCalculator → ChartSnapshot

FLUJO AL CAMBIAR DE SELECCIÓN:
  1. loading=True y publicar
  2. detener la sesión anterior (cierre 1000) y descartar el store
  3. fetch histórico REST
  4. seed del store → recalcular → publicar (loading=False)
  5. arrancar la nueva LiveFeedSession
El stream nunca intenta un upsert sobre un store sin sembrar.

FLUJO POR VELA CERRADA:
  LiveFeedSession → _on_closed_candle → store.upsert → recalcular TODO
  → publicar ChartSnapshot (velas + indicadores de la misma versión)

SELECCIONES SUPERPUESTAS:
- Cada select() incrementa una época. Si durante el await del fetch llega
  otra selección, la anterior se descarta al volver (no siembra ni arranca
  sesión). Los callbacks de sesiones viejas llevan su época y se ignoran.
"""

from __future__ import annotations

from dataclasses import replace
from functools import partial
from typing import Awaitable, Callable, Iterable, Optional

from klinepulse.application.dto.chart_snapshot import ChartSnapshot
from klinepulse.application.ports.event_publisher import IEventPublisher
from klinepulse.application.ports.live_feed import ILiveFeedSession, LiveFeedFactory
from klinepulse.application.ports.market_data_provider import IMarketDataProvider
from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import (
    FetchFailureError,
    InvalidCandleError,
    ValidationError,
)
from klinepulse.domain.services.feed_state_machine import FeedState
from klinepulse.domain.services.indicator_calculator import IndicatorCalculator
from klinepulse.domain.value_objects.indicator_set import IndicatorSet
from klinepulse.domain.value_objects.kline_update import KlineUpdate
from klinepulse.shared.logging.logger import get_logger
from klinepulse.state.candle_store import DEFAULT_CAPACITY, CandleStore

logger = get_logger("chart_session")

CHART_SNAPSHOT_TOPIC = "chart_snapshot"

BarListener = Callable[[KlineUpdate], Awaitable[None]]


class ChartSessionUseCase:
    """
    Orquestador de la sesión de chart.

    Uso:
        chart = ChartSessionUseCase(provider, event_bus, feed_factory)
        await chart.select("BTCUSDT", "1m")
        await chart.set_toggles(IndicatorSet(sma=True))
        snap = chart.snapshot
        await chart.stop()
    """

    def __init__(
        self,
        provider: IMarketDataProvider,
        publisher: IEventPublisher,
        feed_factory: LiveFeedFactory,
        calculator: Optional[IndicatorCalculator] = None,
        capacity: int = DEFAULT_CAPACITY,
        history_limit: int = 500,
        available_intervals: Optional[Iterable[str]] = None,
        toggles: IndicatorSet = IndicatorSet(),
        bar_listener: Optional[BarListener] = None,
    ) -> None:
        self._provider = provider
        self._publisher = publisher
        self._feed_factory = feed_factory
        self._calculator = calculator or IndicatorCalculator()
        self._capacity = capacity
        self._history_limit = history_limit
        self._available_intervals = (
            frozenset(available_intervals) if available_intervals is not None else None
        )
        self._toggles = toggles
        self._bar_listener = bar_listener

        self._store = CandleStore(capacity)
        self._session: Optional[ILiveFeedSession] = None
        self._epoch = 0
        self._loading = False
        self._snapshot = ChartSnapshot(symbol="", interval="", toggles=toggles)

    # ──────────────────────── Lectura ───────────────────────────────────

    @property
    def snapshot(self) -> ChartSnapshot:
        """Último snapshot publicado (inmutable)."""
        return self._snapshot

    @property
    def session(self) -> Optional[ILiveFeedSession]:
        return self._session

    @property
    def toggles(self) -> IndicatorSet:
        return self._toggles

    # ──────────────────────── Selección ─────────────────────────────────

    async def select(self, symbol: str, interval: str) -> ChartSnapshot:
        """Cambiar (symbol, interval): teardown → fetch → seed → nueva sesión."""
        if self._available_intervals is not None and interval not in self._available_intervals:
            raise ValidationError(f"Intervalo no soportado: {interval}", field="interval", value=interval)
        if not symbol:
            raise ValidationError("Símbolo vacío", field="symbol", value=symbol)
        symbol = symbol.upper()

        self._epoch += 1
        epoch = self._epoch
        logger.info("Selección %s@%s (época %d)", symbol, interval, epoch)

        await self._teardown_session(f"selection change to {symbol}@{interval}")
        self._store = CandleStore(self._capacity)
        self._loading = True
        self._snapshot = ChartSnapshot(
            symbol=symbol, interval=interval, toggles=self._toggles, loading=True,
        )
        await self._publisher.publish(CHART_SNAPSHOT_TOPIC, self._snapshot)

        try:
            candles = await self._provider.fetch_candles(interval, symbol, self._history_limit)
        except FetchFailureError as e:
            logger.error("Fetch histórico falló para %s@%s: %s", symbol, interval, e.message)
            candles = []

        if epoch != self._epoch:
            logger.info("Selección %s@%s reemplazada durante el fetch, descartada", symbol, interval)
            return self._snapshot

        self._store.seed(candles)
        self._loading = False
        await self._recompute_and_publish()

        self._session = self._feed_factory(
            symbol,
            interval,
            self._provider.stream_url(interval, symbol),
            partial(self._on_closed_candle, epoch),
            partial(self._on_bar, epoch),
            partial(self._on_feed_state, epoch),
        )
        await self._session.start()
        return self._snapshot

    async def set_toggles(self, toggles: IndicatorSet) -> ChartSnapshot:
        """Reemplazar los toggles y republicar."""
        self._toggles = toggles
        await self._recompute_and_publish()
        return self._snapshot

    async def toggle(self, name: str) -> ChartSnapshot:
        """Invertir un toggle. ValidationError si el nombre no existe."""
        return await self.set_toggles(self._toggles.toggled(name))

    async def stop(self) -> None:
        """Teardown completo (shutdown de la app)."""
        self._epoch += 1
        await self._teardown_session("shutdown")
        logger.info("ChartSessionUseCase detenido")

    # ──────────────────────── Callbacks de la sesión ────────────────────

    async def _on_closed_candle(self, epoch: int, candle: Candle) -> None:
        if epoch != self._epoch or self._loading:
            return
        version = self._store.version
        try:
            self._store.upsert(candle)
        except InvalidCandleError as e:
            logger.warning("Vela rechazada %s: %s", self._snapshot.symbol, e.message)
            return
        if self._store.version == version:
            return
        await self._recompute_and_publish()

    async def _on_bar(self, epoch: int, update: KlineUpdate) -> None:
        if epoch != self._epoch or self._bar_listener is None:
            return
        await self._bar_listener(update)

    async def _on_feed_state(self, epoch: int, state: FeedState) -> None:
        if epoch != self._epoch:
            return
        self._snapshot = replace(
            self._snapshot,
            connection_state=state.connection,
            offline=state.offline,
        )
        await self._publisher.publish(CHART_SNAPSHOT_TOPIC, self._snapshot)

    # ──────────────────────── Internos ──────────────────────────────────

    async def _recompute_and_publish(self) -> None:
        """Recalcular indicadores sobre UNA versión del store y publicar juntos."""
        snap = self._store.snapshot()
        indicators = self._calculator.compute(snap.candles, self._toggles)
        state = self._session.state if self._session is not None else FeedState()
        self._snapshot = ChartSnapshot(
            symbol=self._snapshot.symbol,
            interval=self._snapshot.interval,
            version=snap.version,
            candles=snap.candles,
            indicators=indicators,
            toggles=self._toggles,
            loading=self._loading,
            connection_state=state.connection,
            offline=state.offline,
        )
        await self._publisher.publish(CHART_SNAPSHOT_TOPIC, self._snapshot)

    async def _teardown_session(self, reason: str) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.stop(reason)
