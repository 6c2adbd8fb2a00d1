"""
KlinePulse – Live Feed Session (WebSocket de klines, asíncrono)
=================================================================
Una sesión = UNA conexión al stream `<symbol>@kline_<interval>` de Binance.

DISEÑO:
- La lógica vive en la máquina de estados pura (feed_state_machine).
  Esta clase solo traduce lo que pasa en el socket a eventos
  (FeedOpened, MessageReceived, ClosedNormal/ClosedAbnormal, TimerFired)
  y ejecuta los efectos devueltos (abrir, cerrar, programar reconexión,
  consolidar vela...).
- Todo corre en el mismo event loop → los eventos se procesan de a uno.

RECONEXIÓN CON BACKOFF EXPONENCIAL:
- Cierre con código != 1000 → reconexión tras min(1s × 2^intento, 30s).
- Máximo 5 reconexiones seguidas sin llegar a Open → offline (terminal).
- El timer es un asyncio.Task propio de la sesión: stop() lo cancela.

CONEXIONES / TIMERS OBSOLETOS:
- Cada conexión abierta recibe un número de generación. Cerrar o
  reemplazar la conexión incrementa la generación, así cualquier evento
  tardío de una conexión o timer anterior se ignora.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI, WebSocketException

from klinepulse.application.ports.live_feed import ILiveFeedSession
from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import (
    DomainError,
    FeedConnectionError,
    ReconnectExhaustedError,
)
from klinepulse.domain.services.feed_state_machine import (
    ABNORMAL_CLOSURE,
    CancelReconnectTimer,
    CloseConnection,
    CommitCandle,
    ConnectRequested,
    ConnectionState,
    DropMessage,
    FeedEffect,
    FeedEvent,
    FeedOpened,
    FeedState,
    MessageReceived,
    ObserveBar,
    OpenConnection,
    ReconnectPolicy,
    ReportExhausted,
    ScheduleReconnect,
    TeardownRequested,
    TimerFired,
    classify_close,
    transition,
)
from klinepulse.domain.value_objects.kline_update import KlineUpdate
from klinepulse.shared.logging.logger import get_logger

logger = get_logger("live_feed")

CandleHandler = Callable[[Candle], Awaitable[None]]
BarHandler = Callable[[KlineUpdate], Awaitable[None]]
StateHandler = Callable[[FeedState], Awaitable[None]]


class LiveFeedSession(ILiveFeedSession):
    """
    Sesión de streaming para un par (symbol, interval).

    Ciclo de vida:
      1. start()             → ConnectRequested → abre la conexión
      2. _run_connection()   → FeedOpened / MessageReceived / cierre
      3. _reconnect_after()  → TimerFired tras el backoff
      4. stop()              → TeardownRequested (cierre 1000, cancela timer)
    """

    def __init__(
        self,
        symbol: str,
        interval: str,
        url: str,
        on_candle: CandleHandler,
        on_bar: Optional[BarHandler] = None,
        on_state: Optional[StateHandler] = None,
        policy: ReconnectPolicy = ReconnectPolicy(),
        connect: Callable[..., Any] = websockets.connect,
        ping_interval: Optional[float] = 20.0,
        close_timeout: float = 10.0,
    ) -> None:
        self.symbol = symbol
        self.interval = interval
        self._url = url
        self._on_candle = on_candle
        self._on_bar = on_bar
        self._on_state = on_state
        self._policy = policy
        self._connect = connect
        self._ping_interval = ping_interval
        self._close_timeout = close_timeout

        self._state = FeedState()
        self._generation = 0
        self._ws: Any = None
        self._conn_task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None

        # Estadísticas de monitoreo
        self._messages_received: int = 0
        self._messages_dropped: int = 0
        self._candles_committed: int = 0
        self._connected_since: float = 0.0
        self._last_error: Optional[DomainError] = None

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def url(self) -> str:
        return self._url

    # ──────────────────────── Lifecycle ──────────────────────────────────

    async def start(self) -> None:
        """Abrir la conexión (si ya había una, se descarta)."""
        logger.info("Iniciando sesión %s@%s → %s", self.symbol, self.interval, self._url)
        await self._dispatch(ConnectRequested(self._url))

    async def stop(self, reason: str = "teardown") -> None:
        """Cierre determinista: código 1000, timer cancelado, sin reconexión."""
        await self._dispatch(TeardownRequested(reason))
        logger.info(
            "Sesión %s@%s detenida (%s). Mensajes: %d, velas consolidadas: %d, descartados: %d",
            self.symbol, self.interval, reason,
            self._messages_received, self._candles_committed, self._messages_dropped,
        )

    # ──────────────────────── Dispatch ──────────────────────────────────

    async def _dispatch(self, event: FeedEvent, generation: Optional[int] = None) -> None:
        """Aplicar un evento. Los de una generación anterior son no-ops."""
        if generation is not None and generation != self._generation:
            logger.debug("Evento obsoleto ignorado: %s (gen %d ≠ %d)",
                         type(event).__name__, generation, self._generation)
            return

        previous = self._state
        self._state, effects = transition(previous, event, self._policy)

        for effect in effects:
            await self._apply(effect)

        if self._state.connection is not previous.connection:
            logger.info(
                "Feed %s@%s: %s → %s",
                self.symbol, self.interval,
                previous.connection.value, self._state.connection.value,
            )
            if self._on_state is not None:
                await self._on_state(self._state)

    async def _apply(self, effect: FeedEffect) -> None:
        if isinstance(effect, OpenConnection):
            self._generation += 1
            self._conn_task = asyncio.create_task(
                self._run_connection(effect.url, self._generation),
                name=f"feed-{self.symbol}-{self.interval}-{self._generation}",
            )
        elif isinstance(effect, CloseConnection):
            await self._close_connection(effect.code, effect.reason)
        elif isinstance(effect, CancelReconnectTimer):
            await self._cancel_timer()
        elif isinstance(effect, ScheduleReconnect):
            logger.info(
                "Reconectando en %dms (intento #%d de %d)...",
                effect.delay_ms, effect.attempt, self._policy.max_attempts,
            )
            self._timer_task = asyncio.create_task(
                self._reconnect_after(effect.delay_ms, self._generation),
                name=f"feed-reconnect-{self.symbol}-{self.interval}",
            )
        elif isinstance(effect, CommitCandle):
            self._candles_committed += 1
            await self._on_candle(effect.candle)
        elif isinstance(effect, ObserveBar):
            if self._on_bar is not None:
                await self._on_bar(effect.update)
        elif isinstance(effect, DropMessage):
            self._messages_dropped += 1
            logger.warning("Mensaje descartado en %s@%s: %s",
                           self.symbol, self.interval, effect.error.message)
        elif isinstance(effect, ReportExhausted):
            self._last_error = ReconnectExhaustedError(
                f"Reconexiones agotadas para {self.symbol}@{self.interval} "
                f"(último código {effect.code})",
                attempts=effect.attempts,
            )
            logger.error("%s – offline tras %d intentos", self._last_error.message, effect.attempts)

    # ──────────────────────── Connection ────────────────────────────────

    async def _run_connection(self, url: str, generation: int) -> None:
        """Abrir el socket, emitir eventos hasta el cierre y clasificarlo."""
        close_code: Optional[int] = ABNORMAL_CLOSURE
        close_reason = ""
        try:
            async with self._connect(
                url,
                ping_interval=self._ping_interval,
                close_timeout=self._close_timeout,
                max_size=2**20,       # 1 MB máximo por mensaje
            ) as ws:
                if generation != self._generation:
                    return
                self._ws = ws
                self._connected_since = time.time()
                await self._dispatch(FeedOpened(), generation)

                async for raw in ws:
                    if generation != self._generation:
                        return
                    self._messages_received += 1
                    await self._dispatch(MessageReceived(raw), generation)

                # El iterador termina sin excepción en cierres 1000 / 1001
                close_code = ws.close_code
                close_reason = ws.close_reason or ""

        except ConnectionClosed as e:
            close_code, close_reason = _close_info(e)
            logger.warning("Conexión cerrada %s@%s: código %s %s",
                           self.symbol, self.interval, close_code, close_reason)
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
            self._last_error = FeedConnectionError(
                f"Fallo de transporte: {e}", close_code=ABNORMAL_CLOSURE,
            )
            logger.error("%s (%s)", self._last_error.message, url)
            close_reason = str(e)
        except Exception as e:
            logger.error("Error inesperado en conexión %s: %s", url, e, exc_info=True)
            close_reason = str(e)
        finally:
            if generation == self._generation:
                self._ws = None

        await self._dispatch(classify_close(close_code, close_reason), generation)

    async def _close_connection(self, code: int, reason: str) -> None:
        """Cerrar y descartar la conexión actual (si existe)."""
        ws, task = self._ws, self._conn_task
        self._ws = None
        self._conn_task = None
        # Cualquier evento tardío de esta conexión pasa a ser obsoleto
        self._generation += 1

        if ws is not None:
            try:
                await ws.close(code=code, reason=reason)
            except (WebSocketException, OSError) as e:
                logger.debug("Error cerrando WS (ignorado): %s", e)

        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ──────────────────────── Timer ─────────────────────────────────────

    async def _reconnect_after(self, delay_ms: int, generation: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        if self._timer_task is asyncio.current_task():
            self._timer_task = None
        await self._dispatch(TimerFired(), generation)

    async def _cancel_timer(self) -> None:
        task = self._timer_task
        self._timer_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ──────────────────────── Stats ─────────────────────────────────────

    @property
    def stats(self) -> dict:
        """Estadísticas de la sesión para monitoreo."""
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "url": self._url,
            "state": self._state.connection.value,
            "connected": self._state.connection is ConnectionState.OPEN,
            "offline": self._state.offline,
            "reconnect_attempts": self._state.attempts,
            "messages_received": self._messages_received,
            "messages_dropped": self._messages_dropped,
            "candles_committed": self._candles_committed,
            "connected_since": self._connected_since,
            "last_error": self._last_error.to_dict() if self._last_error else None,
        }


def _close_info(exc: ConnectionClosed) -> tuple[int, str]:
    """Código y motivo del frame de close recibido (1006 si no hubo)."""
    if exc.rcvd is not None:
        return exc.rcvd.code, exc.rcvd.reason
    return ABNORMAL_CLOSURE, ""
