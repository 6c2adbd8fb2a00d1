"""
KlinePulse – Domain Service: Feed State Machine
=================================================
Máquina de estados PURA de la sesión de streaming.

    Idle → Connecting → Open ─┬─▸ ClosedNormal (terminal)
                              └─▸ ClosedAbnormal ─▸ ReconnectScheduled ─▸ Connecting
                                       │
                                       └─ (reconexiones agotadas) terminal → offline

`transition(state, event, policy)` no hace I/O: devuelve el nuevo estado y
una lista de efectos que el driver (LiveFeedSession) ejecuta en orden.
Así cada handler de WebSocket (mensaje / cierre / timer) es un paso
síncrono y testeable, en lugar de callbacks anidados.

BACKOFF:
    delay(attempt) = min(base × 2^attempt, max)   → 1s, 2s, 4s, 8s, 16s
El contador de reconexiones anormales vuelve a 0 al entrar en Open.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import List, Tuple, Union

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import ParseFailureError
from klinepulse.domain.value_objects.kline_update import KlineUpdate

# Código WebSocket de cierre intencional
NORMAL_CLOSURE = 1000
# Cierre sin frame de close (fallo de red / handshake)
ABNORMAL_CLOSURE = 1006


class ConnectionState(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED_NORMAL = "closed_normal"
    CLOSED_ABNORMAL = "closed_abnormal"
    RECONNECT_SCHEDULED = "reconnect_scheduled"


TERMINAL_STATES = frozenset({ConnectionState.CLOSED_NORMAL, ConnectionState.CLOSED_ABNORMAL})


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Backoff exponencial con techo y número máximo de reintentos."""

    base_delay_ms: int = 1000
    max_delay_ms: int = 30_000
    max_attempts: int = 5

    def delay_ms(self, attempt: int) -> int:
        return min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)


@dataclass(frozen=True, slots=True)
class FeedState:
    connection: ConnectionState = ConnectionState.IDLE
    attempts: int = 0       # reconexiones anormales desde el último Open
    url: str = ""

    @property
    def offline(self) -> bool:
        return self.connection is ConnectionState.CLOSED_ABNORMAL


# ─── Eventos ────────────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class ConnectRequested:
    url: str


@dataclass(frozen=True, slots=True)
class FeedOpened:
    pass


@dataclass(frozen=True, slots=True)
class MessageReceived:
    raw: Union[str, bytes]


@dataclass(frozen=True, slots=True)
class ClosedNormal:
    code: int = NORMAL_CLOSURE
    reason: str = ""


@dataclass(frozen=True, slots=True)
class ClosedAbnormal:
    code: int = ABNORMAL_CLOSURE
    reason: str = ""


@dataclass(frozen=True, slots=True)
class TimerFired:
    pass


@dataclass(frozen=True, slots=True)
class TeardownRequested:
    reason: str = "teardown"


FeedEvent = Union[
    ConnectRequested, FeedOpened, MessageReceived,
    ClosedNormal, ClosedAbnormal, TimerFired, TeardownRequested,
]


# ─── Efectos ────────────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class OpenConnection:
    url: str


@dataclass(frozen=True, slots=True)
class CloseConnection:
    code: int = NORMAL_CLOSURE
    reason: str = ""


@dataclass(frozen=True, slots=True)
class CancelReconnectTimer:
    pass


@dataclass(frozen=True, slots=True)
class ScheduleReconnect:
    delay_ms: int
    attempt: int            # número de reconexión (1-based)


@dataclass(frozen=True, slots=True)
class CommitCandle:
    candle: Candle


@dataclass(frozen=True, slots=True)
class ObserveBar:
    update: KlineUpdate


@dataclass(frozen=True, slots=True)
class DropMessage:
    error: ParseFailureError


@dataclass(frozen=True, slots=True)
class ReportExhausted:
    attempts: int
    code: int


FeedEffect = Union[
    OpenConnection, CloseConnection, CancelReconnectTimer, ScheduleReconnect,
    CommitCandle, ObserveBar, DropMessage, ReportExhausted,
]


def classify_close(code: int | None, reason: str = "") -> Union[ClosedNormal, ClosedAbnormal]:
    """Solo 1000 es cierre intencional; cualquier otro código reconecta."""
    if code == NORMAL_CLOSURE:
        return ClosedNormal(code=code, reason=reason)
    return ClosedAbnormal(code=ABNORMAL_CLOSURE if code is None else code, reason=reason)


def transition(
    state: FeedState,
    event: FeedEvent,
    policy: ReconnectPolicy = ReconnectPolicy(),
) -> Tuple[FeedState, List[FeedEffect]]:
    """Paso puro de la máquina de estados."""
    conn = state.connection

    if isinstance(event, TeardownRequested):
        effects: List[FeedEffect] = [CancelReconnectTimer()]
        if conn in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            effects.append(CloseConnection(NORMAL_CLOSURE, event.reason))
        return replace(state, connection=ConnectionState.CLOSED_NORMAL), effects

    if conn in TERMINAL_STATES:
        return state, []

    if isinstance(event, ConnectRequested):
        # Una sola conexión por sesión: cerrar y descartar la anterior
        effects = [CancelReconnectTimer()]
        if conn in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            effects.append(CloseConnection(NORMAL_CLOSURE, "reconnect"))
        effects.append(OpenConnection(event.url))
        return replace(state, connection=ConnectionState.CONNECTING, url=event.url), effects

    if isinstance(event, TimerFired):
        if conn is not ConnectionState.RECONNECT_SCHEDULED:
            return state, []
        return replace(state, connection=ConnectionState.CONNECTING), [OpenConnection(state.url)]

    if isinstance(event, FeedOpened):
        if conn is not ConnectionState.CONNECTING:
            return state, []
        return replace(state, connection=ConnectionState.OPEN, attempts=0), []

    if isinstance(event, MessageReceived):
        if conn is not ConnectionState.OPEN:
            return state, []
        try:
            update = KlineUpdate.from_message(event.raw)
        except ParseFailureError as e:
            return state, [DropMessage(e)]
        effects = [ObserveBar(update)]
        if update.is_closed:
            effects.append(CommitCandle(update.to_candle()))
        return state, effects

    if isinstance(event, ClosedNormal):
        if conn not in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return state, []
        return replace(state, connection=ConnectionState.CLOSED_NORMAL), []

    if isinstance(event, ClosedAbnormal):
        if conn not in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return state, []
        if state.attempts >= policy.max_attempts:
            return (
                replace(state, connection=ConnectionState.CLOSED_ABNORMAL),
                [ReportExhausted(attempts=state.attempts, code=event.code)],
            )
        return (
            replace(
                state,
                connection=ConnectionState.RECONNECT_SCHEDULED,
                attempts=state.attempts + 1,
            ),
            [ScheduleReconnect(
                delay_ms=policy.delay_ms(state.attempts),
                attempt=state.attempts + 1,
            )],
        )

    return state, []
