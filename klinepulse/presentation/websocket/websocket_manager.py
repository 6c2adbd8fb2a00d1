"""
KlinePulse – WebSocket Manager (broadcast a clientes frontend)
================================================================
Gestiona conexiones WebSocket de clientes frontend y les envía
los snapshots del chart y el resumen en vivo.

ARQUITECTURA:
  EventBus ──(chart_snapshot)──▸ WSManager._broadcast_loop()
  EventBus ──(live_summary)────▸ WSManager._broadcast_loop()
       │
       ▼
  [Cliente WS 1, Cliente WS 2, ...]

NO BLOQUEA EL LOOP PRINCIPAL:
- El broadcast corre como task independiente por tópico.
- Si un cliente se desconecta, se elimina limpiamente sin afectar a otros.
- El envío a cada cliente usa asyncio.wait_for con timeout para evitar
  que un cliente lento congele el broadcast.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Set

from fastapi import WebSocket, WebSocketDisconnect

from klinepulse.application.use_cases.chart_session_usecase import CHART_SNAPSHOT_TOPIC
from klinepulse.application.use_cases.live_summary_usecase import LIVE_SUMMARY_TOPIC
from klinepulse.infrastructure.event_bus import EventBus
from klinepulse.shared.logging.logger import get_logger

logger = get_logger("ws_manager")

SEND_TIMEOUT_SECONDS = 5.0

# tópico del EventBus → "type" del mensaje al frontend
BROADCAST_TOPICS = {
    CHART_SNAPSHOT_TOPIC: "chart",
    LIVE_SUMMARY_TOPIC: "summary",
}


def encode_message(event_type: str, data: Any) -> str:
    """Serializar un evento como {"type", "data"}."""
    if hasattr(data, "to_dict"):
        payload_data = data.to_dict()
    elif isinstance(data, dict):
        payload_data = data
    else:
        payload_data = str(data)
    return json.dumps({"type": event_type, "data": payload_data})


class WebSocketManager:
    """Gestiona conexiones frontend y broadcast de datos en tiempo real."""

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus
        self._clients: Set[WebSocket] = set()
        self._broadcast_tasks: list[asyncio.Task] = []
        self._messages_sent = 0

    async def start(self) -> None:
        """Lanzar un loop de broadcast por tópico."""
        for topic, event_type in BROADCAST_TOPICS.items():
            queue = self._event_bus.subscribe(topic, f"ws_broadcast_{event_type}")
            self._broadcast_tasks.append(
                asyncio.create_task(
                    self._broadcast_loop(queue, event_type),
                    name=f"ws-broadcast-{event_type}",
                )
            )
        logger.info(
            "WebSocketManager iniciado – broadcast loops para %s",
            ", ".join(BROADCAST_TOPICS.values()),
        )

    async def stop(self) -> None:
        """Cancelar broadcast y cerrar todos los clientes."""
        for task in self._broadcast_tasks:
            task.cancel()
        for task in self._broadcast_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._broadcast_tasks.clear()

        for ws in list(self._clients):
            try:
                await ws.close()
            except (RuntimeError, WebSocketDisconnect) as e:
                logger.debug("Error cerrando cliente WS (ignorado): %s", e)
        self._clients.clear()
        logger.info("WebSocketManager detenido")

    async def connect(self, websocket: WebSocket) -> None:
        """Registrar un nuevo cliente WebSocket."""
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Cliente WS conectado. Total: %d", len(self._clients))

    def disconnect(self, websocket: WebSocket) -> None:
        """Des-registrar un cliente desconectado."""
        self._clients.discard(websocket)
        logger.info("Cliente WS desconectado. Total: %d", len(self._clients))

    async def send_to(self, websocket: WebSocket, event_type: str, data: Any) -> bool:
        """Enviar un evento a UN cliente (p.ej. snapshot inicial al conectar)."""
        disconnected: list[WebSocket] = []
        await self._safe_send(websocket, encode_message(event_type, data), disconnected)
        if disconnected:
            self.disconnect(websocket)
            return False
        return True

    async def _broadcast_loop(self, queue: asyncio.Queue, event_type: str) -> None:
        """
        Loop que consume eventos de una Queue y los envía a todos los clientes.
        Corre indefinidamente en su propio task.
        """
        while True:
            data = await queue.get()
            if not self._clients:
                continue

            payload = encode_message(event_type, data)

            # Broadcast a todos los clientes en paralelo
            disconnected: list[WebSocket] = []
            await asyncio.gather(
                *(self._safe_send(ws, payload, disconnected) for ws in list(self._clients))
            )

            # Limpiar clientes desconectados
            for ws in disconnected:
                self.disconnect(ws)

    async def _safe_send(
        self, ws: WebSocket, payload: str, disconnected: list[WebSocket]
    ) -> None:
        """
        Enviar payload a un cliente con timeout.
        Si falla, marcar como desconectado para limpieza.
        """
        try:
            await asyncio.wait_for(ws.send_text(payload), timeout=SEND_TIMEOUT_SECONDS)
            self._messages_sent += 1
        except (WebSocketDisconnect, asyncio.TimeoutError, Exception) as e:
            logger.debug("Envío a cliente WS falló: %s", e)
            disconnected.append(ws)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def stats(self) -> dict:
        return {
            "clients": len(self._clients),
            "messages_sent": self._messages_sent,
            "broadcast_loops": len(self._broadcast_tasks),
        }
