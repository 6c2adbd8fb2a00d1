"""
KlinePulse – Application Port: Event Publisher
================================================
Interfaz para publicar eventos hacia la capa de presentación.

Los use cases publican snapshots; la infraestructura decide CÓMO
entregarlos (EventBus en memoria → WebSocket, etc.)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IEventPublisher(ABC):
    """
    Interfaz para publicar eventos del sistema.

    IMPLEMENTACIONES POSIBLES:
    - EventBus (memoria/async, fan-out por asyncio.Queue)
    - Publicador en memoria para tests
    """

    @abstractmethod
    async def publish(self, topic: str, data: Any) -> None:
        """
        Publica un evento a un tópico.

        Args:
            topic: Nombre del tópico (e.g. "chart_snapshot", "live_summary")
            data: Objeto inmutable con to_dict() o dict serializable a JSON
        """
        pass
