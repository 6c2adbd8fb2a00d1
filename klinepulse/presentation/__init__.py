"""
KlinePulse – Presentation Layer
=================================
API HTTP y WebSocket.

Este módulo contiene:
- api/: FastAPI routes y schemas
- websocket/: broadcast de snapshots y resumen a los clientes

REGLA DE DEPENDENCIA:
Esta capa SOLO llama a use cases de application/.
NO accede directamente a infrastructure/ (salvo el EventBus para suscribirse).
"""

from klinepulse.presentation.api.routes import router, init_routes
from klinepulse.presentation.websocket.websocket_manager import WebSocketManager

__all__ = [
    "router",
    "init_routes",
    "WebSocketManager",
]
