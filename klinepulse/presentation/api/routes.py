"""
KlinePulse – API Routes (FastAPI)
===================================
Endpoints REST y WebSocket para el frontend.

Endpoints disponibles:
  WS   /ws/chart                          → snapshot actual + streaming
  GET  /api/health                        → health check
  GET  /api/status                        → sesión de feed + clientes WS
  GET  /api/chart                         → snapshot actual del chart
  POST /api/chart/selection               → cambiar (symbol, interval)
  PUT  /api/chart/indicators              → fijar toggles de indicadores
  POST /api/chart/indicators/{name}/toggle → invertir un toggle
  GET  /api/summary                       → último resumen en vivo
  POST /api/summary/refresh               → refrescar desde el ticker 24h
  GET  /api/price-comparison              → precio actual vs hace 1 minuto
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from klinepulse.container import Container
from klinepulse.domain.exceptions.domain_errors import ValidationError
from klinepulse.presentation.api.schemas import (
    HealthResponse,
    IndicatorTogglesRequest,
    PriceComparisonResponse,
    SelectionRequest,
)
from klinepulse.shared.logging.logger import get_logger

logger = get_logger("api.routes")

router = APIRouter()

# Contenedor inyectado desde main.py
_container: Optional[Container] = None


def init_routes(container: Container) -> None:
    """Inyectar dependencias desde main.py al arrancar."""
    global _container
    _container = container


def _require_container() -> Container:
    if _container is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return _container


def _validation_response(error: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error.to_dict())


# ─── WebSocket endpoint para streaming a frontend ─────────────────────

@router.websocket("/ws/chart")
async def chart_stream(websocket: WebSocket) -> None:
    """
    WebSocket endpoint principal.
    Al conectar se envía el snapshot actual; después el broadcast lo
    maneja WebSocketManager y este handler solo gestiona el ciclo de vida.
    """
    if _container is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    ws_manager = _container.ws_manager
    await ws_manager.connect(websocket)
    try:
        if not await ws_manager.send_to(websocket, "chart", _container.chart_session.snapshot):
            return
        summary = _container.live_summary.latest
        if summary is not None:
            await ws_manager.send_to(websocket, "summary", summary)
        while True:
            try:
                data = await websocket.receive_text()
                logger.debug("Mensaje de cliente WS: %s", data[:100])
            except WebSocketDisconnect:
                break
    finally:
        ws_manager.disconnect(websocket)


# ─── REST endpoints de estado ──────────────────────────────────────────

@router.get("/api/health", response_model=HealthResponse)
async def health_check() -> dict:
    """Health check para monitoreo."""
    return {"status": "ok", "service": "klinepulse"}


@router.get("/api/status")
async def system_status() -> dict:
    """Estado de la sesión de feed, del bus y de los clientes WS."""
    container = _require_container()
    session = container.chart_session.session
    snapshot = container.chart_session.snapshot
    return {
        "symbol": snapshot.symbol,
        "interval": snapshot.interval,
        "candles": len(snapshot.candles),
        "version": snapshot.version,
        "feed": session.stats if session is not None else {},
        "event_bus_subscribers": container.event_bus.subscriber_count,
        "ws": container.ws_manager.stats,
        "summary_skipped": container.live_summary.skipped,
    }


# ─── Chart ─────────────────────────────────────────────────────────────

@router.get("/api/chart")
async def get_chart() -> dict:
    """Snapshot actual: velas + indicadores de la misma versión."""
    return _require_container().chart_session.snapshot.to_dict()


@router.post("/api/chart/selection")
async def select_chart(body: SelectionRequest):
    """Cambiar símbolo y/o intervalo (teardown → fetch → seed → stream)."""
    container = _require_container()
    symbol = body.symbol or container.chart_session.snapshot.symbol or container.settings.default_symbol
    try:
        snapshot = await container.chart_session.select(symbol, body.interval)
    except ValidationError as e:
        logger.warning("Selección rechazada: %s", e.message)
        return _validation_response(e)
    logger.info("Chart cambiado a %s@%s", snapshot.symbol, snapshot.interval)
    return snapshot.to_dict()


@router.put("/api/chart/indicators")
async def set_indicators(body: IndicatorTogglesRequest) -> dict:
    """Fijar toggles (parciales) y recalcular."""
    container = _require_container()
    changes = body.model_dump(exclude_none=True)
    toggles = replace(container.chart_session.toggles, **changes)
    snapshot = await container.chart_session.set_toggles(toggles)
    return snapshot.to_dict()


@router.post("/api/chart/indicators/{name}/toggle")
async def toggle_indicator(name: str):
    """Invertir un indicador por nombre (rsi, macd, ema, sma)."""
    container = _require_container()
    try:
        snapshot = await container.chart_session.toggle(name)
    except ValidationError as e:
        return _validation_response(e)
    return snapshot.to_dict()


# ─── Resumen / comparación ─────────────────────────────────────────────

@router.get("/api/summary")
async def get_summary() -> dict:
    """Último resumen en vivo (None hasta el primer refresh o barra)."""
    summary = _require_container().live_summary.latest
    return {"summary": summary.to_dict() if summary is not None else None}


@router.post("/api/summary/refresh")
async def refresh_summary() -> dict:
    """Refrescar el resumen desde el ticker 24h del símbolo activo."""
    container = _require_container()
    symbol = container.chart_session.snapshot.symbol or container.settings.default_symbol
    summary = await container.live_summary.refresh(symbol)
    return {"summary": summary.to_dict() if summary is not None else None}


@router.get("/api/price-comparison", response_model=PriceComparisonResponse)
async def price_comparison():
    """Precio actual vs cierre de la vela de 1m anterior."""
    container = _require_container()
    symbol = container.chart_session.snapshot.symbol or container.settings.default_symbol
    comparison = await container.price_comparison.compare(symbol)
    if comparison is None:
        raise HTTPException(status_code=502, detail="No se pudo obtener la comparación de precio")
    return comparison.to_dict()
