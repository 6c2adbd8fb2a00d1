"""
KlinePulse – Main Application Entry Point
============================================
Orquesta todos los componentes: Binance REST + stream de klines + store
de velas + indicadores + resumen en vivo + broadcast al frontend.

ARQUITECTURA DE ARRANQUE:
  1. Configurar logging
  2. Crear el contenedor DI (Event Bus, BinanceAdapter, use cases...)
  3. FastAPI lifespan startup:
     a. Iniciar WebSocketManager (broadcast a frontend)
     b. Seleccionar el chart por defecto (fetch histórico + LiveFeedSession)
     c. Refrescar el resumen desde el ticker 24h
  4. FastAPI lifespan shutdown:
     a. Detener todo en orden inverso

FLUJO DE DATOS:
  Binance WS → LiveFeedSession → (vela cerrada) → ChartSessionUseCase
       → CandleStore.upsert → IndicatorCalculator (RSI/MACD/EMA/SMA)
       → EventBus(chart_snapshot) → WebSocketManager → Frontend
  Binance WS → LiveFeedSession → (cada barra) → LiveSummaryUseCase (throttle 5s)
       → EventBus(live_summary) → WebSocketManager → Frontend

  uvicorn klinepulse.main:app --host 0.0.0.0 --port 8888
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from klinepulse.container import init_container
from klinepulse.presentation.api.routes import init_routes, router
from klinepulse.shared.config.settings import settings
from klinepulse.shared.logging.logger import get_logger, setup_logging

# ─── Logging ────────────────────────────────────────────────────────────
setup_logging(logging.DEBUG if settings.debug else logging.INFO)
logger = get_logger("main")

# ─── Contenedor de Dependencias ─────────────────────────────────────────
container = init_container(settings)


# ─── FastAPI Lifespan ───────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle de la aplicación."""
    logger.info("=" * 60)
    logger.info("  KlinePulse - Binance Kline Chart v1.0")
    logger.info("  Chart inicial: %s@%s", settings.default_symbol, settings.default_interval)
    logger.info("  Intervalos: %s", ", ".join(settings.available_intervals))
    logger.info("  Buffer máximo: %d velas (histórico: %d)",
                settings.max_candles_buffer, settings.history_limit)
    logger.info("  Indicadores: RSI %d, EMA %d, SMA %d, MACD 12/26/9",
                settings.rsi_period, settings.ema_period, settings.sma_period)
    logger.info("  Reconexión: %dms base, %dms máx, %d intentos",
                settings.ws_reconnect_base_delay_ms,
                settings.ws_reconnect_max_delay_ms,
                settings.ws_reconnect_max_attempts)
    logger.info("=" * 60)

    # Inyectar dependencias al router (desde container)
    init_routes(container)

    # Iniciar WebSocket Manager (broadcast loops)
    await container.ws_manager.start()

    # Chart por defecto: fetch histórico → seed → stream
    await container.chart_session.select(settings.default_symbol, settings.default_interval)

    # Resumen inicial (ticker 24h)
    await container.live_summary.refresh(settings.default_symbol)

    logger.info("✓ Todos los componentes iniciados correctamente")

    yield  # ← La app está corriendo aquí

    # ── SHUTDOWN ──
    logger.info("Iniciando shutdown...")

    await container.chart_session.stop()
    await container.ws_manager.stop()
    await container.aclose()
    container.event_bus.unsubscribe_all()

    logger.info("✓ Shutdown completo")


# ─── FastAPI App ────────────────────────────────────────────────────────

app = FastAPI(
    title="KlinePulse",
    description="Chart de velas de Binance en tiempo real con RSI, MACD, EMA y SMA",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS para frontend local
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # En producción: restringir a dominios específicos
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rutas
app.include_router(router)
