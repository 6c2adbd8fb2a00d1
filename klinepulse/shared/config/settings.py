"""
KlinePulse – Settings (Pydantic BaseSettings)
=============================================
Configuración centralizada cargada desde variables de entorno / .env.
Se usa pydantic-settings para validación estricta al arranque.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List


class Settings(BaseSettings):
    # ─── Binance ────────────────────────────────────────────────────────
    binance_rest_url: str = Field(
        default="https://api.binance.com/api/v3",
        description="Endpoint REST de Binance (klines, ticker 24h)",
    )
    binance_ws_url: str = Field(
        default="wss://stream.binance.com:9443/ws",
        description="Endpoint WebSocket de streams de Binance",
    )
    http_timeout_seconds: float = Field(
        default=10.0, description="Timeout (seg) de cada request REST"
    )

    # ─── Chart ──────────────────────────────────────────────────────────
    default_symbol: str = Field(default="BTCUSDT", description="Símbolo inicial del chart")
    default_interval: str = Field(default="1m", description="Intervalo inicial del chart")
    available_intervals: List[str] = Field(
        default=[
            "1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h",
            "6h", "8h", "12h", "1d", "3d", "1w", "1M",
        ],
        description="Intervalos de kline soportados por Binance",
    )
    history_limit: int = Field(
        default=500, description="Velas históricas a pedir al seleccionar un intervalo"
    )
    max_candles_buffer: int = Field(
        default=1000, description="Máximo de velas en memoria por sesión"
    )

    # ─── Indicadores ────────────────────────────────────────────────────
    rsi_period: int = Field(default=14, description="Período del RSI (Wilder)")
    ema_period: int = Field(default=20, description="Período de la EMA del chart")
    sma_period: int = Field(default=20, description="Período de la SMA del chart")

    # ─── Reconexión ─────────────────────────────────────────────────────
    ws_reconnect_base_delay_ms: int = Field(
        default=1000, description="Delay base (ms) para backoff exponencial"
    )
    ws_reconnect_max_delay_ms: int = Field(
        default=30_000, description="Delay máximo (ms) entre reconexiones"
    )
    ws_reconnect_max_attempts: int = Field(
        default=5, description="Reconexiones anormales seguidas antes de quedar offline"
    )
    ws_ping_interval: float = Field(
        default=20.0, description="Intervalo (seg) de ping del cliente websockets"
    )
    ws_close_timeout: float = Field(
        default=10.0, description="Timeout (seg) del handshake de cierre"
    )

    # ─── Resumen en vivo ────────────────────────────────────────────────
    summary_throttle_ms: int = Field(
        default=5000, description="Intervalo mínimo (ms) entre recálculos del resumen"
    )

    # ─── Event Bus ──────────────────────────────────────────────────────
    event_bus_max_queue_size: int = Field(
        default=10_000,
        description="Tamaño máximo de cola del Event Bus para contrapresión",
    )

    # ─── Server ─────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8888)
    debug: bool = Field(default=False)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton global – se importa donde se necesite
settings = Settings()
