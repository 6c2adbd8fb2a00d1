"""
Binance Adapter.

Implementa IMarketDataProvider contra la API pública de Binance:
- GET /klines        → velas históricas para sembrar el store
- GET /ticker/24hr   → snapshot del instrumento
- stream_url()       → wss://stream.binance.com:9443/ws/<symbol>@kline_<interval>

Cualquier fallo (red, HTTP != 200, payload inesperado) se traduce a
FetchFailureError; el core decide qué hacer con él (sin reintentos aquí).
"""

from __future__ import annotations

from typing import Any, List, Optional

import httpx

from klinepulse.application.ports.market_data_provider import IMarketDataProvider
from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import FetchFailureError, InvalidCandleError
from klinepulse.domain.value_objects.market_summary import InstrumentInfo
from klinepulse.shared.config.settings import Settings
from klinepulse.shared.logging.logger import get_logger

logger = get_logger("binance_adapter")


class BinanceAdapter(IMarketDataProvider):
    """
    Cliente REST asíncrono de Binance + builder de URLs de stream.

    El httpx.AsyncClient se crea perezosamente y se reutiliza; cerrar con
    aclose() al shutdown.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ════════════════════════════════════════════════════════════════
    #  IMarketDataProvider Implementation
    # ════════════════════════════════════════════════════════════════

    def stream_url(self, interval: str, symbol: str) -> str:
        base = self._settings.binance_ws_url.rstrip("/")
        return f"{base}/{symbol.lower()}@kline_{interval}"

    async def fetch_candles(
        self,
        interval: str,
        symbol: str,
        limit: int = 500,
    ) -> List[Candle]:
        """
        Velas históricas ordenadas ASC y sin duplicados.

        Cada fila de /klines es:
            [openTime, open, high, low, close, volume, closeTime,
             quoteVolume, trades, takerBase, takerQuote, ignore]
        """
        rows = await self._get("klines", {
            "symbol": symbol.upper(),
            "interval": interval,
            "limit": limit,
        })
        if not isinstance(rows, list):
            raise FetchFailureError("Respuesta de /klines no es una lista", endpoint="klines")

        by_time: dict[int, Candle] = {}
        for row in rows:
            try:
                candle = Candle(
                    time=int(row[0]) // 1000,
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=float(row[5]),
                )
                candle.validate()
            except (IndexError, TypeError, ValueError, InvalidCandleError) as e:
                logger.warning("Fila de kline descartada (%s): %s", e, str(row)[:120])
                continue
            # La última ocurrencia de un mismo time gana
            by_time[candle.time] = candle

        candles = [by_time[t] for t in sorted(by_time)]
        logger.info(
            "Histórico %s %s: %d velas (pedidas %d)",
            symbol, interval, len(candles), limit,
        )
        return candles

    async def fetch_instrument_info(self, symbol: str) -> InstrumentInfo:
        data = await self._get("ticker/24hr", {"symbol": symbol.upper()})
        try:
            return InstrumentInfo(
                symbol=str(data.get("symbol", symbol.upper())),
                last_price=float(data["lastPrice"]),
                price_change_percent=float(data["priceChangePercent"]),
                volume=float(data["volume"]),
                high_price=float(data.get("highPrice", 0)),
                low_price=float(data.get("lowPrice", 0)),
                open_price=float(data.get("openPrice", 0)),
                quote_volume=float(data.get("quoteVolume", 0)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise FetchFailureError(
                f"Ticker 24h malformado para {symbol}: {e!r}", endpoint="ticker/24hr",
            ) from e

    # ════════════════════════════════════════════════════════════════
    #  HTTP
    # ════════════════════════════════════════════════════════════════

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._settings.binance_rest_url.rstrip("/") + "/",
                timeout=self._settings.http_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def _get(self, endpoint: str, params: dict) -> Any:
        client = self._get_client()
        try:
            resp = await client.get(endpoint, params=params)
        except httpx.HTTPError as e:
            logger.error("Error de red en Binance /%s: %s", endpoint, e)
            raise FetchFailureError(f"Error de red: {e}", endpoint=endpoint) from e

        if resp.status_code != 200:
            logger.error(
                "Binance API error /%s: %d - %s", endpoint, resp.status_code, resp.text[:200],
            )
            raise FetchFailureError(
                f"HTTP {resp.status_code} en /{endpoint}",
                endpoint=endpoint,
                status=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise FetchFailureError(f"JSON inválido en /{endpoint}", endpoint=endpoint) from e

    async def aclose(self) -> None:
        """Cerrar el cliente HTTP (shutdown)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
