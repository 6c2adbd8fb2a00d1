"""
Dependency Injection Container.

Este módulo proporciona el contenedor de inyección de dependencias
que gestiona todas las instancias de servicios, adaptadores y casos de uso.

Clean Architecture: Este contenedor vive en la capa más externa y es el único
lugar donde se crean dependencias concretas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

# Domain
from klinepulse.domain.services.feed_state_machine import ReconnectPolicy
from klinepulse.domain.services.indicator_calculator import IndicatorCalculator

# Application
from klinepulse.application.ports.live_feed import ILiveFeedSession, LiveFeedFactory
from klinepulse.application.ports.market_data_provider import IMarketDataProvider
from klinepulse.application.use_cases.chart_session_usecase import ChartSessionUseCase
from klinepulse.application.use_cases.live_summary_usecase import LiveSummaryUseCase
from klinepulse.application.use_cases.price_comparison_usecase import PriceComparisonUseCase

# Infrastructure
from klinepulse.infrastructure.event_bus import EventBus

# Shared
from klinepulse.shared.config.settings import Settings


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Gestiona el ciclo de vida de todas las dependencias de la aplicación.
    Sigue el principio de inversión de dependencias: las capas internas
    dependen de abstracciones, no de implementaciones concretas.
    """

    # Configuración
    settings: Settings = field(default_factory=Settings)

    # Ports (implementaciones concretas)
    _event_bus: Optional[EventBus] = None
    _market_data_provider: Optional[IMarketDataProvider] = None
    _live_feed_factory: Optional[LiveFeedFactory] = None

    # Domain Services (stateless, se pueden compartir)
    _indicator_calculator: Optional[IndicatorCalculator] = None

    # Use Cases (con estado, uno por app)
    _chart_session: Optional[ChartSessionUseCase] = None
    _live_summary: Optional[LiveSummaryUseCase] = None
    _price_comparison: Optional[PriceComparisonUseCase] = None

    # Presentation
    _ws_manager: Optional[Any] = None

    # ==================== Domain Services ====================

    @property
    def indicator_calculator(self) -> IndicatorCalculator:
        """Obtiene o crea IndicatorCalculator (singleton)."""
        if self._indicator_calculator is None:
            self._indicator_calculator = IndicatorCalculator(
                rsi_period=self.settings.rsi_period,
                ema_period=self.settings.ema_period,
                sma_period=self.settings.sma_period,
            )
        return self._indicator_calculator

    @property
    def reconnect_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            base_delay_ms=self.settings.ws_reconnect_base_delay_ms,
            max_delay_ms=self.settings.ws_reconnect_max_delay_ms,
            max_attempts=self.settings.ws_reconnect_max_attempts,
        )

    # ==================== Ports ====================

    @property
    def event_bus(self) -> EventBus:
        """Obtiene el bus de eventos (también es el IEventPublisher)."""
        if self._event_bus is None:
            self._event_bus = EventBus(max_queue_size=self.settings.event_bus_max_queue_size)
        return self._event_bus

    @property
    def market_data_provider(self) -> IMarketDataProvider:
        """Obtiene el proveedor de datos de mercado."""
        if self._market_data_provider is None:
            from klinepulse.infrastructure.external.binance_adapter import BinanceAdapter
            self._market_data_provider = BinanceAdapter(self.settings)
        return self._market_data_provider

    def create_live_feed(
        self, symbol, interval, url, on_candle, on_bar=None, on_state=None,
    ) -> ILiveFeedSession:
        """
        Factory de LiveFeedSession (una por selección).

        Se pasa al orquestador como `feed_factory`; cada llamada crea una
        sesión nueva con la política de reconexión de la configuración.
        """
        from klinepulse.infrastructure.external.live_feed_session import LiveFeedSession
        return LiveFeedSession(
            symbol=symbol,
            interval=interval,
            url=url,
            on_candle=on_candle,
            on_bar=on_bar,
            on_state=on_state,
            policy=self.reconnect_policy,
            ping_interval=self.settings.ws_ping_interval,
            close_timeout=self.settings.ws_close_timeout,
        )

    # ==================== Use Cases ====================

    @property
    def live_summary(self) -> LiveSummaryUseCase:
        if self._live_summary is None:
            self._live_summary = LiveSummaryUseCase(
                provider=self.market_data_provider,
                publisher=self.event_bus,
                throttle_ms=self.settings.summary_throttle_ms,
            )
        return self._live_summary

    @property
    def chart_session(self) -> ChartSessionUseCase:
        if self._chart_session is None:
            self._chart_session = ChartSessionUseCase(
                provider=self.market_data_provider,
                publisher=self.event_bus,
                feed_factory=self._live_feed_factory or self.create_live_feed,
                calculator=self.indicator_calculator,
                capacity=self.settings.max_candles_buffer,
                history_limit=self.settings.history_limit,
                available_intervals=self.settings.available_intervals,
                bar_listener=self.live_summary.on_bar,
            )
        return self._chart_session

    @property
    def price_comparison(self) -> PriceComparisonUseCase:
        if self._price_comparison is None:
            self._price_comparison = PriceComparisonUseCase(self.market_data_provider)
        return self._price_comparison

    # ==================== Presentation ====================

    @property
    def ws_manager(self):
        if self._ws_manager is None:
            from klinepulse.presentation.websocket.websocket_manager import WebSocketManager
            self._ws_manager = WebSocketManager(self.event_bus)
        return self._ws_manager

    # ==================== Lifecycle ====================

    async def aclose(self) -> None:
        """Liberar recursos de red de los adaptadores (shutdown)."""
        provider = self._market_data_provider
        if provider is not None and hasattr(provider, "aclose"):
            await provider.aclose()

    def override(self, name: str, instance: Any) -> None:
        """
        Override una dependencia (útil para tests con mocks).

        Args:
            name: Nombre de la dependencia (ej: 'market_data_provider')
            instance: Instancia mock a usar
        """
        attr_name = f"_{name}"
        if hasattr(self, attr_name):
            setattr(self, attr_name, instance)
        else:
            raise ValueError(f"Unknown dependency: {name}")


# ==================== Factories ====================


def init_container(settings: Optional[Settings] = None) -> Container:
    """
    Inicializa el contenedor de la aplicación (lo crea main.py).

    Args:
        settings: Configuración opcional. Si es None, usa valores por defecto.
    """
    return Container(settings=settings or Settings())


def create_test_container(settings: Optional[Settings] = None, **mocks) -> Container:
    """
    Crea un contenedor de pruebas con mocks inyectados.

    Ejemplo:
        container = create_test_container(market_data_provider=fake_provider)
    """
    container = Container(settings=settings or Settings())
    for name, mock in mocks.items():
        container.override(name, mock)
    return container
