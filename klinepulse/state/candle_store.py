"""
KlinePulse – Candle Store
===========================
Serie de velas en memoria, ordenada por `time`, con capacidad fija.

SEMÁNTICA:
- upsert(): si existe una vela con el mismo `time` se reemplaza EN SITIO
  (revisión de la barra abierta). Si no, se inserta manteniendo el orden
  (en la práctica un append) y, si se supera la capacidad, se descarta la
  vela más antigua. Un reemplazo nunca provoca evicción.
- seed(): reemplaza todo el contenido con el histórico REST.
- snapshot(): vista inmutable y versionada. Cada mutación incrementa
  `version`; la tupla se cachea hasta la siguiente mutación.

PROTECCIÓN DE MEMORIA:
- Nunca se almacenan más de `capacity` velas.

RACE CONDITIONS:
- Todas las operaciones se ejecutan dentro del mismo event loop asyncio.
- Las mutaciones se serializan en el loop → no hace falta lock.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from klinepulse.domain.entities.candle import Candle
from klinepulse.domain.exceptions.domain_errors import PreconditionViolationError
from klinepulse.shared.logging.logger import get_logger

logger = get_logger("candle_store")

DEFAULT_CAPACITY = 1000


@dataclass(frozen=True, slots=True)
class CandleSnapshot:
    """Versión consistente de la serie para recálculo y display."""

    version: int
    candles: Tuple[Candle, ...]

    def __len__(self) -> int:
        return len(self.candles)

    @property
    def closes(self) -> list[float]:
        return [c.close for c in self.candles]

    @property
    def last(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None


class CandleStore:
    """
    Serie de velas acotada con upsert por timestamp.

    Uso:
        store = CandleStore(capacity=1000)
        store.seed(historical)
        store.upsert(candle)
        snap = store.snapshot()
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity debe ser >= 1")
        self._capacity = capacity
        self._candles: list[Candle] = []
        # Índice paralelo de tiempos para búsqueda binaria
        self._times: list[int] = []
        self._version = 0
        self._snapshot: Optional[CandleSnapshot] = None

    # ──────────────────────── Lectura ───────────────────────────────────

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._candles)

    def snapshot(self) -> CandleSnapshot:
        """Vista inmutable. Sin copia si no hubo mutaciones desde la última."""
        if self._snapshot is None or self._snapshot.version != self._version:
            self._snapshot = CandleSnapshot(self._version, tuple(self._candles))
        return self._snapshot

    # ──────────────────────── Mutación ──────────────────────────────────

    def upsert(self, candle: Candle) -> bool:
        """
        Insertar o reemplazar una vela.

        Retorna True si se insertó una vela nueva, False si se reemplazó
        o si se descartó. Con el store lleno, una vela más antigua que la
        primera se descarta sin mutar (ni version ni snapshot cambian).

        Raises:
            InvalidCandleError: la vela no pasa validación (store intacto).
        """
        candle.validate()

        if len(self._candles) >= self._capacity and candle.time < self._times[0]:
            logger.debug("Vela %d anterior a la ventana (min %d), descartada",
                         candle.time, self._times[0])
            return False

        # Fast path: revisión de la última vela o append al final
        if self._times and candle.time == self._times[-1]:
            self._candles[-1] = candle
            self._mutated()
            return False

        if not self._times or candle.time > self._times[-1]:
            self._candles.append(candle)
            self._times.append(candle.time)
        else:
            idx = bisect_left(self._times, candle.time)
            if self._times[idx] == candle.time:
                self._candles[idx] = candle
                self._mutated()
                return False
            logger.debug("Vela fuera de orden %d insertada en posición %d", candle.time, idx)
            self._candles.insert(idx, candle)
            self._times.insert(idx, candle.time)

        if len(self._candles) > self._capacity:
            evicted = self._candles.pop(0)
            self._times.pop(0)
            logger.debug("Capacidad %d excedida, vela %d descartada", self._capacity, evicted.time)

        self._mutated()
        return True

    def seed(self, candles: Iterable[Candle]) -> None:
        """
        Reemplazar el contenido completo con velas históricas.

        El llamador garantiza orden ascendente sin duplicados; se verifica
        solo cuando Python corre sin -O.
        """
        items = list(candles)
        for candle in items:
            candle.validate()

        if __debug__:
            for prev, curr in zip(items, items[1:]):
                if curr.time <= prev.time:
                    raise PreconditionViolationError(
                        f"seed() requiere tiempos estrictamente ascendentes: "
                        f"{prev.time} seguido de {curr.time}"
                    )

        items = items[-self._capacity:]
        self._candles = items
        self._times = [c.time for c in items]
        self._mutated()
        logger.info("Store sembrado con %d velas (capacidad=%d)", len(items), self._capacity)

    def _mutated(self) -> None:
        self._version += 1
