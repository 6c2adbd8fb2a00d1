"""
KlinePulse – Infrastructure Layer
===================================
Implementaciones concretas de interfaces.

Este módulo contiene:
- external/: APIs externas (Binance REST + stream de klines)
- event_bus: fan-out en memoria

REGLA DE DEPENDENCIA:
Esta capa implementa interfaces definidas en application/ports/.

Puede importar de:
- domain/ (entidades, máquina de estados)
- application/ (ports)
- shared/ (config, logging)
"""
