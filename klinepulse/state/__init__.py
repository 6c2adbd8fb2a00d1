"""Estado en memoria de la sesión de chart."""
from klinepulse.state.candle_store import CandleSnapshot, CandleStore

__all__ = ["CandleSnapshot", "CandleStore"]
