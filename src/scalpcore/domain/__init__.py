from scalpcore.domain.models import (
    PriceHistory,
    Signal,
    SignalType,
    SymbolSnapshot,
    closes,
    signal_to_dict,
)

__all__ = ["PriceHistory", "Signal", "SignalType", "SymbolSnapshot", "closes", "signal_to_dict"]
