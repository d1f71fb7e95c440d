from scalpcore.execution.models import Side, Trade, TradeStatus, trade_to_dict
from scalpcore.execution.trade_manager import TradeManager

__all__ = [
    "Side",
    "Trade",
    "TradeManager",
    "TradeStatus",
    "trade_to_dict",
]
