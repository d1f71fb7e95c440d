from scalpcore.data.base import BalanceSource, MarketDataSource, StaticBalanceSource

__all__ = ["BalanceSource", "MarketDataSource", "StaticBalanceSource"]
