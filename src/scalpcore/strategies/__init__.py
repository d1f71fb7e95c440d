from scalpcore.strategies.base import TradingStrategy
from scalpcore.strategies.bollinger_bounce import BollingerBounceStrategy
from scalpcore.strategies.ema_crossover import EmaCrossoverStrategy
from scalpcore.strategies.mean_reversion import MeanReversionStrategy
from scalpcore.strategies.momentum_breakout import MomentumBreakoutStrategy
from scalpcore.strategies.rsi_scalping import RsiScalpingStrategy
from scalpcore.strategies.support_resistance import SupportResistanceStrategy
from scalpcore.strategies.volume_spike import VolumeSpikeStrategy

__all__ = [
    "TradingStrategy",
    "BollingerBounceStrategy",
    "EmaCrossoverStrategy",
    "MeanReversionStrategy",
    "MomentumBreakoutStrategy",
    "RsiScalpingStrategy",
    "SupportResistanceStrategy",
    "VolumeSpikeStrategy",
]
