"""
Market data snapshots for the heuristic analyzer
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Dict, Optional

from analysis.models import Token
from utils.constants import Chain
from utils.helpers import clamp

logger = logging.getLogger(__name__)


@dataclass
class MarketData:
    """24h market snapshot for one token"""
    price_24h_change: float  # percent
    volume_24h: float
    market_cap: float
    holders: int
    liquidity_depth: float

    def to_dict(self) -> Dict:
        return asdict(self)


class MarketDataProvider(ABC):
    """Interface for market snapshot sources"""

    @abstractmethod
    async def get_market_data(self, token: Token) -> Optional[MarketData]:
        pass


class SimulatedMarketDataProvider(MarketDataProvider):
    """
    Chain-aware simulated snapshots. Mainnet tokens get a higher baseline
    volume and liquidity than testnet tokens.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def get_market_data(self, token: Token) -> Optional[MarketData]:
        if not token.address or not token.chain_id:
            logger.warning("Invalid token metadata provided to get_market_data")
            return None

        mainnet = token.chain_id == Chain.ETHEREUM
        base_volume = 10_000_000 if mainnet else 1_000_000
        base_liquidity = 5_000_000 if mainnet else 500_000

        return MarketData(
            price_24h_change=clamp(-5 + self.rng.random() * 10, -10, 10),
            volume_24h=base_volume + self.rng.random() * (base_volume * 0.5),
            market_cap=base_volume * 10 + self.rng.random() * (base_volume * 5),
            holders=max(100, 1000 + int(self.rng.random() * 9000)),
            liquidity_depth=base_liquidity + self.rng.random() * (base_liquidity * 0.5),
        )


class StaticMarketDataProvider(MarketDataProvider):
    """Returns one fixed snapshot regardless of token"""

    def __init__(self, snapshot: Optional[MarketData]):
        self.snapshot = snapshot

    async def get_market_data(self, token: Token) -> Optional[MarketData]:
        return self.snapshot
