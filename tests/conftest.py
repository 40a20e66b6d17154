# tests/conftest.py
"""
Global pytest configuration and fixtures
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from analysis.ai_analyzer import AIRiskAnalyzer
from analysis.models import RouteCandidate, Token
from analysis.risk_scorer import RiskScorer
from analysis.signal_provider import StaticSignalProvider
from data.collectors.chain_data import StaticGasPriceSource
from data.collectors.market_data import StaticMarketDataProvider
from data.storage.cache import CacheManager
from trading.bridges.bridge_service import BridgeService
from trading.bridges.wormhole import WormholeBridge
from utils.constants import ZERO_ADDRESS, Chain

USER_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
APTOS_ADDRESS = "0x" + "ab" * 32
USDC_SEPOLIA = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning seconds"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def eth_token():
    return Token(address=ZERO_ADDRESS, symbol="ETH", name="Ethereum",
                 decimals=18, chain_id=Chain.SEPOLIA)


@pytest.fixture
def usdc_token():
    return Token(address=USDC_SEPOLIA, symbol="USDC", name="USD Coin",
                 decimals=6, chain_id=Chain.SEPOLIA)


@pytest.fixture
def make_route(eth_token, usdc_token):
    """Factory for route candidates with sane defaults"""

    def _make(route_id="route-1", protocols=("uniswap",), price_impact=0.5,
              from_token=None, to_token=None, to_amount="2000000000", bridge=None):
        from_token = from_token or eth_token
        to_token = to_token or usdc_token
        return RouteCandidate(
            id=route_id,
            protocols=tuple(protocols),
            from_token=from_token,
            to_token=to_token,
            from_amount="1000000000000000000",
            to_amount=to_amount,
            estimated_gas="150000",
            gas_cost="3000000000000000",
            price_impact=price_impact,
            from_chain_id=from_token.chain_id,
            to_chain_id=to_token.chain_id,
            bridge=bridge,
        )

    return _make


@pytest.fixture
def cache(clock):
    return CacheManager({'default_ttl': 300, 'sweep_interval': 60}, clock=clock, name="test_cache")


@pytest.fixture
def risk_scorer():
    return RiskScorer(now=lambda: FIXED_NOW)


@pytest.fixture
def ai_analyzer(cache):
    """Deterministic analyzer: clean signals, no market data, no latency"""
    return AIRiskAnalyzer(
        cache=cache,
        signal_provider=StaticSignalProvider(),
        market_data_provider=StaticMarketDataProvider(None),
        config={'simulated_latency': 0},
    )


@pytest.fixture
def wormhole(clock):
    return WormholeBridge(gas_price_source=StaticGasPriceSource(None), clock=clock)


@pytest.fixture
def bridge_service(wormhole, clock):
    return BridgeService(wormhole, quote_store=CacheManager(clock=clock), clock=clock)
