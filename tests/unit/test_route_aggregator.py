# tests/unit/test_route_aggregator.py
"""
Unit tests for RouteAggregator
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from analysis.ai_analyzer import AIRiskAnalyzer
from analysis.models import OnChainData, RouteCandidate
from analysis.signal_provider import StaticSignalProvider
from core.route_aggregator import RouteAggregator, token_reference
from core.route_selector import find_safer_alternatives, select_best_route
from data.collectors.market_data import StaticMarketDataProvider
from data.storage.cache import CacheManager
from tests.conftest import APTOS_ADDRESS, USDC_SEPOLIA, USER_ADDRESS
from utils.constants import APTOS_COIN_TYPE, ZERO_ADDRESS, Chain
from utils.errors import BridgeError, QuoteError, UpstreamUnavailable


@pytest.fixture
def route_source():
    source = MagicMock()
    source.get_routes = AsyncMock(return_value=[])
    source.get_tokens = AsyncMock(return_value=[])
    return source


@pytest.fixture
def chain_data():
    source = MagicMock()
    source.get_token_data = AsyncMock(return_value=OnChainData())
    return source


@pytest.fixture
def aggregator(route_source, chain_data, risk_scorer, ai_analyzer, bridge_service, clock):
    return RouteAggregator(
        route_source=route_source,
        chain_data=chain_data,
        risk_scorer=risk_scorer,
        ai_analyzer=ai_analyzer,
        bridge_service=bridge_service,
        route_store=CacheManager(clock=clock, name="route_store"),
    )


@pytest.mark.unit
class TestSameChainQuotes:
    """Test cases for same-chain aggregation"""

    @pytest.mark.asyncio
    async def test_routes_are_scored(self, aggregator, route_source, make_route):
        safe = make_route("safe")
        risky = make_route("risky", protocols=["ShadySwap"])
        route_source.get_routes.return_value = [safe, risky]

        quote = await aggregator.get_routes_and_risk(
            Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
        )

        assert quote.is_cross_chain is False
        assert quote.bridge_quote is None
        assert [r.id for r in quote.routes] == ["safe", "risky"]
        assert [a.route_id for a in quote.risk_assessments] == ["safe", "risky"]
        # traditional 0 / 30, heuristic 30 for both
        assert quote.risk_assessments[0].overall_risk_score == 15
        assert quote.risk_assessments[1].overall_risk_score == 30
        assert aggregator.stats['same_chain_quotes'] == 1
        assert aggregator.stats['routes_scored'] == 2

    @pytest.mark.asyncio
    async def test_routes_are_stored(self, aggregator, route_source, make_route, clock):
        route_source.get_routes.return_value = [make_route("stored")]

        await aggregator.get_routes_and_risk(
            Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
        )

        assert (await aggregator.get_route("stored")).id == "stored"
        clock.advance(301)
        assert await aggregator.get_route("stored") is None

    def test_uses_injected_route_store(self, route_source, chain_data, risk_scorer,
                                       ai_analyzer, bridge_service):
        store = CacheManager(name="shared_store")
        aggregator = RouteAggregator(
            route_source=route_source,
            chain_data=chain_data,
            risk_scorer=risk_scorer,
            ai_analyzer=ai_analyzer,
            bridge_service=bridge_service,
            route_store=store,
        )
        assert aggregator.route_store is store

    @pytest.mark.asyncio
    async def test_routes_without_ids_get_positional_ids(self, aggregator, route_source, make_route):
        safe = make_route("")
        risky = make_route("", protocols=["ShadySwap", "a", "b", "c"], to_amount="9000000000")
        route_source.get_routes.return_value = [safe, risky]

        quote = await aggregator.get_routes_and_risk(
            Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
        )

        assert [r.id for r in quote.routes] == ["route-0", "route-1"]
        assert [a.route_id for a in quote.risk_assessments] == ["route-0", "route-1"]
        # traditional 0 / 40, heuristic 30 for both
        assert [a.overall_risk_score for a in quote.risk_assessments] == [15, 35]

        best = select_best_route(quote.routes, quote.risk_assessments)
        assert best.protocols == ("uniswap",)
        safer = find_safer_alternatives("route-1", quote.routes, quote.risk_assessments)
        assert [r.id for r in safer] == ["route-0"]
        assert (await aggregator.get_route("route-1")).protocols == ("ShadySwap", "a", "b", "c")

    @pytest.mark.asyncio
    async def test_no_routes(self, aggregator):
        with pytest.raises(QuoteError, match="No routes found"):
            await aggregator.get_routes_and_risk(
                Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
            )

    @pytest.mark.asyncio
    async def test_route_source_timeout(self, aggregator, route_source):
        route_source.get_routes.side_effect = asyncio.TimeoutError()

        with pytest.raises(UpstreamUnavailable, match="timed out"):
            await aggregator.get_routes_and_risk(
                Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
            )
        assert aggregator.stats['upstream_failures'] == 1

    @pytest.mark.asyncio
    async def test_slow_route_source(self, route_source, chain_data, risk_scorer,
                                     ai_analyzer, bridge_service):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return []

        route_source.get_routes.side_effect = slow
        aggregator = RouteAggregator(
            route_source, chain_data, risk_scorer, ai_analyzer, bridge_service,
            config={'route_source_timeout': 0.01},
        )

        with pytest.raises(UpstreamUnavailable):
            await aggregator.get_routes_and_risk(
                Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
            )

    @pytest.mark.asyncio
    async def test_transport_failure(self, aggregator, chain_data, route_source, make_route):
        route_source.get_routes.return_value = [make_route()]
        chain_data.get_token_data.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(UpstreamUnavailable, match="refused"):
            await aggregator.get_routes_and_risk(
                Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
            )

    @pytest.mark.asyncio
    async def test_analysis_timeout_falls_back(self, route_source, chain_data, risk_scorer,
                                               bridge_service, cache, make_route):
        slow_analyzer = AIRiskAnalyzer(
            cache=cache,
            signal_provider=StaticSignalProvider(),
            market_data_provider=StaticMarketDataProvider(None),
            config={'simulated_latency': 1},
        )
        aggregator = RouteAggregator(
            route_source, chain_data, risk_scorer, slow_analyzer, bridge_service,
            config={'analysis_timeout': 0.01},
        )
        route_source.get_routes.return_value = [make_route()]

        quote = await aggregator.get_routes_and_risk(
            Chain.SEPOLIA, Chain.SEPOLIA, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
        )

        assessment = quote.risk_assessments[0]
        assert assessment.ai.is_fallback
        assert assessment.overall_risk_score == 25


@pytest.mark.unit
class TestCrossChainQuotes:
    """Test cases for bridge-backed quotes"""

    @pytest.mark.asyncio
    async def test_bridge_quote_is_scored(self, aggregator):
        quote = await aggregator.get_routes_and_risk(
            Chain.SEPOLIA, Chain.APTOS_TESTNET, ZERO_ADDRESS, APTOS_COIN_TYPE,
            "1000000", USER_ADDRESS, recipient_address=APTOS_ADDRESS
        )

        assert quote.is_cross_chain is True
        assert quote.routes == []
        assert quote.bridge_quote.bridge_provider == "Wormhole"
        assert len(quote.risk_assessments) == 1

        assessment = quote.risk_assessments[0]
        assert assessment.route_id == quote.bridge_quote.id
        assert assessment.score == 25
        # Wormhole between Sepolia (0.2) and Aptos (0.5): 30 + 10.5
        assert assessment.ai.risk_score == pytest.approx(40.5)
        assert assessment.overall_risk_score == pytest.approx(32.75)
        assert aggregator.stats['cross_chain_quotes'] == 1

    @pytest.mark.asyncio
    async def test_bridge_rejection(self, aggregator):
        with pytest.raises(BridgeError, match="Invalid Aptos address"):
            await aggregator.get_routes_and_risk(
                Chain.SEPOLIA, Chain.APTOS_TESTNET, ZERO_ADDRESS, APTOS_COIN_TYPE,
                "1000000", USER_ADDRESS
            )

    @pytest.mark.asyncio
    async def test_unsupported_corridor(self, aggregator):
        with pytest.raises(BridgeError, match="Unsupported bridge route"):
            await aggregator.get_routes_and_risk(
                Chain.SEPOLIA, Chain.POLYGON, ZERO_ADDRESS, USDC_SEPOLIA, "1000", USER_ADDRESS
            )


@pytest.mark.unit
class TestAnalyzeRoute:
    """Test cases for scoring caller-supplied routes"""

    @pytest.mark.asyncio
    async def test_analyze_route(self, aggregator, chain_data, make_route, eth_token, usdc_token):
        route = make_route("given", protocols=["ShadySwap"])

        assessment = await aggregator.analyze_route(eth_token, usdc_token, route, "1000")

        assert assessment.route_id == "given"
        assert assessment.score == 30
        assert assessment.overall_risk_score == 30
        chain_data.get_token_data.assert_awaited_once_with(
            eth_token.address, usdc_token.address, eth_token.chain_id, usdc_token.chain_id
        )

    @pytest.mark.asyncio
    async def test_route_without_id(self, aggregator, eth_token, usdc_token):
        route = RouteCandidate.from_dict({
            'protocols': ['uniswap'],
            'fromToken': eth_token.to_dict(),
            'toToken': usdc_token.to_dict(),
            'fromAmount': "1",
            'toAmount': "1",
        })
        assessment = await aggregator.analyze_route(eth_token, usdc_token, route, "1")

        assert assessment.route_id is None

    @pytest.mark.asyncio
    async def test_chain_data_timeout(self, aggregator, chain_data, make_route,
                                      eth_token, usdc_token):
        chain_data.get_token_data.side_effect = asyncio.TimeoutError()

        with pytest.raises(UpstreamUnavailable):
            await aggregator.analyze_route(eth_token, usdc_token, make_route(), "1")


@pytest.mark.unit
class TestTokenReference:
    """Test cases for token_reference"""

    def test_known_token(self):
        token = token_reference(USDC_SEPOLIA.lower(), Chain.SEPOLIA)
        assert token.symbol == "USDC"
        assert token.decimals == 6

    def test_unknown_token(self):
        token = token_reference("0x" + "9" * 40, Chain.SEPOLIA)
        assert token.symbol == ""
        assert token.decimals == 18
        assert token.chain_id == Chain.SEPOLIA
