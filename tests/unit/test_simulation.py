# tests/unit/test_simulation.py
"""
Unit tests for the swap simulation service
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from trading.executors.simulation import MAX_UINT256, SimulationService
from tests.conftest import USER_ADDRESS
from utils.constants import ONEINCH_ROUTER
from utils.errors import ChainDataError, ValidationError

GAS_PRICE = 10 ** 10  # 10 gwei


@pytest.fixture
def chain_client():
    client = MagicMock()
    client.get_gas_price = AsyncMock(return_value=GAS_PRICE)
    client.get_allowance = AsyncMock(return_value=0)
    return client


@pytest.fixture
def simulation(chain_client):
    return SimulationService(chain_client=chain_client)


@pytest.mark.unit
class TestSimulateTransaction:
    """Test cases for simulate_transaction"""

    @pytest.mark.asyncio
    async def test_native_token_needs_no_approval(self, simulation, chain_client, make_route):
        route = make_route()
        result = await simulation.simulate_transaction(
            route, USER_ADDRESS, route.from_amount, route.to_amount
        )

        assert result['simulation'] == {
            'success': True,
            'gasUsed': "200000",
            'gasLimit': "240000",
            'gasPrice': str(GAS_PRICE),
            'totalCost': "2000000000000000",
        }
        assert result['approval']['required'] is False
        assert result['approval']['approvalGas'] == "0"
        chain_client.get_allowance.assert_not_called()

        preview = result['preview']
        assert preview['inputAmount'] == "1000000000000000000"
        assert preview['minimumReceived'] == "1990000000"
        assert preview['slippage'] == 0.5
        assert preview['fees'] == {
            'protocol': '0',
            'gas': "2000000000000000",
            'total': "2000000000000000",
        }
        assert result['security']['tokenDrainRisk'] is False

    @pytest.mark.asyncio
    async def test_erc20_requires_approval(self, simulation, chain_client, make_route,
                                           usdc_token, eth_token):
        route = make_route(from_token=usdc_token, to_token=eth_token)
        result = await simulation.simulate_transaction(
            route, USER_ADDRESS, "1000000", route.to_amount
        )

        approval = result['approval']
        assert approval['required'] is True
        assert approval['currentAllowance'] == "0"
        assert approval['requiredAllowance'] == "1000000"
        assert approval['approvalGas'] == "46000"
        assert approval['approvalCost'] == "460000000000000"
        assert approval['spenderAddress'] == ONEINCH_ROUTER
        assert result['preview']['fees']['total'] == "2460000000000000"
        chain_client.get_allowance.assert_awaited_once_with(
            usdc_token.address, USER_ADDRESS, ONEINCH_ROUTER, usdc_token.chain_id
        )

    @pytest.mark.asyncio
    async def test_sufficient_allowance(self, simulation, chain_client, make_route,
                                        usdc_token, eth_token):
        chain_client.get_allowance.return_value = 5_000_000
        route = make_route(from_token=usdc_token, to_token=eth_token)
        result = await simulation.simulate_transaction(route, USER_ADDRESS, "1000000", "1")

        assert result['approval']['required'] is False
        assert result['approval']['approvalCost'] == "0"

    @pytest.mark.asyncio
    async def test_unknown_allowance_assumes_approval(self, simulation, chain_client,
                                                      make_route, usdc_token, eth_token):
        chain_client.get_allowance.side_effect = ChainDataError("rpc down")
        route = make_route(from_token=usdc_token, to_token=eth_token)
        result = await simulation.simulate_transaction(route, USER_ADDRESS, "1000000", "1")

        assert result['approval']['required'] is True
        assert result['approval']['currentAllowance'] == "0"

    @pytest.mark.asyncio
    async def test_infinite_approval_flagged(self, simulation, chain_client, make_route,
                                             usdc_token, eth_token):
        chain_client.get_allowance.return_value = MAX_UINT256
        route = make_route(from_token=usdc_token, to_token=eth_token)
        result = await simulation.simulate_transaction(route, USER_ADDRESS, "1000000", "1")

        security = result['security']
        assert security['tokenDrainRisk'] is True
        assert 'infinite_approval' in security['suspiciousPatterns']
        assert simulation.stats['drain_flags'] == 1

    @pytest.mark.asyncio
    async def test_default_gas_price(self, simulation, chain_client, make_route):
        chain_client.get_gas_price.return_value = None
        route = make_route()
        result = await simulation.simulate_transaction(route, USER_ADDRESS, "1", "1")

        assert result['simulation']['gasPrice'] == "20000000000"

    @pytest.mark.asyncio
    async def test_custom_slippage(self, simulation, make_route):
        route = make_route(to_amount="1000")
        result = await simulation.simulate_transaction(route, USER_ADDRESS, "1", "1000", slippage=2)

        assert result['preview']['minimumReceived'] == "980"

    @pytest.mark.asyncio
    async def test_invalid_amount(self, simulation, make_route):
        with pytest.raises(ValidationError, match="Invalid fromAmount"):
            await simulation.simulate_transaction(make_route(), USER_ADDRESS, "lots", "1")


@pytest.mark.unit
class TestGasEstimate:
    """Test cases for get_gas_estimate"""

    @pytest.mark.asyncio
    async def test_includes_approval_gas(self, simulation, make_route, usdc_token, eth_token):
        route = make_route(from_token=usdc_token, to_token=eth_token)
        estimate = await simulation.get_gas_estimate(route, USER_ADDRESS, "1000000")

        assert estimate == {
            'gasEstimate': "246000",
            'gasPrice': str(GAS_PRICE),
            'totalCost': "2460000000000000",
        }

    @pytest.mark.asyncio
    async def test_native_token(self, simulation, make_route):
        estimate = await simulation.get_gas_estimate(make_route(), USER_ADDRESS, "1")
        assert estimate['gasEstimate'] == "200000"

    def test_gas_scales_with_protocols(self, simulation, make_route):
        result = simulation.simulate_swap(make_route(protocols=("uniswap", "curve", "balancer")), GAS_PRICE)

        assert result['gasUsed'] == 300000
        assert result['gasLimit'] == 360000


@pytest.mark.unit
class TestDrainAnalysis:
    """Test cases for analyze_token_drain"""

    def test_clean_route(self, simulation, make_route):
        analysis = simulation.analyze_token_drain(make_route())

        assert analysis.risk is False
        assert analysis.to_dict()['suspiciousPatterns'] == []

    def test_high_impact_and_complex_route(self, simulation, make_route):
        route = make_route(
            protocols=("uniswap", "curve", "balancer", "ShadyDEX"),
            price_impact=12.5,
        )
        analysis = simulation.analyze_token_drain(route)

        assert analysis.patterns == ['high_price_impact', 'complex_route', 'unknown_protocols']
        assert "High price impact: 12.50%" in analysis.warnings
        assert "Complex route with 4 hops" in analysis.warnings
        assert "Unknown protocols: ShadyDEX" in analysis.warnings

    def test_known_protocols_match_by_substring(self, simulation, make_route):
        analysis = simulation.analyze_token_drain(make_route(protocols=("UNISWAP_V3", "Curve.fi")))
        assert analysis.risk is False
