# tests/unit/test_bridge_service.py
"""
Unit tests for BridgeService quotes and execution
"""
import pytest

from data.storage.cache import CacheManager
from trading.bridges.bridge_service import BRIDGE_INSTRUCTIONS, BridgeService
from tests.conftest import APTOS_ADDRESS, USER_ADDRESS
from utils.constants import APTOS_COIN_TYPE, ZERO_ADDRESS, Chain
from utils.errors import BridgeError, ValidationError


def _quote_params(**overrides):
    params = {
        'fromChain': Chain.SEPOLIA,
        'toChain': Chain.APTOS_TESTNET,
        'fromToken': ZERO_ADDRESS,
        'toToken': APTOS_COIN_TYPE,
        'fromAmount': "1000000",
        'userAddress': USER_ADDRESS,
        'recipientAddress': APTOS_ADDRESS,
    }
    params.update(overrides)
    return params


@pytest.mark.unit
class TestBridgeQuotes:
    """Test cases for get_bridge_quote"""

    @pytest.mark.asyncio
    async def test_corridor_quote(self, bridge_service):
        result = await bridge_service.get_bridge_quote(_quote_params())

        assert result['success'] is True
        quote = result['quote']
        assert quote.id == "bridge-1700000000000"
        assert quote.from_amount == "1000000"
        assert quote.to_amount == "1000000"
        assert quote.bridge_fee == "5000"
        assert quote.estimated_time == 300
        assert quote.bridge_provider == "Wormhole"
        assert quote.recipient_address == APTOS_ADDRESS

    @pytest.mark.asyncio
    async def test_quote_is_stored(self, bridge_service, clock):
        result = await bridge_service.get_bridge_quote(_quote_params())
        quote_id = result['quote'].id

        assert await bridge_service.get_quote(quote_id) is result['quote']
        clock.advance(301)
        assert await bridge_service.get_quote(quote_id) is None

    @pytest.mark.asyncio
    async def test_uses_injected_quote_store(self, wormhole, clock):
        store = CacheManager(clock=clock, name="shared_store")
        service = BridgeService(wormhole, quote_store=store, clock=clock)

        assert service.quote_store is store
        result = await service.get_bridge_quote(_quote_params())
        assert await store.exists(f"bridge_quote:{result['quote'].id}")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ['fromChain', 'toChain'])
    async def test_non_numeric_chain_id(self, bridge_service, field):
        with pytest.raises(ValidationError, match=f"Invalid {field}: abc"):
            await bridge_service.get_bridge_quote(_quote_params(**{field: "abc"}))

    @pytest.mark.asyncio
    async def test_reverse_direction_skips_aptos_check(self, bridge_service):
        result = await bridge_service.get_bridge_quote(_quote_params(
            fromChain=Chain.APTOS_TESTNET,
            toChain=Chain.SEPOLIA,
            recipientAddress=None,
        ))
        assert result['success'] is True
        assert result['quote'].recipient_address == USER_ADDRESS

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, bridge_service):
        result = await bridge_service.get_bridge_quote(_quote_params(toChain=Chain.POLYGON))

        assert result == {'success': False, 'error': "Unsupported bridge route: 11155111 -> 137"}
        assert bridge_service.stats['rejected'] == 1

    @pytest.mark.asyncio
    async def test_invalid_aptos_recipient(self, bridge_service):
        result = await bridge_service.get_bridge_quote(_quote_params(recipientAddress=None))

        assert result['success'] is False
        assert result['error'] == "Invalid Aptos address"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,error", [
        ("abc", "Invalid amount: abc"),
        ("0", "Amount must be positive"),
        ("-5", "Amount must be positive"),
    ])
    async def test_invalid_amounts(self, bridge_service, amount, error):
        result = await bridge_service.get_bridge_quote(_quote_params(fromAmount=amount))

        assert result['success'] is False
        assert result['error'] == error

    @pytest.mark.asyncio
    async def test_amount_alias(self, bridge_service):
        params = _quote_params()
        params['amount'] = params.pop('fromAmount')

        result = await bridge_service.get_bridge_quote(params)
        assert result['quote'].from_amount == "1000000"

    def test_estimated_time(self):
        assert BridgeService.estimated_time(Chain.SEPOLIA, Chain.APTOS_TESTNET) == 300
        assert BridgeService.estimated_time(Chain.APTOS_TESTNET, Chain.SEPOLIA) == 300
        assert BridgeService.estimated_time(Chain.SEPOLIA, Chain.POLYGON) == 600


@pytest.mark.unit
class TestBridgeExecution:
    """Test cases for execute_bridge"""

    @pytest.mark.asyncio
    async def test_execute_stored_quote(self, bridge_service):
        quote = (await bridge_service.get_bridge_quote(_quote_params()))['quote']

        result = await bridge_service.execute_bridge(quote.id, USER_ADDRESS, "0xsig")

        assert result['status'] == 'pending'
        assert result['quoteId'] == quote.id
        assert result['transactionId'].startswith("0x")
        assert len(result['transactionId']) == 66
        assert result['instructions'] == BRIDGE_INSTRUCTIONS
        assert result['estimatedTime'] == 300
        assert result['transactionData'] == {
            'targetChain': Chain.APTOS_TESTNET,
            'targetAddress': APTOS_ADDRESS,
            'amount': "1000000",
            'fee': "5000",
            'networkFee': "57000000000000000",
        }
        assert bridge_service.stats['executions'] == 1

    @pytest.mark.asyncio
    async def test_execution_tracks_transfer(self, bridge_service, wormhole):
        quote = (await bridge_service.get_bridge_quote(_quote_params()))['quote']
        result = await bridge_service.execute_bridge(quote.id, USER_ADDRESS, "0xsig")

        status = await wormhole.get_bridge_status(
            result['transactionId'], Chain.SEPOLIA, Chain.APTOS_TESTNET
        )
        assert status.status in ('completed', 'failed')

    @pytest.mark.asyncio
    async def test_unknown_quote(self, bridge_service):
        with pytest.raises(BridgeError, match="not found or expired"):
            await bridge_service.execute_bridge("bridge-0", USER_ADDRESS, "0xsig")
