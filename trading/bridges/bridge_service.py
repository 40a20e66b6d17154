"""
Bridge Service
Quotes and execution instructions for the Wormhole corridor
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from analysis.models import BridgeQuote
from data.storage.cache import CacheManager
from trading.bridges.wormhole import WormholeBridge
from utils.constants import (
    BRIDGE_FEE_BPS,
    BRIDGE_PROVIDER,
    BRIDGE_SUPPORTED_CHAINS,
    BRIDGE_TIME_CORRIDOR,
    BRIDGE_TIME_DEFAULT,
    Chain,
)
from utils.errors import BridgeError, ValidationError
from utils.helpers import is_valid_aptos_address, mask_address

logger = logging.getLogger(__name__)


def _chain_id(value: Any, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {field_name}: {value}") from e


BRIDGE_INSTRUCTIONS = [
    "1. Approve token spending on source chain",
    "2. Submit bridge transaction on source chain",
    "3. Wait for bridge confirmation (5-10 minutes)",
    "4. Claim tokens on destination chain",
]

CORRIDOR = {(Chain.SEPOLIA, Chain.APTOS_TESTNET), (Chain.APTOS_TESTNET, Chain.SEPOLIA)}


class BridgeService:
    """Bridge quotes over the single supported corridor"""

    def __init__(
        self,
        wormhole: WormholeBridge,
        quote_store: Optional[CacheManager] = None,
        config: Optional[Dict] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or {}
        self.wormhole = wormhole
        self.quote_store = quote_store if quote_store is not None else CacheManager(name="bridge_quotes")
        self.clock = clock or time.time
        self.supported_chains = list(self.config.get('supported_chains', BRIDGE_SUPPORTED_CHAINS))

        self.stats = {
            'quotes': 0,
            'rejected': 0,
            'executions': 0,
        }

    @staticmethod
    def _quote_key(quote_id: str) -> str:
        return f"bridge_quote:{quote_id}"

    async def get_bridge_quote(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Quote a transfer.

        Returns ``{'success': True, 'quote': BridgeQuote}`` or
        ``{'success': False, 'error': reason}``; unsupported routes and bad
        amounts are reported, not raised. Chain ids that are not integers
        raise ValidationError.
        """
        from_chain = _chain_id(params.get('fromChain', 0), 'fromChain')
        to_chain = _chain_id(params.get('toChain', 0), 'toChain')
        amount_raw = params.get('fromAmount', params.get('amount'))
        recipient = params.get('recipientAddress') or params.get('userAddress') or ''

        logger.info(f"Getting bridge quote {from_chain} -> {to_chain} for {mask_address(recipient)}")

        if from_chain not in self.supported_chains or to_chain not in self.supported_chains:
            return self._reject(f"Unsupported bridge route: {from_chain} -> {to_chain}")

        if from_chain == Chain.SEPOLIA and to_chain == Chain.APTOS_TESTNET:
            if not is_valid_aptos_address(recipient):
                return self._reject("Invalid Aptos address")

        try:
            amount = int(str(amount_raw))
        except ValueError:
            return self._reject(f"Invalid amount: {amount_raw}")
        if amount <= 0:
            return self._reject("Amount must be positive")

        quote = BridgeQuote(
            id=f"bridge-{int(self.clock() * 1000)}",
            from_chain=from_chain,
            to_chain=to_chain,
            from_token=str(params.get('fromToken', '')),
            to_token=str(params.get('toToken', '')),
            from_amount=str(amount),
            to_amount=str(amount),  # 1:1 across the corridor
            bridge_fee=str(amount * BRIDGE_FEE_BPS // 1000),
            estimated_time=self.estimated_time(from_chain, to_chain),
            bridge_provider=BRIDGE_PROVIDER,
            recipient_address=recipient or None,
        )

        await self.quote_store.set(self._quote_key(quote.id), quote, cache_type='bridge_quote')
        self.stats['quotes'] += 1
        return {'success': True, 'quote': quote}

    def _reject(self, reason: str) -> Dict[str, Any]:
        self.stats['rejected'] += 1
        logger.warning(f"Bridge quote rejected: {reason}")
        return {'success': False, 'error': reason}

    @staticmethod
    def estimated_time(from_chain: int, to_chain: int) -> int:
        if (from_chain, to_chain) in CORRIDOR:
            return BRIDGE_TIME_CORRIDOR
        return BRIDGE_TIME_DEFAULT

    async def get_quote(self, quote_id: str) -> Optional[BridgeQuote]:
        return await self.quote_store.get(self._quote_key(quote_id))

    async def execute_bridge(self, quote_id: str, user_address: str,
                             signature: str) -> Dict[str, Any]:
        """
        Turn a stored quote into a pending transfer plus the steps the
        wallet has to take. Nothing is signed or broadcast here.
        """
        logger.info(
            f"Executing bridge quote {quote_id} for {mask_address(user_address)} "
            f"(signature {mask_address(signature)})"
        )
        quote = await self.get_quote(quote_id)
        if quote is None:
            raise BridgeError(f"Bridge quote {quote_id} not found or expired")

        recipient = quote.recipient_address or user_address
        transfer = await self.wormhole.initiate_bridge_transfer({
            'fromChain': quote.from_chain,
            'toChain': quote.to_chain,
            'fromToken': quote.from_token,
            'toToken': quote.to_token,
            'amount': quote.from_amount,
            'senderAddress': user_address,
            'recipientAddress': recipient,
        })
        network_fee = await self.wormhole.estimate_bridge_fee(quote.from_chain, quote.to_chain)

        self.stats['executions'] += 1
        logger.info(f"Bridge transfer {transfer['txHash'][:12]}... pending for quote {quote_id}")

        return {
            'transactionId': transfer['txHash'],
            'quoteId': quote.id,
            'status': 'pending',
            'instructions': list(BRIDGE_INSTRUCTIONS),
            'estimatedTime': quote.estimated_time,
            'transactionData': {
                'targetChain': quote.to_chain,
                'targetAddress': recipient,
                'amount': quote.from_amount,
                'fee': quote.bridge_fee,
                'networkFee': str(network_fee),
            },
        }
