"""
Wormhole Bridge Client
Fee estimation, transfer initiation and transfer status for the
Sepolia <-> Aptos corridor
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

import orjson

from analysis.models import BridgeTransactionStatus
from data.collectors.chain_data import GasPriceSource
from data.storage.cache import CacheManager
from utils.constants import (
    BRIDGE_BASE_GAS,
    BRIDGE_HASH_BUCKET_MS,
    BRIDGE_MAX_FEE_ETH,
    BRIDGE_MIN_FEE_ETH,
    BRIDGE_STANDARD_FEE_ETH,
    BRIDGE_STATUS_COMPLETE_AFTER,
    DEFAULT_GAS_PRICE_GWEI,
)
from utils.errors import BridgeStatusError, ConfigurationError, InvalidAddressError
from utils.helpers import (
    ether_to_wei,
    gwei_to_wei,
    hash_data,
    is_valid_address,
    is_valid_tx_hash,
    wei_to_ether,
)

logger = logging.getLogger(__name__)

FULL_HASH_LENGTH = 64
FAILED_SUFFIX = "00"


class BridgeStatusSource(ABC):
    """Interface for bridge transfer status lookups"""

    @abstractmethod
    async def get_status(self, tx_hash: str, from_chain: int, to_chain: int,
                         initiated_at: Optional[float] = None) -> BridgeTransactionStatus:
        pass


class HashDerivedStatusSource(BridgeStatusSource):
    """
    Placeholder status derivation keyed off the hash shape.

    A hash ending in "00" has failed. A full-length hash, or a transfer
    initiated more than five minutes ago, has completed. Everything else
    is pending.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None,
                 complete_after: int = BRIDGE_STATUS_COMPLETE_AFTER):
        self.clock = clock or time.time
        self.complete_after = complete_after

    async def get_status(self, tx_hash: str, from_chain: int, to_chain: int,
                         initiated_at: Optional[float] = None) -> BridgeTransactionStatus:
        if tx_hash.endswith(FAILED_SUFFIX):
            return BridgeTransactionStatus(
                status='failed',
                source_chain_tx=tx_hash,
                error='Bridge transfer failed',
            )

        elapsed = self.clock() - initiated_at if initiated_at is not None else 0
        if len(tx_hash) >= FULL_HASH_LENGTH or elapsed > self.complete_after:
            return BridgeTransactionStatus(
                status='completed',
                source_chain_tx=tx_hash,
                target_chain_tx=f"{tx_hash}1",
            )

        return BridgeTransactionStatus(status='pending', source_chain_tx=tx_hash)


class WormholeBridge:
    """Wormhole corridor client"""

    def __init__(
        self,
        config: Optional[Dict] = None,
        gas_price_source: Optional[GasPriceSource] = None,
        status_source: Optional[BridgeStatusSource] = None,
        clock: Optional[Callable[[], float]] = None,
        transfer_store: Optional[CacheManager] = None,
    ):
        self.config = config or {}
        self.gas_price_source = gas_price_source
        self.clock = clock or time.time
        self.status_source = status_source or HashDerivedStatusSource(clock=self.clock)

        self.base_gas = self.config.get('base_gas', BRIDGE_BASE_GAS)
        self.default_gas_price_wei = gwei_to_wei(
            self.config.get('default_gas_price_gwei', DEFAULT_GAS_PRICE_GWEI)
        )
        self.standard_fee_wei = ether_to_wei(self.config.get('standard_fee_eth', BRIDGE_STANDARD_FEE_ETH))
        self.min_fee_wei = ether_to_wei(self.config.get('min_fee_eth', BRIDGE_MIN_FEE_ETH))
        self.max_fee_wei = ether_to_wei(self.config.get('max_fee_eth', BRIDGE_MAX_FEE_ETH))

        # tx hash -> initiation time (seconds)
        self.transfer_ttl = self.config.get('transfer_ttl', 3600)
        self.transfer_store = transfer_store if transfer_store is not None else CacheManager(
            {'default_ttl': self.transfer_ttl}, clock=self.clock, name="bridge_transfers"
        )

        logger.info("Initialized Wormhole bridge client")

    @staticmethod
    def _transfer_key(tx_hash: str) -> str:
        return f"transfer:{tx_hash.lower()}"

    async def estimate_bridge_fee(self, from_chain: int, to_chain: int) -> int:
        """
        Network fee in wei: base gas at the current gas price plus the
        standard relayer fee.

        Raises:
            ConfigurationError: estimate falls outside the sane fee bounds
        """
        gas_price = None
        if self.gas_price_source is not None:
            gas_price = await self.gas_price_source.get_gas_price(from_chain)
        if not gas_price:
            logger.debug(f"No gas price for chain {from_chain}, using default")
            gas_price = self.default_gas_price_wei

        total_fee = self.base_gas * gas_price + self.standard_fee_wei

        if total_fee < self.min_fee_wei or total_fee > self.max_fee_wei:
            fee_eth = wei_to_ether(total_fee)
            logger.error(f"Estimated bridge fee {fee_eth} ETH outside bounds")
            raise ConfigurationError(
                f"Estimated bridge fee {fee_eth:.6f} ETH outside range "
                f"[{wei_to_ether(self.min_fee_wei)}, {wei_to_ether(self.max_fee_wei)}] ETH"
            )

        return total_fee

    async def initiate_bridge_transfer(self, params: Dict) -> Dict[str, str]:
        """
        Start a transfer and return its deterministic source tx hash.

        The same parameters within the same five-minute window always
        produce the same hash.
        """
        sender = params.get('senderAddress', '')
        if not is_valid_address(sender):
            raise InvalidAddressError("Invalid sender address")

        now_ms = int(self.clock() * 1000)
        payload = {**params, 'timestamp': (now_ms // BRIDGE_HASH_BUCKET_MS) * BRIDGE_HASH_BUCKET_MS}
        encoded = orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)
        tx_hash = "0x" + hash_data(encoded.decode())[:FULL_HASH_LENGTH]

        key = self._transfer_key(tx_hash)
        if not await self.transfer_store.exists(key):
            await self.transfer_store.set(key, self.clock(), ttl=self.transfer_ttl)
        logger.info(
            f"Initiated bridge transfer {tx_hash[:12]}... "
            f"{params.get('fromChain')} -> {params.get('toChain')}"
        )
        return {'txHash': tx_hash}

    async def get_bridge_status(self, tx_hash: str, from_chain: int, to_chain: int,
                                initiated_at: Optional[float] = None) -> BridgeTransactionStatus:
        if not is_valid_tx_hash(tx_hash):
            raise BridgeStatusError("Invalid transaction hash format")

        if initiated_at is None:
            initiated_at = await self.transfer_store.get(self._transfer_key(tx_hash))

        return await self.status_source.get_status(tx_hash, from_chain, to_chain, initiated_at)
