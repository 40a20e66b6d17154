"""
Chain Data Collector - token signals and Web3 chain reads
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from web3 import AsyncWeb3, Web3

from analysis.models import OnChainData, TokenSignals
from config.settings import Settings
from utils.constants import ERC20_ALLOWANCE_ABI, ZERO_ADDRESS
from utils.errors import ChainDataError
from utils.helpers import hash_data, mask_address, utc_now

logger = logging.getLogger(__name__)


class OnChainDataSource(ABC):
    """Interface for per-token on-chain signal sources"""

    @abstractmethod
    async def get_token_data(self, from_token: str, to_token: str,
                             from_chain: int, to_chain: int) -> OnChainData:
        pass


class GasPriceSource(ABC):
    """Interface for current gas price lookups (wei)"""

    @abstractmethod
    async def get_gas_price(self, chain_id: int) -> Optional[int]:
        pass


class ChainDataCollector(OnChainDataSource):
    """
    Stand-in token signal source.

    Signals are derived from a hash of (address, chain) so the same token
    always reports the same liquidity, holder count, verification flag and
    age relative to the current clock. Real explorer/indexer reads are not
    wired in.
    """

    def __init__(self, config: Optional[Dict] = None,
                 now: Optional[Callable[[], datetime]] = None):
        self.config = config or {}
        self.now = now or utc_now
        self.max_age_days = self.config.get('max_age_days', 365)
        self.max_liquidity = self.config.get('max_liquidity', 1_000_000)
        self.max_holders = self.config.get('max_holders', 10_000)
        self.verified_threshold = self.config.get('verified_threshold', 0.3)

        self.stats = {
            'lookups': 0,
            'failures': 0,
        }

    async def get_token_data(self, from_token: str, to_token: str,
                             from_chain: int, to_chain: int) -> OnChainData:
        """Fetch signals for both sides of a swap concurrently"""
        logger.debug(
            f"Fetching on-chain data for {mask_address(from_token)} ({from_chain}) "
            f"-> {mask_address(to_token)} ({to_chain})"
        )
        from_signals, to_signals = await asyncio.gather(
            self.get_token_signals(from_token, from_chain),
            self.get_token_signals(to_token, to_chain),
        )
        return OnChainData(from_token=from_signals, to_token=to_signals)

    async def get_token_signals(self, address: str, chain_id: int) -> Optional[TokenSignals]:
        self.stats['lookups'] += 1
        if not address:
            self.stats['failures'] += 1
            logger.warning(f"Empty token address for chain {chain_id}")
            return None

        rng = random.Random(int(hash_data(f"{address.lower()}:{chain_id}")[:16], 16))

        return TokenSignals(
            address=address,
            total_supply="0",
            creation_date=self.now() - timedelta(days=rng.random() * self.max_age_days),
            liquidity=rng.random() * self.max_liquidity,
            holders=int(rng.random() * self.max_holders),
            verified=rng.random() > self.verified_threshold,
        )


class ChainClient(GasPriceSource):
    """Async Web3 reads: gas price and ERC20 allowance"""

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}
        self.rpc_urls: Dict[int, str] = dict(self.config.get('rpc_urls', {}))
        self.request_timeout = self.config.get('timeout', 10)
        self._connections: Dict[int, AsyncWeb3] = {}

    def get_web3(self, chain_id: int) -> AsyncWeb3:
        """Get (or lazily create) the Web3 connection for a chain"""
        if chain_id not in self._connections:
            rpc_url = self.rpc_urls.get(chain_id) or Settings.get_rpc_url(chain_id)
            self._connections[chain_id] = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(
                    rpc_url, request_kwargs={'timeout': self.request_timeout}
                )
            )
        return self._connections[chain_id]

    async def get_gas_price(self, chain_id: int) -> Optional[int]:
        """Current gas price in wei, or None when the node is unreachable"""
        try:
            w3 = self.get_web3(chain_id)
            return int(await w3.eth.gas_price)
        except Exception as e:
            logger.warning(f"Gas price lookup failed on chain {chain_id}: {e}")
            return None

    async def get_allowance(self, token_address: str, owner: str,
                            spender: str, chain_id: int) -> int:
        """
        ERC20 allowance of owner towards spender

        Raises:
            ChainDataError: contract call failed
        """
        if token_address == ZERO_ADDRESS:
            return 0

        try:
            w3 = self.get_web3(chain_id)
            contract = w3.eth.contract(
                address=Web3.to_checksum_address(token_address),
                abi=ERC20_ALLOWANCE_ABI
            )
            allowance = await contract.functions.allowance(
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(spender)
            ).call()
            return int(allowance)
        except Exception as e:
            raise ChainDataError(
                f"Allowance lookup failed for {mask_address(token_address)}: {e}"
            ) from e

    async def close(self):
        """Disconnect cached providers"""
        for w3 in self._connections.values():
            disconnect = getattr(w3.provider, 'disconnect', None)
            if disconnect is not None:
                await disconnect()
        self._connections.clear()


class StaticGasPriceSource(GasPriceSource):
    """Fixed gas price"""

    def __init__(self, gas_price_wei: Optional[int]):
        self.gas_price_wei = gas_price_wei

    async def get_gas_price(self, chain_id: int) -> Optional[int]:
        return self.gas_price_wei
