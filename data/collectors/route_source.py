"""
1inch Fusion API Integration
Swap route candidates and supported token lists
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from analysis.models import RouteCandidate, Token
from utils.constants import FALLBACK_TOKENS, MAX_SLIPPAGE, ONEINCH_API_URL
from utils.errors import ConfigurationError, RouteSourceError
from utils.helpers import retry_async

logger = logging.getLogger(__name__)


class RouteSource(ABC):
    """Interface for swap route providers"""

    @abstractmethod
    async def get_routes(
        self,
        from_token: str,
        to_token: str,
        from_amount: str,
        from_chain_id: int,
        to_chain_id: int,
        user_address: str,
    ) -> List[RouteCandidate]:
        pass

    @abstractmethod
    async def get_tokens(self, chain_id: int) -> List[Token]:
        pass


class OneInchRouteSource(RouteSource):
    """1inch Fusion quote client"""

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize 1inch client

        Args:
            config: Configuration dictionary (api_key, base_url, max_slippage, timeout,
                max_retries, retry_delay)
        """
        self.config = config or {}
        self.api_key = self.config.get('api_key')
        self.base_url = self.config.get('base_url', ONEINCH_API_URL).rstrip('/')
        self.max_slippage = self.config.get('max_slippage', MAX_SLIPPAGE)
        self.timeout = self.config.get('timeout', 30)
        self.max_retries = self.config.get('max_retries', 3)
        self.retry_delay = self.config.get('retry_delay', 1.0)

        self.session: Optional[aiohttp.ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'routes_found': 0,
        }

    async def initialize(self):
        """Open the HTTP session"""
        if not self.session:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self):
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None

    async def _make_request(self, method: str, endpoint: str,
                            params: Optional[Dict] = None,
                            json_body: Optional[Dict] = None) -> Any:
        """
        Make an authenticated API request

        Raises:
            ConfigurationError: API key missing
            RouteSourceError: non-2xx response
        """
        if not self.api_key:
            raise ConfigurationError("1inch API key not configured")

        await self.initialize()

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
        }

        self.stats['total_requests'] += 1
        logger.debug(f"1inch request: {method} {url}")

        async with self.session.request(method, url, params=params, json=json_body,
                                        headers=headers) as response:
            if response.status >= 400:
                self.stats['failed_requests'] += 1
                body = await response.text()
                logger.error(f"1inch API error: {response.status} - {body[:200]}")
                raise RouteSourceError(f"1inch API error: {response.status} - {body[:200]}")

            self.stats['successful_requests'] += 1
            return await response.json()

    async def _request(self, *args, **kwargs) -> Any:
        """_make_request, retried on connection failures and timeouts"""
        request = retry_async(
            max_retries=self.max_retries,
            delay=self.retry_delay,
            retry_on=(aiohttp.ClientConnectionError, asyncio.TimeoutError),
        )(self._make_request)
        return await request(*args, **kwargs)

    async def get_routes(
        self,
        from_token: str,
        to_token: str,
        from_amount: str,
        from_chain_id: int,
        to_chain_id: int,
        user_address: str,
    ) -> List[RouteCandidate]:
        """Fetch quote routes; an empty list means the aggregator found none"""
        body = {
            'fromToken': from_token,
            'toToken': to_token,
            'fromAmount': from_amount,
            'fromChainId': from_chain_id,
            'toChainId': to_chain_id,
            'userAddress': user_address,
            'enableEstimate': True,
            'enableGasEstimate': True,
            'slippage': self.max_slippage,
        }

        data = await self._request('POST', '/quote', json_body=body)
        raw_routes = (data or {}).get('routes') or []

        routes = []
        for raw in raw_routes:
            try:
                routes.append(RouteCandidate.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed route {raw.get('id', '?')}: {e}")

        self.stats['routes_found'] += len(routes)
        logger.info(f"1inch returned {len(routes)} routes for chain {from_chain_id}")
        return routes

    async def get_tokens(self, chain_id: int) -> List[Token]:
        """Supported tokens for a chain, falling back to a static list"""
        if not self.api_key:
            logger.warning("No 1inch API key configured, using fallback tokens")
            return self.fallback_tokens(chain_id)

        try:
            data = await self._request('GET', '/tokens', params={'chainId': chain_id})
            tokens = [Token.from_dict(t) for t in (data or {}).get('tokens') or []]
            return tokens
        except (RouteSourceError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Failed to fetch tokens for chain {chain_id}, using fallback: {e}")
            return self.fallback_tokens(chain_id)

    @staticmethod
    def fallback_tokens(chain_id: int) -> List[Token]:
        return [Token.from_dict(t) for t in FALLBACK_TOKENS.get(chain_id, [])]

    def get_stats(self) -> Dict:
        return dict(self.stats)
