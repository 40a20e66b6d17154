"""
Route Aggregator
Fetches swap routes or a bridge quote and attaches a combined risk
assessment to every candidate
"""

import asyncio
import logging
from dataclasses import replace
from typing import Dict, Optional

import aiohttp
import orjson

from analysis.ai_analyzer import AIRiskAnalyzer
from analysis.models import (
    AggregatedQuote,
    AIAnalysis,
    CombinedRiskAssessment,
    OnChainData,
    RouteCandidate,
    Token,
)
from analysis.risk_merger import merge_assessments
from analysis.risk_scorer import RiskScorer
from data.collectors.chain_data import OnChainDataSource
from data.collectors.route_source import RouteSource
from data.storage.cache import CacheManager
from trading.bridges.bridge_service import BridgeService
from utils.constants import FALLBACK_TOKENS
from utils.errors import BridgeError, QuoteError, UpstreamUnavailable
from utils.helpers import mask_address

logger = logging.getLogger(__name__)


def token_reference(address: str, chain_id: int) -> Token:
    """Token metadata from the static list when known, else a bare reference"""
    for entry in FALLBACK_TOKENS.get(chain_id, []):
        if entry['address'].lower() == address.lower():
            return Token.from_dict(entry)
    return Token(address=address, symbol="", name="", decimals=18, chain_id=chain_id)


class RouteAggregator:
    """
    Quote orchestration for same-chain swaps and cross-chain bridges.

    Every upstream call runs under its own timeout. Timeouts and transport
    failures surface as UpstreamUnavailable for the whole request; there
    are no partial results. Scored routes and bridge quotes are kept in a
    short-lived store so simulation and execution can refer to them by id.
    """

    def __init__(
        self,
        route_source: RouteSource,
        chain_data: OnChainDataSource,
        risk_scorer: RiskScorer,
        ai_analyzer: AIRiskAnalyzer,
        bridge_service: BridgeService,
        route_store: Optional[CacheManager] = None,
        config: Optional[Dict] = None,
    ):
        self.config = config or {}
        self.route_source = route_source
        self.chain_data = chain_data
        self.risk_scorer = risk_scorer
        self.ai_analyzer = ai_analyzer
        self.bridge_service = bridge_service
        self.route_store = route_store if route_store is not None else CacheManager(name="route_store")

        self.route_source_timeout = self.config.get('route_source_timeout', 15.0)
        self.bridge_timeout = self.config.get('bridge_timeout', 10.0)
        self.chain_data_timeout = self.config.get('chain_data_timeout', 10.0)
        self.analysis_timeout = self.config.get('analysis_timeout', 20.0)

        self.stats = {
            'same_chain_quotes': 0,
            'cross_chain_quotes': 0,
            'routes_scored': 0,
            'upstream_failures': 0,
        }

    async def get_routes_and_risk(
        self,
        from_chain: int,
        to_chain: int,
        from_token: str,
        to_token: str,
        from_amount: str,
        user_address: str,
        recipient_address: Optional[str] = None
    ) -> AggregatedQuote:
        """
        Aggregate candidates and score them

        Raises:
            QuoteError: the route source found no routes
            BridgeError: the bridge rejected the quote request
            UpstreamUnavailable: an upstream call failed or timed out
        """
        logger.info(
            f"Quote request {from_chain}:{mask_address(from_token)} -> "
            f"{to_chain}:{mask_address(to_token)} amount={from_amount} "
            f"user={mask_address(user_address)}"
        )

        try:
            if from_chain == to_chain:
                return await self._same_chain_quote(
                    from_chain, from_token, to_token, from_amount, user_address
                )
            return await self._cross_chain_quote(
                from_chain, to_chain, from_token, to_token, from_amount,
                user_address, recipient_address
            )
        except asyncio.TimeoutError as e:
            self.stats['upstream_failures'] += 1
            raise UpstreamUnavailable("Upstream service timed out") from e
        except aiohttp.ClientError as e:
            self.stats['upstream_failures'] += 1
            raise UpstreamUnavailable(f"Upstream service unavailable: {e}") from e

    async def _same_chain_quote(self, chain_id: int, from_token: str, to_token: str,
                                from_amount: str, user_address: str) -> AggregatedQuote:
        routes = await asyncio.wait_for(
            self.route_source.get_routes(
                from_token, to_token, from_amount, chain_id, chain_id, user_address
            ),
            timeout=self.route_source_timeout
        )
        if not routes:
            raise QuoteError("No routes found for the specified swap")
        routes = [
            route if route.id else replace(route, id=f"route-{index}")
            for index, route in enumerate(routes)
        ]

        on_chain_data = await self._get_on_chain_data(from_token, to_token, chain_id, chain_id)

        assessments = await asyncio.gather(
            *(self.assess_route(route, on_chain_data) for route in routes)
        )

        for route in routes:
            await self.store_route(route)

        self.stats['same_chain_quotes'] += 1
        self.stats['routes_scored'] += len(routes)
        logger.info(f"Scored {len(routes)} routes on chain {chain_id}")

        return AggregatedQuote(
            routes=list(routes),
            risk_assessments=list(assessments),
            on_chain_data=on_chain_data,
            is_cross_chain=False,
        )

    async def _cross_chain_quote(self, from_chain: int, to_chain: int, from_token: str,
                                 to_token: str, from_amount: str, user_address: str,
                                 recipient_address: Optional[str] = None) -> AggregatedQuote:
        result = await asyncio.wait_for(
            self.bridge_service.get_bridge_quote({
                'fromChain': from_chain,
                'toChain': to_chain,
                'fromToken': from_token,
                'toToken': to_token,
                'fromAmount': from_amount,
                'userAddress': user_address,
                'recipientAddress': recipient_address,
            }),
            timeout=self.bridge_timeout
        )
        if not result.get('success'):
            raise BridgeError(result.get('error') or "Failed to get bridge quote")

        quote = result['quote']
        on_chain_data = await self._get_on_chain_data(from_token, to_token, from_chain, to_chain)

        traditional = self.risk_scorer.assess_bridge(quote, on_chain_data)
        descriptor = orjson.dumps({
            'bridge': quote.bridge_provider,
            'fromChain': quote.from_chain,
            'toChain': quote.to_chain,
            'estimatedTime': quote.estimated_time,
        }).decode()
        ai = await self._analyze(
            token_reference(from_token, from_chain),
            token_reference(to_token, to_chain),
            descriptor,
            from_amount,
        )

        self.stats['cross_chain_quotes'] += 1
        logger.info(f"Scored bridge quote {quote.id} ({quote.bridge_provider})")

        return AggregatedQuote(
            routes=[],
            risk_assessments=[merge_assessments(traditional, ai, quote.id)],
            on_chain_data=on_chain_data,
            is_cross_chain=True,
            bridge_quote=quote,
        )

    async def _get_on_chain_data(self, from_token: str, to_token: str,
                                 from_chain: int, to_chain: int) -> OnChainData:
        return await asyncio.wait_for(
            self.chain_data.get_token_data(from_token, to_token, from_chain, to_chain),
            timeout=self.chain_data_timeout
        )

    async def assess_route(self, route: RouteCandidate,
                           on_chain_data: Optional[OnChainData] = None) -> CombinedRiskAssessment:
        """Traditional and heuristic assessment of one route, merged"""
        traditional = self.risk_scorer.assess(route, on_chain_data)
        descriptor = orjson.dumps(route.to_dict()).decode()
        ai = await self._analyze(route.from_token, route.to_token, descriptor, route.from_amount)
        return merge_assessments(traditional, ai, route.id or None)

    async def analyze_route(self, from_token: Token, to_token: Token,
                            route: RouteCandidate, amount: str) -> CombinedRiskAssessment:
        """Score a caller-supplied route with fresh on-chain data"""
        try:
            on_chain_data = await self._get_on_chain_data(
                from_token.address, to_token.address, from_token.chain_id, to_token.chain_id
            )
        except asyncio.TimeoutError as e:
            self.stats['upstream_failures'] += 1
            raise UpstreamUnavailable("Upstream service timed out") from e

        traditional = self.risk_scorer.assess(route, on_chain_data)
        descriptor = orjson.dumps(route.to_dict()).decode()
        ai = await self._analyze(from_token, to_token, descriptor, amount)
        return merge_assessments(traditional, ai, route.id or None)

    async def _analyze(self, from_token: Token, to_token: Token,
                       descriptor: str, amount: str) -> AIAnalysis:
        try:
            return await asyncio.wait_for(
                self.ai_analyzer.analyze(from_token, to_token, descriptor, amount),
                timeout=self.analysis_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Heuristic analysis timed out after {self.analysis_timeout}s")
            return self.ai_analyzer.fallback_analysis()

    # ---------------------------------------------------------------
    # Route store
    # ---------------------------------------------------------------

    async def store_route(self, route: RouteCandidate) -> None:
        if route.id:
            await self.route_store.set(f"route:{route.id}", route, cache_type='route')

    async def get_route(self, route_id: str) -> Optional[RouteCandidate]:
        return await self.route_store.get(f"route:{route_id}")

    def get_stats(self) -> Dict:
        return dict(self.stats)
