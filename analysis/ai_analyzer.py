# analysis/ai_analyzer.py

import asyncio
import logging
from typing import Any, Dict, List, Optional

import orjson

from analysis.models import AIAnalysis, Token
from analysis.signal_provider import RandomSignalProvider, SignalProvider, SituationalSignals
from data.collectors.market_data import MarketData, MarketDataProvider, SimulatedMarketDataProvider
from data.storage.cache import CacheManager
from utils.constants import (
    CHAIN_RISK,
    DEFAULT_CHAIN_RISK,
    HOLDER_RISK_BANDS,
    HOLDER_RISK_FLOOR,
    LIQUIDITY_RISK_BANDS,
    LIQUIDITY_RISK_FLOOR,
    MARKET_WARNING_THRESHOLD,
    MAX_RISK_SCORE,
    MIN_RISK_SCORE,
    TRUSTED_BRIDGES,
    VOLUME_RISK_BANDS,
    VOLUME_RISK_FLOOR,
)
from utils.errors import InternalScoringFault
from utils.helpers import band_lookup, clamp

logger = logging.getLogger(__name__)

FALLBACK_WARNING = "Unable to complete full risk analysis"


class AIRiskAnalyzer:
    """
    Heuristic risk analyzer producing a second, independent score per route.

    Situational signals and market snapshots come from injected providers.
    Results are memoized in a TTL cache keyed by chain, both token
    addresses, the route descriptor and the amount. Any internal failure
    yields a neutral fallback analysis instead of an exception.
    """

    def __init__(
        self,
        cache: Optional[CacheManager] = None,
        signal_provider: Optional[SignalProvider] = None,
        market_data_provider: Optional[MarketDataProvider] = None,
        config: Optional[Dict] = None,
    ):
        self.config = config or {}
        self.cache_ttl = self.config.get('cache_ttl', 300)
        self.simulated_latency = self.config.get('simulated_latency', 1.5)
        self.cache = cache if cache is not None else CacheManager(
            {'default_ttl': self.cache_ttl,
             'sweep_interval': self.config.get('sweep_interval', 60)},
            name="ai_analysis_cache",
        )
        self.signal_provider = signal_provider or RandomSignalProvider()
        self.market_data_provider = market_data_provider or SimulatedMarketDataProvider()

        self.stats = {
            'analyses': 0,
            'cache_hits': 0,
            'fallbacks': 0,
        }
        logger.info("Initialized heuristic risk analyzer")

    @staticmethod
    def cache_key(from_token: Token, to_token: Token, route_descriptor: str, amount: str) -> str:
        return f"{from_token.chain_id}-{from_token.address}-{to_token.address}-{route_descriptor}-{amount}"

    async def analyze(
        self,
        from_token: Token,
        to_token: Token,
        route_descriptor: str,
        amount: str
    ) -> AIAnalysis:
        """Analyze one route; never raises for well-formed token inputs"""
        key = self.cache_key(from_token, to_token, route_descriptor, amount)

        try:
            cached = await self.cache.get(key)
            if cached is not None:
                self.stats['cache_hits'] += 1
                return cached

            if self.simulated_latency > 0:
                await asyncio.sleep(self.simulated_latency)

            analysis = await self._run_analysis(from_token, to_token, route_descriptor)
            await self.cache.set(key, analysis, ttl=self.cache_ttl)
            self.stats['analyses'] += 1
            return analysis

        except Exception as e:
            self.stats['fallbacks'] += 1
            logger.error(
                f"Heuristic analysis failed for {from_token.symbol}->{to_token.symbol}: {e}",
                exc_info=True
            )
            return self.fallback_analysis()

    async def _run_analysis(self, from_token: Token, to_token: Token,
                            route_descriptor: str) -> AIAnalysis:
        signals = self.signal_provider.situational_signals(from_token, to_token)
        market = await self.market_data_provider.get_market_data(to_token)

        volatility = self.volatility_score(market)
        holder_risk = self.holder_distribution_risk(market)

        risk_score = self.base_score(signals, market)
        warnings = self._signal_warnings(signals)

        if from_token.chain_id != to_token.chain_id:
            bridge = self._declared_bridge(route_descriptor)
            if not any(trusted in bridge for trusted in TRUSTED_BRIDGES):
                warnings.append("Untrusted or unknown bridge protocol detected")
                risk_score += 20

            from_risk = CHAIN_RISK.get(from_token.chain_id, DEFAULT_CHAIN_RISK)
            to_risk = CHAIN_RISK.get(to_token.chain_id, DEFAULT_CHAIN_RISK)
            risk_score += ((from_risk + to_risk) / 2) * 30

        if market is not None:
            volume_risk = band_lookup(market.volume_24h, VOLUME_RISK_BANDS, VOLUME_RISK_FLOOR)
            liquidity_risk = band_lookup(market.liquidity_depth, LIQUIDITY_RISK_BANDS, LIQUIDITY_RISK_FLOOR)

            risk_score += volume_risk * 15
            risk_score += liquidity_risk * 20
            risk_score += holder_risk * 10

            if volume_risk > MARKET_WARNING_THRESHOLD:
                warnings.append("Unusually low trading volume")
            if liquidity_risk > MARKET_WARNING_THRESHOLD:
                warnings.append("Critically low liquidity")
            if holder_risk > MARKET_WARNING_THRESHOLD:
                warnings.append("High concentration of token holders")

        risk_score = clamp(risk_score, MIN_RISK_SCORE, MAX_RISK_SCORE)
        confidence = 0.85 + self.signal_provider.confidence_jitter() * 0.15
        findings = self.signal_provider.contract_findings(to_token)

        return AIAnalysis(
            risk_score=risk_score,
            confidence=clamp(confidence, 0.0, 1.0),
            risk_factors={
                'scamProbability': 0.7 if signals.is_new_token else 0.1,
                'contractRisk': 0.2 if signals.is_verified else 0.8,
                'liquidityRisk': 0.9 if signals.has_low_liquidity else 0.3,
                'volatilityRisk': volatility,
            },
            warnings=warnings,
            details={
                'contractAnalysis': {
                    'isVerified': signals.is_verified,
                    'hasKnownVulnerabilities': findings.has_known_vulnerabilities,
                    'sourceCodeQuality': 0.8 if signals.is_verified else 0.3,
                    'suspiciousPatterns': findings.suspicious_patterns,
                },
                'marketAnalysis': {
                    'liquidityDepth': (
                        market.liquidity_depth if market and market.liquidity_depth
                        else (10000 if signals.has_low_liquidity else 1000000)
                    ),
                    'volumeAnalysis': self._volume_analysis(signals.has_low_liquidity),
                    'priceImpact': 0.15 if signals.has_low_liquidity else 0.02,
                    'holdersDistribution': self._holders_distribution(signals.is_new_token),
                },
                'reputationAnalysis': {
                    'communityTrust': 0.3 if signals.is_new_token else 0.8,
                    'developerActivity': self._developer_activity(signals.is_verified),
                    'socialMediaPresence': self._social_presence(signals.is_new_token),
                    'knownIncidents': [],
                },
            },
        )

    # ---------------------------------------------------------------
    # Scoring pieces
    # ---------------------------------------------------------------

    def base_score(self, signals: SituationalSignals, market: Optional[MarketData]) -> float:
        score = 30.0
        if signals.is_new_token:
            score += 30
        if signals.has_low_liquidity:
            score += 20
        if not signals.is_verified:
            score += 20

        if market is not None:
            score += self.volatility_score(market) * 20
            score += self.holder_distribution_risk(market) * 10

        return clamp(score, MIN_RISK_SCORE, MAX_RISK_SCORE)

    @staticmethod
    def volatility_score(market: Optional[MarketData]) -> float:
        if market is None:
            return 0.5

        price_volatility = 0.8 if abs(market.price_24h_change) > 20 else 0.3

        # Thin volume against market cap hints at manipulation
        if market.market_cap > 0:
            volume_volatility = 0.7 if market.volume_24h / market.market_cap < 0.1 else 0.2
        else:
            volume_volatility = 0.7

        return (price_volatility + volume_volatility) / 2

    @staticmethod
    def holder_distribution_risk(market: Optional[MarketData]) -> float:
        if market is None:
            return 0.5
        for upper_bound, risk in HOLDER_RISK_BANDS:
            if market.holders < upper_bound:
                return risk
        return HOLDER_RISK_FLOOR

    @staticmethod
    def _declared_bridge(route_descriptor: str) -> str:
        try:
            parsed = orjson.loads(route_descriptor)
        except orjson.JSONDecodeError as e:
            raise InternalScoringFault(f"Malformed route descriptor: {e}") from e

        if isinstance(parsed, dict) and isinstance(parsed.get('bridge'), str):
            return parsed['bridge'].lower()
        return ''

    @staticmethod
    def _signal_warnings(signals: SituationalSignals) -> List[str]:
        warnings = []
        if signals.is_new_token:
            warnings.append("Token was recently created")
        if signals.has_low_liquidity:
            warnings.append("Low liquidity pool detected")
        if not signals.is_verified:
            warnings.append("Contract code is not verified")
        return warnings

    @staticmethod
    def _volume_analysis(has_low_liquidity: bool) -> str:
        if has_low_liquidity:
            return "Low trading volume in the past 24 hours with suspicious trade patterns"
        return "Healthy trading volume with normal distribution of trades"

    @staticmethod
    def _holders_distribution(is_new_token: bool) -> str:
        if is_new_token:
            return "Top 3 holders control 95% of supply"
        return "Well-distributed token holdings across 1000+ addresses"

    @staticmethod
    def _developer_activity(is_verified: bool) -> str:
        if is_verified:
            return "Regular updates and active development team"
        return "Limited or no visible development activity"

    @staticmethod
    def _social_presence(is_new_token: bool) -> str:
        if is_new_token:
            return "Limited social media presence with recent creation dates"
        return "Established presence on major platforms with active community"

    # ---------------------------------------------------------------
    # Fallback
    # ---------------------------------------------------------------

    @staticmethod
    def fallback_analysis() -> AIAnalysis:
        """Neutral, clearly flagged analysis returned on internal failure"""
        details: Dict[str, Dict[str, Any]] = {
            'contractAnalysis': {
                'isVerified': False,
                'hasKnownVulnerabilities': False,
                'sourceCodeQuality': 0.5,
                'suspiciousPatterns': [],
            },
            'marketAnalysis': {
                'liquidityDepth': 0,
                'volumeAnalysis': 'Analysis unavailable',
                'priceImpact': 0,
                'holdersDistribution': 'Unknown',
            },
            'reputationAnalysis': {
                'communityTrust': 0.5,
                'developerActivity': 'Unknown',
                'socialMediaPresence': 'Unknown',
                'knownIncidents': [],
            },
        }
        return AIAnalysis(
            risk_score=50,
            confidence=0.5,
            risk_factors={
                'scamProbability': 0.5,
                'contractRisk': 0.5,
                'liquidityRisk': 0.5,
                'volatilityRisk': 0.5,
            },
            warnings=[FALLBACK_WARNING],
            details=details,
            is_fallback=True,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {**self.stats, 'cache': self.cache.get_stats()}
