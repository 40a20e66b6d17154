# analysis/risk_scorer.py

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from analysis.models import (
    BridgeQuote,
    OnChainData,
    RiskAssessment,
    RouteCandidate,
    TokenSignals,
)
from utils.constants import (
    BRIDGE_FEE_THRESHOLD_PCT,
    BRIDGE_KEYWORDS,
    BRIDGE_SUPPORTED_CHAINS,
    BRIDGE_TIME_THRESHOLD,
    LOW_LIQUIDITY_USD,
    LOW_RISK_DESTINATION_CHAINS,
    MAX_HOPS,
    MAX_RISK_SCORE,
    MIN_RISK_SCORE,
    NEW_TOKEN_DAYS,
    PRICE_IMPACT_CAP,
    PRICE_IMPACT_THRESHOLD,
    RISK_DESCRIPTIONS,
    RISK_LEVEL_THRESHOLDS,
    RISK_WEIGHTS,
    SCAM_PATTERNS,
    TRUSTED_PROTOCOLS,
    RiskLevel,
    RiskRule,
)
from utils.helpers import clamp, days_since, utc_now

logger = logging.getLogger(__name__)


def risk_level_for(score: float) -> RiskLevel:
    """Map a clamped score onto its risk bucket"""
    for threshold, level in RISK_LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return RiskLevel.LOW


def is_protocol_trusted(protocol: str) -> bool:
    name = protocol.lower()
    return any(trusted in name for trusted in TRUSTED_PROTOCOLS)


class _Accumulator:
    """Collects triggered rules during one assessment pass"""

    def __init__(self, weights: Dict[RiskRule, float]):
        self.weights = weights
        self.total = 0.0
        self.factors: List[str] = []
        self.warnings: List[str] = []
        self.triggered: List[RiskRule] = []

    def add(self, rule: RiskRule, detail: str, warning: str,
            contribution: Optional[float] = None) -> None:
        points = self.weights[rule] if contribution is None else contribution
        self.total += points
        self.triggered.append(rule)
        self.factors.append(
            f"{rule.value}: {RISK_DESCRIPTIONS[rule]}: {detail} (+{points:g})"
        )
        self.warnings.append(warning)


class RiskScorer:
    """
    Rule-based route risk scorer.

    Every rule is independent and additive; the total is clamped to
    [0, 100] and bucketed into a risk level. Assessments never raise and
    depend only on their inputs plus the injected clock.
    """

    def __init__(self, config: Optional[Dict] = None,
                 now: Optional[Callable[[], datetime]] = None):
        self.config = config or {}
        self.now = now or utc_now
        self.weights = dict(RISK_WEIGHTS)
        self.weights.update(self.config.get('weights', {}))

    # ---------------------------------------------------------------
    # Route assessment
    # ---------------------------------------------------------------

    def assess(self, route: RouteCandidate,
               on_chain_data: Optional[OnChainData] = None) -> RiskAssessment:
        """Score a single route candidate"""
        acc = _Accumulator(self.weights)

        self._check_protocols(route, acc)
        self._check_price_impact(route, acc)
        self._check_hops(route, acc)
        self._check_cross_chain(route, acc)
        self._check_token_names(route, acc)

        if on_chain_data is not None:
            self._check_token_age(on_chain_data.from_token, acc)
            self._check_token_age(on_chain_data.to_token, acc)
            self._check_liquidity(on_chain_data.from_token, acc)
            self._check_liquidity(on_chain_data.to_token, acc)

        return self._finalize(acc)

    def _check_protocols(self, route: RouteCandidate, acc: _Accumulator) -> None:
        unknown = [p for p in route.protocols if not is_protocol_trusted(p)]
        if unknown:
            names = ", ".join(unknown)
            acc.add(
                RiskRule.UNKNOWN_PROTOCOL,
                names,
                f"⚠️ Route uses untrusted protocols: {names}",
            )

    def _check_price_impact(self, route: RouteCandidate, acc: _Accumulator) -> None:
        if route.price_impact > PRICE_IMPACT_THRESHOLD:
            impact = min(route.price_impact, PRICE_IMPACT_CAP)
            contribution = impact / PRICE_IMPACT_CAP * self.weights[RiskRule.HIGH_PRICE_IMPACT]
            acc.add(
                RiskRule.HIGH_PRICE_IMPACT,
                f"{route.price_impact:.2f}%",
                f"⚠️ High price impact: {route.price_impact:.2f}%",
                contribution=contribution,
            )

    def _check_hops(self, route: RouteCandidate, acc: _Accumulator) -> None:
        if route.hops > MAX_HOPS:
            acc.add(
                RiskRule.MULTIPLE_HOPS,
                f"{route.hops} hops",
                f"⚠️ Complex route with {route.hops} hops",
            )

    def _check_cross_chain(self, route: RouteCandidate, acc: _Accumulator) -> None:
        source = route.from_token.chain_id
        destination = route.to_token.chain_id
        if source == destination:
            return

        acc.add(
            RiskRule.CROSS_CHAIN_BRIDGE,
            f"{source} → {destination}",
            "⚠️ Cross-chain swap detected",
        )

        bridge_protocol = self._find_bridge_protocol(route)
        if not bridge_protocol or not is_protocol_trusted(bridge_protocol):
            acc.add(
                RiskRule.UNTRUSTED_BRIDGE,
                bridge_protocol or "Unknown bridge",
                "🚨 Untrusted or unknown bridge protocol",
            )

        if destination not in LOW_RISK_DESTINATION_CHAINS:
            acc.add(
                RiskRule.CHAIN_SPECIFIC_RISK,
                f"Chain ID {destination}",
                "⚠️ Destination chain has additional risks",
            )

    @staticmethod
    def _find_bridge_protocol(route: RouteCandidate) -> Optional[str]:
        for protocol in route.protocols:
            name = protocol.lower()
            if any(keyword in name for keyword in BRIDGE_KEYWORDS):
                return protocol
        return route.bridge

    def _check_token_names(self, route: RouteCandidate, acc: _Accumulator) -> None:
        names = [
            route.from_token.name.lower(),
            route.to_token.name.lower(),
            route.from_token.symbol.lower(),
            route.to_token.symbol.lower(),
        ]
        suspicious = [n for n in names if any(pattern in n for pattern in SCAM_PATTERNS)]
        if suspicious:
            acc.add(
                RiskRule.SUSPICIOUS_CONTRACT,
                ", ".join(suspicious),
                "🚨 Suspicious token names detected",
            )

    def _check_token_age(self, signals: Optional[TokenSignals], acc: _Accumulator) -> None:
        if not signals or not signals.creation_date:
            return
        # future creation dates read as 0 days old
        age = max(0.0, days_since(signals.creation_date, self.now()))
        if age < NEW_TOKEN_DAYS:
            days = int(age)
            acc.add(
                RiskRule.NEW_TOKEN,
                f"{days} days old",
                f"⚠️ Token is only {days} days old",
            )

    def _check_liquidity(self, signals: Optional[TokenSignals], acc: _Accumulator) -> None:
        if not signals or signals.liquidity is None:
            return
        if signals.liquidity < LOW_LIQUIDITY_USD:
            amount = f"${signals.liquidity:,.0f}"
            acc.add(
                RiskRule.LOW_LIQUIDITY,
                amount,
                f"⚠️ Low liquidity: {amount}",
            )

    # ---------------------------------------------------------------
    # Bridge assessment
    # ---------------------------------------------------------------

    def assess_bridge(self, quote: BridgeQuote,
                      on_chain_data: Optional[OnChainData] = None) -> RiskAssessment:
        """Score a bridge quote; the bridge weight always applies"""
        acc = _Accumulator(self.weights)

        acc.add(
            RiskRule.CROSS_CHAIN_BRIDGE,
            quote.bridge_provider,
            f"🌉 Cross-chain bridge: {quote.bridge_provider}",
        )

        fee_pct = self._fee_percentage(quote)
        if fee_pct is not None and fee_pct > BRIDGE_FEE_THRESHOLD_PCT:
            acc.add(
                RiskRule.HIGH_BRIDGE_FEE,
                f"{fee_pct:.2f}%",
                f"⚠️ High bridge fee: {fee_pct:.2f}%",
            )

        if quote.estimated_time > BRIDGE_TIME_THRESHOLD:
            minutes = quote.estimated_time // 60
            acc.add(
                RiskRule.LONG_BRIDGE_TIME,
                f"{minutes} minutes",
                f"⏱️ Long bridge time: {minutes} minutes",
            )

        if quote.to_chain not in BRIDGE_SUPPORTED_CHAINS:
            acc.add(
                RiskRule.UNSUPPORTED_CHAIN,
                f"Chain ID {quote.to_chain}",
                f"🚨 Unsupported destination chain: {quote.to_chain}",
            )

        to_signals = on_chain_data.to_token if on_chain_data else None
        if to_signals is not None and not to_signals.verified:
            acc.add(
                RiskRule.UNVERIFIED_TOKEN,
                to_signals.symbol or to_signals.address,
                "⚠️ Token not verified on destination chain",
            )

        return self._finalize(acc)

    @staticmethod
    def _fee_percentage(quote: BridgeQuote) -> Optional[float]:
        try:
            amount = float(quote.from_amount)
            fee = float(quote.bridge_fee)
        except ValueError:
            logger.warning(f"Non-numeric bridge amounts on quote {quote.id}")
            return None
        if amount <= 0:
            return None
        return fee / amount * 100

    # ---------------------------------------------------------------
    # Shared
    # ---------------------------------------------------------------

    def _finalize(self, acc: _Accumulator) -> RiskAssessment:
        score = clamp(acc.total, MIN_RISK_SCORE, MAX_RISK_SCORE)
        level = risk_level_for(score)
        return RiskAssessment(
            score=score,
            level=level,
            factors=acc.factors,
            warnings=acc.warnings,
            recommendations=self._recommendations(level, acc.triggered),
        )

    @staticmethod
    def _recommendations(level: RiskLevel, triggered: List[RiskRule]) -> List[str]:
        recommendations = []
        if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            recommendations.append("Consider using a smaller trade size or an alternative route")
        if RiskRule.SUSPICIOUS_CONTRACT in triggered or RiskRule.UNVERIFIED_TOKEN in triggered:
            recommendations.append("Verify token contracts on a block explorer before swapping")
        if RiskRule.UNKNOWN_PROTOCOL in triggered:
            recommendations.append("Prefer routes through established protocols")
        if RiskRule.HIGH_PRICE_IMPACT in triggered:
            recommendations.append("Split the trade or reduce the amount to lower price impact")
        if RiskRule.UNTRUSTED_BRIDGE in triggered:
            recommendations.append("Use a trusted bridge such as Wormhole or LayerZero")
        return recommendations
