# tests/unit/test_risk_scorer.py
"""
Unit tests for RiskScorer
"""
from datetime import timedelta

import pytest

from analysis.models import BridgeQuote, OnChainData, Token, TokenSignals
from analysis.risk_scorer import RiskScorer, is_protocol_trusted, risk_level_for
from tests.conftest import APTOS_ADDRESS, FIXED_NOW
from utils.constants import Chain, RiskLevel, RiskRule


def _bridge_quote(**overrides):
    data = dict(
        id="bridge-1",
        from_chain=Chain.SEPOLIA,
        to_chain=Chain.APTOS_TESTNET,
        from_token="0x0000000000000000000000000000000000000000",
        to_token="0x1::aptos_coin::AptosCoin",
        from_amount="1000000000000000000",
        to_amount="1000000000000000000",
        bridge_fee="5000000000000000",
        estimated_time=300,
        bridge_provider="Wormhole",
        recipient_address=APTOS_ADDRESS,
    )
    data.update(overrides)
    return BridgeQuote(**data)


@pytest.mark.unit
class TestRiskLevels:
    """Score to level bucketing"""

    @pytest.mark.parametrize("score,level", [
        (0, RiskLevel.LOW),
        (29.9, RiskLevel.LOW),
        (30, RiskLevel.MEDIUM),
        (59.9, RiskLevel.MEDIUM),
        (60, RiskLevel.HIGH),
        (79.9, RiskLevel.HIGH),
        (80, RiskLevel.CRITICAL),
        (100, RiskLevel.CRITICAL),
    ])
    def test_thresholds(self, score, level):
        assert risk_level_for(score) == level

    def test_protocol_trust_is_substring_match(self):
        assert is_protocol_trusted("UNISWAP_V3")
        assert is_protocol_trusted("Curve.fi")
        assert not is_protocol_trusted("ShadySwap")


@pytest.mark.unit
class TestRouteAssessment:
    """Test cases for same-chain and cross-chain route scoring"""

    def test_clean_route_scores_zero(self, risk_scorer, make_route):
        assessment = risk_scorer.assess(make_route())

        assert assessment.score == 0
        assert assessment.level == RiskLevel.LOW
        assert assessment.factors == []
        assert assessment.warnings == []
        assert assessment.recommendations == []

    def test_untrusted_protocol(self, risk_scorer, make_route):
        assessment = risk_scorer.assess(make_route(protocols=["uniswap", "ShadySwap"]))

        assert assessment.score == 30
        assert assessment.level == RiskLevel.MEDIUM
        assert "⚠️ Route uses untrusted protocols: ShadySwap" in assessment.warnings
        assert "Prefer routes through established protocols" in assessment.recommendations

    def test_price_impact_is_proportional(self, risk_scorer, make_route):
        at_threshold = risk_scorer.assess(make_route(price_impact=5.0))
        moderate = risk_scorer.assess(make_route(price_impact=10.0))
        capped = risk_scorer.assess(make_route(price_impact=45.0))

        assert at_threshold.score == 0
        assert moderate.score == pytest.approx(10.0)
        assert capped.score == pytest.approx(20.0)
        assert "⚠️ High price impact: 10.00%" in moderate.warnings

    def test_multiple_hops(self, risk_scorer, make_route):
        assessment = risk_scorer.assess(
            make_route(protocols=["uniswap", "sushiswap", "curve", "balancer"])
        )
        assert assessment.score == 10
        assert "⚠️ Complex route with 4 hops" in assessment.warnings

    def test_suspicious_token_names(self, risk_scorer, make_route, eth_token):
        scam = Token(address="0x" + "1" * 40, symbol="SCAM", name="Honeypot Coin",
                     decimals=18, chain_id=Chain.SEPOLIA)
        assessment = risk_scorer.assess(make_route(to_token=scam))

        assert assessment.score == 20
        assert "🚨 Suspicious token names detected" in assessment.warnings
        assert "Verify token contracts on a block explorer before swapping" in assessment.recommendations

    def test_cross_chain_with_unknown_bridge(self, risk_scorer, make_route):
        polygon_usdc = Token(address="0x" + "2" * 40, symbol="USDC", name="USD Coin",
                             decimals=6, chain_id=Chain.POLYGON)
        assessment = risk_scorer.assess(make_route(to_token=polygon_usdc))

        # bridge + untrusted bridge + destination chain
        assert assessment.score == 75
        assert assessment.level == RiskLevel.HIGH
        assert "🚨 Untrusted or unknown bridge protocol" in assessment.warnings
        assert "Consider using a smaller trade size or an alternative route" in assessment.recommendations
        assert "Use a trusted bridge such as Wormhole or LayerZero" in assessment.recommendations

    def test_cross_chain_with_trusted_bridge(self, risk_scorer, make_route):
        mainnet_usdc = Token(address="0x" + "3" * 40, symbol="USDC", name="USD Coin",
                             decimals=6, chain_id=Chain.ETHEREUM)
        assessment = risk_scorer.assess(
            make_route(protocols=["uniswap", "Wormhole Portal"], to_token=mainnet_usdc)
        )
        assert assessment.score == 25
        assert "⚠️ Cross-chain swap detected" in assessment.warnings

    def test_score_is_clamped(self, risk_scorer, make_route):
        scam = Token(address="0x" + "4" * 40, symbol="FAKE", name="Rugpull",
                     decimals=18, chain_id=Chain.BSC)
        route = make_route(
            protocols=["a", "b", "c", "d", "e"],
            price_impact=50.0,
            to_token=scam,
        )
        assessment = risk_scorer.assess(route)

        assert assessment.score == 100
        assert assessment.level == RiskLevel.CRITICAL

    def test_on_chain_signals(self, risk_scorer, make_route, usdc_token):
        young = TokenSignals(
            address=usdc_token.address,
            creation_date=FIXED_NOW - timedelta(days=3),
            liquidity=2500.0,
        )
        on_chain = OnChainData(from_token=None, to_token=young)
        assessment = risk_scorer.assess(make_route(), on_chain)

        assert assessment.score == 30
        assert "⚠️ Token is only 3 days old" in assessment.warnings
        assert "⚠️ Low liquidity: $2,500" in assessment.warnings

    def test_missing_signals_are_ignored(self, risk_scorer, make_route):
        assessment = risk_scorer.assess(make_route(), OnChainData(error="lookup failed"))
        assert assessment.score == 0

    def test_custom_weights(self, make_route):
        scorer = RiskScorer({'weights': {RiskRule.UNKNOWN_PROTOCOL: 50}})

        assessment = scorer.assess(make_route(protocols=["ShadySwap"]))
        assert assessment.score == 50

    def test_same_chain_scenario_has_no_bridge_factors(self, risk_scorer, make_route):
        assessment = risk_scorer.assess(make_route(protocols=["uniswap"], price_impact=0.5))

        assert assessment.level == RiskLevel.LOW
        assert assessment.score < 30
        assert not [f for f in assessment.factors if "Bridge" in f]

    def test_cross_chain_scenario_with_unknown_portal(self, risk_scorer, make_route):
        aptos = Token(address="0x1::aptos_coin::AptosCoin", symbol="APT", name="Aptos Coin",
                      decimals=8, chain_id=Chain.APTOS_TESTNET)
        assessment = risk_scorer.assess(make_route(protocols=["unknown_portal"], to_token=aptos))

        rules = [f.split(": ", 1)[0] for f in assessment.factors]
        assert "Cross-Chain Bridge" in rules
        assert "Untrusted Bridge" in rules
        assert assessment.score >= 55
        assert assessment.factors[rules.index("Untrusted Bridge")] == (
            "Untrusted Bridge: Bridge protocol is unknown or not trusted: unknown_portal (+30)"
        )

    def test_factor_strings_lead_with_rule_name(self, risk_scorer, make_route):
        mainnet_usdc = Token(address="0x" + "3" * 40, symbol="USDC", name="USD Coin",
                             decimals=6, chain_id=Chain.ETHEREUM)
        assessment = risk_scorer.assess(
            make_route(protocols=["uniswap", "Wormhole Portal"], to_token=mainnet_usdc)
        )
        assert assessment.factors == [
            "Cross-Chain Bridge: Route involves cross-chain bridges: 11155111 → 1 (+25)"
        ]

    def test_scamtoken_symbol(self, risk_scorer, make_route):
        token = Token(address="0x" + "6" * 40, symbol="SCAMTOKEN", name="Totally Legit",
                      decimals=18, chain_id=Chain.SEPOLIA)
        assessment = risk_scorer.assess(make_route(to_token=token))

        assert assessment.score == 20
        assert assessment.factors == [
            "Suspicious Contract: Token contract has suspicious patterns: scamtoken (+20)"
        ]
        assert "🚨 Suspicious token names detected" in assessment.warnings

    def test_assess_is_idempotent(self, risk_scorer, make_route, usdc_token):
        route = make_route(protocols=["uniswap", "ShadySwap"], price_impact=12.0)
        on_chain = OnChainData(to_token=TokenSignals(
            address=usdc_token.address,
            creation_date=FIXED_NOW - timedelta(days=2),
            liquidity=500.0,
        ))

        first = risk_scorer.assess(route, on_chain)
        second = risk_scorer.assess(route, on_chain)

        assert first.to_dict() == second.to_dict()

    def test_future_creation_date_reads_as_new(self, risk_scorer, make_route, usdc_token):
        signals = TokenSignals(address=usdc_token.address,
                               creation_date=FIXED_NOW + timedelta(days=5))
        assessment = risk_scorer.assess(make_route(), OnChainData(to_token=signals))

        assert assessment.score == 15
        assert assessment.warnings == ["⚠️ Token is only 0 days old"]


@pytest.mark.unit
class TestBridgeAssessment:
    """Test cases for bridge quote scoring"""

    def test_corridor_quote(self, risk_scorer):
        assessment = risk_scorer.assess_bridge(_bridge_quote())

        assert assessment.score == 25
        assert assessment.level == RiskLevel.LOW
        assert assessment.warnings == ["🌉 Cross-chain bridge: Wormhole"]

    def test_bridge_factor_always_present(self, risk_scorer):
        assessment = risk_scorer.assess_bridge(_bridge_quote())
        assert assessment.factors == [
            "Cross-Chain Bridge: Route involves cross-chain bridges: Wormhole (+25)"
        ]

    def test_high_fee_and_long_time(self, risk_scorer):
        quote = _bridge_quote(bridge_fee="100000000000000000", estimated_time=1200)
        assessment = risk_scorer.assess_bridge(quote)

        assert assessment.score == 50
        assert "⚠️ High bridge fee: 10.00%" in assessment.warnings
        assert "⏱️ Long bridge time: 20 minutes" in assessment.warnings

    def test_unsupported_destination(self, risk_scorer):
        assessment = risk_scorer.assess_bridge(_bridge_quote(to_chain=Chain.POLYGON))
        assert assessment.score == 50
        assert "🚨 Unsupported destination chain: 137" in assessment.warnings

    def test_unverified_destination_token(self, risk_scorer):
        on_chain = OnChainData(to_token=TokenSignals(address="0xabc", symbol="APT", verified=False))
        assessment = risk_scorer.assess_bridge(_bridge_quote(), on_chain)

        assert assessment.score == 45
        assert "⚠️ Token not verified on destination chain" in assessment.warnings

    def test_non_numeric_amounts_skip_fee_rule(self, risk_scorer):
        assessment = risk_scorer.assess_bridge(_bridge_quote(from_amount="lots"))
        assert assessment.score == 25
