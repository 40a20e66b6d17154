# analysis/models.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from utils.constants import RiskLevel
from utils.helpers import parse_datetime


@dataclass(frozen=True)
class Token:
    """Fungible asset identity on one chain"""
    address: str
    symbol: str
    name: str
    decimals: int
    chain_id: int
    logo_uri: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Token":
        return cls(
            address=str(data.get("address", "")),
            symbol=str(data.get("symbol", "")),
            name=str(data.get("name", "")),
            decimals=int(data.get("decimals", 18)),
            chain_id=int(data.get("chainId", data.get("chain_id", 0))),
            logo_uri=data.get("logoURI"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "chainId": self.chain_id,
        }
        if self.logo_uri:
            result["logoURI"] = self.logo_uri
        return result


@dataclass(frozen=True)
class RouteCandidate:
    """One concrete path from from_token to to_token"""
    id: str
    protocols: Tuple[str, ...]
    from_token: Token
    to_token: Token
    from_amount: str
    to_amount: str
    estimated_gas: str = "0"
    gas_cost: str = "0"
    price_impact: float = 0.0  # percent, 0-100
    from_chain_id: int = 0
    to_chain_id: int = 0
    bridge: Optional[str] = None

    @property
    def hops(self) -> int:
        return len(self.protocols)

    @property
    def is_cross_chain(self) -> bool:
        return self.from_token.chain_id != self.to_token.chain_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteCandidate":
        from_token = Token.from_dict(data.get("fromToken") or {})
        to_token = Token.from_dict(data.get("toToken") or {})
        return cls(
            id=str(data.get("id", "")),
            protocols=tuple(data.get("protocols") or ()),
            from_token=from_token,
            to_token=to_token,
            from_amount=str(data.get("fromAmount", "0")),
            to_amount=str(data.get("toAmount", "0")),
            estimated_gas=str(data.get("estimatedGas") or "0"),
            gas_cost=str(data.get("gasCost") or "0"),
            price_impact=float(data.get("priceImpact") or 0),
            from_chain_id=int(data.get("fromChainId") or from_token.chain_id),
            to_chain_id=int(data.get("toChainId") or to_token.chain_id),
            bridge=data.get("bridge"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "protocols": list(self.protocols),
            "fromToken": self.from_token.to_dict(),
            "toToken": self.to_token.to_dict(),
            "fromAmount": self.from_amount,
            "toAmount": self.to_amount,
            "estimatedGas": self.estimated_gas,
            "gasCost": self.gas_cost,
            "priceImpact": self.price_impact,
            "fromChainId": self.from_chain_id,
            "toChainId": self.to_chain_id,
        }
        if self.bridge:
            result["bridge"] = self.bridge
        return result


@dataclass
class TokenSignals:
    """Auxiliary on-chain signals for one token"""
    address: str
    name: str = ""
    symbol: str = ""
    decimals: int = 18
    total_supply: str = "0"
    creation_date: Optional[datetime] = None
    liquidity: Optional[float] = None
    holders: Optional[int] = None
    verified: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSignals":
        return cls(
            address=str(data.get("address", "")),
            name=str(data.get("name", "")),
            symbol=str(data.get("symbol", "")),
            decimals=int(data.get("decimals", 18)),
            total_supply=str(data.get("totalSupply", "0")),
            creation_date=parse_datetime(data.get("creationDate")),
            liquidity=data.get("liquidity"),
            holders=data.get("holders"),
            verified=data.get("verified"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": self.total_supply,
            "creationDate": self.creation_date.isoformat() if self.creation_date else None,
            "liquidity": self.liquidity,
            "holders": self.holders,
            "verified": self.verified,
        }


@dataclass
class OnChainData:
    """Signals for both sides of a swap"""
    from_token: Optional[TokenSignals] = None
    to_token: Optional[TokenSignals] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OnChainData":
        if not data:
            return cls()
        return cls(
            from_token=TokenSignals.from_dict(data["fromToken"]) if data.get("fromToken") else None,
            to_token=TokenSignals.from_dict(data["toToken"]) if data.get("toToken") else None,
            error=data.get("error"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "fromToken": self.from_token.to_dict() if self.from_token else None,
            "toToken": self.to_token.to_dict() if self.to_token else None,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class RiskAssessment:
    """Rule-based assessment of one route"""
    score: float
    level: RiskLevel
    factors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "factors": list(self.factors),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
        }


@dataclass
class AIAnalysis:
    """Heuristic assessment with structured sub-analyses"""
    risk_score: float
    confidence: float
    risk_factors: Dict[str, float]
    warnings: List[str]
    details: Dict[str, Dict[str, Any]]
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "riskScore": self.risk_score,
            "confidence": self.confidence,
            "riskFactors": dict(self.risk_factors),
            "warnings": list(self.warnings),
            "details": self.details,
        }


@dataclass
class CombinedRiskAssessment:
    """Traditional assessment merged with the heuristic one"""
    score: float
    level: RiskLevel
    factors: List[str]
    warnings: List[str]
    recommendations: List[str]
    ai: AIAnalysis
    overall_risk_score: float
    traditional: RiskAssessment
    route_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routeId": self.route_id,
            "score": self.score,
            "level": self.level.value,
            "factors": list(self.factors),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "ai": self.ai.to_dict(),
            "overallRiskScore": self.overall_risk_score,
            "traditional": self.traditional.to_dict(),
        }


@dataclass
class BridgeQuote:
    """Quote for the bridge corridor"""
    id: str
    from_chain: int
    to_chain: int
    from_token: str
    to_token: str
    from_amount: str
    to_amount: str
    bridge_fee: str
    estimated_time: int  # seconds
    bridge_provider: str
    recipient_address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeQuote":
        return cls(
            id=str(data["id"]),
            from_chain=int(data["fromChain"]),
            to_chain=int(data["toChain"]),
            from_token=str(data["fromToken"]),
            to_token=str(data["toToken"]),
            from_amount=str(data["fromAmount"]),
            to_amount=str(data["toAmount"]),
            bridge_fee=str(data["bridgeFee"]),
            estimated_time=int(data["estimatedTime"]),
            bridge_provider=str(data["bridgeProvider"]),
            recipient_address=data.get("recipientAddress"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "fromChain": self.from_chain,
            "toChain": self.to_chain,
            "fromToken": self.from_token,
            "toToken": self.to_token,
            "fromAmount": self.from_amount,
            "toAmount": self.to_amount,
            "bridgeFee": self.bridge_fee,
            "estimatedTime": self.estimated_time,
            "bridgeProvider": self.bridge_provider,
        }
        if self.recipient_address:
            result["recipientAddress"] = self.recipient_address
        return result


@dataclass
class BridgeTransactionStatus:
    """Three-state bridge transfer status"""
    status: str  # pending | completed | failed
    source_chain_tx: str
    target_chain_tx: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "status": self.status,
            "sourceChainTx": self.source_chain_tx,
        }
        if self.target_chain_tx:
            result["targetChainTx"] = self.target_chain_tx
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class AggregatedQuote:
    """Result of the route aggregation pipeline"""
    routes: List[RouteCandidate]
    risk_assessments: List[CombinedRiskAssessment]
    on_chain_data: OnChainData
    is_cross_chain: bool
    bridge_quote: Optional[BridgeQuote] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routes": [route.to_dict() for route in self.routes],
            "riskAssessments": [a.to_dict() for a in self.risk_assessments],
            "onChainData": self.on_chain_data.to_dict(),
            "bridgeQuote": self.bridge_quote.to_dict() if self.bridge_quote else None,
            "isCrossChain": self.is_cross_chain,
        }
