"""
Swap Simulation Service
Pre-execution gas estimation, approval checks and token-drain analysis
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from analysis.models import RouteCandidate, Token
from data.collectors.chain_data import ChainClient
from utils.constants import (
    APPROVAL_GAS,
    DEFAULT_GAS_PRICE_GWEI,
    DEFAULT_SLIPPAGE_PCT,
    DRAIN_PATTERNS,
    GAS_LIMIT_BUFFER,
    KNOWN_DEX_PROTOCOLS,
    ONEINCH_ROUTER,
    SWAP_BASE_GAS,
    SWAP_GAS_PER_PROTOCOL,
    ZERO_ADDRESS,
)
from utils.errors import ChainDataError, ValidationError
from utils.helpers import gwei_to_wei, mask_address

logger = logging.getLogger(__name__)

MAX_UINT256 = 2 ** 256 - 1
DRAIN_PRICE_IMPACT = 10.0  # percent
DRAIN_MAX_HOPS = 3


@dataclass
class ApprovalCheck:
    """ERC20 approval requirement for the swap spender"""
    required: bool
    current_allowance: int
    required_allowance: int
    approval_gas: int
    approval_cost: int
    spender_address: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'required': self.required,
            'currentAllowance': str(self.current_allowance),
            'requiredAllowance': str(self.required_allowance),
            'approvalGas': str(self.approval_gas),
            'approvalCost': str(self.approval_cost),
            'spenderAddress': self.spender_address,
        }


@dataclass
class DrainAnalysis:
    """Token drain heuristics for one route"""
    patterns: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def risk(self) -> bool:
        return len(self.patterns) > 0

    def flag(self, pattern: str, warning: str, recommendation: str) -> None:
        self.patterns.append(pattern)
        self.warnings.append(warning)
        self.recommendations.append(recommendation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tokenDrainRisk': self.risk,
            'suspiciousPatterns': list(self.patterns),
            'warnings': list(self.warnings),
            'recommendations': list(self.recommendations),
        }


def _to_int(value: Any, field_name: str) -> int:
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid {field_name}: {value}") from e


class SimulationService:
    """
    Estimates what executing a route would cost and flags drain risks.

    No transaction is built or sent; gas is a per-protocol estimate and the
    only chain reads are the gas price and the ERC20 allowance.
    """

    def __init__(self, chain_client: Optional[ChainClient] = None,
                 config: Optional[Dict] = None):
        self.config = config or {}
        self.chain_client = chain_client or ChainClient()
        self.spender_address = self.config.get('spender_address', ONEINCH_ROUTER)
        self.default_gas_price_wei = gwei_to_wei(
            self.config.get('default_gas_price_gwei', DEFAULT_GAS_PRICE_GWEI)
        )

        self.stats = {
            'simulations': 0,
            'drain_flags': 0,
        }

    async def simulate_transaction(
        self,
        route: RouteCandidate,
        user_address: str,
        from_amount: str,
        to_amount: str,
        slippage: float = DEFAULT_SLIPPAGE_PCT
    ) -> Dict[str, Any]:
        """
        Full pre-execution report: simulation, approval, security and preview
        """
        logger.info(
            f"Simulating route {route.id} for {mask_address(user_address)}: "
            f"{from_amount} -> {to_amount}"
        )
        amount_in = _to_int(from_amount, 'fromAmount')
        amount_out = _to_int(to_amount, 'toAmount')
        chain_id = route.from_token.chain_id

        gas_price = await self._gas_price(chain_id)

        approval = await self.check_approval(route.from_token, amount_in, user_address, gas_price)
        drain = self.analyze_token_drain(route, approval)
        simulation = self.simulate_swap(route, gas_price)

        gas_cost = simulation['gasUsed'] * gas_price
        min_received = Decimal(amount_out) * (1 - Decimal(str(slippage)) / 100)

        self.stats['simulations'] += 1
        if drain.risk:
            self.stats['drain_flags'] += 1

        return {
            'simulation': {
                'success': True,
                'gasUsed': str(simulation['gasUsed']),
                'gasLimit': str(simulation['gasLimit']),
                'gasPrice': str(gas_price),
                'totalCost': str(gas_cost),
            },
            'approval': approval.to_dict(),
            'security': drain.to_dict(),
            'preview': {
                'inputAmount': str(amount_in),
                'outputAmount': str(amount_out),
                'minimumReceived': str(int(min_received)),
                'priceImpact': route.price_impact,
                'slippage': slippage,
                'fees': {
                    'protocol': '0',
                    'gas': str(gas_cost),
                    'total': str(gas_cost + approval.approval_cost),
                },
            },
        }

    async def get_gas_estimate(self, route: RouteCandidate, user_address: str,
                               from_amount: str) -> Dict[str, str]:
        """Swap plus approval gas at the current gas price"""
        result = await self.simulate_transaction(
            route, user_address, from_amount, route.to_amount
        )
        total_gas = int(result['simulation']['gasUsed']) + int(result['approval']['approvalGas'])
        gas_price = int(result['simulation']['gasPrice'])

        return {
            'gasEstimate': str(total_gas),
            'gasPrice': str(gas_price),
            'totalCost': str(total_gas * gas_price),
        }

    def simulate_swap(self, route: RouteCandidate, gas_price: int) -> Dict[str, int]:
        gas_used = SWAP_BASE_GAS + SWAP_GAS_PER_PROTOCOL * len(route.protocols)
        return {
            'gasUsed': gas_used,
            'gasLimit': int(Decimal(gas_used) * GAS_LIMIT_BUFFER),
            'gasPrice': gas_price,
        }

    async def check_approval(self, token: Token, amount: int, user_address: str,
                             gas_price: int) -> ApprovalCheck:
        # Native ETH is sent as value
        if token.address == ZERO_ADDRESS:
            return ApprovalCheck(False, 0, 0, 0, 0, self.spender_address)

        try:
            current = await self.chain_client.get_allowance(
                token.address, user_address, self.spender_address, token.chain_id
            )
        except ChainDataError as e:
            logger.warning(f"Allowance unknown, assuming approval is needed: {e}")
            current = 0

        required = current < amount
        approval_gas = APPROVAL_GAS if required else 0

        return ApprovalCheck(
            required=required,
            current_allowance=current,
            required_allowance=amount,
            approval_gas=approval_gas,
            approval_cost=approval_gas * gas_price,
            spender_address=self.spender_address,
        )

    def analyze_token_drain(self, route: RouteCandidate,
                            approval: Optional[ApprovalCheck] = None) -> DrainAnalysis:
        analysis = DrainAnalysis()

        names = [
            route.from_token.name.lower(),
            route.to_token.name.lower(),
            route.from_token.symbol.lower(),
            route.to_token.symbol.lower(),
        ]
        suspicious = [n for n in names if any(p in n for p in DRAIN_PATTERNS)]
        if suspicious:
            analysis.flag(
                'suspicious_token_name',
                f"Suspicious token names detected: {', '.join(suspicious)}",
                "Verify token contract on blockchain explorer",
            )

        if approval is not None and approval.current_allowance >= MAX_UINT256:
            analysis.flag(
                'infinite_approval',
                f"Infinite approval detected for protocol: {approval.spender_address}",
                "Revoke infinite approvals for unused protocols",
            )

        if route.price_impact > DRAIN_PRICE_IMPACT:
            analysis.flag(
                'high_price_impact',
                f"High price impact: {route.price_impact:.2f}%",
                "Consider using a different route or reducing amount",
            )

        if len(route.protocols) > DRAIN_MAX_HOPS:
            analysis.flag(
                'complex_route',
                f"Complex route with {len(route.protocols)} hops",
                "Consider a simpler route to reduce risk",
            )

        unknown = [
            p for p in route.protocols
            if not any(known in p.lower() for known in KNOWN_DEX_PROTOCOLS)
        ]
        if unknown:
            analysis.flag(
                'unknown_protocols',
                f"Unknown protocols: {', '.join(unknown)}",
                "Research unknown protocols before proceeding",
            )

        return analysis

    async def _gas_price(self, chain_id: int) -> int:
        gas_price = await self.chain_client.get_gas_price(chain_id)
        return gas_price or self.default_gas_price_wei
