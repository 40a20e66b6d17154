"""
System-wide Constants for SwapGuard
Centralized trust tables, risk weights, thresholds, chains and fallback tokens
"""

from decimal import Decimal
from enum import Enum, IntEnum
from typing import Dict, List

# ============= Version Info =============
VERSION = "1.0.0"
SERVICE_NAME = "SwapGuard"
PROJECT_NAME = "SwapGuard Cross-Chain Safety Layer"

# ============= Chain Configuration =============

class Chain(IntEnum):
    """Chain IDs known to the scoring pipeline"""
    ETHEREUM = 1
    APTOS_TESTNET = 2
    OPTIMISM = 10
    BSC = 56
    POLYGON = 137
    ARBITRUM = 42161
    AVALANCHE = 43114
    POLYGON_AMOY = 80002
    SEPOLIA = 11155111

ALCHEMY_NETWORKS = {
    Chain.ETHEREUM: "eth-mainnet",
    Chain.SEPOLIA: "eth-sepolia",
    Chain.POLYGON: "polygon-mainnet",
    Chain.POLYGON_AMOY: "polygon-amoy",
}

# Destination chains that do not add chain-specific risk
LOW_RISK_DESTINATION_CHAINS = {Chain.ETHEREUM, Chain.SEPOLIA}

# The single supported bridge corridor
BRIDGE_SUPPORTED_CHAINS = [Chain.SEPOLIA, Chain.APTOS_TESTNET]

# Per-chain base risk used by the heuristic analyzer
CHAIN_RISK = {
    Chain.ETHEREUM: 0.1,
    Chain.SEPOLIA: 0.2,
    Chain.POLYGON: 0.3,
    Chain.AVALANCHE: 0.4,
    Chain.BSC: 0.4,
    Chain.ARBITRUM: 0.3,
    Chain.OPTIMISM: 0.3,
}
DEFAULT_CHAIN_RISK = 0.5

# ============= Risk Levels =============

class RiskLevel(Enum):
    """Ordinal risk buckets"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

# Checked top-down, first match wins
RISK_LEVEL_THRESHOLDS = [
    (80, RiskLevel.CRITICAL),
    (60, RiskLevel.HIGH),
    (30, RiskLevel.MEDIUM),
]

MIN_RISK_SCORE = 0
MAX_RISK_SCORE = 100

# ============= Traditional Risk Weights =============

class RiskRule(Enum):
    """Rules of the traditional scorer"""
    UNKNOWN_PROTOCOL = "Unknown Protocol"
    HIGH_PRICE_IMPACT = "High Price Impact"
    LOW_LIQUIDITY = "Low Liquidity"
    MULTIPLE_HOPS = "Multiple Hops"
    NEW_TOKEN = "New Token"
    SUSPICIOUS_CONTRACT = "Suspicious Contract"
    CROSS_CHAIN_BRIDGE = "Cross-Chain Bridge"
    UNTRUSTED_BRIDGE = "Untrusted Bridge"
    CHAIN_SPECIFIC_RISK = "Chain Specific Risk"
    HIGH_BRIDGE_FEE = "High Bridge Fee"
    LONG_BRIDGE_TIME = "Long Bridge Time"
    UNSUPPORTED_CHAIN = "Unsupported Chain"
    UNVERIFIED_TOKEN = "Unverified Token"

RISK_WEIGHTS = {
    RiskRule.UNKNOWN_PROTOCOL: 30,
    RiskRule.HIGH_PRICE_IMPACT: 20,
    RiskRule.LOW_LIQUIDITY: 15,
    RiskRule.MULTIPLE_HOPS: 10,
    RiskRule.NEW_TOKEN: 15,
    RiskRule.SUSPICIOUS_CONTRACT: 20,
    RiskRule.CROSS_CHAIN_BRIDGE: 25,
    RiskRule.UNTRUSTED_BRIDGE: 30,
    RiskRule.CHAIN_SPECIFIC_RISK: 20,
    RiskRule.HIGH_BRIDGE_FEE: 15,
    RiskRule.LONG_BRIDGE_TIME: 10,
    RiskRule.UNSUPPORTED_CHAIN: 25,
    RiskRule.UNVERIFIED_TOKEN: 20,
}

RISK_DESCRIPTIONS = {
    RiskRule.UNKNOWN_PROTOCOL: "Route uses protocols not in our trusted list",
    RiskRule.HIGH_PRICE_IMPACT: "Swap has significant price impact (>5%)",
    RiskRule.LOW_LIQUIDITY: "Route goes through low liquidity pools",
    RiskRule.MULTIPLE_HOPS: "Route has many intermediate swaps",
    RiskRule.NEW_TOKEN: "Token was created recently (<30 days)",
    RiskRule.SUSPICIOUS_CONTRACT: "Token contract has suspicious patterns",
    RiskRule.CROSS_CHAIN_BRIDGE: "Route involves cross-chain bridges",
    RiskRule.UNTRUSTED_BRIDGE: "Bridge protocol is unknown or not trusted",
    RiskRule.CHAIN_SPECIFIC_RISK: "Destination chain carries additional risk",
    RiskRule.HIGH_BRIDGE_FEE: "Bridge fee is a large share of the transfer",
    RiskRule.LONG_BRIDGE_TIME: "Bridge transfer takes a long time",
    RiskRule.UNSUPPORTED_CHAIN: "Destination chain is outside the supported corridor",
    RiskRule.UNVERIFIED_TOKEN: "Token is not verified on the destination chain",
}

# ============= Rule Thresholds =============

PRICE_IMPACT_THRESHOLD = 5.0     # percent
PRICE_IMPACT_CAP = 20.0          # percent
MAX_HOPS = 3
NEW_TOKEN_DAYS = 30
LOW_LIQUIDITY_USD = 10000
BRIDGE_FEE_THRESHOLD_PCT = 5.0
BRIDGE_TIME_THRESHOLD = 600      # seconds

# ============= Trust & Pattern Tables =============

TRUSTED_PROTOCOLS = [
    "uniswap",
    "sushiswap",
    "pancakeswap",
    "curve",
    "balancer",
    "1inch",
    "paraswap",
    "kyber",
    "wormhole",
    "stargate",
    "layerzero",
]

BRIDGE_KEYWORDS = ["bridge", "portal", "wormhole", "layerzero"]

TRUSTED_BRIDGES = ["wormhole", "layerzero", "chainbridge", "arbitrum", "optimism"]

SCAM_PATTERNS = ["honeypot", "rugpull", "fake", "scam", "test", "mock"]

SUSPICIOUS_CODE_PATTERNS = [
    "blacklist",
    "whitelist",
    "selfdestruct",
    "owner.transfer",
    "taxFee",
    "maxTxAmount",
    "_transfer.require",
]

# Protocols the simulation drain check considers known
KNOWN_DEX_PROTOCOLS = ["uniswap", "sushiswap", "pancakeswap", "curve", "balancer"]

DRAIN_PATTERNS = [
    "infinite_approval",
    "max_uint256_approval",
    "high_fee_transfer",
    "suspicious_contract",
    "proxy_contract",
    "upgradeable_contract",
    "admin_functions",
    "emergency_functions",
    "blacklist_functions",
    "pause_functions",
]

# ============= Market Bands (heuristic analyzer) =============

# (minimum, risk) pairs checked top-down; below the last band the floor applies
VOLUME_RISK_BANDS = [(10_000_000, 0.1), (1_000_000, 0.3), (100_000, 0.6)]
VOLUME_RISK_FLOOR = 0.9

LIQUIDITY_RISK_BANDS = [(5_000_000, 0.1), (500_000, 0.4), (50_000, 0.7)]
LIQUIDITY_RISK_FLOOR = 0.9

HOLDER_RISK_BANDS = [(100, 0.9), (1000, 0.6), (5000, 0.3)]  # (upper bound, risk)
HOLDER_RISK_FLOOR = 0.1

MARKET_WARNING_THRESHOLD = 0.7

# ============= Bridge Configuration =============

BRIDGE_PROVIDER = "Wormhole"
BRIDGE_FEE_BPS = 5               # per mille: amount * 5 / 1000
BRIDGE_TIME_CORRIDOR = 300       # seconds
BRIDGE_TIME_DEFAULT = 600        # seconds
BRIDGE_BASE_GAS = 350_000
BRIDGE_STANDARD_FEE_ETH = Decimal("0.05")
BRIDGE_MIN_FEE_ETH = Decimal("0.001")
BRIDGE_MAX_FEE_ETH = Decimal("1")
BRIDGE_STATUS_COMPLETE_AFTER = 300   # seconds
BRIDGE_HASH_BUCKET_MS = 300_000
APTOS_COIN_TYPE = "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"

# ============= Swap / Simulation =============

ONEINCH_API_URL = "https://api.1inch.dev/fusion"
ONEINCH_ROUTER = "0x1111111254EEB25477B68fb85Ed929f73A960582"
MAX_SLIPPAGE = 0.01
DEFAULT_SLIPPAGE_PCT = 0.5

SWAP_BASE_GAS = 150_000
SWAP_GAS_PER_PROTOCOL = 50_000
APPROVAL_GAS = 46_000
GAS_LIMIT_BUFFER = Decimal("1.2")
DEFAULT_GAS_PRICE_GWEI = 20

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ERC20_ALLOWANCE_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    }
]

# ============= Fallback Token Lists =============

FALLBACK_TOKENS: Dict[int, List[Dict]] = {
    Chain.SEPOLIA: [
        {
            "symbol": "ETH",
            "address": ZERO_ADDRESS,
            "decimals": 18,
            "chainId": 11155111,
            "name": "Ethereum",
        },
        {
            "symbol": "USDC",
            "address": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            "decimals": 6,
            "chainId": 11155111,
            "name": "USD Coin",
        },
        {
            "symbol": "WETH",
            "address": "0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14",
            "decimals": 18,
            "chainId": 11155111,
            "name": "Wrapped Ethereum",
        },
    ],
    Chain.POLYGON_AMOY: [
        {
            "symbol": "MATIC",
            "address": ZERO_ADDRESS,
            "decimals": 18,
            "chainId": 80002,
            "name": "Polygon",
        },
        {
            "symbol": "USDC",
            "address": "0x9999f7Fea5938fD3b1E26A12c3f2fb024e194f97",
            "decimals": 6,
            "chainId": 80002,
            "name": "USD Coin",
        },
        {
            "symbol": "WMATIC",
            "address": "0x9c3C9283D3e44854697Cd22D3Faa240Cfb032889",
            "decimals": 18,
            "chainId": 80002,
            "name": "Wrapped Polygon",
        },
    ],
    Chain.APTOS_TESTNET: [
        {
            "symbol": "APT",
            "address": APTOS_COIN_TYPE,
            "decimals": 8,
            "chainId": 2,
            "name": "Aptos Coin",
        },
    ],
}

# ============= HTTP API =============

API_PREFIX = "/api/v1"

QUOTE_REQUIRED_FIELDS = ["fromChain", "toChain", "fromToken", "toToken", "fromAmount", "userAddress"]

class RateLimitScope(Enum):
    """Rate limit buckets"""
    GLOBAL = "global"
    SWAP = "swap"
    BRIDGE = "bridge"

RATE_LIMIT_MESSAGES = {
    RateLimitScope.GLOBAL: "Too many requests, please try again later.",
    RateLimitScope.SWAP: "Swap request limit exceeded, please try again later.",
    RateLimitScope.BRIDGE: "Bridge request limit exceeded, please try again later.",
}
