"""
Global Settings for SwapGuard
Static, environment-aware settings and chain metadata
"""

import os
from pathlib import Path
from enum import Enum
from typing import Any, Dict, Optional

from utils.constants import ALCHEMY_NETWORKS, Chain, PROJECT_NAME, VERSION


class Environment(Enum):
    """Runtime environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class ChainConfig:
    """Blockchain configuration"""
    def __init__(self, name: str, chain_id: int, rpc_url: str,
                 explorer_url: str, native_token: str, is_testnet: bool = False,
                 is_evm: bool = True):
        self.name = name
        self.chain_id = chain_id
        self.rpc_url = rpc_url
        self.explorer_url = explorer_url
        self.native_token = native_token
        self.is_testnet = is_testnet
        self.is_evm = is_evm


def _alchemy_url(chain_id: int) -> str:
    network = ALCHEMY_NETWORKS.get(chain_id, ALCHEMY_NETWORKS[Chain.ETHEREUM])
    key = os.getenv('ALCHEMY_API_KEY', 'demo')
    return f"https://{network}.g.alchemy.com/v2/{key}"


class Settings:
    """Global application settings"""

    # Environment
    ENVIRONMENT = Environment(os.getenv('ENVIRONMENT', 'development'))
    DEBUG = os.getenv('DEBUG', 'false').lower() == 'true'

    # Application
    APP_NAME = PROJECT_NAME
    APP_VERSION = VERSION
    APP_DESCRIPTION = "Risk-annotated route aggregation for cross-chain swaps"

    # Directories
    BASE_DIR = Path(__file__).parent.parent
    CONFIG_DIR = BASE_DIR / "config"
    LOGS_DIR = BASE_DIR / "logs"

    # API Keys
    ONEINCH_API_KEY = os.getenv('ONEINCH_API_KEY', os.getenv('ONE_INCH_API_KEY', ''))
    ALCHEMY_API_KEY = os.getenv('ALCHEMY_API_KEY', '')

    # Blockchain Networks
    SUPPORTED_CHAINS: Dict[int, ChainConfig] = {
        Chain.ETHEREUM: ChainConfig(
            name="Ethereum",
            chain_id=1,
            rpc_url=os.getenv('ETHEREUM_RPC_URL', _alchemy_url(Chain.ETHEREUM)),
            explorer_url="https://etherscan.io",
            native_token="ETH",
        ),
        Chain.SEPOLIA: ChainConfig(
            name="Sepolia",
            chain_id=11155111,
            rpc_url=os.getenv('SEPOLIA_RPC_URL', _alchemy_url(Chain.SEPOLIA)),
            explorer_url="https://sepolia.etherscan.io",
            native_token="ETH",
            is_testnet=True,
        ),
        Chain.POLYGON_AMOY: ChainConfig(
            name="Polygon Amoy",
            chain_id=80002,
            rpc_url=os.getenv('AMOY_RPC_URL', _alchemy_url(Chain.POLYGON_AMOY)),
            explorer_url="https://amoy.polygonscan.com",
            native_token="MATIC",
            is_testnet=True,
        ),
        Chain.APTOS_TESTNET: ChainConfig(
            name="Aptos Testnet",
            chain_id=2,
            rpc_url=os.getenv('APTOS_RPC_URL', 'https://fullnode.testnet.aptoslabs.com/v1'),
            explorer_url="https://explorer.aptoslabs.com/?network=testnet",
            native_token="APT",
            is_testnet=True,
            is_evm=False,
        ),
    }

    @classmethod
    def get_chain_config(cls, chain_id: int) -> Optional[ChainConfig]:
        """Get configuration for specific blockchain"""
        return cls.SUPPORTED_CHAINS.get(chain_id)

    @classmethod
    def get_rpc_url(cls, chain_id: int) -> str:
        chain = cls.get_chain_config(chain_id)
        return chain.rpc_url if chain else _alchemy_url(chain_id)

    @classmethod
    def get_environment_info(cls) -> Dict[str, Any]:
        """Get environment information"""
        return {
            'environment': cls.ENVIRONMENT.value,
            'debug': cls.DEBUG,
            'app_name': cls.APP_NAME,
            'app_version': cls.APP_VERSION,
            'supported_chains': sorted(int(chain_id) for chain_id in cls.SUPPORTED_CHAINS),
            'oneinch_configured': bool(cls.ONEINCH_API_KEY),
        }
