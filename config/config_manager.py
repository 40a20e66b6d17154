"""
Configuration Manager for SwapGuard
Centralized configuration management with validation and environment handling
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

import os
import logging
from enum import Enum
from pathlib import Path

import aiofiles
import yaml
from pydantic import BaseModel, ValidationError, validator

from utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConfigType(Enum):
    """Configuration types"""
    API = "api"
    NETWORK = "network"
    RISK = "risk"
    BRIDGE = "bridge"
    AGGREGATOR = "aggregator"
    CHAIN_DATA = "chain_data"
    LOGGING = "logging"


class APIConfig(BaseModel):
    """HTTP API configuration schema"""
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: List[str] = ["*"]
    cors_methods: List[str] = ["GET", "POST", "OPTIONS"]
    rate_limit_requests: int = 100
    rate_limit_window: int = 900  # 15 minutes
    swap_rate_limit_requests: int = 20
    swap_rate_limit_window: int = 3600
    bridge_rate_limit_requests: int = 10
    bridge_rate_limit_window: int = 3600
    response_cache_ttl: int = 60

    @validator('rate_limit_requests', 'swap_rate_limit_requests', 'bridge_rate_limit_requests')
    def validate_rate_limit(cls, v):
        if v <= 0:
            raise ValueError('rate limits must be positive')
        return v

    @validator('cors_origins', 'cors_methods', pre=True)
    def split_comma_list(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(',') if item.strip()]
        return v


class NetworkConfig(BaseModel):
    http_timeout: int = 30
    route_source_timeout: float = 15.0
    bridge_timeout: float = 10.0
    chain_data_timeout: float = 10.0
    analysis_timeout: float = 20.0
    max_retries: int = 3


class RiskConfig(BaseModel):
    analysis_cache_ttl: int = 300
    cache_sweep_interval: int = 60
    simulated_latency: float = 1.5
    route_cache_ttl: int = 300

    @validator('simulated_latency')
    def validate_latency(cls, v):
        if v < 0:
            raise ValueError('simulated_latency cannot be negative')
        return v


class BridgeConfig(BaseModel):
    bridge_min_fee_eth: float = 0.001
    bridge_max_fee_eth: float = 1.0
    bridge_standard_fee_eth: float = 0.05
    bridge_base_gas: int = 350000
    default_gas_price_gwei: int = 20
    bridge_transfer_ttl: int = 3600


class AggregatorConfig(BaseModel):
    oneinch_api_url: str = "https://api.1inch.dev/fusion"
    oneinch_api_key: Optional[str] = None
    max_slippage: float = 0.01


class ChainDataConfig(BaseModel):
    alchemy_api_key: Optional[str] = None
    sepolia_rpc_url: Optional[str] = None
    ethereum_rpc_url: Optional[str] = None


class LoggingConfig(BaseModel):
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_format: str = "text"

    @validator('log_level')
    def validate_level(cls, v):
        level = str(v).upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'unknown log level {v}')
        return level


class ConfigManager:
    """
    Centralized configuration management system with:
    - Schema validation using Pydantic
    - Optional YAML configuration file
    - Environment variable overrides (FIELD_NAME upper-cased)
    """

    def __init__(self):
        self.configs: Dict[ConfigType, BaseModel] = {}
        self.config_schemas: Dict[ConfigType, type] = {
            ConfigType.API: APIConfig,
            ConfigType.NETWORK: NetworkConfig,
            ConfigType.RISK: RiskConfig,
            ConfigType.BRIDGE: BridgeConfig,
            ConfigType.AGGREGATOR: AggregatorConfig,
            ConfigType.CHAIN_DATA: ChainDataConfig,
            ConfigType.LOGGING: LoggingConfig,
        }
        self._file_config: Dict[str, Dict[str, Any]] = {}
        logger.info("ConfigManager initialized")

    async def initialize(self, config_path: Optional[str] = None) -> None:
        """Load every configuration type from defaults, file and environment"""
        if config_path:
            self._file_config = await self._load_config_file(config_path)

        for config_type in ConfigType:
            self._load_config(config_type)

        logger.info("Configuration manager initialized successfully")

    async def _load_config_file(self, config_path: str) -> Dict[str, Dict[str, Any]]:
        """Read a YAML file whose top-level keys are config type names"""
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        async with aiofiles.open(path, 'r') as f:
            content = await f.read()

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        logger.info(f"Loaded configuration file {config_path}")
        return data

    def _load_config(self, config_type: ConfigType) -> None:
        """Load configuration from multiple sources"""
        schema_class = self.config_schemas[config_type]

        config_data = schema_class().dict()
        config_data.update(self._file_config.get(config_type.value) or {})
        config_data.update(self._load_config_from_env(config_type))

        try:
            self.configs[config_type] = schema_class(**config_data)
            logger.debug(f"Loaded {config_type.value} configuration")
        except ValidationError as e:
            logger.error(f"Validation error in {config_type.value} config: {e}")
            raise ConfigurationError(f"Invalid {config_type.value} configuration: {e}") from e

    def _load_config_from_env(self, config_type: ConfigType) -> Dict:
        """Load configuration from environment variables"""
        env_data = {}
        schema_class = self.config_schemas[config_type]

        for field_name in schema_class.__fields__:
            value = os.getenv(field_name.upper())
            if value is not None and value not in ('', 'null', 'None'):
                env_data[field_name] = value

        return env_data

    def validate_environment(self) -> List[str]:
        """Report required environment variables that are not set"""
        missing = []
        if not self.get_aggregator_config().oneinch_api_key:
            missing.append('ONEINCH_API_KEY')

        if missing:
            logger.warning(f"Missing environment variables: {', '.join(missing)}")

        return missing

    def get_config(self, config_type: ConfigType) -> Optional[BaseModel]:
        """Get configuration for specified type"""
        return self.configs.get(config_type)

    def get_api_config(self) -> APIConfig:
        return self.configs.get(ConfigType.API, APIConfig())

    def get_network_config(self) -> NetworkConfig:
        return self.configs.get(ConfigType.NETWORK, NetworkConfig())

    def get_risk_config(self) -> RiskConfig:
        return self.configs.get(ConfigType.RISK, RiskConfig())

    def get_bridge_config(self) -> BridgeConfig:
        return self.configs.get(ConfigType.BRIDGE, BridgeConfig())

    def get_aggregator_config(self) -> AggregatorConfig:
        return self.configs.get(ConfigType.AGGREGATOR, AggregatorConfig())

    def get_chain_data_config(self) -> ChainDataConfig:
        return self.configs.get(ConfigType.CHAIN_DATA, ChainDataConfig())

    def get_logging_config(self) -> LoggingConfig:
        return self.configs.get(ConfigType.LOGGING, LoggingConfig())
