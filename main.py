#!/usr/bin/env python3
"""
SwapGuard - Risk-Annotated Swap Routing Service
Wires configuration, upstream clients and risk services into the HTTP API
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from analysis.ai_analyzer import AIRiskAnalyzer
from analysis.risk_scorer import RiskScorer
from api.server import SwapGuardAPI
from config.config_manager import ConfigManager
from config.settings import Settings
from core.route_aggregator import RouteAggregator
from data.collectors.chain_data import ChainClient, ChainDataCollector
from data.collectors.route_source import OneInchRouteSource
from data.storage.cache import CacheManager
from monitoring.logger import StructuredLogger
from trading.bridges.bridge_service import BridgeService
from trading.bridges.wormhole import WormholeBridge
from trading.executors.simulation import SimulationService
from utils.constants import Chain

load_dotenv()

logger = logging.getLogger("SwapGuard")


class SwapGuardApplication:
    """Service container and lifecycle for the API process"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config_manager = ConfigManager()
        self.shutdown_event = asyncio.Event()

        self.structured_logger: Optional[StructuredLogger] = None
        self.api: Optional[SwapGuardAPI] = None

    def _signal_handler(self):
        logger.warning("Received shutdown signal, stopping...")
        self.shutdown_event.set()

    async def initialize(self) -> SwapGuardAPI:
        """Load configuration and build every service"""
        await self.config_manager.initialize(self.config_path)

        logging_config = self.config_manager.get_logging_config()
        self.structured_logger = StructuredLogger("SwapGuard", {
            'log_level': logging_config.log_level,
            'log_dir': logging_config.log_dir,
            'format': logging_config.log_format,
        })

        missing = self.config_manager.validate_environment()
        if missing:
            logger.warning("Same-chain quotes are unavailable until the 1inch key is set")

        api_config = self.config_manager.get_api_config()
        network = self.config_manager.get_network_config()
        risk = self.config_manager.get_risk_config()
        bridge = self.config_manager.get_bridge_config()
        aggregator_config = self.config_manager.get_aggregator_config()
        chain_data_config = self.config_manager.get_chain_data_config()

        route_store = CacheManager(
            {'default_ttl': risk.route_cache_ttl, 'sweep_interval': risk.cache_sweep_interval},
            name="route_store",
        )
        analysis_cache = CacheManager(
            {'default_ttl': risk.analysis_cache_ttl, 'sweep_interval': risk.cache_sweep_interval},
            name="ai_analysis_cache",
        )
        transfer_store = CacheManager(
            {'default_ttl': bridge.bridge_transfer_ttl, 'sweep_interval': risk.cache_sweep_interval},
            name="bridge_transfers",
        )

        route_source = OneInchRouteSource({
            'api_key': aggregator_config.oneinch_api_key,
            'base_url': aggregator_config.oneinch_api_url,
            'max_slippage': aggregator_config.max_slippage,
            'timeout': network.http_timeout,
            'max_retries': network.max_retries,
        })

        rpc_urls = {}
        if chain_data_config.sepolia_rpc_url:
            rpc_urls[Chain.SEPOLIA] = chain_data_config.sepolia_rpc_url
        if chain_data_config.ethereum_rpc_url:
            rpc_urls[Chain.ETHEREUM] = chain_data_config.ethereum_rpc_url
        chain_client = ChainClient({'rpc_urls': rpc_urls, 'timeout': network.chain_data_timeout})

        wormhole = WormholeBridge(
            {
                'base_gas': bridge.bridge_base_gas,
                'default_gas_price_gwei': bridge.default_gas_price_gwei,
                'standard_fee_eth': bridge.bridge_standard_fee_eth,
                'min_fee_eth': bridge.bridge_min_fee_eth,
                'max_fee_eth': bridge.bridge_max_fee_eth,
                'transfer_ttl': bridge.bridge_transfer_ttl,
            },
            gas_price_source=chain_client,
            transfer_store=transfer_store,
        )
        bridge_service = BridgeService(wormhole, quote_store=route_store)

        ai_analyzer = AIRiskAnalyzer(
            cache=analysis_cache,
            config={
                'cache_ttl': risk.analysis_cache_ttl,
                'simulated_latency': risk.simulated_latency,
            },
        )

        aggregator = RouteAggregator(
            route_source=route_source,
            chain_data=ChainDataCollector(),
            risk_scorer=RiskScorer(),
            ai_analyzer=ai_analyzer,
            bridge_service=bridge_service,
            route_store=route_store,
            config={
                'route_source_timeout': network.route_source_timeout,
                'bridge_timeout': network.bridge_timeout,
                'chain_data_timeout': network.chain_data_timeout,
                'analysis_timeout': network.analysis_timeout,
            },
        )

        simulation = SimulationService(
            chain_client,
            {'default_gas_price_gwei': bridge.default_gas_price_gwei},
        )

        self.api = SwapGuardAPI(
            aggregator=aggregator,
            route_source=route_source,
            ai_analyzer=ai_analyzer,
            bridge_service=bridge_service,
            wormhole=wormhole,
            simulation=simulation,
            config=api_config.dict(),
            structured_logger=self.structured_logger,
            resources=[route_source, chain_client],
            caches=[route_store, analysis_cache, transfer_store],
        )

        logger.info(f"Environment: {Settings.get_environment_info()}")
        return self.api

    async def run(self) -> None:
        api = await self.initialize()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._signal_handler)

        await api.start()
        try:
            await self.shutdown_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        logger.info("Shutting down SwapGuard...")
        if self.api is not None:
            await self.api.stop()
        logger.info("Shutdown complete")


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="SwapGuard - risk-annotated swap and bridge routing API"
    )

    parser.add_argument(
        '--config',
        default=None,
        help='Path to a YAML configuration file'
    )

    parser.add_argument(
        '--host',
        default=None,
        help='Override the API bind address'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='Override the API port'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args()


async def main():
    """Main entry point"""
    args = parse_arguments()

    # Environment variables override config file values
    if args.debug:
        os.environ['LOG_LEVEL'] = 'DEBUG'
    if args.host:
        os.environ['API_HOST'] = args.host
    if args.port:
        os.environ['API_PORT'] = str(args.port)

    app = SwapGuardApplication(config_path=args.config)
    await app.run()


def run():
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == "__main__":
    run()
