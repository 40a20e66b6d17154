"""
SwapGuard HTTP API
aiohttp application exposing quotes, risk analysis, bridging and simulation
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp_cors
import orjson
from aiohttp import web

from analysis.ai_analyzer import AIRiskAnalyzer
from analysis.models import RouteCandidate, Token
from api.middleware import (
    FixedWindowRateLimiter,
    access_log_middleware_factory,
    error_middleware_factory,
    rate_limit_middleware_factory,
    response_cache_middleware_factory,
)
from core.route_aggregator import RouteAggregator
from core.route_selector import find_safer_alternatives, select_best_route
from data.collectors.route_source import RouteSource
from data.storage.cache import CacheManager
from monitoring.logger import StructuredLogger
from trading.bridges.bridge_service import BridgeService
from trading.bridges.wormhole import WormholeBridge
from trading.executors.simulation import SimulationService
from utils.constants import API_PREFIX, QUOTE_REQUIRED_FIELDS, RateLimitScope
from utils.errors import BridgeError, InvalidAddressError, ValidationError
from utils.helpers import is_valid_address, missing_fields

logger = logging.getLogger(__name__)

SERVICE_NAME = "SwapGuard"
SERVICE_VERSION = "1.0.0"

BRIDGE_QUOTE_FIELDS = ["fromChain", "toChain", "fromToken", "toToken", "amount"]
BRIDGE_EXECUTE_FIELDS = ["quoteId", "userAddress", "signature"]
SIMULATE_FIELDS = ["routeId", "userAddress", "fromAmount", "toAmount"]
GAS_ESTIMATE_FIELDS = ["routeId", "userAddress", "fromAmount"]
ANALYZE_FIELDS = ["fromToken", "toToken", "route", "amount"]


def _dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode()


def ok(data: Any) -> web.Response:
    """Success envelope"""
    return web.json_response({'success': True, 'data': data}, dumps=_dumps)


def require_fields(payload: Dict, required: List[str]) -> None:
    if missing_fields(payload, required):
        raise ValidationError(f"Missing required fields: {', '.join(required)}")


def parse_chain_id(value: Any, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {field_name}: {value}") from e


async def read_json(request: web.Request) -> Dict[str, Any]:
    """Parse the request body as a JSON object"""
    body = await request.read()
    if not body:
        return {}
    try:
        payload = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


class SwapGuardAPI:
    """HTTP facade over the quote, bridge and simulation services"""

    def __init__(
        self,
        aggregator: RouteAggregator,
        route_source: RouteSource,
        ai_analyzer: AIRiskAnalyzer,
        bridge_service: BridgeService,
        wormhole: WormholeBridge,
        simulation: SimulationService,
        config: Optional[Dict] = None,
        response_cache: Optional[CacheManager] = None,
        structured_logger: Optional[StructuredLogger] = None,
        resources: Optional[List[Any]] = None,
        caches: Optional[List[CacheManager]] = None,
    ):
        self.config = config or {}
        self.host = self.config.get('api_host', '0.0.0.0')
        self.port = self.config.get('api_port', 3001)

        self.aggregator = aggregator
        self.route_source = route_source
        self.ai_analyzer = ai_analyzer
        self.bridge_service = bridge_service
        self.wormhole = wormhole
        self.simulation = simulation
        self.structured_logger = structured_logger
        self.response_cache = response_cache if response_cache is not None else CacheManager(
            {'default_ttl': self.config.get('response_cache_ttl', 60)},
            name="http_response_cache",
        )
        # Anything with an async close() that should be released on shutdown
        self.resources = resources or []
        self.caches = [self.response_cache] + list(caches or [])

        self.rate_limiters = {
            RateLimitScope.GLOBAL: FixedWindowRateLimiter(
                self.config.get('rate_limit_requests', 100),
                self.config.get('rate_limit_window', 900),
            ),
            RateLimitScope.SWAP: FixedWindowRateLimiter(
                self.config.get('swap_rate_limit_requests', 20),
                self.config.get('swap_rate_limit_window', 3600),
            ),
            RateLimitScope.BRIDGE: FixedWindowRateLimiter(
                self.config.get('bridge_rate_limit_requests', 10),
                self.config.get('bridge_rate_limit_window', 3600),
            ),
        }

        self.runner: Optional[web.AppRunner] = None
        self.app = self.create_app()

    def create_app(self) -> web.Application:
        middlewares = []
        if self.structured_logger is not None:
            middlewares.append(access_log_middleware_factory(self.structured_logger))
        middlewares.extend([
            error_middleware_factory(self.structured_logger),
            rate_limit_middleware_factory(self.rate_limiters),
            response_cache_middleware_factory(
                self.response_cache, self.config.get('response_cache_ttl', 60)
            ),
        ])

        app = web.Application(middlewares=middlewares)
        self._setup_routes(app)
        self._setup_cors(app)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    def _setup_routes(self, app: web.Application) -> None:
        app.router.add_get('/', self.health)
        app.router.add_get(f'{API_PREFIX}/tokens/{{chain_id}}', self.get_tokens)
        app.router.add_post(f'{API_PREFIX}/quote', self.get_quote)
        app.router.add_post(f'{API_PREFIX}/analyze', self.analyze_route)
        app.router.add_post(f'{API_PREFIX}/ai/analyze', self.ai_analyze)
        app.router.add_post(f'{API_PREFIX}/bridge/quote', self.bridge_quote)
        app.router.add_post(f'{API_PREFIX}/bridge/execute', self.bridge_execute)
        app.router.add_get(f'{API_PREFIX}/bridge/status/{{tx_hash}}', self.bridge_status)
        app.router.add_post(f'{API_PREFIX}/simulate', self.simulate)
        app.router.add_post(f'{API_PREFIX}/simulate/gas', self.gas_estimate)

    def _setup_cors(self, app: web.Application) -> None:
        origins = self.config.get('cors_origins', ['*'])
        methods = self.config.get('cors_methods', ['GET', 'POST', 'OPTIONS'])
        cors = aiohttp_cors.setup(app, defaults={
            origin: aiohttp_cors.ResourceOptions(
                allow_credentials=True,
                expose_headers="*",
                allow_headers="*",
                allow_methods=methods,
            )
            for origin in origins
        })
        for route in list(app.router.routes()):
            try:
                cors.add(route)
            except ValueError:
                # Route already has an OPTIONS handler
                logger.debug(f"Skipping CORS for route: {route.resource}")

    async def _on_startup(self, app: web.Application) -> None:
        for cache in self.caches:
            cache.start()
        for resource in self.resources:
            initialize = getattr(resource, 'initialize', None)
            if initialize is not None:
                await initialize()
        logger.info(f"{SERVICE_NAME} API ready on {self.host}:{self.port}")

    async def _on_cleanup(self, app: web.Application) -> None:
        for cache in self.caches:
            await cache.close()
        for resource in self.resources:
            await resource.close()
        logger.info(f"{SERVICE_NAME} API resources released")

    # ---------------------------------------------------------------
    # Handlers
    # ---------------------------------------------------------------

    async def health(self, request: web.Request) -> web.Response:
        return web.json_response({
            'status': 'ok',
            'service': SERVICE_NAME,
            'version': SERVICE_VERSION,
        })

    async def get_tokens(self, request: web.Request) -> web.Response:
        chain_id = parse_chain_id(request.match_info['chain_id'], 'chainId')
        tokens = await self.route_source.get_tokens(chain_id)
        return ok([token.to_dict() for token in tokens])

    async def get_quote(self, request: web.Request) -> web.Response:
        payload = await read_json(request)
        require_fields(payload, QUOTE_REQUIRED_FIELDS)

        user_address = str(payload['userAddress'])
        if not is_valid_address(user_address):
            raise InvalidAddressError("Invalid user address")

        quote = await self.aggregator.get_routes_and_risk(
            parse_chain_id(payload['fromChain'], 'fromChain'),
            parse_chain_id(payload['toChain'], 'toChain'),
            str(payload['fromToken']),
            str(payload['toToken']),
            str(payload['fromAmount']),
            user_address,
            payload.get('recipientAddress'),
        )

        data = quote.to_dict()
        if not quote.is_cross_chain:
            best = select_best_route(quote.routes, quote.risk_assessments)
            data['bestRoute'] = best.to_dict() if best else None
            current_id = quote.routes[0].id
            data['saferAlternatives'] = [
                route.to_dict()
                for route in find_safer_alternatives(current_id, quote.routes, quote.risk_assessments)
            ]
        return ok(data)

    async def analyze_route(self, request: web.Request) -> web.Response:
        payload = await read_json(request)
        if missing_fields(payload, ANALYZE_FIELDS):
            raise ValidationError("Missing required parameters")
        if not isinstance(payload['route'], dict):
            raise ValidationError("route must be a JSON object")

        from_token = self._token_from(payload['fromToken'])
        to_token = self._token_from(payload['toToken'])
        try:
            route = RouteCandidate.from_dict(payload['route'])
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid route: {e}") from e

        assessment = await self.aggregator.analyze_route(
            from_token, to_token, route, str(payload['amount'])
        )
        return ok(assessment.to_dict())

    async def ai_analyze(self, request: web.Request) -> web.Response:
        payload = await read_json(request)
        if missing_fields(payload, ANALYZE_FIELDS):
            raise ValidationError("Missing required parameters")

        route = payload['route']
        descriptor = route if isinstance(route, str) else _dumps(route)
        analysis = await self.ai_analyzer.analyze(
            self._token_from(payload['fromToken']),
            self._token_from(payload['toToken']),
            descriptor,
            str(payload['amount']),
        )
        return ok(analysis.to_dict())

    async def bridge_quote(self, request: web.Request) -> web.Response:
        payload = await read_json(request)
        require_fields(payload, BRIDGE_QUOTE_FIELDS)

        result = await self.bridge_service.get_bridge_quote(payload)
        if not result.get('success'):
            raise BridgeError(result.get('error') or "Failed to get bridge quote")
        return ok(result['quote'].to_dict())

    async def bridge_execute(self, request: web.Request) -> web.Response:
        payload = await read_json(request)
        require_fields(payload, BRIDGE_EXECUTE_FIELDS)

        result = await self.bridge_service.execute_bridge(
            str(payload['quoteId']),
            str(payload['userAddress']),
            str(payload['signature']),
        )
        return ok(result)

    async def bridge_status(self, request: web.Request) -> web.Response:
        tx_hash = request.match_info['tx_hash']
        from_chain = parse_chain_id(request.query.get('fromChain', 0), 'fromChain')
        to_chain = parse_chain_id(request.query.get('toChain', 0), 'toChain')

        status = await self.wormhole.get_bridge_status(tx_hash, from_chain, to_chain)
        return ok(status.to_dict())

    async def simulate(self, request: web.Request) -> web.Response:
        payload = await read_json(request)
        require_fields(payload, SIMULATE_FIELDS)

        route = await self._quoted_route(payload['routeId'])
        slippage = payload.get('slippage', 0.5)
        try:
            slippage = float(slippage)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid slippage: {slippage}") from e

        result = await self.simulation.simulate_transaction(
            route,
            str(payload['userAddress']),
            str(payload['fromAmount']),
            str(payload['toAmount']),
            slippage,
        )
        return ok(result)

    async def gas_estimate(self, request: web.Request) -> web.Response:
        payload = await read_json(request)
        require_fields(payload, GAS_ESTIMATE_FIELDS)

        route = await self._quoted_route(payload['routeId'])
        result = await self.simulation.get_gas_estimate(
            route, str(payload['userAddress']), str(payload['fromAmount'])
        )
        return ok(result)

    async def _quoted_route(self, route_id: Any) -> RouteCandidate:
        route = await self.aggregator.get_route(str(route_id))
        if route is None:
            raise ValidationError(f"Route {route_id} not found or expired; request a new quote")
        return route

    @staticmethod
    def _token_from(value: Any) -> Token:
        if not isinstance(value, dict):
            raise ValidationError("Token must be a JSON object")
        try:
            return Token.from_dict(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid token: {e}") from e

    # ---------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------

    async def start(self) -> None:
        """Start the API server"""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"{SERVICE_NAME} API running on http://{self.host}:{self.port}{API_PREFIX}")

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
