"""
API Middleware
Error envelopes, rate limiting, response caching and access logging
"""

import logging
import time
from typing import Callable, Dict, Optional, Tuple

import orjson
from aiohttp import web

from data.storage.cache import CacheManager
from monitoring.logger import StructuredLogger
from utils.constants import API_PREFIX, RATE_LIMIT_MESSAGES, RateLimitScope
from utils.errors import (
    APIRateLimitError,
    BridgeError,
    NetworkError,
    QuoteError,
    ValidationError,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"

SWAP_PATHS = (f"{API_PREFIX}/quote", f"{API_PREFIX}/analyze", f"{API_PREFIX}/simulate")
BRIDGE_PATHS = (f"{API_PREFIX}/bridge",)
# Reads whose answer changes over time
UNCACHED_PATHS = (f"{API_PREFIX}/bridge/status",)


def get_client_ip(request: web.Request) -> str:
    """Get client IP address from request"""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip

    if request.remote:
        return request.remote

    return 'unknown'


def error_envelope(message: str, status: int) -> web.Response:
    return web.json_response({'success': False, 'error': message}, status=status)


def status_for(error: Exception) -> Tuple[int, str]:
    """HTTP status and user-facing message for an exception"""
    if isinstance(error, ValidationError):
        return 400, str(error)
    if isinstance(error, (QuoteError, BridgeError)):
        return 400, str(error)
    if isinstance(error, APIRateLimitError):
        return 429, str(error)
    if isinstance(error, NetworkError):
        return 502, str(error) or "Upstream service unavailable"
    return 500, INTERNAL_ERROR_MESSAGE


# ============================================================================
# Error handling
# ============================================================================

def error_middleware_factory(structured_logger: Optional[StructuredLogger] = None) -> Callable:
    """Map exceptions onto {success: false, error} envelopes"""

    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException as e:
            if request.path.startswith(API_PREFIX) and e.status >= 400:
                return error_envelope(e.reason, e.status)
            raise
        except Exception as e:
            status, message = status_for(e)
            context = {'path': request.path, 'method': request.method, 'status': status}
            if structured_logger is not None:
                structured_logger.log_error(e, context)
            elif status >= 500:
                logger.error(f"Unhandled error on {request.path}: {e}", exc_info=True)
            else:
                logger.info(f"Rejected {request.method} {request.path}: {e}")
            return error_envelope(message, status)

    return error_middleware


# ============================================================================
# Rate limiting
# ============================================================================

class FixedWindowRateLimiter:
    """Per-key request counter over fixed windows"""

    def __init__(self, limit: int, window: int, clock: Optional[Callable[[], float]] = None):
        self.limit = limit
        self.window = window
        self.clock = clock or time.monotonic
        # key -> (window start, count)
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_prune = self.clock()

    def hit(self, key: str) -> bool:
        """Record one request; False once the key is over its limit"""
        now = self.clock()
        if now - self._last_prune >= self.window:
            self.prune()

        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.window:
            start, count = now, 0

        count += 1
        self._windows[key] = (start, count)
        return count <= self.limit

    def remaining(self, key: str) -> int:
        start, count = self._windows.get(key, (self.clock(), 0))
        if self.clock() - start >= self.window:
            return self.limit
        return max(0, self.limit - count)

    def prune(self) -> int:
        """Drop keys whose window has elapsed"""
        now = self.clock()
        self._last_prune = now
        stale = [k for k, (start, _) in self._windows.items() if now - start >= self.window]
        for k in stale:
            del self._windows[k]
        return len(stale)


def scopes_for(path: str):
    scopes = [RateLimitScope.GLOBAL]
    if path.startswith(SWAP_PATHS):
        scopes.append(RateLimitScope.SWAP)
    elif path.startswith(BRIDGE_PATHS):
        scopes.append(RateLimitScope.BRIDGE)
    return scopes


def rate_limit_middleware_factory(limiters: Dict[RateLimitScope, FixedWindowRateLimiter]) -> Callable:
    """Reject clients exceeding the global, swap or bridge budgets"""

    @web.middleware
    async def rate_limit_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if not request.path.startswith(API_PREFIX) or request.method == 'OPTIONS':
            return await handler(request)

        client_ip = get_client_ip(request)
        for scope in scopes_for(request.path):
            limiter = limiters.get(scope)
            if limiter is not None and not limiter.hit(f"{scope.value}:{client_ip}"):
                logger.warning(f"Rate limit ({scope.value}) exceeded for {client_ip} on {request.path}")
                raise APIRateLimitError(RATE_LIMIT_MESSAGES[scope])

        return await handler(request)

    return rate_limit_middleware


# ============================================================================
# Response cache
# ============================================================================

async def response_cache_key(request: web.Request) -> str:
    params = dict(sorted(request.query.items()))
    if request.method == 'POST' and request.can_read_body:
        try:
            body = orjson.loads(await request.read() or b'{}')
        except orjson.JSONDecodeError:
            body = None
        if isinstance(body, dict):
            params.update(body)
    encoded = orjson.dumps(params, option=orjson.OPT_SORT_KEYS, default=str).decode()
    return f"http:{request.method}:{request.path}:{encoded}"


def is_cacheable(request: web.Request) -> bool:
    if not request.path.startswith(API_PREFIX):
        return False
    if request.path.startswith(UNCACHED_PATHS):
        return False
    if request.method == 'GET':
        return True
    # Quotes are idempotent within their TTL; other POSTs change state
    return request.method == 'POST' and request.path.endswith('/quote')


def response_cache_middleware_factory(cache: CacheManager, ttl: int = 60) -> Callable:
    """Serve identical API reads from a short-lived cache"""

    @web.middleware
    async def response_cache_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if not is_cacheable(request):
            return await handler(request)

        key = await response_cache_key(request)
        cached = await cache.get(key)
        if cached is not None:
            return web.Response(body=cached, content_type='application/json',
                                headers={'X-Cache': 'HIT'})

        response = await handler(request)
        if response.status == 200 and isinstance(response, web.Response) and response.body is not None:
            await cache.set(key, bytes(response.body), ttl=ttl)
            response.headers['X-Cache'] = 'MISS'
        return response

    return response_cache_middleware


# ============================================================================
# Access log
# ============================================================================

def access_log_middleware_factory(structured_logger: StructuredLogger) -> Callable:
    """One structured access line per request"""

    @web.middleware
    async def access_log_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        start = time.perf_counter()
        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as e:
            status = e.status
            raise
        finally:
            structured_logger.log_request(
                request.method,
                request.path,
                status,
                (time.perf_counter() - start) * 1000,
                remote=get_client_ip(request),
            )

    return access_log_middleware
