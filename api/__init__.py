"""
HTTP API
aiohttp application, handlers and middleware
"""

from .server import SwapGuardAPI

__all__ = [
    'SwapGuardAPI',
]
