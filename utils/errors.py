"""
Typed Exception Classes for SwapGuard

This module provides specific exception types for request validation,
upstream failures and configuration problems. The API layer maps each
family onto an HTTP status and a single user-facing error string.
"""


class SwapGuardError(Exception):
    """Base exception for all SwapGuard errors"""
    pass


# ============================================================================
# Request Validation Exceptions
# ============================================================================

class ValidationError(SwapGuardError):
    """Missing or malformed request fields"""
    pass


class InvalidAddressError(ValidationError):
    """Address does not match the expected format for its chain"""
    pass


# ============================================================================
# Network & Upstream Exceptions
# ============================================================================

class NetworkError(SwapGuardError):
    """Base exception for network-related errors"""
    pass


class UpstreamUnavailable(NetworkError):
    """External dependency failed or timed out"""
    pass


class RouteSourceError(UpstreamUnavailable):
    """Swap aggregator request failed"""
    pass


class ChainDataError(UpstreamUnavailable):
    """On-chain data source failed"""
    pass


class QuoteError(NetworkError):
    """No usable route or quote could be produced"""
    pass


class APIRateLimitError(NetworkError):
    """API rate limit exceeded"""
    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================

class ConfigurationError(SwapGuardError):
    """Required credential, endpoint or sane bound is missing"""
    pass


# ============================================================================
# Analysis Exceptions
# ============================================================================

class AnalysisError(SwapGuardError):
    """Base exception for risk analysis errors"""
    pass


class InternalScoringFault(AnalysisError):
    """Scoring pipeline failed internally"""
    pass


# ============================================================================
# Bridge Exceptions
# ============================================================================

class BridgeError(SwapGuardError):
    """Bridge quote or transfer failure"""
    pass


class BridgeStatusError(BridgeError):
    """Bridge transfer status could not be derived"""
    pass
