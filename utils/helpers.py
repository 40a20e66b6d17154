"""
Utility Helper Functions for SwapGuard
Core utilities for validation, unit conversion, hashing and retries
"""

import asyncio
import hashlib
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from functools import wraps
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, Union

from web3 import Web3

logger = logging.getLogger(__name__)

EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
APTOS_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")
TX_HASH_RE = re.compile(r"^0x[a-fA-F0-9]+$")

# ============= Decorators =============

def retry_async(max_retries: int = 3, delay: float = 1.0, exponential_backoff: bool = True,
                retry_on: Tuple[Type[BaseException], ...] = (Exception,)):
    """Async retry decorator with exponential backoff"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempts = max(1, max_retries)
            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    if attempt == attempts - 1:
                        raise
                    wait_time = delay * (2 ** attempt) if exponential_backoff else delay
                    logger.warning(f"Attempt {attempt + 1} failed: {e}. Retrying in {wait_time}s...")
                    await asyncio.sleep(wait_time)
        return wrapper
    return decorator

# ============= Address Validation =============

def is_valid_address(address: str) -> bool:
    """Validate EVM address shape"""
    return isinstance(address, str) and bool(EVM_ADDRESS_RE.match(address))

def is_valid_aptos_address(address: str) -> bool:
    """Validate Aptos account address shape"""
    return isinstance(address, str) and bool(APTOS_ADDRESS_RE.match(address))

def is_valid_tx_hash(tx_hash: str) -> bool:
    """Validate hex transaction hash"""
    return isinstance(tx_hash, str) and bool(TX_HASH_RE.match(tx_hash))

def mask_address(address: str, visible_chars: int = 10) -> str:
    """Shorten an address for log lines"""
    if not address or len(address) <= visible_chars:
        return address
    return address[:visible_chars] + "..."

# ============= Unit Conversion =============

def wei_to_ether(wei: Union[int, str, Decimal]) -> Decimal:
    """Convert Wei to Ether"""
    return Decimal(Web3.from_wei(int(wei), "ether"))

def ether_to_wei(ether: Union[float, str, Decimal]) -> int:
    """Convert Ether to Wei"""
    return int(Web3.to_wei(Decimal(str(ether)), "ether"))

def gwei_to_wei(gwei: Union[int, float, Decimal]) -> int:
    """Convert Gwei to Wei"""
    return int(Web3.to_wei(Decimal(str(gwei)), "gwei"))

# ============= Math =============

def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]"""
    return max(low, min(high, value))

def band_lookup(value: float, bands: Iterable, floor: float) -> float:
    """Return the risk of the first (minimum, risk) band the value reaches"""
    for minimum, risk in bands:
        if value >= minimum:
            return risk
    return floor

# ============= Time =============

def utc_now() -> datetime:
    """Timezone-aware UTC now"""
    return datetime.now(timezone.utc)

def days_since(moment: datetime, now: Optional[datetime] = None) -> float:
    """Fractional days elapsed since moment"""
    now = now or utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / 86400

def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO strings (with or without Z suffix) into aware datetimes"""
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable datetime value: {value}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

# ============= Data Utilities =============

def hash_data(data: str) -> str:
    """SHA-256 hex digest of a string"""
    return hashlib.sha256(data.encode()).hexdigest()

def missing_fields(payload: Dict, required: List[str]) -> List[str]:
    """Names of required keys that are absent or empty in payload"""
    return [name for name in required if payload.get(name) in (None, "", [], {})]
