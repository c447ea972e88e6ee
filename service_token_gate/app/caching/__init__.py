"""
Token caching package.

Holds the expiring cache for exchanged downstream tokens and the
single-flight exchange that fills it.
"""

from .token_cache import CacheEntry, ExpiringTokenCache
from .exchange import TokenExchange

__all__ = [
    "CacheEntry",
    "ExpiringTokenCache",
    "TokenExchange",
]
