"""
Cache component - explicit TTL cache with invalidation.
"""

from .component import CacheStats, TTLCache

__all__ = ["CacheStats", "TTLCache"]
