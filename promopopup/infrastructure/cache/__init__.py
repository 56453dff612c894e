# ==============================================================================
# Cache Infrastructure
# ==============================================================================
"""
Key-value store implementations for visitor state.

Available implementations:
- ValkeyCache: Valkey/Redis-based store with JSON serialization
"""

from promopopup.infrastructure.cache.valkey import ValkeyCache

__all__ = [
    "ValkeyCache",
]
