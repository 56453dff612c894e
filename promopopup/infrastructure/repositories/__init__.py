# ==============================================================================
# Repository Infrastructure
# ==============================================================================
"""
Event log implementations.

Available implementations:
- PostgreSQLEventRepository: events table in PostgreSQL
- ValkeyEventRepository: per-shop sorted sets in Valkey
"""

from promopopup.infrastructure.repositories.postgresql import PostgreSQLEventRepository
from promopopup.infrastructure.repositories.valkey import ValkeyEventRepository

__all__ = [
    "PostgreSQLEventRepository",
    "ValkeyEventRepository",
]
