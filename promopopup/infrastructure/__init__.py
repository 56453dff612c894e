# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Concrete implementations of the ports in promopopup.base.

- cache: Valkey key-value store for visitor state
- repositories: PostgreSQL and Valkey event logs
- http: ingestion transport, config client, discount issuer
- clock / scheduler: wall clock and cooperative callback scheduler
"""

from promopopup.infrastructure.clock import SystemClock
from promopopup.infrastructure.scheduler import SchedScheduler

__all__ = [
    "SchedScheduler",
    "SystemClock",
]
