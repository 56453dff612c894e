# ==============================================================================
# Utilities
# ==============================================================================
"""
Shared utilities: configuration and retry policies.
"""

from promopopup.utils.config import Settings, get_settings
from promopopup.utils.retry import retry_light

__all__ = [
    "Settings",
    "get_settings",
    "retry_light",
]
