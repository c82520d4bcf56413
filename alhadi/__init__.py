"""
Al-Hadi Media - media site core

Stateful logic behind the Al-Hadi Media site:
- Live stream playback with candidate URL fallback and recovery
- Validated, collision-free uploads to blob storage
- Server-relayed and chunked upload endpoints
"""

__version__ = "1.0.0"
__author__ = "Al-Hadi Media Contributors"
__license__ = "MIT"

from alhadi.config import get_config, load_config

__all__ = [
    "__version__",
    "get_config",
    "load_config",
]
