"""
Services package.
"""

from .queue_engine import DequeueResult, DiscoveredContinuum, QueueEngine, resolve_window

__all__ = [
    "DequeueResult",
    "DiscoveredContinuum",
    "QueueEngine",
    "resolve_window",
]
