"""
Models package.
"""

from .envelope import NME_VERSION, MessageEnvelope, iso_timestamp, loads_strict, new_message_id

__all__ = [
    "NME_VERSION",
    "MessageEnvelope",
    "iso_timestamp",
    "loads_strict",
    "new_message_id",
]
