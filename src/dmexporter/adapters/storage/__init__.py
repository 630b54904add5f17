"""Storage adapters implementing core ports."""

from dmexporter.adapters.storage.ring_buffer import RingBufferLogStorage

__all__ = [
    "RingBufferLogStorage",
]
