# travelweb - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from travelweb.core.ports.storage import (
    MissingSegmentError,
    SegmentReadError,
    SegmentStorePort,
    StorageError,
)
from travelweb.core.ports.time import TimePort

__all__ = [
    "MissingSegmentError",
    "SegmentReadError",
    "SegmentStorePort",
    "StorageError",
    "TimePort",
]
