"""Bounded descriptor cache.

Keys are stable per-image identifiers (source URL, upload digest). Eviction is
by insertion order, not by access: the typical hit is the same photo being
validated and then encoded within one front-desk flow.
"""
import logging
from typing import Dict, Iterator, Optional

from ..models.face import FaceEncoding

logger = logging.getLogger(__name__)


class DescriptorCache:
    """Insertion-ordered map of image key -> FaceEncoding with a size cap."""

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._entries: Dict[str, FaceEncoding] = {}

    def get(self, key: str) -> Optional[FaceEncoding]:
        return self._entries.get(key)

    def put(self, key: str, value: FaceEncoding) -> None:
        # Assigning an existing key keeps its original insertion position.
        self._entries[key] = value
        while len(self._entries) > self.capacity:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug(f"Evicted descriptor cache entry {oldest!r}")

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
