"""Accumulator for media item ids referenced across many records."""

import threading
from collections.abc import Iterable


class PendingReferenceSet:
    """Thread-safe set of media item ids waiting to be prefetched.

    Record processing adds ids as it finds them; the owner drains the set
    when it is ready to batch-fetch the referenced media items.
    """

    def __init__(self, ids: Iterable[str] | None = None) -> None:
        self._ids: set[str] = set(ids or ())
        self._lock = threading.Lock()

    def add(self, media_id: str) -> None:
        with self._lock:
            self._ids.add(media_id)

    def update(self, media_ids: Iterable[str]) -> None:
        """Add several ids at once."""
        with self._lock:
            self._ids.update(media_ids)

    def snapshot(self) -> set[str]:
        """Return a copy of the current ids without removing them."""
        with self._lock:
            return set(self._ids)

    def drain(self) -> set[str]:
        """Remove and return every pending id."""
        with self._lock:
            drained = self._ids
            self._ids = set()
            return drained

    def __contains__(self, media_id: object) -> bool:
        with self._lock:
            return media_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


# Global reference set, owned by the application
_pending_references: PendingReferenceSet | None = None


def get_pending_references() -> PendingReferenceSet:
    """Get the application-wide pending reference set."""
    global _pending_references
    if _pending_references is None:
        _pending_references = PendingReferenceSet()
    return _pending_references


def reset_pending_references() -> None:
    """Reset the global reference set. Useful for testing."""
    global _pending_references
    _pending_references = None
