"""Sticky window state for the nsticky daemon.

Holds the set of sticky window ids with async-safe operations. The daemon
creates one StickyState and hands the same instance to the control server and
the event reconciler.

None of these methods perform I/O. Callers query niri first and only then
touch the state, so the lock is never held across a niri round trip.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Iterable, List, Set, Tuple

logger = logging.getLogger(__name__)


class AddResult(Enum):
    INSERTED = "inserted"
    ALREADY_PRESENT = "already_present"


class RemoveResult(Enum):
    REMOVED = "removed"
    NOT_PRESENT = "not_present"


class ToggleResult(Enum):
    ADDED = "added"
    REMOVED = "removed"


class StickyState:
    """Set of sticky window ids guarded by a single asyncio.Lock."""

    def __init__(self) -> None:
        """Initialize with an empty sticky set."""
        self._windows: Set[int] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    async def add(self, window_id: int) -> AddResult:
        """Add a window to the sticky set.

        Args:
            window_id: niri window id

        Returns:
            INSERTED, or ALREADY_PRESENT if it was sticky already
        """
        async with self._lock:
            if window_id in self._windows:
                return AddResult.ALREADY_PRESENT
            self._windows.add(window_id)
            logger.debug(f"Added window {window_id} to sticky set (size={len(self._windows)})")
            return AddResult.INSERTED

    async def remove(self, window_id: int) -> RemoveResult:
        """Remove a window from the sticky set.

        Args:
            window_id: niri window id

        Returns:
            REMOVED, or NOT_PRESENT if it was not sticky
        """
        async with self._lock:
            if window_id not in self._windows:
                return RemoveResult.NOT_PRESENT
            self._windows.discard(window_id)
            logger.debug(f"Removed window {window_id} from sticky set (size={len(self._windows)})")
            return RemoveResult.REMOVED

    async def toggle(self, window_id: int) -> ToggleResult:
        """Flip membership of a window in one hold of the lock."""
        async with self._lock:
            if window_id in self._windows:
                self._windows.discard(window_id)
                return ToggleResult.REMOVED
            self._windows.add(window_id)
            return ToggleResult.ADDED

    async def contains(self, window_id: int) -> bool:
        async with self._lock:
            return window_id in self._windows

    async def snapshot(self) -> List[int]:
        """Return a sorted point-in-time copy of the sticky set."""
        async with self._lock:
            return sorted(self._windows)

    async def retain(self, predicate: Callable[[int], bool]) -> List[int]:
        """Drop every window for which predicate returns False.

        Args:
            predicate: Synchronous test applied to each window id

        Returns:
            Sorted list of the dropped window ids
        """
        async with self._lock:
            return self._retain_locked(predicate)

    async def prune_and_snapshot(self, existing: Iterable[int]) -> Tuple[List[int], List[int]]:
        """Drop windows missing from ``existing`` and snapshot the survivors.

        Both steps happen under one hold of the lock so the snapshot matches
        the pruned set exactly.

        Args:
            existing: Window ids niri currently reports

        Returns:
            (dropped, survivors), both sorted
        """
        existing_ids = set(existing)
        async with self._lock:
            dropped = self._retain_locked(existing_ids.__contains__)
            return dropped, sorted(self._windows)

    def _retain_locked(self, predicate: Callable[[int], bool]) -> List[int]:
        dropped = sorted(wid for wid in self._windows if not predicate(wid))
        if dropped:
            self._windows.difference_update(dropped)
            logger.info(f"Pruned stale sticky windows: {dropped}")
        return dropped
