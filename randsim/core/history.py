"""
Undo/redo history for RandSim datasets.

``DataSet`` versions are immutable, so the history is simply two stacks of
snapshots. Undo pops from the past and pushes the version being left onto
the future; any new edit empties the future.
"""

from collections import deque
from typing import Deque, List, Optional

from .dataset import DataSet


class History:
    """Linear undo/redo log of ``DataSet`` snapshots.

    Args:
        limit: Maximum number of undo steps kept. ``None`` keeps them all;
            when set, the oldest snapshots are dropped first.
    """

    def __init__(self, limit: Optional[int] = None):
        if limit is not None and limit < 1:
            raise ValueError("limit must be a positive integer or None")
        self.limit = limit
        self._past: Deque[DataSet] = deque(maxlen=limit)
        self._future: List[DataSet] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def depth(self) -> int:
        return len(self._past)

    def set_limit(self, limit: Optional[int]):
        """Change the depth bound, keeping the most recent snapshots."""
        if limit is not None and limit < 1:
            raise ValueError("limit must be a positive integer or None")
        self.limit = limit
        self._past = deque(self._past, maxlen=limit)

    def record(self, previous: DataSet, next_: DataSet) -> DataSet:
        """Record the transition ``previous -> next_`` and return ``next_``.

        A mutation that produced an equal dataset is not recorded, so no-op
        edits do not leave empty undo steps.
        """
        if next_ == previous:
            return next_
        self._past.append(previous)
        self._future.clear()
        return next_

    def undo(self, current: DataSet) -> DataSet:
        """Return the previous version, or *current* when there is none."""
        if not self._past:
            return current
        self._future.append(current)
        return self._past.pop()

    def redo(self, current: DataSet) -> DataSet:
        """Return the next version, or *current* when there is none."""
        if not self._future:
            return current
        self._past.append(current)
        return self._future.pop()

    def clear(self):
        self._past.clear()
        self._future.clear()

    def __repr__(self):
        return f"History(past={len(self._past)}, future={len(self._future)}, limit={self.limit})"
