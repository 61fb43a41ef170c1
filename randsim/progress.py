"""
Progress reporting for RandSim runs.

Provides a callback-based progress system that works from both Python scripts
and GUI applications. Progress is reported via a simple (current, total)
callback, fired as trial batches complete.
"""

import sys
from typing import Callable, Optional


class ProgressReporter:
    """Wraps a ``(current, total)`` callback with counting and throttling.

    Tracks the number of completed trials and fires the callback at most
    once every *update_every* trials, preventing excessive I/O when batches
    complete very quickly. Completion always fires.

    Args:
        total: Total number of trials in the run.
        callback: Function called as ``callback(current, total)`` on each
            (throttled) update.
        update_every: Fire the callback at most once per this many trials.
            Defaults to ``max(1, total // 200)`` (~200 updates total).
    """

    def __init__(
        self,
        total: int,
        callback: Callable[[int, int], None],
        update_every: Optional[int] = None,
    ):
        self.total = total
        self._callback = callback
        self._current = 0
        self._last_fired = 0
        self.update_every = update_every if update_every is not None else max(1, total // 200)

    @property
    def current(self) -> int:
        return self._current

    def start(self):
        """Signal the beginning of the run (fires an initial 0/total update)."""
        self._current = 0
        self._last_fired = 0
        self._callback(0, self.total)

    def advance(self, n: int = 1):
        """Advance the counter by *n* trials, firing the callback when due.

        A batch may jump over a multiple of *update_every*, so the check is
        against the distance from the last fired update.
        """
        self._current += n
        if self._current >= self.total or self._current - self._last_fired >= self.update_every:
            self._last_fired = self._current
            self._callback(self._current, self.total)

    def finish(self):
        """Signal the end of the run.

        Fires a final update for the trials actually produced. A cancelled
        run therefore reports ``current < total``.
        """
        if self._last_fired != self._current:
            self._last_fired = self._current
            self._callback(self._current, self.total)


class PrintReporter:
    """Console progress reporter that prints ``\\rProgress:  45.2% (452/1000 trials)``."""

    def __call__(self, current: int, total: int):
        if total <= 0:
            return
        pct = 100.0 * current / total
        sys.stderr.write(f"\rProgress: {pct:5.1f}% ({current}/{total} trials)")
        sys.stderr.flush()
        if current >= total:
            sys.stderr.write("\n")
            sys.stderr.flush()


class TqdmReporter:
    """Optional tqdm-based progress reporter (lazy import).

    Usage::

        from randsim.progress import TqdmReporter
        session.start(progress_callback=TqdmReporter())
    """

    def __init__(self, **tqdm_kwargs):
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, current: int, total: int):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="trial", **self._tqdm_kwargs)

        delta = current - self._bar.n
        if delta > 0:
            self._bar.update(delta)

        if current >= total:
            self._bar.close()
            self._bar = None

    def close(self):
        """Close the bar early, e.g. after a cancelled run."""
        if self._bar is not None:
            self._bar.close()
            self._bar = None
