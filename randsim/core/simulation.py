"""
Simulation execution for RandSim.

``SimulationRunner`` owns one randomization run at a time. Trials are
produced in bounded batches so the caller is never blocked for the whole
run: a GUI can pump ``step()`` from its event loop, a script can call
``run()``, and ``run_in_background()`` drives the batches on a worker
thread. Cancellation is cooperative and takes effect at the next batch
boundary.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np

from ..errors import InvalidStateError
from ..progress import ProgressReporter
from ..stats.statistics import get_statistic
from .dataset import DataSet
from .randomization import RandomizationEngine, SimulationTrial
from .results import PValueResult, compute_p_value

DEFAULT_BATCH_SIZE = 100


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass
class SimulationRun:
    """State of one run. Read-only outside ``SimulationRunner``.

    Attributes:
        statistic_key: Currently selected statistic.
        target: Number of trials requested.
        observed: Trial carrying the real assignments; its memo holds the
            observed statistic for every statistic evaluated so far.
        trials: Append-only list of produced trials.
        status: Current ``RunStatus``.
        seed: Seed of the run's random generator.
        scheme: Randomization scheme.
        n_rows: Eligible rows in the dataset the run was started on.
    """

    statistic_key: str
    target: int
    observed: SimulationTrial
    trials: List[SimulationTrial] = field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING
    seed: Optional[int] = None
    scheme: str = "bernoulli"
    n_rows: int = 0

    @property
    def n_trials(self) -> int:
        return len(self.trials)

    @property
    def observed_statistic(self) -> float:
        return self.observed.statistic(self.statistic_key)

    def null_distribution(self, statistic_key: Optional[str] = None) -> np.ndarray:
        """Statistic of every trial, ``nan`` included, in production order."""
        key = statistic_key or self.statistic_key
        return np.array([t.statistic(key) for t in list(self.trials)], dtype=float)


Listener = Callable[[str, "SimulationRunner"], None]


class SimulationRunner:
    """Batched, cancellable Monte Carlo randomization runs.

    States: ``IDLE -> RUNNING -> {COMPLETED, CANCELLED}``; ``reset()``
    returns a finished run to ``IDLE``. While ``RUNNING`` the runner is
    locked (``is_locked``) and the owning session rejects edits.

    Listeners registered with ``subscribe`` are called as
    ``listener(event, runner)`` where *event* is ``"status"`` on state
    changes, ``"batch"`` after each appended batch and ``"statistic"`` when
    the selected statistic changes.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        alternative: str = "two-sided",
    ):
        """Initialise the runner.

        Args:
            batch_size: Maximum trials produced per ``step()``.
            alternative: Extremity direction used for p-values.
        """
        self.batch_size = batch_size
        self.alternative = alternative

        self._lock = threading.RLock()
        self._step_lock = threading.Lock()
        self._run: Optional[SimulationRun] = None
        self._engine: Optional[RandomizationEngine] = None
        self._rng: Optional[np.random.Generator] = None
        self._progress: Optional[ProgressReporter] = None
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None
        self._listeners: List[Listener] = []

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def run_state(self) -> Optional[SimulationRun]:
        return self._run

    @property
    def status(self) -> RunStatus:
        with self._lock:
            return RunStatus.IDLE if self._run is None else self._run.status

    @property
    def is_locked(self) -> bool:
        return self.status is RunStatus.RUNNING

    @property
    def trials(self) -> Tuple[SimulationTrial, ...]:
        with self._lock:
            return tuple(self._run.trials) if self._run is not None else ()

    @property
    def observed_statistic(self) -> Optional[float]:
        with self._lock:
            return None if self._run is None else self._run.observed_statistic

    def p_value_result(self, statistic_key: Optional[str] = None) -> PValueResult:
        """Extremity count for *statistic_key* (default: the selected one)."""
        with self._lock:
            run = self._run
            if run is None:
                return PValueResult(None, 0, 0, 0)
            key = statistic_key or run.statistic_key
            trials = list(run.trials)
        get_statistic(key)
        null = [t.statistic(key) for t in trials]
        return compute_p_value(null, run.observed.statistic(key), self.alternative)

    def p_value(self, statistic_key: Optional[str] = None) -> Optional[float]:
        """Fraction of valid trials at least as extreme as the observed one.

        ``None`` when no valid trial exists yet.
        """
        return self.p_value_result(statistic_key).p_value

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str):
        for listener in list(self._listeners):
            listener(event, self)

    # =========================================================================
    # Run control
    # =========================================================================

    def start(
        self,
        dataset: DataSet,
        statistic_key: str,
        total_trials: int,
        seed: Optional[int] = None,
        scheme: str = "bernoulli",
        progress: Optional[ProgressReporter] = None,
    ) -> SimulationRun:
        """Begin a run on *dataset*.

        Computes the observed statistic and moves to ``RUNNING``. No trials
        are produced here; drive them with ``step()``, ``run()`` or
        ``run_in_background()``.

        Raises:
            InvalidStateError: If the runner is not ``IDLE``.
            EmptyDataError: If *dataset* has no eligible rows.
            KeyError: If *statistic_key* is unknown.
            ValueError: If *total_trials* is not a positive integer.
        """
        if not isinstance(total_trials, (int, np.integer)) or isinstance(total_trials, bool) or total_trials < 1:
            raise ValueError(f"total_trials must be a positive integer, got {total_trials!r}")
        get_statistic(statistic_key)

        with self._lock:
            if self._run is not None:
                raise InvalidStateError(f"Cannot start a run while the runner is {self._run.status.value}")
            engine = RandomizationEngine(dataset, scheme)
            observed = engine.observed()
            observed.statistic(statistic_key)

            self._engine = engine
            self._rng = np.random.default_rng(seed)
            self._error = None
            self._progress = progress
            self._run = SimulationRun(
                statistic_key=statistic_key,
                target=int(total_trials),
                observed=observed,
                seed=seed,
                scheme=scheme,
                n_rows=engine.n_rows,
            )
            run = self._run

        if progress is not None:
            progress.start()
        self._notify("status")
        return run

    def step(self) -> int:
        """Produce and publish one batch of trials.

        The batch is generated outside the state lock and appended in one
        go. If the run was cancelled meanwhile, the batch is dropped.

        Returns:
            Number of trials appended.

        Raises:
            InvalidStateError: If no run is ``RUNNING``.
        """
        with self._step_lock:
            with self._lock:
                run = self._run
                if run is None or run.status is not RunStatus.RUNNING:
                    raise InvalidStateError("No running simulation to step")
                n = min(self.batch_size, run.target - run.n_trials)
                engine, rng = self._engine, self._rng

            batch = [engine.generate(rng) for _ in range(n)]
            for trial in batch:
                trial.statistic(run.statistic_key)

            with self._lock:
                if run.status is not RunStatus.RUNNING:
                    return 0
                run.trials.extend(batch)
                completed = run.n_trials >= run.target
                if completed:
                    run.status = RunStatus.COMPLETED

        if self._progress is not None:
            self._progress.advance(len(batch))
        self._notify("batch")
        if completed:
            self._finish_progress()
            self._notify("status")
        return len(batch)

    def run(self) -> SimulationRun:
        """Pump ``step()`` until the run completes or is cancelled.

        If a step raises (including a listener or progress callback), a run
        still ``RUNNING`` is moved to ``CANCELLED`` before the error
        propagates, so the data is never left locked.
        """
        try:
            while self.status is RunStatus.RUNNING:
                try:
                    self.step()
                except InvalidStateError:
                    # cancelled between the status check and the step
                    if self.status is RunStatus.RUNNING:
                        raise
        except Exception:
            self._abort()
            raise
        return self._run

    def _abort(self):
        with self._lock:
            if self._run is None or self._run.status is not RunStatus.RUNNING:
                return
            self._run.status = RunStatus.CANCELLED
        self._finish_progress()
        self._notify("status")

    def run_in_background(self) -> threading.Thread:
        """Drive the batches on a daemon worker thread.

        Errors raised by the worker stop the run and are re-raised by
        ``wait()``.
        """
        with self._lock:
            if self.status is not RunStatus.RUNNING:
                raise InvalidStateError("Call start() before run_in_background()")
            if self._thread is not None and self._thread.is_alive():
                raise InvalidStateError("Run is already being driven in the background")
            self._thread = threading.Thread(target=self._worker, name="randsim-run", daemon=True)
        self._thread.start()
        return self._thread

    def _worker(self):
        try:
            self.run()
        except Exception as e:  # re-raised by wait()
            with self._lock:
                self._error = e

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the background worker.

        Returns:
            ``True`` if the worker has finished.
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                return False
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        return True

    def cancel(self) -> SimulationRun:
        """Cancel the running simulation.

        Already-produced trials are kept; the batch in flight, if any, is
        dropped. Irreversible for this run.

        Raises:
            InvalidStateError: If no run is ``RUNNING``.
        """
        with self._lock:
            if self._run is None or self._run.status is not RunStatus.RUNNING:
                raise InvalidStateError("Only a running simulation can be cancelled")
            self._run.status = RunStatus.CANCELLED
            run = self._run
        self._finish_progress()
        self._notify("status")
        return run

    def reset(self):
        """Discard a finished run and return to ``IDLE``.

        Raises:
            InvalidStateError: If a run is ``RUNNING``.
        """
        with self._lock:
            if self._run is None:
                return
            if self._run.status is RunStatus.RUNNING:
                raise InvalidStateError("Cancel the running simulation before resetting")
            self._run = None
            self._engine = None
            self._rng = None
            self._progress = None
        self._notify("status")

    def select_statistic(self, statistic_key: str):
        """Switch the selected statistic without re-running.

        Existing trials are re-evaluated through their memo, so switching
        away and back costs nothing the second time.
        """
        get_statistic(statistic_key)
        with self._lock:
            run = self._run
            if run is None:
                return
            run.statistic_key = statistic_key
            trials = list(run.trials)
        run.observed.statistic(statistic_key)
        for trial in trials:
            trial.statistic(statistic_key)
        self._notify("statistic")

    def _finish_progress(self):
        if self._progress is not None:
            self._progress.finish()

    def __repr__(self):
        run = self._run
        if run is None:
            return "SimulationRunner(status=idle)"
        return f"SimulationRunner(status={run.status.value}, trials={run.n_trials}/{run.target}, statistic={run.statistic_key})"
