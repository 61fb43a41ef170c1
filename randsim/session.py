"""
RandSim - Randomization Test Simulator.

This module provides the ``Session`` class, the single context object that
owns an editable dataset, its undo history and the simulation run built on
top of it.
"""

import warnings
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .core import (
    DataSet,
    History,
    RunStatus,
    SimulationRun,
    SimulationRunner,
    build_run_result,
    format_run_result,
)
from .core.randomization import SCHEMES
from .core.results import ALTERNATIVES, warn_if_degenerate
from .errors import LockedError
from .progress import PrintReporter, ProgressReporter
from .stats.statistics import DEFAULT_STATISTIC, available_statistics, get_statistic
from .utils.upload_data_utils import normalize_import
from .utils.validators import (
    _validate_batch_size,
    _validate_choice,
    _validate_history_limit,
    _validate_seed,
    _validate_simulations,
    _validate_statistic,
)

SessionListener = Callable[[str, "Session"], None]


class Session:
    """Randomization test session.

    Holds one ``DataSet`` (always normalized so that it ends with a single
    placeholder row), the ``History`` of its versions and a
    ``SimulationRunner``. Presentation code reads the query properties,
    issues the commands and subscribes to change events; nothing here knows
    about rendering.

    While a run is ``RUNNING`` every data mutator, ``undo`` and ``redo``
    raise ``LockedError`` and leave the data untouched. Editing data after
    a finished run discards that run.

    Configuration methods (``set_*``) validate their input and return
    ``self`` for method chaining.

    Attributes:
        seed: Random seed for reproducibility (default: ``None``, fresh
            entropy per run).
        n_simulations: Trials per run (default: 1000).
        batch_size: Trials per batch (default: 100).
        statistic: Selected test statistic key.
        scheme: Randomization scheme, ``"bernoulli"`` or ``"complete"``.
        alternative: ``"two-sided"``, ``"greater"`` or ``"less"``.

    Example:
        >>> session = Session()
        >>> session.set_user_data({"rows": [([5, None], 0), ([None, 8], 1)]})
        >>> session.set_simulations(100).set_seed(7)
        >>> session.start()
        >>> session.p_value
        1.0
    """

    DEFAULT_SIMULATIONS = 1000
    DEFAULT_BATCH_SIZE = 100

    def __init__(self, column_names: Sequence[str] = ("Control", "Treatment"), history_limit: Optional[int] = None):
        """Create a session holding an empty dataset.

        Args:
            column_names: Labels of the two group columns.
            history_limit: Maximum undo depth; ``None`` for unbounded.
        """
        _validate_history_limit(history_limit).raise_if_invalid()

        self.seed: Optional[int] = None
        self.n_simulations = self.DEFAULT_SIMULATIONS
        self.batch_size = self.DEFAULT_BATCH_SIZE
        self.statistic = DEFAULT_STATISTIC
        self.scheme = "bernoulli"
        self.alternative = "two-sided"

        self._dataset = DataSet.empty(column_names)
        self._history = History(limit=history_limit)
        self._runner = SimulationRunner(batch_size=self.batch_size, alternative=self.alternative)
        self._listeners: List[SessionListener] = []
        self._warn_on_wait = False
        self._runner.subscribe(self._on_runner_event)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def dataset(self) -> DataSet:
        return self._dataset

    @property
    def rows(self):
        return self._dataset.rows

    @property
    def column_names(self):
        return self._dataset.column_names

    @property
    def control_group_index(self) -> int:
        return self._dataset.control_group_index

    @property
    def history(self) -> History:
        return self._history

    @property
    def can_undo(self) -> bool:
        return not self._runner.is_locked and self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return not self._runner.is_locked and self._history.can_redo

    @property
    def run(self) -> Optional[SimulationRun]:
        return self._runner.run_state

    @property
    def status(self) -> RunStatus:
        return self._runner.status

    @property
    def is_running(self) -> bool:
        return self._runner.is_locked

    @property
    def trials(self):
        return self._runner.trials

    @property
    def observed_statistic(self) -> Optional[float]:
        """Statistic on the real assignments, ``None`` before any run."""
        return self._runner.observed_statistic

    @property
    def p_value(self) -> Optional[float]:
        """Derived p-value, ``None`` when not available."""
        return self._runner.p_value()

    def null_distribution(self, statistic: Optional[str] = None, dropna: bool = True) -> np.ndarray:
        """Trial statistics of the current run (empty before any run)."""
        run = self._runner.run_state
        if run is None:
            return np.array([], dtype=float)
        null = run.null_distribution(statistic)
        return null[~np.isnan(null)] if dropna else null

    def column_means(self) -> List[Optional[float]]:
        return self._dataset.column_means()

    def available_statistics(self) -> Dict[str, str]:
        return available_statistics()

    def summary(self) -> Optional[Dict[str, Any]]:
        """Result dictionary of the current run, ``None`` before any run."""
        run = self._runner.run_state
        if run is None:
            return None
        p_result = self._runner.p_value_result()
        statistic = get_statistic(run.statistic_key)
        observed = run.observed_statistic
        return build_run_result(
            statistic_key=statistic.key,
            statistic_name=statistic.name,
            status=run.status.value,
            target=run.target,
            n_trials=run.n_trials,
            observed=None if np.isnan(observed) else observed,
            p_result=p_result,
            alternative=self._runner.alternative,
            scheme=run.scheme,
            seed=run.seed,
            n_rows=run.n_rows,
        )

    def print_summary(self):
        result = self.summary()
        if result is None:
            print("No simulation has been run")
            return
        print(format_run_result(result))

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener(event, session)``; returns an unsubscribe function.

        Events: ``"data"`` on every dataset version change, ``"batch"`` after
        each completed trial batch, ``"status"`` on run state changes and
        ``"statistic"`` when the selected statistic changes.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str):
        for listener in list(self._listeners):
            listener(event, self)

    def _on_runner_event(self, event: str, runner: SimulationRunner):
        self._notify(event)

    # =========================================================================
    # Configuration methods
    # =========================================================================

    def set_seed(self, seed: Optional[int] = None):
        """Set random seed for reproducibility.

        Args:
            seed: Non-negative integer, or ``None`` for fresh entropy on
                every run.

        Returns:
            self: For method chaining.
        """
        _validate_seed(seed).raise_if_invalid()
        self.seed = seed
        if seed is not None:
            print(f"Seed set to: {seed}")
        else:
            print("Random seeding enabled")
        return self

    def set_simulations(self, n_simulations: int):
        """Set the number of trials per run.

        Args:
            n_simulations: Positive integer; floats are rounded.

        Returns:
            self: For method chaining.

        Raises:
            ValueError: If *n_simulations* is not a positive number.
        """
        n_sims, result = _validate_simulations(n_simulations)
        for warning in result.warnings:
            warnings.warn(warning, UserWarning, stacklevel=2)
        result.raise_if_invalid()
        self.n_simulations = n_sims
        return self

    def set_batch_size(self, batch_size: int):
        """Set how many trials are produced between progress updates."""
        _validate_batch_size(batch_size).raise_if_invalid()
        self.batch_size = batch_size
        self._runner.batch_size = batch_size
        return self

    def set_statistic(self, statistic: str):
        """Select the test statistic.

        Existing trials are re-evaluated under the new statistic; the
        simulation is not re-run.

        Raises:
            ValueError: If *statistic* is not in the catalog.
        """
        _validate_statistic(statistic).raise_if_invalid()
        self.statistic = statistic
        self._runner.select_statistic(statistic)
        return self

    def set_scheme(self, scheme: str):
        """Choose ``"bernoulli"`` (independent labels) or ``"complete"`` (shuffle)."""
        _validate_choice(scheme, SCHEMES, "scheme").raise_if_invalid()
        self.scheme = scheme
        return self

    def set_alternative(self, alternative: str):
        """Choose the extremity direction for p-values."""
        _validate_choice(alternative, ALTERNATIVES, "alternative").raise_if_invalid()
        self.alternative = alternative
        self._runner.alternative = alternative
        return self

    def set_history_limit(self, limit: Optional[int]):
        """Bound the undo depth; ``None`` removes the bound."""
        _validate_history_limit(limit).raise_if_invalid()
        self._history.set_limit(limit)
        return self

    # =========================================================================
    # Data commands
    # =========================================================================

    def _check_unlocked(self, action: str):
        if self._runner.is_locked:
            raise LockedError(f"Cannot {action} while a simulation is running")

    def _apply(self, action: str, mutate: Callable[[DataSet], DataSet]) -> DataSet:
        """Run *mutate* on the current dataset and record it in the history.

        The mutator validates before producing anything, so a failure leaves
        both dataset and history untouched.
        """
        self._check_unlocked(action)
        previous = self._dataset
        updated = mutate(previous)
        if updated == previous:
            return previous
        self._dataset = self._history.record(previous, updated)
        self._runner.reset()
        self._notify("data")
        return self._dataset

    def add_row(self) -> DataSet:
        return self._apply("add a row", lambda ds: ds.add_row())

    def delete_row(self, index: int) -> DataSet:
        return self._apply("delete a row", lambda ds: ds.delete_row(index))

    def update_cell(self, row_index: int, slot_index: int, value: Any) -> DataSet:
        return self._apply("edit a cell", lambda ds: ds.update_cell(row_index, slot_index, value))

    def toggle_assignment(self, row_index: int) -> DataSet:
        return self._apply("change an assignment", lambda ds: ds.toggle_assignment(row_index))

    def rename_column(self, index: int, name: str) -> DataSet:
        return self._apply("rename a column", lambda ds: ds.rename_column(index, name))

    def set_control_group(self, index: int) -> DataSet:
        return self._apply("change the control group", lambda ds: ds.set_control_group(index))

    def impute_treatment_effect(self, effect: float) -> DataSet:
        """Fill single-value rows assuming ``treatment = control + effect``."""
        return self._apply("apply a treatment effect", lambda ds: ds.impute_treatment_effect(effect))

    def set_user_data(self, state: Union[DataSet, Dict[str, Any]]) -> DataSet:
        """Replace the whole dataset (bulk import).

        Args:
            state: A ``DataSet`` or a ``{rows, column_names,
                control_group_index}`` mapping. Missing keys keep the
                current column names and control group.

        Raises:
            ValueError: If the state is malformed.
        """
        if isinstance(state, dict):
            state = {
                "column_names": self._dataset.column_names,
                "control_group_index": self._dataset.control_group_index,
                **state,
            }
        return self._apply("load data", lambda ds: DataSet.from_state(state))

    def import_data(self, data, columns: Optional[List[str]] = None) -> DataSet:
        """Normalize parsed tabular data and load it with ``set_user_data``.

        See ``randsim.utils.upload_data_utils.normalize_import`` for the
        accepted layouts.
        """
        self._check_unlocked("load data")
        state = normalize_import(
            data,
            columns=columns,
            control_group_index=self._dataset.control_group_index,
            default_columns=list(self._dataset.column_names),
        )
        return self.set_user_data(state)

    def undo(self) -> DataSet:
        """Step back one version; unchanged when there is nothing to undo."""
        self._check_unlocked("undo")
        previous = self._dataset
        self._dataset = self._history.undo(previous)
        if self._dataset is not previous:
            self._runner.reset()
            self._notify("data")
        return self._dataset

    def redo(self) -> DataSet:
        """Step forward one version; unchanged when there is nothing to redo."""
        self._check_unlocked("redo")
        previous = self._dataset
        self._dataset = self._history.redo(previous)
        if self._dataset is not previous:
            self._runner.reset()
            self._notify("data")
        return self._dataset

    # =========================================================================
    # Run commands
    # =========================================================================

    def start(
        self,
        background: bool = False,
        progress_callback: Union[Callable[[int, int], None], bool, None] = None,
        drive: bool = True,
    ) -> SimulationRun:
        """Start a randomization run on the current dataset.

        Any finished run is discarded first. With the defaults the call
        drives every batch before returning; hosts with an event loop (a
        GUI) should pass ``background=True`` or ``drive=False`` instead.

        Args:
            background: Drive the batches on a worker thread and return
                immediately. Use ``wait()`` to join it; degenerate-trial
                warnings are issued there.
            progress_callback: ``(current, total)`` callback, ``True`` for
                ``PrintReporter`` or ``None``/``False`` for no progress.
            drive: When ``False`` (and not *background*) no trials are
                produced; the caller pumps ``step()`` itself, e.g. from a
                GUI event loop.

        Returns:
            The ``SimulationRun``.

        Raises:
            InvalidStateError: If a run is already ``RUNNING``.
            EmptyDataError: If no row holds a value.

        An error raised while driving the batches (for example by a
        subscriber) cancels the run before it propagates.
        """
        if self._runner.status not in (RunStatus.IDLE, RunStatus.RUNNING):
            self._runner.reset()

        if progress_callback is True:
            progress_callback = PrintReporter()
        progress = ProgressReporter(self.n_simulations, progress_callback) if progress_callback else None
        self._warn_on_wait = False

        run = self._runner.start(
            self._dataset,
            self.statistic,
            self.n_simulations,
            seed=self.seed,
            scheme=self.scheme,
            progress=progress,
        )

        if background:
            self._runner.run_in_background()
            self._warn_on_wait = True
        elif drive:
            self._runner.run()
            warn_if_degenerate(self._runner.p_value_result())
        return run

    def step(self) -> int:
        """Produce one batch of trials; returns how many were appended."""
        return self._runner.step()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for a background run; ``True`` once it has finished.

        Re-raises an error from the worker thread.
        """
        try:
            finished = self._runner.wait(timeout)
        except Exception:
            self._warn_on_wait = False
            raise
        if finished and self._warn_on_wait:
            self._warn_on_wait = False
            warn_if_degenerate(self._runner.p_value_result())
        return finished

    def cancel(self) -> SimulationRun:
        """Cancel the running simulation; produced trials stay inspectable."""
        return self._runner.cancel()

    def reset_run(self):
        """Discard a finished run and return to ``IDLE``."""
        self._runner.reset()

    def __repr__(self):
        return (
            f"Session(rows={self._dataset.n_eligible}, statistic={self.statistic}, "
            f"status={self.status.value}, history={self._history.depth})"
        )
