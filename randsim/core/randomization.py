"""
Randomization engine for RandSim.

Produces one re-randomized trial at a time under the null hypothesis of no
treatment effect: each eligible row keeps its measured value(s) and only
its group label is redrawn. Given the same random generator state the
output is fully deterministic.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

import numpy as np

from ..errors import EmptyDataError
from ..stats.statistics import TestStatistic, get_statistic
from .dataset import N_GROUPS, DataSet, LabeledRows

SCHEMES = ("bernoulli", "complete")


@dataclass(frozen=True, eq=False)
class SimulationTrial:
    """One randomization outcome.

    Attributes:
        rows: Relabelled eligible rows.
        assignments: Drawn group label per eligible row.

    Statistic values are memoized per statistic key; a trial never
    evaluates the same statistic twice.
    """

    rows: LabeledRows
    assignments: Tuple[int, ...]
    _cache: Dict[str, float] = field(default_factory=dict, repr=False)

    def statistic(self, statistic: Union[str, TestStatistic]) -> float:
        """Value of *statistic* on this trial (``nan`` when degenerate)."""
        if isinstance(statistic, str):
            statistic = get_statistic(statistic)
        value = self._cache.get(statistic.key)
        if value is None:
            with np.errstate(all="ignore"):
                value = statistic(self.rows.values, self.rows.labels, self.rows.control_index)
            self._cache[statistic.key] = value
        return value

    def is_cached(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self.assignments)


class RandomizationEngine:
    """Generates trials for one fixed dataset.

    The value each eligible row would contribute under each label is
    tabulated once, so a trial is just a label draw plus a fancy index.

    Args:
        dataset: Source dataset; only its eligible rows are used.
        scheme: ``"bernoulli"`` draws each row's label independently and
            uniformly; ``"complete"`` shuffles the observed labels, keeping
            group sizes fixed.

    Raises:
        EmptyDataError: If the dataset has no eligible rows.
        ValueError: If *scheme* is unknown.
    """

    def __init__(self, dataset: DataSet, scheme: str = "bernoulli"):
        if scheme not in SCHEMES:
            raise ValueError(f"scheme must be one of {SCHEMES}, got '{scheme}'")
        eligible = dataset.eligible_rows()
        if not eligible:
            raise EmptyDataError("No eligible rows: enter at least one value before running a simulation")

        self.scheme = scheme
        self.control_index = dataset.control_group_index
        self.observed_labels = np.array([row.assignment for row in eligible], dtype=int)
        # value_table[i, k] = value row i contributes when labelled k
        self.value_table = np.array(
            [[row.value_for(k) for k in range(N_GROUPS)] for row in eligible],
            dtype=float,
        )

    @property
    def n_rows(self) -> int:
        return len(self.observed_labels)

    def _trial(self, labels: np.ndarray) -> SimulationTrial:
        values = self.value_table[np.arange(self.n_rows), labels]
        values.setflags(write=False)
        labels.setflags(write=False)
        rows = LabeledRows(values=values, labels=labels, control_index=self.control_index)
        return SimulationTrial(rows=rows, assignments=tuple(int(x) for x in labels))

    def observed(self) -> SimulationTrial:
        """Trial carrying the real assignments."""
        return self._trial(self.observed_labels.copy())

    def draw_labels(self, rng: np.random.Generator) -> np.ndarray:
        """Draw one label vector according to the scheme.

        Under ``"bernoulli"`` draws that leave a group empty are redrawn
        whenever both groups can be filled (two or more rows).
        """
        if self.scheme == "complete":
            return rng.permutation(self.observed_labels)

        labels = rng.integers(0, N_GROUPS, size=self.n_rows)
        if self.n_rows >= N_GROUPS:
            while np.unique(labels).size < N_GROUPS:
                labels = rng.integers(0, N_GROUPS, size=self.n_rows)
        return labels

    def generate(self, rng: np.random.Generator) -> SimulationTrial:
        return self._trial(self.draw_labels(rng))


def generate_trial(
    dataset: DataSet,
    rng: Optional[np.random.Generator] = None,
    scheme: str = "bernoulli",
) -> SimulationTrial:
    """Produce one re-randomized trial of *dataset*.

    Convenience wrapper around ``RandomizationEngine``; a run reuses a
    single engine for all of its trials.
    """
    if rng is None:
        rng = np.random.default_rng()
    return RandomizationEngine(dataset, scheme).generate(rng)


def observed_trial(dataset: DataSet) -> SimulationTrial:
    """Trial built from the dataset's real assignments."""
    return RandomizationEngine(dataset).observed()
