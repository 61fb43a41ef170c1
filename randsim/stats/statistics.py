"""
Test statistics for two-group randomization tests.

Every statistic takes the contributed ``values``, the group ``labels`` and
the index of the control group, and returns ``treatment - control`` oriented
scalars. All of them are pure: identical input always gives identical
output, which the per-trial memo relies on.

Degenerate input (an empty group, too few values for a variance, zero
spread) never raises; the statistic returns ``nan`` and the run excludes
that trial from the p-value count.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numpy as np
from scipy import stats as _sp_stats

__all__ = [
    "TestStatistic",
    "STATISTICS",
    "DEFAULT_STATISTIC",
    "get_statistic",
    "available_statistics",
    "split_groups",
]


StatisticFunc = Callable[[np.ndarray, np.ndarray, int], float]


@dataclass(frozen=True)
class TestStatistic:
    """A named entry in the statistic catalog.

    Attributes:
        key: Stable identifier used for selection and memoization.
        name: Display name.
        func: ``func(values, labels, control_index) -> float``.
        two_sided: ``True`` when the statistic is signed and symmetric under
            the null, so extremity is judged on ``|t|``.
    """

    __test__ = False  # not a pytest test class

    key: str
    name: str
    func: StatisticFunc
    two_sided: bool = True

    def __call__(self, values: np.ndarray, labels: np.ndarray, control_index: int = 0) -> float:
        return float(self.func(values, labels, control_index))


def split_groups(values: np.ndarray, labels: np.ndarray, control_index: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(control, treatment)`` value arrays."""
    values = np.asarray(values, dtype=float)
    labels = np.asarray(labels)
    return values[labels == control_index], values[labels != control_index]


def _difference_in_means(values, labels, control_index):
    control, treatment = split_groups(values, labels, control_index)
    if control.size == 0 or treatment.size == 0:
        return np.nan
    return treatment.mean() - control.mean()


def _difference_in_medians(values, labels, control_index):
    control, treatment = split_groups(values, labels, control_index)
    if control.size == 0 or treatment.size == 0:
        return np.nan
    return np.median(treatment) - np.median(control)


def _standardized_mean_difference(values, labels, control_index):
    """Cohen's d with the pooled standard deviation."""
    control, treatment = split_groups(values, labels, control_index)
    n0, n1 = control.size, treatment.size
    if n0 == 0 or n1 == 0 or n0 + n1 < 3:
        return np.nan
    ss0 = ((control - control.mean()) ** 2).sum()
    ss1 = ((treatment - treatment.mean()) ** 2).sum()
    pooled_sd = np.sqrt((ss0 + ss1) / (n0 + n1 - 2))
    if pooled_sd == 0:
        return np.nan
    return (treatment.mean() - control.mean()) / pooled_sd


def _welch_t(values, labels, control_index):
    control, treatment = split_groups(values, labels, control_index)
    if control.size < 2 or treatment.size < 2:
        return np.nan
    if np.var(control) == 0 and np.var(treatment) == 0:
        return np.nan
    return _sp_stats.ttest_ind(treatment, control, equal_var=False).statistic


def _rank_sum(values, labels, control_index):
    """Wilcoxon rank-sum z statistic (normal approximation)."""
    control, treatment = split_groups(values, labels, control_index)
    if control.size == 0 or treatment.size == 0:
        return np.nan
    return _sp_stats.ranksums(treatment, control).statistic


STATISTICS: Dict[str, TestStatistic] = {
    s.key: s
    for s in (
        TestStatistic("difference_in_means", "Difference in Means", _difference_in_means),
        TestStatistic("difference_in_medians", "Difference in Medians", _difference_in_medians),
        TestStatistic(
            "standardized_mean_difference",
            "Standardized Mean Difference (Cohen's d)",
            _standardized_mean_difference,
        ),
        TestStatistic("welch_t", "Welch's t", _welch_t),
        TestStatistic("rank_sum", "Wilcoxon Rank-Sum z", _rank_sum),
    )
}

DEFAULT_STATISTIC = "difference_in_means"


def get_statistic(key: str) -> TestStatistic:
    """Look up a statistic by key.

    Raises:
        KeyError: If *key* is not in the catalog.
    """
    try:
        return STATISTICS[key]
    except KeyError:
        raise KeyError(f"Unknown test statistic '{key}'. Available: {', '.join(STATISTICS)}") from None


def available_statistics() -> Dict[str, str]:
    """Return ``{key: display name}`` for every statistic."""
    return {key: s.name for key, s in STATISTICS.items()}
