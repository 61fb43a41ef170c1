"""
Results processing for RandSim.

Derives p-values from the null distribution produced by a run and builds
the summary dictionary handed to presentation code.
"""

import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

ALTERNATIVES = ("two-sided", "greater", "less")

# Relative tolerance under which a trial statistic counts as tied with the
# observed one (ties are extreme).
TIE_RTOL = 1e-9


@dataclass(frozen=True)
class PValueResult:
    """Outcome of an extremity count over a null distribution.

    Attributes:
        p_value: Fraction of valid trials at least as extreme as the
            observed statistic, or ``None`` when not available.
        n_valid: Trials with a finite statistic.
        n_invalid: Trials excluded because their statistic was ``nan``.
        n_extreme: Valid trials counted as extreme.
    """

    p_value: Optional[float]
    n_valid: int
    n_invalid: int
    n_extreme: int


def extreme_mask(null: np.ndarray, observed: float, alternative: str = "two-sided") -> np.ndarray:
    """Boolean mask of trials at least as extreme as *observed* (ties inclusive)."""
    tol = TIE_RTOL * max(1.0, abs(observed))
    if alternative == "two-sided":
        return np.abs(null) >= abs(observed) - tol
    if alternative == "greater":
        return null >= observed - tol
    if alternative == "less":
        return null <= observed + tol
    raise ValueError(f"alternative must be one of {ALTERNATIVES}, got '{alternative}'")


def compute_p_value(
    null_statistics: Sequence[float],
    observed: Optional[float],
    alternative: str = "two-sided",
) -> PValueResult:
    """Count extreme trials in a null distribution.

    Trials whose statistic is ``nan`` (degenerate relabelling) are excluded
    from both numerator and denominator. The p-value is ``None`` rather than
    zero when there are no valid trials or the observed statistic is itself
    undefined.

    Args:
        null_statistics: Statistic value of every trial produced so far.
        observed: Statistic on the real assignments.
        alternative: ``"two-sided"`` compares ``|t| >= |observed|``;
            ``"greater"`` and ``"less"`` are one-sided.

    Returns:
        ``PValueResult``.
    """
    if alternative not in ALTERNATIVES:
        raise ValueError(f"alternative must be one of {ALTERNATIVES}, got '{alternative}'")

    null = np.asarray(null_statistics, dtype=float)
    valid = ~np.isnan(null)
    n_valid = int(valid.sum())
    n_invalid = int(null.size - n_valid)

    if n_valid == 0 or observed is None or np.isnan(observed):
        return PValueResult(None, n_valid, n_invalid, 0)

    n_extreme = int(extreme_mask(null[valid], observed, alternative).sum())
    return PValueResult(n_extreme / n_valid, n_valid, n_invalid, n_extreme)


def warn_if_degenerate(result: PValueResult):
    """Warn when trials had to be dropped or no p-value could be formed."""
    total = result.n_valid + result.n_invalid
    if total == 0:
        return
    if result.n_valid == 0:
        warnings.warn(
            f"All {total} trials produced an undefined statistic; p-value is not available",
            UserWarning,
            stacklevel=3,
        )
    elif result.n_invalid > 0:
        warnings.warn(
            f"{result.n_invalid}/{total} trials ({result.n_invalid / total:.1%}) produced an undefined "
            f"statistic and were excluded from the p-value",
            UserWarning,
            stacklevel=3,
        )


def build_run_result(
    statistic_key: str,
    statistic_name: str,
    status: str,
    target: int,
    n_trials: int,
    observed: Optional[float],
    p_result: PValueResult,
    alternative: str,
    scheme: str,
    seed: Optional[int],
    n_rows: int,
) -> Dict[str, Any]:
    """
    Build the summary dictionary of a run.

    Args:
        statistic_key: Selected statistic identifier
        statistic_name: Display name of the statistic
        status: Run status value
        target: Requested number of trials
        n_trials: Trials produced so far
        observed: Observed statistic
        p_result: Extremity count for the selected statistic
        alternative: Extremity direction
        scheme: Randomization scheme
        seed: Random seed used for the run
        n_rows: Eligible rows in the data

    Returns:
        Complete result dictionary
    """
    return {
        "model": {
            "statistic": statistic_key,
            "statistic_name": statistic_name,
            "alternative": alternative,
            "scheme": scheme,
            "seed": seed,
            "n_rows": n_rows,
            "target": target,
        },
        "results": {
            "status": status,
            "n_trials": n_trials,
            "observed_statistic": observed,
            "p_value": p_result.p_value,
            "n_valid": p_result.n_valid,
            "n_invalid": p_result.n_invalid,
            "n_extreme": p_result.n_extreme,
        },
    }


def format_run_result(result: Dict[str, Any]) -> str:
    """Render a run result as a short plain-text report."""
    model, res = result["model"], result["results"]
    observed = res["observed_statistic"]
    p_value = res["p_value"]
    lines = [
        f"Statistic: {model['statistic_name']} ({model['alternative']}, {model['scheme']} randomization)",
        f"Eligible rows: {model['n_rows']}",
        f"Trials: {res['n_trials']}/{model['target']} ({res['status']})",
        f"Observed statistic: {'N/A' if observed is None or np.isnan(observed) else f'{observed:.4f}'}",
        f"p-value: {'N/A' if p_value is None else f'{p_value:.4f}'}",
    ]
    if res["n_invalid"]:
        lines.append(f"Excluded trials (undefined statistic): {res['n_invalid']}")
    return "\n".join(lines)
