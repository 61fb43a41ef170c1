"""
Validation utilities for RandSim.

This module provides validation functions for session settings. Each check
returns a ``_ValidationResult`` that collects errors and non-fatal warnings;
callers surface the warnings and then call ``raise_if_invalid()``.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

__all__ = []


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self):
        """Raise ``ValueError`` if the validation failed."""
        if not self.is_valid:
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise ValueError(error_msg)


class _Validator:
    """Static helpers for type and range checks used by all validators."""

    @staticmethod
    def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
        """Check if value has expected type (``bool`` is never numeric)."""
        if isinstance(value, bool) or not isinstance(value, expected_types):
            actual_type = type(value).__name__
            expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
            return f"{name} must be {expected}, got {actual_type}"
        return None

    @staticmethod
    def _check_range(
        value: Union[int, float],
        min_val: Optional[float],
        max_val: Optional[float],
        name: str,
    ) -> Optional[str]:
        """Check if value is within range."""
        if min_val is not None and value < min_val:
            return f"{name} must be >= {min_val}, got {value}"
        if max_val is not None and value > max_val:
            return f"{name} must be <= {max_val}, got {value}"
        return None


_validator = _Validator()


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (int, float),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    allow_rounding: bool = False,
) -> _ValidationResult:
    """Generic validation for numeric parameters."""
    errors: List[str] = []
    warnings: List[str] = []

    type_error = _validator._check_type(value, expected_types, name)
    if type_error:
        errors.append(type_error)
        return _ValidationResult(False, errors, warnings)

    range_error = _validator._check_range(value, min_val, max_val, name)
    if range_error:
        errors.append(range_error)

    # Rounding warning for floats when int expected
    if allow_rounding and isinstance(value, float):
        rounded = int(round(value))
        if value != rounded:
            warnings.append(f"{name} rounded from {value} to {rounded}")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_simulations(n_simulations: Any) -> Tuple[int, _ValidationResult]:
    """Validate and process the number of trials per run."""
    result = _validate_numeric_parameter(n_simulations, "Number of simulations", min_val=1, allow_rounding=True)

    if result.is_valid:
        rounded = int(round(n_simulations))
        if rounded < 100:
            result.warnings.append(f"Low simulation count ({rounded}). Consider using at least 1000 for a stable p-value.")
        return rounded, result

    return 0, result


def _validate_batch_size(batch_size: Any) -> _ValidationResult:
    """Validate the number of trials produced per batch (1-100,000)."""
    return _validate_numeric_parameter(batch_size, "batch_size", expected_types=(int,), min_val=1, max_val=100000)


def _validate_seed(seed: Any) -> _ValidationResult:
    """Validate a random seed: ``None`` or a non-negative integer."""
    if seed is None:
        return _ValidationResult(True, [], [])
    return _validate_numeric_parameter(seed, "seed", expected_types=(int,), min_val=0, max_val=2**63 - 1)


def _validate_history_limit(limit: Any) -> _ValidationResult:
    """Validate the undo depth bound: ``None`` (unbounded) or a positive integer."""
    if limit is None:
        return _ValidationResult(True, [], [])
    return _validate_numeric_parameter(limit, "history limit", expected_types=(int,), min_val=1)


def _validate_choice(value: Any, choices: tuple, name: str) -> _ValidationResult:
    """Validate that *value* is one of *choices*."""
    if value not in choices:
        return _ValidationResult(False, [f"{name} must be one of {list(choices)}, got '{value}'"], [])
    return _ValidationResult(True, [], [])


def _validate_statistic(key: Any) -> _ValidationResult:
    """Validate a test statistic key against the catalog."""
    from ..stats.statistics import STATISTICS

    if not isinstance(key, str):
        return _ValidationResult(False, [f"statistic must be a string, got {type(key).__name__}"], [])
    return _validate_choice(key, tuple(STATISTICS), "statistic")
