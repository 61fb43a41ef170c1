"""
Tabular data model for RandSim.

Immutable dataclasses for the observations a user enters and the group each
one was assigned to. Every mutator returns a new ``DataSet``; nothing is
changed in place, so the history can keep old versions as plain snapshots.

Missing data is modelled as ``None`` (not ``NaN``). The last row of a
normalized dataset is always a fully-absent placeholder row, the live entry
point for new input, and it never takes part in statistic computation.
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

N_GROUPS = 2
MAX_COLUMN_NAME_LENGTH = 20
DEFAULT_COLUMN_NAMES = ("Control", "Treatment")

Cell = Optional[float]


def _coerce_value(value: Any) -> Cell:
    """Convert a cell input to ``float`` or ``None`` (absent).

    ``None``, blank strings and ``NaN`` all clear the cell.

    Raises:
        ValueError: If the value is not numeric or is infinite.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    if isinstance(value, bool):
        raise ValueError(f"cell value must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"cell value must be numeric, got {value!r}") from None
    if math.isnan(number):
        return None
    if math.isinf(number):
        raise ValueError(f"cell value must be finite, got {value!r}")
    return number


@dataclass(frozen=True)
class Observation:
    """One measured unit.

    Parameters
    ----------
    data : tuple of float or None
        One potential value per group (``G = 2``: control and treatment
        slot). ``None`` marks a value that was not measured.
    assignment : int
        Slot index naming the group this unit was actually assigned to.
    """

    data: Tuple[Cell, ...] = (None,) * N_GROUPS
    assignment: int = 0

    @property
    def is_placeholder(self) -> bool:
        return all(v is None for v in self.data)

    @property
    def is_eligible(self) -> bool:
        return not self.is_placeholder

    @property
    def is_paired(self) -> bool:
        return all(v is not None for v in self.data)

    @property
    def known_values(self) -> List[float]:
        return [v for v in self.data if v is not None]

    def value_for(self, label: int) -> Cell:
        """Value this unit contributes when it is labelled *label*.

        Uses the slot's own value when it was measured. Otherwise falls back
        to the single known value; a missing potential outcome is never
        made up.
        """
        value = self.data[label]
        if value is not None:
            return value
        known = self.known_values
        return known[0] if known else None


@dataclass(eq=False)
class LabeledRows:
    """Eligible rows reduced to one value and one group label each.

    This is the input every test statistic consumes.

    Attributes:
        values: 1-D float array of the contributed values.
        labels: 1-D int array of group labels, same length as ``values``.
        control_index: Slot index of the control group.
    """

    values: np.ndarray
    labels: np.ndarray
    control_index: int = 0

    def __len__(self) -> int:
        return len(self.values)

    def group(self, label: int) -> np.ndarray:
        return self.values[self.labels == label]


@dataclass(frozen=True)
class DataSet:
    """Observations plus column metadata.

    Parameters
    ----------
    rows : tuple of Observation
        Ordered rows; the last one is the placeholder once normalized.
    column_names : tuple of str
        One label per group slot.
    control_group_index : int
        Slot used as the reference (control) group.
    """

    rows: Tuple[Observation, ...] = (Observation(),)
    column_names: Tuple[str, ...] = DEFAULT_COLUMN_NAMES
    control_group_index: int = 0

    def __post_init__(self):
        if len(self.column_names) != N_GROUPS:
            raise ValueError(f"column_names must have {N_GROUPS} entries, got {len(self.column_names)}")
        if not 0 <= self.control_group_index < N_GROUPS:
            raise ValueError(f"control_group_index must be in [0, {N_GROUPS}), got {self.control_group_index}")
        for row in self.rows:
            if len(row.data) != N_GROUPS:
                raise ValueError(f"every row must have {N_GROUPS} data slots, got {len(row.data)}")
            if not 0 <= row.assignment < N_GROUPS:
                raise ValueError(f"assignment must be in [0, {N_GROUPS}), got {row.assignment}")

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def n_rows(self) -> int:
        return len(self.rows)

    @property
    def treatment_group_index(self) -> int:
        return 1 - self.control_group_index

    def eligible_rows(self) -> List[Observation]:
        """Rows with at least one populated value (placeholder excluded)."""
        return [row for row in self.rows if row.is_eligible]

    @property
    def n_eligible(self) -> int:
        return len(self.eligible_rows())

    def labeled_rows(self, labels: Optional[Sequence[int]] = None) -> LabeledRows:
        """Reduce the eligible rows to ``(values, labels)`` arrays.

        Args:
            labels: Group label per eligible row. Defaults to the real
                assignments.
        """
        eligible = self.eligible_rows()
        if labels is None:
            labels = [row.assignment for row in eligible]
        if len(labels) != len(eligible):
            raise ValueError(f"expected {len(eligible)} labels, got {len(labels)}")
        values = np.array([row.value_for(lab) for row, lab in zip(eligible, labels)], dtype=float)
        return LabeledRows(
            values=values,
            labels=np.asarray(labels, dtype=int),
            control_index=self.control_group_index,
        )

    def column_means(self) -> List[Optional[float]]:
        """Mean of the values each group holds, ``None`` when empty.

        A row counts towards its assigned group with ``value_for``, the same
        value the observed statistic uses.
        """
        groups: Dict[int, List[float]] = {k: [] for k in range(N_GROUPS)}
        for row in self.eligible_rows():
            groups[row.assignment].append(row.value_for(row.assignment))
        return [float(np.mean(groups[k])) if groups[k] else None for k in range(N_GROUPS)]

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form, the same shape ``set_user_data`` accepts."""
        return {
            "rows": [{"data": list(row.data), "assignment": row.assignment} for row in self.rows],
            "column_names": list(self.column_names),
            "control_group_index": self.control_group_index,
        }

    # =========================================================================
    # Mutators (all return a new DataSet)
    # =========================================================================

    def normalized(self) -> "DataSet":
        """Enforce the single trailing placeholder row.

        Fully-absent rows other than the last are dropped, and a fresh
        placeholder is appended when the last row holds data.
        """
        rows = [row for row in self.rows[:-1] if not row.is_placeholder]
        if self.rows:
            rows.append(self.rows[-1])
        if not rows or not rows[-1].is_placeholder:
            rows.append(Observation())
        return replace(self, rows=tuple(rows))

    def _check_row(self, index: int) -> int:
        if not isinstance(index, (int, np.integer)) or isinstance(index, bool):
            raise IndexError(f"row index must be an integer, got {index!r}")
        if not 0 <= index < self.n_rows:
            raise IndexError(f"row index {index} out of range (0..{self.n_rows - 1})")
        return int(index)

    @staticmethod
    def _check_slot(index: int) -> int:
        if not isinstance(index, (int, np.integer)) or isinstance(index, bool):
            raise IndexError(f"column index must be an integer, got {index!r}")
        if not 0 <= index < N_GROUPS:
            raise IndexError(f"column index {index} out of range (0..{N_GROUPS - 1})")
        return int(index)

    def _with_row(self, index: int, row: Observation) -> "DataSet":
        rows = list(self.rows)
        rows[index] = row
        return replace(self, rows=tuple(rows)).normalized()

    def add_row(self) -> "DataSet":
        """Append a placeholder row.

        At most one trailing placeholder exists, so this is a no-op when the
        last row is already empty.
        """
        return replace(self, rows=self.rows + (Observation(),)).normalized()

    def delete_row(self, index: int) -> "DataSet":
        """Remove the row at *index*.

        Raises:
            IndexError: If *index* is out of range, or names the sole
                placeholder row.
        """
        index = self._check_row(index)
        if self.n_rows == 1 and self.rows[0].is_placeholder:
            raise IndexError("cannot delete the only placeholder row")
        rows = self.rows[:index] + self.rows[index + 1 :]
        return replace(self, rows=rows).normalized()

    def update_cell(self, row_index: int, slot_index: int, value: Any) -> "DataSet":
        """Set one slot to a number, or clear it with ``None``."""
        row_index = self._check_row(row_index)
        slot_index = self._check_slot(slot_index)
        cell = _coerce_value(value)
        row = self.rows[row_index]
        data = list(row.data)
        data[slot_index] = cell
        return self._with_row(row_index, replace(row, data=tuple(data)))

    def toggle_assignment(self, row_index: int) -> "DataSet":
        """Flip a row between the two groups. No-op on the placeholder row."""
        row_index = self._check_row(row_index)
        row = self.rows[row_index]
        if row.is_placeholder:
            return self
        return self._with_row(row_index, replace(row, assignment=1 - row.assignment))

    def rename_column(self, index: int, name: str) -> "DataSet":
        """Rename a group column, truncating to 20 characters."""
        index = self._check_slot(index)
        names = list(self.column_names)
        names[index] = str(name)[:MAX_COLUMN_NAME_LENGTH]
        return replace(self, column_names=tuple(names))

    def set_control_group(self, index: int) -> "DataSet":
        index = self._check_slot(index)
        return replace(self, control_group_index=index)

    def impute_treatment_effect(self, effect: float) -> "DataSet":
        """Fill the missing slot of single-value rows with a constant effect.

        The treatment value is taken to be ``control + effect``. Rows with
        both or neither slot populated are left as they are.
        """
        effect = _coerce_value(effect)
        if effect is None:
            raise ValueError("effect must be a finite number")
        control = self.control_group_index
        rows = []
        for row in self.rows:
            if len(row.known_values) != 1:
                rows.append(row)
                continue
            known = 0 if row.data[0] is not None else 1
            missing = 1 - known
            sign = 1.0 if missing != control else -1.0
            data = list(row.data)
            data[missing] = row.data[known] + sign * effect
            rows.append(replace(row, data=tuple(data)))
        return replace(self, rows=tuple(rows)).normalized()

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def empty(cls, column_names: Sequence[str] = DEFAULT_COLUMN_NAMES) -> "DataSet":
        names = tuple(str(n)[:MAX_COLUMN_NAME_LENGTH] for n in column_names)
        return cls(rows=(Observation(),), column_names=names)

    @classmethod
    def from_state(cls, state: Union["DataSet", Dict[str, Any]]) -> "DataSet":
        """Validate and normalize a ``{rows, column_names, control_group_index}`` state.

        Rows may be ``Observation`` instances, mappings with ``data`` and
        ``assignment`` keys, or ``(data, assignment)`` pairs.

        Raises:
            ValueError: If the state is malformed.
        """
        if isinstance(state, DataSet):
            return state.normalized()
        if not isinstance(state, dict):
            raise ValueError(f"state must be a DataSet or dict, got {type(state).__name__}")

        column_names = tuple(
            str(n)[:MAX_COLUMN_NAME_LENGTH] for n in state.get("column_names", DEFAULT_COLUMN_NAMES)
        )
        control = state.get("control_group_index", 0)

        rows = []
        for i, raw in enumerate(state.get("rows", [])):
            if isinstance(raw, Observation):
                rows.append(raw)
                continue
            if isinstance(raw, dict):
                data, assignment = raw.get("data"), raw.get("assignment", 0)
            else:
                try:
                    data, assignment = raw
                except (TypeError, ValueError):
                    raise ValueError(f"row {i}: expected a mapping or (data, assignment) pair") from None
            if data is None or len(data) != N_GROUPS:
                raise ValueError(f"row {i}: data must have {N_GROUPS} values")
            try:
                cells = tuple(_coerce_value(v) for v in data)
            except ValueError as e:
                raise ValueError(f"row {i}: {e}") from None
            if assignment not in range(N_GROUPS):
                raise ValueError(f"row {i}: assignment must be 0 or 1, got {assignment!r}")
            rows.append(Observation(data=cells, assignment=int(assignment)))

        return cls(rows=tuple(rows), column_names=column_names, control_group_index=control).normalized()


__all__ = [
    "N_GROUPS",
    "MAX_COLUMN_NAME_LENGTH",
    "Observation",
    "LabeledRows",
    "DataSet",
]
