"""
Data input normalization for bulk import.

Converts already-parsed tabular input (pandas DataFrame, dict of columns,
2-D list or numpy array) into the ``{rows, column_names,
control_group_index}`` state accepted by ``Session.set_user_data``.

Each input row holds one value per group followed by the assignment, the
same layout as the ``value,value,assignment`` lines of an exported CSV.
"""

import math
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.dataset import DEFAULT_COLUMN_NAMES, N_GROUPS


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return False


def normalize_import(
    data,
    columns: Optional[List[str]] = None,
    control_group_index: int = 0,
    default_columns: Sequence[str] = DEFAULT_COLUMN_NAMES,
) -> Dict[str, Any]:
    """
    Convert user-supplied tabular data into a dataset state.

    Accepted inputs:
        - pandas DataFrame: the first two columns are values, the third the
          assignment; value column names become group names
        - dict of {name: array}: same layout, keys in insertion order
        - 2D list or numpy array: used directly

    Blank strings and NaN become absent values. Rows that hold no value are
    dropped; the trailing placeholder row is added by the data model.

    Args:
        data: Parsed data in any supported format.
        columns: Optional explicit group names (overrides inferred ones).
        control_group_index: Slot used as the control group.
        default_columns: Group names used when none are given or inferred.

    Returns:
        Dict with ``rows``, ``column_names`` and ``control_group_index``.

    Raises:
        TypeError: If *data* is an unsupported type.
        ValueError: If the column count is wrong or an assignment is not
            0 or 1.
    """
    inferred: Optional[List[str]] = None

    # --- pandas DataFrame ---------------------------------------------------
    if isinstance(data, pd.DataFrame):
        inferred = [str(c) for c in data.columns[:N_GROUPS]]
        table = data.to_numpy(dtype=object)

    # --- dict ---------------------------------------------------------------
    elif isinstance(data, dict):
        inferred = [str(c) for c in list(data.keys())[:N_GROUPS]]
        table = pd.DataFrame(data).to_numpy(dtype=object)

    # --- list / numpy array -------------------------------------------------
    elif isinstance(data, (list, tuple, np.ndarray)):
        table = np.asarray(data, dtype=object)
        if table.ndim == 1 and table.size == 0:
            table = table.reshape(0, N_GROUPS + 1)
        if table.ndim != 2:
            raise ValueError(f"data must be 2-dimensional, got {table.ndim} dimension(s)")

    # --- unsupported --------------------------------------------------------
    else:
        raise TypeError("data must be a numpy array, list, pandas DataFrame, or dict")

    if table.shape[1] != N_GROUPS + 1:
        raise ValueError(
            f"data must have {N_GROUPS + 1} columns ({N_GROUPS} values and an assignment), got {table.shape[1]}"
        )

    column_names: Sequence[str] = columns if columns is not None else (inferred or default_columns)
    if len(column_names) != N_GROUPS:
        raise ValueError(f"columns length ({len(column_names)}) must be {N_GROUPS}")

    rows = []
    for i, record in enumerate(table):
        values = [None if _is_missing(v) else v for v in record[:N_GROUPS]]
        if all(v is None for v in values):
            continue
        raw_assignment = record[N_GROUPS]
        try:
            raw_float = 0.0 if _is_missing(raw_assignment) else float(raw_assignment)
        except (TypeError, ValueError):
            raise ValueError(f"row {i}: assignment must be 0 or 1, got {raw_assignment!r}") from None
        assignment = int(raw_float)
        if raw_float != assignment or assignment not in range(N_GROUPS):
            raise ValueError(f"row {i}: assignment must be 0 or 1, got {raw_assignment!r}")
        rows.append({"data": values, "assignment": assignment})

    return {
        "rows": rows,
        "column_names": list(column_names),
        "control_group_index": control_group_index,
    }
