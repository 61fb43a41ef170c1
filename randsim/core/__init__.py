"""Core components for the RandSim framework.

Re-exports the foundational building blocks:

- ``DataSet``, ``Observation``, ``LabeledRows``: the editable data model.
- ``History``: undo/redo snapshots of the data model.
- ``RandomizationEngine``, ``SimulationTrial``, ``generate_trial``: one
  re-randomized trial at a time.
- ``SimulationRunner``, ``SimulationRun``, ``RunStatus``: batched,
  cancellable run control.
- ``compute_p_value``, ``build_run_result``: p-values and result
  formatting.
"""

from .dataset import N_GROUPS, DataSet, LabeledRows, Observation
from .history import History
from .randomization import RandomizationEngine, SimulationTrial, generate_trial, observed_trial
from .results import PValueResult, build_run_result, compute_p_value, format_run_result
from .simulation import RunStatus, SimulationRun, SimulationRunner

__all__ = [
    # Data model
    "N_GROUPS",
    "DataSet",
    "Observation",
    "LabeledRows",
    # History
    "History",
    # Randomization
    "RandomizationEngine",
    "SimulationTrial",
    "generate_trial",
    "observed_trial",
    # Run control
    "SimulationRunner",
    "SimulationRun",
    "RunStatus",
    # Results
    "PValueResult",
    "compute_p_value",
    "build_run_result",
    "format_run_result",
]
