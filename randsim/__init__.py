"""RandSim - Randomization Test Simulator.

An in-process engine for exploring randomization (permutation) tests on
two-group data: enter observations, assign each one to control or
treatment, and build the null distribution of a test statistic by
re-randomizing the assignments many times.

Example:
    >>> from randsim import Session
    >>>
    >>> session = Session()
    >>> session.update_cell(0, 0, 5.0)
    >>> session.update_cell(1, 1, 8.0)
    >>> session.toggle_assignment(1)
    >>> session.set_simulations(1000).start()
    >>> session.p_value
"""

from importlib.metadata import version as _get_version

from .core import DataSet, History, Observation, RunStatus, SimulationRunner, SimulationTrial, generate_trial
from .errors import EmptyDataError, InvalidStateError, LockedError, RandSimError
from .progress import PrintReporter, ProgressReporter, TqdmReporter
from .session import Session
from .stats import available_statistics, get_statistic

__version__ = _get_version("RandSim")

__all__ = [
    "Session",
    "DataSet",
    "Observation",
    "History",
    "SimulationRunner",
    "SimulationTrial",
    "RunStatus",
    "generate_trial",
    "available_statistics",
    "get_statistic",
    "RandSimError",
    "InvalidStateError",
    "EmptyDataError",
    "LockedError",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
