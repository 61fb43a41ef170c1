"""
Error kinds raised by RandSim.

All errors are recoverable by the caller: an operation that raises leaves
the session exactly as it was before the call.
"""


class RandSimError(Exception):
    """Base class for RandSim errors."""

    pass


class InvalidStateError(RandSimError, RuntimeError):
    """Raised when a run control operation is issued in the wrong state."""

    pass


class EmptyDataError(RandSimError, ValueError):
    """Raised when a run is started on a dataset with no eligible rows."""

    pass


class LockedError(RandSimError, RuntimeError):
    """Raised when the dataset or its history is edited during a run."""

    pass
