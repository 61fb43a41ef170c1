"""Test statistic catalog."""

from . import statistics as statistics
from .statistics import DEFAULT_STATISTIC, STATISTICS, TestStatistic, available_statistics, get_statistic

__all__ = [
    "statistics",
    "TestStatistic",
    "STATISTICS",
    "DEFAULT_STATISTIC",
    "get_statistic",
    "available_statistics",
]
