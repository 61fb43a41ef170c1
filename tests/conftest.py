"""
Shared pytest fixtures for RandSim tests.
"""

import warnings

import pytest

from randsim import DataSet, Session
from tests.config import BATCH_SIZE, SEED


@pytest.fixture
def two_row_data():
    """Two single-value rows: control 5, treatment 8 (observed difference 3)."""
    return DataSet.from_state({"rows": [([5, None], 0), ([None, 8], 1)]})


@pytest.fixture
def paired_row_data():
    """One paired row holding both potential outcomes."""
    return DataSet.from_state({"rows": [([10, 12], 0)]})


@pytest.fixture
def sample_data():
    """Eight-row dataset with a clear treatment effect."""
    rows = [
        ([4.1, None], 0),
        ([5.0, None], 0),
        ([3.8, None], 0),
        ([4.6, None], 0),
        ([None, 6.9], 1),
        ([None, 7.4], 1),
        ([None, 6.2], 1),
        ([None, 7.9], 1),
    ]
    return DataSet.from_state({"rows": rows, "column_names": ["Placebo", "Drug"]})


@pytest.fixture
def session():
    """Quiet session with a fixed seed and small batches."""
    s = Session()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        s.set_seed(SEED).set_batch_size(BATCH_SIZE).set_simulations(100)
    return s


@pytest.fixture
def loaded_session(session, sample_data):
    """Session holding ``sample_data``."""
    session.set_user_data(sample_data)
    return session
