"""
RandSim utilities package.
Internal utilities - not part of public API.
"""

from . import upload_data_utils, validators

__all__ = [
    "upload_data_utils",
    "validators",
]
