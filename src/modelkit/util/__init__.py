"""
Utility helpers.
"""

from .pair_list import PairList
from .log_utils import setup_logging

__all__ = [
    "PairList",
    "setup_logging"
]
