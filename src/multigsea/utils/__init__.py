"""
multigsea utilities package.
"""

from multigsea.utils.io_utils import load_pickle, save_pickle
from multigsea.utils.pd_utils import check_required_columns, is_single_string

__all__ = [
    # File I/O
    "load_pickle",
    "save_pickle",
    # Pandas utilities
    "check_required_columns",
    "is_single_string",
]
