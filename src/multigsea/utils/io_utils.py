"""
Utilities for input and output operations.

Public Functions
----------------
load_pickle(path: str) -> Any:
    Load pickle object from path.
save_pickle(path: str, dat: object) -> None:
    Save object to path as pickle.
"""

from __future__ import annotations

import logging
import pickle
from typing import Any

import fsspec

logger = logging.getLogger(__name__)


def load_pickle(path: str) -> Any:
    """Load a pickle object from a path or URI.

    Parameters
    ----------
    path : str
        Path or URI to the pickle file (e.g., '/local/file.pkl', 'gs://bucket/file.pkl').

    Returns
    -------
    Any
        The unpickled object.

    Examples
    --------
    >>> obj = load_pickle('/tmp/data.pkl')
    """
    with fsspec.open(str(path), "rb") as f:
        return pickle.load(f)


def save_pickle(path: str, dat: Any) -> None:
    """
    Save object to path as pickle.

    Parameters
    ----------
    path : str
        Path or URI where to save the pickle file (e.g., '/local/file.pkl', 'gs://bucket/file.pkl').
    dat : Any
        Object to pickle.

    Returns
    -------
    None

    Examples
    --------
    >>> save_pickle('/tmp/data.pkl', my_object)
    """
    with fsspec.open(str(path), "wb") as f:
        pickle.dump(dat, f)
    logger.debug(f"Pickled {type(dat).__name__} to {path}")
