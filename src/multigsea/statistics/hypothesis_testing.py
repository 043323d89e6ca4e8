"""
Hypothesis tests.

Public Functions
----------------
hypergeometric_upper_tail(n_hits, n_geneset, n_drawn, n_universe)
    Vectorized one-tailed hypergeometric test for over-representation.
"""

from typing import Union

import numpy as np
from scipy.stats import hypergeom


def hypergeometric_upper_tail(
    n_hits: Union[list[int], np.ndarray],
    n_geneset: Union[list[int], np.ndarray],
    n_drawn: Union[int, np.ndarray],
    n_universe: Union[int, np.ndarray],
) -> np.ndarray:
    """
    Vectorized one-tailed hypergeometric test for over-representation.

    Parameters
    ----------
    n_hits : array-like
        Number of selected features in each gene set
    n_geneset : array-like
        Number of features of each gene set present in the universe
    n_drawn : int or array-like
        Number of selected features in the universe
    n_universe : int or array-like
        Number of features in the universe

    Returns
    -------
    np.ndarray
        P(X >= n_hits) for each gene set
    """

    k = np.asarray(n_hits, dtype=np.int64)
    n = np.asarray(n_geneset, dtype=np.int64)

    if np.any(k < 0) or np.any(n < 0) or np.any(np.asarray(n_drawn) < 0):
        raise ValueError("All counts must be non-negative")
    if np.any(k > n) or np.any(n > np.asarray(n_universe)):
        raise ValueError(
            "n_hits must not exceed n_geneset and n_geneset must not exceed n_universe"
        )

    return hypergeom.sf(k - 1, n_universe, n, n_drawn)
