"""
Scoring backends run over the active gene sets of a conformed GeneSetDb.

A scoring backend is called as ``fn(gsd, y, indexes, **kwargs)`` where
``gsd`` is a conformed GeneSetDb, ``y`` the expression object it is conformed
to and ``indexes`` the output of ``gsd.as_expression_indexes()``. It returns
a DataFrame with one row per tested gene set and at least collection, name
and pval columns.

Public Functions
----------------
get_scoring_method(name)
    Look up a registered scoring backend.
hypergeometric_test(gsd, selected, universe)
    Over-representation of selected features among gene set members.
list_scoring_methods()
    Names of registered scoring backends.
register_scoring_method(name)
    Decorator registering a scoring backend.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Tuple

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from multigsea.constants import (
    EXPRESSION_INDEX_SEP,
    GENESET_TABLE,
    HYPERGEOMETRIC_VARS,
    RESULT_VARS,
    SCORING_METHODS,
)
from multigsea.errors import ValidationError
from multigsea.expression import ExpressionRows
from multigsea.geneset_db import GeneSetDb, _expression_index_labels
from multigsea.statistics.hypothesis_testing import hypergeometric_upper_tail

logger = logging.getLogger(__name__)

ScoringMethod = Callable[..., pd.DataFrame]

_SCORING_METHODS: Dict[str, ScoringMethod] = {}


def register_scoring_method(name: str) -> Callable[[ScoringMethod], ScoringMethod]:
    """
    Decorator registering a scoring backend under ``name``.

    Examples
    --------
    >>> @register_scoring_method("mean_expression")
    ... def mean_expression(gsd, y, indexes, **kwargs):
    ...     ...
    """

    def decorator(fn: ScoringMethod) -> ScoringMethod:
        if name in _SCORING_METHODS:
            logger.warning(f"Scoring method {name} is already registered. Overwriting.")
        _SCORING_METHODS[name] = fn
        return fn

    return decorator


def get_scoring_method(name: str) -> ScoringMethod:
    if name not in _SCORING_METHODS:
        raise ValidationError(
            f"Unknown scoring method: {name}. Available methods: {list_scoring_methods()}"
        )
    return _SCORING_METHODS[name]


def list_scoring_methods() -> List[str]:
    return sorted(_SCORING_METHODS.keys())


def hypergeometric_test(
    gsd: GeneSetDb,
    selected: Iterable[str],
    universe: Iterable[str],
    **conform_kwargs: Any,
) -> pd.DataFrame:
    """
    Over-representation of selected features among gene set members.

    Parameters
    ----------
    gsd : GeneSetDb
        Gene sets to test. Conformed to ``universe`` unless it already is.
    selected : Iterable[str]
        Selected features, e.g. differentially expressed genes. Features
        outside of ``universe`` are ignored.
    universe : Iterable[str]
        All features which could have been selected
    **conform_kwargs
        Passed to ``GeneSetDb.conform``. Ignored, with a warning, when ``gsd``
        is already conformed to ``universe``.

    Returns
    -------
    pd.DataFrame
        collection, name, n_universe, n_geneset, n_drawn, n_hits, expected,
        pval and padj (Benjamini-Hochberg) for each active gene set
    """

    rows = ExpressionRows(universe)
    if not gsd.is_conformed(rows):
        gsd = gsd.conform(rows, **conform_kwargs)
    elif len(conform_kwargs) > 0:
        logger.warning(
            "gsd is already conformed to the universe; ignoring "
            f"{sorted(conform_kwargs)}. Call unconform() first to re-conform with them."
        )

    return _hypergeometric_method(gsd, rows, gsd.as_expression_indexes(), selected)


@register_scoring_method(SCORING_METHODS.HYPERGEOMETRIC)
def _hypergeometric_method(
    gsd: GeneSetDb,
    y: Any,
    indexes: Dict[str, np.ndarray],
    selected: Iterable[str],
    **kwargs: Any,
) -> pd.DataFrame:
    """Hypergeometric scoring backend; ``selected`` are row identifiers of ``y``."""

    rows = ExpressionRows.ensure(y)
    is_selected = rows.row_ids.isin(pd.Index(list(selected)).astype(str))

    n_universe = rows.n_rows
    n_drawn = int(is_selected.sum())
    if n_drawn == 0:
        logger.warning("None of the selected features are in the universe")

    keys = _expression_index_keys(gsd, indexes.keys())
    records = []
    for label, positions in indexes.items():
        if label not in keys:
            raise ValidationError(f"{label} is not a gene set of the GeneSetDb")
        positions = np.unique(np.asarray(positions, dtype=np.int64))
        collection, name = keys[label]
        records.append(
            {
                RESULT_VARS.COLLECTION: collection,
                RESULT_VARS.NAME: name,
                HYPERGEOMETRIC_VARS.N_GENESET: positions.shape[0],
                HYPERGEOMETRIC_VARS.N_HITS: int(is_selected[positions].sum()),
            }
        )

    results = pd.DataFrame(
        records,
        columns=[
            RESULT_VARS.COLLECTION,
            RESULT_VARS.NAME,
            HYPERGEOMETRIC_VARS.N_GENESET,
            HYPERGEOMETRIC_VARS.N_HITS,
        ],
    ).assign(
        **{
            HYPERGEOMETRIC_VARS.N_UNIVERSE: n_universe,
            HYPERGEOMETRIC_VARS.N_DRAWN: n_drawn,
        }
    )

    results[HYPERGEOMETRIC_VARS.EXPECTED] = (
        results[HYPERGEOMETRIC_VARS.N_GENESET] * n_drawn / max(n_universe, 1)
    )
    results[RESULT_VARS.PVAL] = hypergeometric_upper_tail(
        results[HYPERGEOMETRIC_VARS.N_HITS].to_numpy(),
        results[HYPERGEOMETRIC_VARS.N_GENESET].to_numpy(),
        n_drawn,
        n_universe,
    )
    if results.shape[0] > 0:
        results[RESULT_VARS.PADJ] = multipletests(
            results[RESULT_VARS.PVAL], method="fdr_bh"
        )[1]
    else:
        results[RESULT_VARS.PADJ] = pd.Series(dtype=float)

    return results


def _expression_index_keys(
    gsd: GeneSetDb, labels: Iterable[str]
) -> Dict[str, Tuple[str, str]]:
    """Map as_expression_indexes labels back to (collection, name)."""

    gene_sets = gsd.gene_sets(active_only=False)
    all_labels = (
        gene_sets[GENESET_TABLE.COLLECTION]
        + EXPRESSION_INDEX_SEP
        + gene_sets[GENESET_TABLE.NAME]
    )
    gene_sets = gene_sets[all_labels.isin(list(labels)).to_numpy()]

    return dict(
        zip(
            _expression_index_labels(gene_sets),
            zip(gene_sets[GENESET_TABLE.COLLECTION], gene_sets[GENESET_TABLE.NAME]),
        )
    )
