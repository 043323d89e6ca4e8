"""
Running several scoring backends over one GeneSetDb and collecting their results.

Classes
-------
MultiGSEAResult
    Per-method result tables keyed by (collection, name).

Public Functions
----------------
multi_gsea(gsd, y, methods, ...)
    Conform a GeneSetDb to an expression object and run scoring backends.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

from multigsea.constants import (
    CONFORM_DEFAULTS,
    GENESET_KEY_VARS,
    REQUIRED_RESULT_VARS,
    RESULT_VARS,
)
from multigsea.errors import ValidationError
from multigsea.geneset_db import GeneSetDb
from multigsea.methods import get_scoring_method
from multigsea.utils.io_utils import load_pickle, save_pickle
from multigsea.utils.pd_utils import check_required_columns

logger = logging.getLogger(__name__)


class MultiGSEAResult:
    """
    Per-method result tables keyed by (collection, name).

    Parameters
    ----------
    gsd : GeneSetDb
        The conformed GeneSetDb the results were computed from
    results : Dict[str, pd.DataFrame]
        Method name -> result table with collection, name and pval columns

    Attributes
    ----------
    gsd : GeneSetDb
    methods : list[str]

    Public Methods
    --------------
    load(path)
        Load a saved MultiGSEAResult.
    results(method)
        One method's results alongside the gene set table.
    save(path)
        Save to a single pickle file.
    tabulate(max_padj)
        Number of significant gene sets per method.
    """

    def __init__(self, gsd: GeneSetDb, results: Dict[str, pd.DataFrame]):
        if not isinstance(gsd, GeneSetDb):
            raise ValidationError(f"gsd must be a GeneSetDb, got {type(gsd)}")
        for method, result in results.items():
            _validate_method_result(method, result, gsd)

        self.gsd = gsd
        self._results = {method: result.copy() for method, result in results.items()}

    @property
    def methods(self) -> List[str]:
        return list(self._results.keys())

    def results(self, method: Optional[str] = None) -> pd.DataFrame:
        """
        One method's results alongside the gene set table.

        Parameters
        ----------
        method : str, optional
            The method. May be omitted when only one method was run.

        Returns
        -------
        pd.DataFrame
            collection, name, active, N and n followed by the method's columns
        """

        if method is None:
            if len(self._results) != 1:
                raise ValidationError(
                    f"method must be specified when several methods were run: {self.methods}"
                )
            method = self.methods[0]
        if method not in self._results:
            raise ValidationError(
                f"No results for method {method}. Available methods: {self.methods}"
            )

        return self.gsd.gene_sets(active_only=False).merge(
            self._results[method], on=GENESET_KEY_VARS, how="inner"
        )

    def tabulate(self, max_padj: float = 0.2) -> pd.DataFrame:
        """
        Number of significant gene sets per method.

        Significance uses padj when a method reports it and pval otherwise.
        """

        rows = []
        for method, result in self._results.items():
            stat = RESULT_VARS.PADJ if RESULT_VARS.PADJ in result.columns else RESULT_VARS.PVAL
            rows.append(
                {
                    "method": method,
                    "n_genesets": result.shape[0],
                    "n_significant": int((result[stat] <= max_padj).sum()),
                }
            )
        return pd.DataFrame(rows, columns=["method", "n_genesets", "n_significant"])

    def save(self, path: str) -> None:
        """Save to a single pickle file (local path or fsspec URI)."""

        save_pickle(path, self)
        logger.info(f"Saved MultiGSEAResult with methods {self.methods} to {path}")

    @classmethod
    def load(cls, path: str) -> "MultiGSEAResult":
        result = load_pickle(path)
        if not isinstance(result, cls):
            raise ValidationError(f"{path} does not contain a {cls.__name__}")
        return result

    def __repr__(self) -> str:
        return f"MultiGSEAResult(methods={self.methods}, gene sets={len(self.gsd)})"


def multi_gsea(
    gsd: GeneSetDb,
    y: Any,
    methods: Union[str, List[str]],
    min_gs_size: int = CONFORM_DEFAULTS.MIN_GS_SIZE,
    max_gs_size: float = CONFORM_DEFAULTS.MAX_GS_SIZE,
    match_tolerance: float = CONFORM_DEFAULTS.MATCH_TOLERANCE,
    max_workers: int = 1,
    **method_kwargs: Any,
) -> MultiGSEAResult:
    """
    Conform a GeneSetDb to an expression object and run scoring backends.

    Parameters
    ----------
    gsd : GeneSetDb
        Gene sets to test. Conformed to ``y`` unless ``gsd.is_conformed(y)``.
    y : Any
        The expression object
    methods : str or list of str
        Registered scoring backends to run (see ``list_scoring_methods``)
    min_gs_size, max_gs_size, match_tolerance
        Passed to ``GeneSetDb.conform``. When ``gsd`` is already conformed to
        ``y`` it is used as is and non-default values are ignored with a
        warning.
    max_workers : int
        Run methods concurrently in a thread pool of this size
    **method_kwargs
        Passed to every scoring backend

    Returns
    -------
    MultiGSEAResult

    Examples
    --------
    >>> mg = multi_gsea(gsd, expr, "hypergeometric", selected=["g1", "g2", "g3"])
    >>> mg.results("hypergeometric")
    """

    if isinstance(methods, str):
        methods = [methods]
    methods = list(dict.fromkeys(methods))
    if len(methods) == 0:
        raise ValidationError("At least one method is required")
    if not isinstance(max_workers, int) or max_workers < 1:
        raise ValidationError(f"max_workers must be a positive integer, got {max_workers}")

    backends = {method: get_scoring_method(method) for method in methods}

    if not gsd.is_conformed(y):
        gsd = gsd.conform(
            y,
            min_gs_size=min_gs_size,
            max_gs_size=max_gs_size,
            match_tolerance=match_tolerance,
        )
    else:
        ignored = {
            arg: value
            for arg, value, default in [
                ("min_gs_size", min_gs_size, CONFORM_DEFAULTS.MIN_GS_SIZE),
                ("max_gs_size", max_gs_size, CONFORM_DEFAULTS.MAX_GS_SIZE),
                ("match_tolerance", match_tolerance, CONFORM_DEFAULTS.MATCH_TOLERANCE),
            ]
            if value != default
        }
        if len(ignored) > 0:
            logger.warning(
                f"gsd is already conformed to y; ignoring {ignored}. "
                "Call unconform() first to re-conform with them."
            )

    indexes = gsd.as_expression_indexes()

    def _run(method: str) -> pd.DataFrame:
        logger.info(f"Running {method} over {len(indexes)} gene sets")
        # each backend gets its own copy of the indexes
        method_indexes = {label: idx.copy() for label, idx in indexes.items()}
        result = backends[method](gsd, y, method_indexes, **method_kwargs)
        _validate_method_result(method, result, gsd)
        return result

    if max_workers > 1 and len(methods) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = dict(zip(methods, executor.map(_run, methods)))
    else:
        results = {method: _run(method) for method in methods}

    return MultiGSEAResult(gsd, results)


def _validate_method_result(method: str, result: pd.DataFrame, gsd: GeneSetDb) -> None:
    """Check a backend's output against the result contract."""

    check_required_columns(result, REQUIRED_RESULT_VARS, f"{method} results")

    if result.duplicated(subset=GENESET_KEY_VARS).any():
        raise ValidationError(f"{method} returned several rows for one gene set")

    active = gsd.gene_sets(active_only=True)
    active_keys = set(zip(*[active[v] for v in GENESET_KEY_VARS]))
    unknown = [
        key
        for key in zip(*[result[v] for v in GENESET_KEY_VARS])
        if key not in active_keys
    ]
    if len(unknown) > 0:
        raise ValidationError(
            f"{method} returned {len(unknown)} gene sets which are not active, "
            f"including {unknown[0]}"
        )

    pvals = result[RESULT_VARS.PVAL].to_numpy(dtype=float)
    if np.any((pvals < 0) | (pvals > 1)):
        raise ValidationError(f"{method} returned p-values outside of [0, 1]")
