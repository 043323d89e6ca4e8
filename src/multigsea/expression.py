"""
Row identifiers of expression objects.

A GeneSetDb only needs one thing from the matrix it is conformed to: the
ordered identifiers of its rows. ``ExpressionRows`` is that narrow interface
and ``ExpressionRows.ensure`` adapts the supported container types to it.

Classes
-------
ExpressionRows
    Ordered row identifiers of an expression object.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Iterable

import numpy as np
import pandas as pd

from multigsea.errors import ValidationError

logger = logging.getLogger(__name__)


class ExpressionRows:
    """
    Ordered row identifiers of an expression object.

    Parameters
    ----------
    row_ids : Iterable[str]
        The row identifiers, in row order.

    Attributes
    ----------
    row_ids : pd.Index
        The row identifiers as strings.

    Public Methods
    --------------
    ensure(y)
        Adapt a supported expression object to ExpressionRows.
    match(ids)
        0-based positions of ``ids`` among the rows (first occurrence).
    """

    def __init__(self, row_ids: Iterable[str]):
        self.row_ids = pd.Index(row_ids).astype(str)

    @property
    def n_rows(self) -> int:
        return len(self.row_ids)

    @classmethod
    def ensure(cls, y: Any) -> "ExpressionRows":
        """
        Adapt a supported expression object to ExpressionRows.

        Supported objects are pandas DataFrames and Series (rows are the
        index), AnnData objects (rows are the features, i.e. ``var_names``),
        and any object exposing a ``row_ids`` attribute.

        Parameters
        ----------
        y : Any
            The expression object

        Returns
        -------
        ExpressionRows

        Raises
        ------
        ValidationError
            If ``y`` is not a recognized expression object
        """

        if isinstance(y, cls):
            return y
        if isinstance(y, (pd.DataFrame, pd.Series)):
            return cls(y.index)
        if _is_anndata(y):
            return cls(y.var_names)
        if hasattr(y, "row_ids"):
            return cls(y.row_ids)

        raise ValidationError(
            f"Illegal type of expression object to conform to: {type(y)}"
        )

    def match(self, ids: Iterable[str]) -> pd.Series:
        """
        0-based positions of ``ids`` among the rows.

        Parameters
        ----------
        ids : Iterable[str]
            Identifiers to look up

        Returns
        -------
        pd.Series
            Nullable integer positions aligned to ``ids``; identifiers absent
            from the rows are ``pd.NA``. Duplicated row identifiers resolve to
            their first occurrence.
        """

        first_position = pd.Series(np.arange(self.n_rows), index=self.row_ids)
        first_position = first_position[~first_position.index.duplicated()]

        ids = pd.Series(list(ids), dtype=object).astype(str)
        return ids.map(first_position).astype("Int64")

    def __repr__(self) -> str:
        return f"ExpressionRows({self.n_rows} rows)"


def _is_anndata(y: Any) -> bool:
    # an AnnData instance implies anndata is already imported
    anndata = sys.modules.get("anndata")
    return anndata is not None and isinstance(y, anndata.AnnData)
