"""
Utilities for validating pandas tables.

Public Functions
----------------
check_required_columns(df, required_vars, table_name)
    Raise if a DataFrame is missing required columns.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from multigsea.errors import ValidationError


def check_required_columns(
    df: pd.DataFrame, required_vars: Iterable[str], table_name: str = "table"
) -> None:
    """
    Raise if a DataFrame is missing required columns.

    Parameters
    ----------
    df : pd.DataFrame
        The table to check
    required_vars : Iterable[str]
        Column names which must be present
    table_name : str
        Name of the table used in the error message

    Returns
    -------
    None

    Raises
    ------
    ValidationError
        If ``df`` is not a DataFrame or lacks any of ``required_vars``
    """

    if not isinstance(df, pd.DataFrame):
        raise ValidationError(
            f"{table_name} must be a pandas DataFrame, got {type(df)}"
        )

    missing_required_vars = [x for x in required_vars if x not in df.columns]
    if len(missing_required_vars) > 0:
        raise ValidationError(
            f"{len(missing_required_vars)} required variables "
            f"were missing from the {table_name}: "
            f"{', '.join(missing_required_vars)}"
        )

    return None


def is_single_string(x) -> bool:
    """True if ``x`` is a single non-empty str."""
    return isinstance(x, str) and len(x) > 0
