from __future__ import annotations

import pandas as pd
import pytest

from multigsea.errors import ValidationError
from multigsea.utils.pd_utils import check_required_columns, is_single_string


def test_check_required_columns():
    df = pd.DataFrame({"collection": ["c"], "name": ["A"], "feature_id": ["g1"]})

    assert check_required_columns(df, ["collection", "name"]) is None

    with pytest.raises(ValidationError, match="were missing from the gene sets: pval"):
        check_required_columns(df, ["name", "pval"], "gene sets")

    with pytest.raises(ValidationError, match="must be a pandas DataFrame"):
        check_required_columns({"name": ["A"]}, ["name"])


@pytest.mark.parametrize(
    "x, expected",
    [("a", True), ("", False), (["a"], False), (None, False), (1, False)],
)
def test_is_single_string(x, expected):
    assert is_single_string(x) is expected
