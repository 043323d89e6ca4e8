from __future__ import annotations

import logging
import warnings
from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from multigsea.errors import (
    DeactivationWarning,
    EmptyMatchError,
    InactiveAccessError,
    LowConfidenceWarning,
    ValidationError,
)
from multigsea.expression import ExpressionRows
from multigsea.geneset_db import GeneSetDb


def _conform_quietly(gsd, y, **kwargs):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DeactivationWarning)
        return gsd.conform(y, **kwargs)


def test_conform_activates_large_enough_gene_sets(gsd, expr):
    with pytest.warns(DeactivationWarning, match="Deactivating 1 gene sets"):
        gsdc = gsd.conform(expr)

    table = gsdc.table.set_index("name")
    assert table.loc["A", "n"] == 3
    assert bool(table.loc["A", "active"]) is True
    assert table.loc["B", "n"] == 2
    assert bool(table.loc["B", "active"]) is False

    assert gsdc.is_conformed() is True
    assert gsdc.feature_ids("c", "A") == ["g1", "g2", "g3"]
    assert gsdc.feature_ids("c", "A", value="x_idx") == [0, 1, 2]
    assert gsdc.feature_ids("c", "A", fetch_all=True) == ["g1", "g2", "g3", "g4"]

    with pytest.raises(InactiveAccessError):
        gsdc.feature_ids("c", "B")
    assert gsdc.feature_ids("c", "B", active_only=False) == ["g1", "g2"]
    # inactive gene sets still exist
    assert gsdc.has_gene_set("c", "B") is True
    assert gsdc.is_active("c", "B") is False

    # gsd itself is untouched
    assert gsd.is_conformed() is False
    assert not gsd.table["active"].any()


def test_conform_n_and_active_consistency(multi_gsd, expr_20):
    gsdc = _conform_quietly(multi_gsd, expr_20, min_gs_size=3, max_gs_size=5)
    table = gsdc.table

    assert (table["n"] <= table["N"]).all()
    assert (table["active"] == ((table["n"] >= 3) & (table["n"] <= 5))).all()
    assert table.set_index("name")["n"].to_dict() == {
        "A": 5,
        "B": 7,
        "C": 2,
        "D": 3,
        "E": 4,
        "F": 1,
    }
    assert sorted(gsdc.gene_sets()["name"]) == ["A", "D", "E"]
    assert len(gsdc) == 3


def test_conform_logs_summary(gsd, expr, caplog):
    with caplog.at_level(logging.INFO):
        _conform_quietly(gsd, expr)

    assert "Conformed GeneSetDb to 4 rows: 3 of 4 feature ids matched" in caplog.text


def test_conform_single_deactivation_warning(multi_gsd, expr_20):
    with warnings.catch_warnings(record=True) as record:
        warnings.simplefilter("always")
        multi_gsd.conform(expr_20)

    deactivation = [w for w in record if issubclass(w.category, DeactivationWarning)]
    assert len(deactivation) == 1
    assert "Deactivating 2 gene sets" in str(deactivation[0].message)


def test_conform_no_matches(gsd):
    y = pd.DataFrame({"s1": [1.0, 2.0]}, index=["x1", "x2"])

    with pytest.raises(EmptyMatchError):
        gsd.conform(y)
    assert gsd.is_conformed() is False


def test_conform_match_tolerance_boundary():
    gsd = GeneSetDb({"c": {"A": ["g1", "g2", "g3", "g4"]}})
    # one of four feature ids matches
    y = pd.DataFrame({"s1": [1.0, 2.0]}, index=["g1", "z"])

    with pytest.warns(LowConfidenceWarning, match="25.00%"):
        _conform_quietly(gsd, y, match_tolerance=0.25)

    with warnings.catch_warnings(record=True) as record:
        warnings.simplefilter("always")
        gsd.conform(y, match_tolerance=0.2)
    assert not any(issubclass(w.category, LowConfidenceWarning) for w in record)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_gs_size": 2},
        {"match_tolerance": 1.5},
        {"match_tolerance": -0.1},
        {"unique_by": "mean"},
        {"unique_by": "median"},
        {"min_gs_size": 10, "max_gs_size": 5},
    ],
)
def test_conform_invalid_arguments(gsd, expr, kwargs):
    with pytest.raises(ValidationError):
        gsd.conform(expr, **kwargs)


def test_conform_invalid_target(gsd):
    with pytest.raises(ValidationError, match="Illegal type of expression object"):
        gsd.conform(["g1", "g2", "g3"])


def test_unconform_restores_construction_state(gsd, expr):
    gsdc = _conform_quietly(gsd, expr)
    gsdu = gsdc.unconform()

    assert gsdu.is_conformed() is False
    pd.testing.assert_frame_equal(gsdu.db, gsd.db)
    pd.testing.assert_frame_equal(gsdu.feature_id_map, gsd.feature_id_map)
    pd.testing.assert_frame_equal(gsdu.table, gsd.table)

    # unconforming an unconformed GeneSetDb changes nothing
    pd.testing.assert_frame_equal(gsdu.unconform().table, gsdu.table)


def test_is_conformed_to(gsd, expr):
    gsdc = _conform_quietly(gsd, expr)

    assert gsdc.is_conformed(expr) is True
    assert gsdc.is_conformed(expr.iloc[::-1]) is False
    assert gsdc.is_conformed(expr.iloc[:2]) is False
    # rows added after the matched ones do not move them
    extended = pd.concat([expr, pd.DataFrame({"s1": [0.0], "s2": [0.0]}, index=["g5"])])
    assert gsdc.is_conformed(extended) is True

    assert gsd.is_conformed(expr) is False


def test_conform_fan_out_counts_member_once(gsd):
    mapped = gsd.with_feature_id_map(
        pd.DataFrame(
            [
                ("g1", "g1"),
                ("g1", "G1"),
                ("g2", "g2"),
                ("g3", "g3"),
                ("g4", "g4"),
            ],
            columns=["feature_id", "x_id"],
        )
    )
    y = pd.DataFrame({"s1": [1.0, 2.0, 3.0, 4.0]}, index=["g1", "G1", "g2", "g3"])
    gsdc = _conform_quietly(mapped, y)

    assert gsdc.table.set_index("name").loc["A", "n"] == 3
    assert gsdc.feature_ids("c", "A") == ["g1", "G1", "g2", "g3"]
    assert sorted(gsdc.as_expression_indexes()["c.A"].tolist()) == [0, 1, 2, 3]


def test_conform_duplicated_rows_use_first_occurrence(gsd):
    y = pd.DataFrame({"s1": [1.0, 2.0, 3.0, 4.0]}, index=["g1", "g1", "g2", "g3"])
    gsdc = _conform_quietly(gsd, y)

    assert gsdc.feature_ids("c", "A", value="x_idx") == [0, 2, 3]


def test_conform_row_ids_object(gsd):
    y = SimpleNamespace(row_ids=["g3", "g2", "g1"])
    gsdc = _conform_quietly(gsd, y)

    assert gsdc.feature_ids("c", "A", value="x_idx") == [2, 1, 0]
    assert gsdc.is_conformed(ExpressionRows(["g3", "g2", "g1"])) is True


def test_conform_anndata(gsd):
    anndata = pytest.importorskip("anndata")

    adata = anndata.AnnData(
        X=np.zeros((2, 4)),
        var=pd.DataFrame(index=["g1", "g2", "g3", "g9"]),
    )
    gsdc = _conform_quietly(gsd, adata)

    assert gsdc.feature_ids("c", "A", value="x_idx") == [0, 1, 2]
    assert gsdc.is_conformed(adata) is True


def test_as_expression_indexes(gsd, expr):
    gsdc = _conform_quietly(gsd, expr)

    indexes = gsdc.as_expression_indexes()
    assert list(indexes.keys()) == ["c.A"]
    assert indexes["c.A"].tolist() == [0, 1, 2]
    assert indexes["c.A"].dtype == np.int64

    all_indexes = gsdc.as_expression_indexes(active_only=False)
    assert sorted(all_indexes["c.B"].tolist()) == [0, 1]

    ids = gsdc.as_expression_indexes(value="x_id")
    assert ids["c.A"].tolist() == ["g1", "g2", "g3"]

    with pytest.raises(ValidationError):
        gsdc.as_expression_indexes(value="feature_id")
    with pytest.raises(ValidationError, match="not been conformed"):
        gsd.as_expression_indexes()


def test_reconform_to_another_target(gsd, expr):
    gsdc = _conform_quietly(gsd, expr)
    y = pd.DataFrame({"s1": np.arange(5.0)}, index=["g4", "g3", "g2", "g1", "g0"])
    gsdc2 = _conform_quietly(gsdc, y)

    assert gsdc2.table.set_index("name")["n"].to_dict() == {"A": 4, "B": 2}
    assert gsdc2.feature_ids("c", "A", value="x_idx") == [3, 2, 1, 0]
    assert gsdc.feature_ids("c", "A", value="x_idx") == [0, 1, 2]


def test_as_expression_indexes_label_clash():
    # ("a", "b.c") and ("a.b", "c") both label as "a.b.c"
    gsd = GeneSetDb(
        {"a": {"b.c": ["g1", "g2", "g3"]}, "a.b": {"c": ["g4", "g5", "g6"]}}
    )
    y = pd.DataFrame({"s1": np.arange(6.0)}, index=[f"g{i}" for i in range(1, 7)])
    gsdc = gsd.conform(y)

    assert len(gsdc.gene_sets()) == 2
    with pytest.raises(ValidationError, match=r"\(a, b\.c\).*\(a\.b, c\)"):
        gsdc.as_expression_indexes()
