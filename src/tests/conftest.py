from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from multigsea.geneset_db import GeneSetDb


@pytest.fixture
def gene_set_dict():
    """Two gene sets in one collection; B is too small to survive conformation."""
    return {"c": {"A": ["g1", "g2", "g3", "g4"], "B": ["g1", "g2"]}}


@pytest.fixture
def gsd(gene_set_dict):
    return GeneSetDb(gene_set_dict)


@pytest.fixture
def expr():
    """Expression matrix whose rows match g1-g3 but not g4."""
    return pd.DataFrame(
        {"s1": [1.0, 2.0, 3.0, 4.0], "s2": [0.5, 1.5, 2.5, 3.5]},
        index=["g1", "g2", "g3", "g9"],
    )


@pytest.fixture
def multi_collection_gene_sets():
    return {
        "c": {
            "A": ["g1", "g2", "g3", "g4", "g5"],
            "B": ["g4", "g5", "g6", "g7", "g8", "g9", "g10"],
            "C": ["g1", "g2"],
            "D": ["g11", "g12", "g13", "x1"],
        },
        "h": {
            "E": ["g14", "g15", "g16", "g17"],
            "F": ["x2", "x3", "x4", "g18"],
        },
    }


@pytest.fixture
def multi_gsd(multi_collection_gene_sets):
    return GeneSetDb(multi_collection_gene_sets)


@pytest.fixture
def expr_20():
    """Expression matrix with rows g1-g20."""
    genes = [f"g{i}" for i in range(1, 21)]
    rng = np.random.default_rng(0)
    return pd.DataFrame(
        rng.normal(size=(len(genes), 3)), index=genes, columns=["s1", "s2", "s3"]
    )
