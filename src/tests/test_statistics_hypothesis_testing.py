from __future__ import annotations

import numpy as np
import pytest
from scipy.stats import hypergeom

from multigsea.statistics.hypothesis_testing import hypergeometric_upper_tail


def test_hypergeometric_upper_tail():
    pvals = hypergeometric_upper_tail([3, 0, 1], [5, 7, 3], 4, 20)

    expected = [hypergeom.sf(2, 20, 5, 4), 1.0, hypergeom.sf(0, 20, 3, 4)]
    assert np.allclose(pvals, expected)


def test_hypergeometric_upper_tail_all_hits():
    # every selected feature falls in the gene set
    pval = hypergeometric_upper_tail([4], [4], 4, 20)[0]

    assert pval == pytest.approx(1 / 4845)


@pytest.mark.parametrize(
    "args",
    [
        ([-1], [5], 4, 20),
        ([6], [5], 4, 20),
        ([1], [25], 4, 20),
        ([1], [5], -4, 20),
    ],
)
def test_hypergeometric_upper_tail_invalid(args):
    with pytest.raises(ValueError):
        hypergeometric_upper_tail(*args)
