from __future__ import annotations

import math

import pytest

from multigsea.config import ConformConfig
from multigsea.errors import ValidationError


def test_conform_config_defaults():
    config = ConformConfig()

    assert config.unique_by == "none"
    assert config.min_gs_size == 3
    assert config.max_gs_size == math.inf
    assert config.match_tolerance == 0.25


def test_conform_config_build():
    config = ConformConfig.build(min_gs_size=10, max_gs_size=500, match_tolerance=0)

    assert config.min_gs_size == 10
    assert config.max_gs_size == 500
    assert config.match_tolerance == 0


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"min_gs_size": 2}, "less than 3 genes"),
        ({"unique_by": "mean"}, "must be 'none' for now"),
        ({"unique_by": "first"}, "unique_by must be one of"),
        ({"match_tolerance": 2.0}, "match_tolerance must be within"),
        ({"match_tolerance": float("nan")}, "match_tolerance must be within"),
        ({"min_gs_size": 5, "max_gs_size": 4}, "max_gs_size must be larger"),
    ],
)
def test_conform_config_invalid(kwargs, message):
    with pytest.raises(ValidationError, match=message):
        ConformConfig.build(**kwargs)


def test_conform_config_equal_bounds():
    config = ConformConfig.build(min_gs_size=5, max_gs_size=5)

    assert config.min_gs_size == config.max_gs_size
