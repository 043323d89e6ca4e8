"""
Validated argument bundles.

Classes
-------
ConformConfig
    Arguments controlling how a GeneSetDb is conformed to an expression object.
"""

from __future__ import annotations

import math

import pydantic
from pydantic import BaseModel, field_validator, model_validator

from multigsea.constants import (
    CONFORM_DEFAULTS,
    MIN_ALLOWED_GS_SIZE,
    SUPPORTED_UNIQUE_BY,
    VALID_UNIQUE_BY,
)
from multigsea.errors import ValidationError


class ConformConfig(BaseModel):
    """Pydantic model for the arguments of ``GeneSetDb.conform``.

    Parameters
    ----------
    unique_by : str
        How to collapse several rows sharing one identifier. Only "none" is
        implemented.
    min_gs_size : int
        Smallest number of matched members for a gene set to stay active.
        Must be at least 3.
    max_gs_size : float
        Largest number of matched members for a gene set to stay active.
    match_tolerance : float
        Fractions of matched crosswalk rows at or below this value trigger a
        LowConfidenceWarning.

    Examples
    --------
    >>> config = ConformConfig(min_gs_size=10, max_gs_size=500)
    >>> config = ConformConfig.build(min_gs_size=2)  # raises ValidationError
    """

    unique_by: str = CONFORM_DEFAULTS.UNIQUE_BY
    min_gs_size: int = CONFORM_DEFAULTS.MIN_GS_SIZE
    max_gs_size: float = CONFORM_DEFAULTS.MAX_GS_SIZE
    match_tolerance: float = CONFORM_DEFAULTS.MATCH_TOLERANCE

    @field_validator("unique_by")
    @classmethod
    def _validate_unique_by(cls, v: str) -> str:
        if v not in VALID_UNIQUE_BY:
            raise ValueError(f"unique_by must be one of {VALID_UNIQUE_BY}, got {v}")
        if v not in SUPPORTED_UNIQUE_BY:
            raise ValueError("`unique_by` must be 'none' for now")
        return v

    @field_validator("min_gs_size")
    @classmethod
    def _validate_min_gs_size(cls, v: int) -> int:
        if v < MIN_ALLOWED_GS_SIZE:
            raise ValueError(
                f"We won't let you do GSEA on genesets with less than {MIN_ALLOWED_GS_SIZE} genes"
            )
        return v

    @field_validator("match_tolerance")
    @classmethod
    def _validate_match_tolerance(cls, v: float) -> float:
        if math.isnan(v) or v < 0 or v > 1:
            raise ValueError(f"match_tolerance must be within [0, 1], got {v}")
        return v

    @model_validator(mode="after")
    def _validate_size_bounds(self) -> "ConformConfig":
        if self.max_gs_size < self.min_gs_size:
            raise ValueError("max_gs_size must be larger than min_gs_size")
        return self

    @classmethod
    def build(cls, **kwargs) -> "ConformConfig":
        """Create a ConformConfig, reporting invalid arguments as ValidationError."""
        try:
            return cls(**kwargs)
        except pydantic.ValidationError as e:
            raise ValidationError(str(e)) from e
