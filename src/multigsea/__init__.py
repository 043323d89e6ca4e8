"""
multigsea: many gene set enrichment methods behind one calling convention.

A GeneSetDb holds collections of gene sets; conforming it to an expression
object resolves gene set members to expression rows and decides which gene
sets are large enough to test. Scoring backends then consume the resolved
row indexes of the active gene sets.
"""

from __future__ import annotations

from multigsea.collection_metadata import (
    CollectionMetadata,
    CustomUrlFunction,
    NoUrlFunction,
    UrlTemplate,
)
from multigsea.errors import (
    DeactivationWarning,
    EmptyMatchError,
    InactiveAccessError,
    LowConfidenceWarning,
    MultiGSEAError,
    UnregisteredMetadataError,
    ValidationError,
)
from multigsea.expression import ExpressionRows
from multigsea.geneset_db import GeneSetDb
from multigsea.methods import (
    hypergeometric_test,
    list_scoring_methods,
    register_scoring_method,
)
from multigsea.results import MultiGSEAResult, multi_gsea

__version__ = "0.1.0"

__all__ = [
    "CollectionMetadata",
    "CustomUrlFunction",
    "DeactivationWarning",
    "EmptyMatchError",
    "ExpressionRows",
    "GeneSetDb",
    "InactiveAccessError",
    "LowConfidenceWarning",
    "MultiGSEAError",
    "MultiGSEAResult",
    "NoUrlFunction",
    "UnregisteredMetadataError",
    "UrlTemplate",
    "ValidationError",
    "hypergeometric_test",
    "list_scoring_methods",
    "multi_gsea",
    "register_scoring_method",
]
