"""Module-level constants for multigsea."""

from __future__ import annotations

import math
from types import SimpleNamespace

# GeneSetDb tables

GENESET_DB = SimpleNamespace(
    COLLECTION="collection",
    NAME="name",
    FEATURE_ID="feature_id",
)

FEATURE_ID_MAP = SimpleNamespace(
    FEATURE_ID="feature_id",
    X_ID="x_id",
    X_IDX="x_idx",
)

GENESET_TABLE = SimpleNamespace(
    COLLECTION="collection",
    NAME="name",
    ACTIVE="active",
    N_TOTAL="N",
    N_MATCHED="n",
)

COLLECTION_METADATA = SimpleNamespace(
    COLLECTION="collection",
    NAME="name",
    VALUE="value",
)

GENESET_KEY_VARS = [GENESET_DB.COLLECTION, GENESET_DB.NAME]
GENESET_DB_VARS = [GENESET_DB.COLLECTION, GENESET_DB.NAME, GENESET_DB.FEATURE_ID]
FEATURE_ID_MAP_VARS = [
    FEATURE_ID_MAP.FEATURE_ID,
    FEATURE_ID_MAP.X_ID,
    FEATURE_ID_MAP.X_IDX,
]
GENESET_TABLE_VARS = [
    GENESET_TABLE.COLLECTION,
    GENESET_TABLE.NAME,
    GENESET_TABLE.ACTIVE,
    GENESET_TABLE.N_TOTAL,
    GENESET_TABLE.N_MATCHED,
]
COLLECTION_METADATA_VARS = [
    COLLECTION_METADATA.COLLECTION,
    COLLECTION_METADATA.NAME,
    COLLECTION_METADATA.VALUE,
]

# representations returned by GeneSetDb.feature_ids
FEATURE_ID_VALUES = [
    FEATURE_ID_MAP.FEATURE_ID,
    FEATURE_ID_MAP.X_ID,
    FEATURE_ID_MAP.X_IDX,
]
EXPRESSION_INDEX_VALUES = [FEATURE_ID_MAP.X_IDX, FEATURE_ID_MAP.X_ID]

DEFAULT_COLLECTION_NAME = "undefined"
EXPRESSION_INDEX_SEP = "."

# conform

UNIQUE_BY = SimpleNamespace(
    NONE="none",
    MEAN="mean",
    VAR="var",
)

VALID_UNIQUE_BY = list(UNIQUE_BY.__dict__.values())
SUPPORTED_UNIQUE_BY = [UNIQUE_BY.NONE]

CONFORM_DEFAULTS = SimpleNamespace(
    UNIQUE_BY=UNIQUE_BY.NONE,
    MIN_GS_SIZE=3,
    MAX_GS_SIZE=math.inf,
    MATCH_TOLERANCE=0.25,
)

# the smallest gene set any enrichment test will be run on
MIN_ALLOWED_GS_SIZE = 3

# collection metadata

METADATA_FIELDS = SimpleNamespace(
    URL_FUNCTION="url_function",
)

NAMED_URL_TEMPLATES = {
    "msigdb": "https://www.gsea-msigdb.org/gsea/msigdb/cards/{name}",
    "go": "http://amigo.geneontology.org/amigo/term/{name}",
    "reactome": "https://reactome.org/content/detail/{name}",
}

# results

RESULT_VARS = SimpleNamespace(
    COLLECTION="collection",
    NAME="name",
    PVAL="pval",
    PADJ="padj",
)

REQUIRED_RESULT_VARS = {RESULT_VARS.COLLECTION, RESULT_VARS.NAME, RESULT_VARS.PVAL}

HYPERGEOMETRIC_VARS = SimpleNamespace(
    N_UNIVERSE="n_universe",
    N_GENESET="n_geneset",
    N_DRAWN="n_drawn",
    N_HITS="n_hits",
    EXPECTED="expected",
)

SCORING_METHODS = SimpleNamespace(
    HYPERGEOMETRIC="hypergeometric",
)
