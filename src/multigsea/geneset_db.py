"""
A database of gene sets which can be conformed to an expression object.

A GeneSetDb holds three linked tables:

- ``db``: one row per (collection, name, feature_id) gene set member
- ``feature_id_map``: the crosswalk from gene set feature ids to the row
  identifiers (``x_id``) and 0-based row positions (``x_idx``) of the
  expression object it was last conformed to
- ``table``: one row per (collection, name) gene set with its size (``N``),
  its number of matched members (``n``) and whether it is ``active``

plus per-collection metadata. Every operation which changes any of these
returns a new GeneSetDb; ``feature_id_map`` and ``table`` are always replaced
together.

Classes
-------
GeneSetDb
    Collections of gene sets and their crosswalk to an expression object.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import pydantic
from pydantic import BaseModel, Field

from multigsea.collection_metadata import CollectionMetadata, UrlFunction
from multigsea.config import ConformConfig
from multigsea.constants import (
    CONFORM_DEFAULTS,
    DEFAULT_COLLECTION_NAME,
    EXPRESSION_INDEX_SEP,
    EXPRESSION_INDEX_VALUES,
    FEATURE_ID_MAP,
    FEATURE_ID_VALUES,
    GENESET_DB,
    GENESET_DB_VARS,
    GENESET_KEY_VARS,
    GENESET_TABLE,
    GENESET_TABLE_VARS,
    METADATA_FIELDS,
)
from multigsea.errors import (
    DeactivationWarning,
    EmptyMatchError,
    InactiveAccessError,
    LowConfidenceWarning,
    UnregisteredMetadataError,
    ValidationError,
)
from multigsea.expression import ExpressionRows
from multigsea.utils.pd_utils import check_required_columns, is_single_string

logger = logging.getLogger(__name__)

# {collection: {name: ids}}, {name: ids} or a long collection/name/feature_id table
GeneSetsInput = Union[Mapping, pd.DataFrame]


class GeneSetDb:
    """
    Collections of gene sets and their crosswalk to an expression object.

    Parameters
    ----------
    gene_sets : Mapping or pd.DataFrame
        Either
        - a nested mapping of {collection: {name: [feature ids]}}
        - a flat mapping of {name: [feature ids]}, placed in ``collection_name``
        - a DataFrame with collection, name and feature_id columns. The
          collection column may be omitted in which case ``collection_name``
          is used.
    collection_name : str
        Collection of gene sets provided without one.
    collection_metadata : pd.DataFrame or CollectionMetadata, optional
        Metadata with collection, name and value columns. A url_function
        entry is added for each collection lacking one.

    Properties
    ----------
    db : pd.DataFrame
        Gene set members.
    feature_id_map : pd.DataFrame
        Crosswalk of feature ids to expression object rows.
    table : pd.DataFrame
        All gene sets with their sizes and activation status.
    collections : list[str]
        Collections of gene sets.

    Public Methods
    --------------
    append(values)
        Merge another GeneSetDb into a new unconformed GeneSetDb.
    as_expression_indexes(value, active_only)
        Row positions (or identifiers) of the members of each gene set.
    collection_metadata(collection, name)
        Collection metadata at three levels of granularity.
    conform(y, unique_by, min_gs_size, max_gs_size, match_tolerance)
        Map feature ids to the rows of an expression object and activate gene sets.
    feature_ids(collection, name, value, fetch_all, active_only)
        Members of one gene set.
    gene_set(collection, name, active_only, fetch_all)
        Member-level table of one gene set.
    gene_set_url(collection, name)
        URL of one gene set.
    gene_sets(active_only)
        The gene set table.
    has_gene_set(collection, name, as_error)
        Whether a gene set exists.
    has_gene_set_collection(collections, as_error)
        Whether collections exist.
    is_active(collection, name)
        Activation status of one gene set.
    is_conformed(to)
        Whether the GeneSetDb is conformed (to a given expression object).
    set_collection_metadata(collection, name, value)
        Add or replace one metadata entry.
    set_gene_set_collection_url_function(collection, fn)
        Register a URL generator for a collection.
    unconform()
        Drop all conformation information.
    with_feature_id_map(value)
        Replace the crosswalk.

    Examples
    --------
    >>> gsd = GeneSetDb({"c": {"A": ["g1", "g2", "g3", "g4"], "B": ["g1", "g2"]}})
    >>> expr = pd.DataFrame({"s1": [1.0, 2.0, 3.0, 4.0]}, index=["g1", "g2", "g3", "g9"])
    >>> gsdc = gsd.conform(expr)
    >>> gsdc.feature_ids("c", "A")
    ['g1', 'g2', 'g3']
    >>> gsdc.as_expression_indexes()
    {'c.A': array([0, 1, 2])}
    """

    def __init__(
        self,
        gene_sets: GeneSetsInput,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        collection_metadata: Union[pd.DataFrame, CollectionMetadata, None] = None,
    ) -> None:

        db = _gene_sets_to_db(gene_sets, collection_name)
        collections = db[GENESET_DB.COLLECTION].unique().tolist()

        metadata = CollectionMetadata.ensure(collection_metadata)
        unknown_collections = set(metadata.collections).difference(collections)
        if len(unknown_collections) > 0:
            raise ValidationError(
                "collection_metadata is defined for collections without gene sets: "
                f"{', '.join(sorted(unknown_collections))}"
            )

        self._set_tables(
            db=db,
            feature_id_map=_identity_feature_id_map(db),
            table=_init_table_from_db(db),
            collection_metadata=metadata.with_url_defaults(collections),
        )

        logger.debug(
            f"Created GeneSetDb with {self._table.shape[0]} gene sets "
            f"across {len(collections)} collections"
        )

    @classmethod
    def _from_tables(
        cls,
        db: pd.DataFrame,
        feature_id_map: pd.DataFrame,
        table: pd.DataFrame,
        collection_metadata: CollectionMetadata,
    ) -> "GeneSetDb":
        """Assemble a GeneSetDb from already validated tables."""

        gsd = cls.__new__(cls)
        gsd._set_tables(db, feature_id_map, table, collection_metadata)
        return gsd

    def _set_tables(
        self,
        db: pd.DataFrame,
        feature_id_map: pd.DataFrame,
        table: pd.DataFrame,
        collection_metadata: CollectionMetadata,
    ) -> None:

        self._db = db
        self._feature_id_map = feature_id_map
        self._table = table
        self._collection_metadata = collection_metadata

        # hash indexes over the tables; rebuilt whenever a table is replaced
        self._table_index: Dict[Tuple[str, str], int] = {
            key: i
            for i, key in enumerate(
                zip(table[GENESET_TABLE.COLLECTION], table[GENESET_TABLE.NAME])
            )
        }
        self._db_index: Dict[Tuple[str, str], np.ndarray] = db.groupby(
            GENESET_KEY_VARS, sort=False
        ).indices
        self._feature_id_map_index: Dict[str, np.ndarray] = feature_id_map.groupby(
            FEATURE_ID_MAP.FEATURE_ID, sort=False
        ).indices
        self._conformed = bool(feature_id_map[FEATURE_ID_MAP.X_IDX].notna().any())

    # tables

    @property
    def db(self) -> pd.DataFrame:
        return self._db.copy()

    @property
    def feature_id_map(self) -> pd.DataFrame:
        return self._feature_id_map.copy()

    @property
    def table(self) -> pd.DataFrame:
        return self._table.copy()

    @property
    def collections(self) -> List[str]:
        return self._table[GENESET_TABLE.COLLECTION].unique().tolist()

    # conformation

    def conform(
        self,
        y: Any,
        unique_by: str = CONFORM_DEFAULTS.UNIQUE_BY,
        min_gs_size: int = CONFORM_DEFAULTS.MIN_GS_SIZE,
        max_gs_size: float = CONFORM_DEFAULTS.MAX_GS_SIZE,
        match_tolerance: float = CONFORM_DEFAULTS.MATCH_TOLERANCE,
    ) -> "GeneSetDb":
        """
        Map feature ids to the rows of an expression object and activate gene sets.

        Parameters
        ----------
        y : Any
            The expression object to conform to: a DataFrame or Series
            (rows are the index), an AnnData (rows are the var_names) or any
            object with a ``row_ids`` attribute.
        unique_by : str
            How to pick a single row when several rows share an identifier.
            Only "none" is supported.
        min_gs_size : int
            Gene sets with fewer matched members are deactivated. Must be >= 3.
        max_gs_size : float
            Gene sets with more matched members are deactivated.
        match_tolerance : float
            Warn if the fraction of crosswalk rows matching ``y`` is at or
            below this value.

        Returns
        -------
        GeneSetDb
            A new GeneSetDb conformed to ``y``. This GeneSetDb is unchanged.

        Raises
        ------
        ValidationError
            If any argument is invalid or ``y`` is not a supported expression object
        EmptyMatchError
            If no feature ids match the rows of ``y``

        Warns
        -----
        LowConfidenceWarning
            If the fraction of matched crosswalk rows is at or below ``match_tolerance``
        DeactivationWarning
            If any gene set is inactive after conformation
        """

        config = ConformConfig.build(
            unique_by=unique_by,
            min_gs_size=min_gs_size,
            max_gs_size=max_gs_size,
            match_tolerance=match_tolerance,
        )
        rows = ExpressionRows.ensure(y)

        feature_id_map = self._feature_id_map.copy()
        feature_id_map[FEATURE_ID_MAP.X_IDX] = rows.match(
            feature_id_map[FEATURE_ID_MAP.X_ID]
        ).array

        n_matched = int(feature_id_map[FEATURE_ID_MAP.X_IDX].notna().sum())
        n_crosswalk = feature_id_map.shape[0]
        fraction_match = n_matched / n_crosswalk if n_crosswalk > 0 else 0.0

        if fraction_match == 0:
            raise EmptyMatchError(
                "None of the rownames of the expression object match the "
                "feature ids for the gene sets"
            )
        if fraction_match <= config.match_tolerance:
            warnings.warn(
                "Fraction of gene set IDs that match rownames in the expression "
                f"object are low: {fraction_match * 100:.2f}%",
                LowConfidenceWarning,
                stacklevel=2,
            )

        table = _conformed_table(
            self._db, feature_id_map, config.min_gs_size, config.max_gs_size
        )

        n_inactive = int((~table[GENESET_TABLE.ACTIVE]).sum())
        if n_inactive > 0:
            warnings.warn(
                f"Deactivating {n_inactive} gene sets because conformation of "
                "GeneSetDb to the target creates gene sets smaller than "
                f"{config.min_gs_size} or greater than {config.max_gs_size}",
                DeactivationWarning,
                stacklevel=2,
            )

        logger.info(
            f"Conformed GeneSetDb to {rows.n_rows} rows: {n_matched} of "
            f"{n_crosswalk} feature ids matched; "
            f"{table.shape[0] - n_inactive} of {table.shape[0]} gene sets active"
        )

        return GeneSetDb._from_tables(
            self._db, feature_id_map, table, self._collection_metadata
        )

    def unconform(self) -> "GeneSetDb":
        """Return a copy with no resolved rows and every gene set inactive."""

        feature_id_map = _unresolved_feature_id_map(
            self._feature_id_map[[FEATURE_ID_MAP.FEATURE_ID, FEATURE_ID_MAP.X_ID]]
        )
        table = self._table.assign(
            **{GENESET_TABLE.ACTIVE: False, GENESET_TABLE.N_MATCHED: 0}
        )

        return GeneSetDb._from_tables(
            self._db, feature_id_map, table, self._collection_metadata
        )

    def is_conformed(self, to: Any = None) -> bool:
        """
        Whether the GeneSetDb is conformed.

        Parameters
        ----------
        to : Any, optional
            An expression object. If provided, check that every resolved
            crosswalk row still points at a row of ``to`` with the same
            identifier.

        Returns
        -------
        bool
        """

        if to is None:
            return self._conformed
        if not self._conformed:
            return False

        rows = ExpressionRows.ensure(to)
        resolved = self._feature_id_map[self._feature_id_map[FEATURE_ID_MAP.X_IDX].notna()]
        positions = resolved[FEATURE_ID_MAP.X_IDX].to_numpy(dtype=np.int64)
        if (positions >= rows.n_rows).any():
            return False

        return bool(
            (
                rows.row_ids.to_numpy()[positions]
                == resolved[FEATURE_ID_MAP.X_ID].to_numpy()
            ).all()
        )

    def is_active(self, collection: str, name: str) -> bool:
        """Activation status of one gene set."""

        idx = self._gsd_row_index(collection, name)
        if idx is None:
            raise ValidationError(f"Unknown geneset: ({collection}, {name})")
        return bool(self._table[GENESET_TABLE.ACTIVE].iat[idx])

    # queries

    def gene_sets(self, active_only: Optional[bool] = None) -> pd.DataFrame:
        """
        The gene set table.

        Parameters
        ----------
        active_only : bool, optional
            Only return active gene sets. Defaults to ``self.is_conformed()``.

        Returns
        -------
        pd.DataFrame
            collection, name, active, N and n per gene set
        """

        if active_only is None:
            active_only = self.is_conformed()

        table = self._table
        if active_only:
            table = table[table[GENESET_TABLE.ACTIVE]]
        return table.reset_index(drop=True)

    def feature_ids(
        self,
        collection: str,
        name: str,
        value: Optional[str] = None,
        fetch_all: bool = False,
        active_only: Optional[bool] = None,
    ) -> list:
        """
        Members of one gene set.

        Parameters
        ----------
        collection : str
            Collection of the gene set
        name : str
            Name of the gene set
        value : str, optional
            Representation of the members:
            - feature_id: the ids used in the gene set definitions
            - x_id: the ids of the matched rows of the expression object
            - x_idx: the 0-based positions of the matched rows
            Defaults to x_id when conformed and feature_id otherwise.
        fetch_all : bool
            When conformed, only members matching the expression object are
            returned unless this is True.
        active_only : bool, optional
            Refuse to return members of an inactive gene set. Defaults to
            ``self.is_conformed()``.

        Returns
        -------
        list
            Member identifiers (or positions). A member mapping to several
            expression rows contributes one entry per row.

        Raises
        ------
        ValidationError
            If the gene set does not exist or ``value`` is invalid
        InactiveAccessError
            If ``active_only`` and the gene set is inactive
        """

        if value is None:
            value = FEATURE_ID_MAP.X_ID if self.is_conformed() else FEATURE_ID_MAP.FEATURE_ID
        if value not in FEATURE_ID_VALUES:
            raise ValidationError(
                f"value must be one of {FEATURE_ID_VALUES}, got {value}"
            )

        members = self._select_members(collection, name, active_only, fetch_all)
        return members[value].tolist()

    def gene_set(
        self,
        collection: str,
        name: str,
        active_only: Optional[bool] = None,
        fetch_all: bool = False,
    ) -> pd.DataFrame:
        """
        Member-level table of one gene set.

        Returns
        -------
        pd.DataFrame
            One row per member with the gene set's collection, name, active,
            N and n alongside the member's feature_id, x_id and x_idx
        """

        members = self._select_members(collection, name, active_only, fetch_all)
        idx = self._table_index[(collection, name)]
        info = self._table.iloc[[idx] * members.shape[0]]

        return pd.concat(
            [info.reset_index(drop=True), members.reset_index(drop=True)], axis=1
        )

    def as_expression_indexes(
        self, value: str = FEATURE_ID_MAP.X_IDX, active_only: bool = True
    ) -> Dict[str, np.ndarray]:
        """
        Row positions (or identifiers) of the members of each gene set.

        Parameters
        ----------
        value : str
            x_idx for 0-based row positions, x_id for row identifiers
        active_only : bool
            Only include active gene sets

        Returns
        -------
        Dict[str, np.ndarray]
            "collection.name" -> matched members of the gene set

        Raises
        ------
        ValidationError
            If the GeneSetDb is not conformed or ``value`` is invalid
        """

        if value not in EXPRESSION_INDEX_VALUES:
            raise ValidationError(
                f"value must be one of {EXPRESSION_INDEX_VALUES}, got {value}"
            )
        if not self.is_conformed():
            raise ValidationError(
                "GeneSetDb has not been conformed to an expression object"
            )

        resolved = self._feature_id_map[
            self._feature_id_map[FEATURE_ID_MAP.X_IDX].notna()
        ]
        members = self._db.merge(resolved, on=GENESET_DB.FEATURE_ID, how="inner")
        if value == FEATURE_ID_MAP.X_IDX:
            member_values = members[value].to_numpy(dtype=np.int64)
        else:
            member_values = members[value].to_numpy(dtype=object)
        member_positions = members.groupby(GENESET_KEY_VARS, sort=False).indices

        dtype = np.int64 if value == FEATURE_ID_MAP.X_IDX else object
        gene_sets = self.gene_sets(active_only=active_only)
        labels = _expression_index_labels(gene_sets)
        return {
            label: member_values[
                member_positions.get((collection, name), np.array([], dtype=np.int64))
            ].astype(dtype)
            for label, collection, name in zip(
                labels,
                gene_sets[GENESET_TABLE.COLLECTION],
                gene_sets[GENESET_TABLE.NAME],
            )
        }

    def has_gene_set_collection(
        self, collections: Union[str, Iterable[str]], as_error: bool = False
    ) -> np.ndarray:
        """
        Whether collections exist.

        Parameters
        ----------
        collections : str or Iterable[str]
            Collection(s) to look up
        as_error : bool
            Raise if any collection is missing

        Returns
        -------
        np.ndarray
            One bool per queried collection

        Raises
        ------
        UnregisteredMetadataError
            If ``as_error`` and any collection is missing; all missing
            collections are listed
        """

        if isinstance(collections, str):
            collections = [collections]
        collections = list(collections)
        if not all(isinstance(c, str) for c in collections):
            raise ValidationError("collections must be strings")

        known = set(self._collection_metadata.collections)
        exists = np.array([c in known for c in collections], dtype=bool)
        if as_error and not exists.all():
            bad = "\n".join(
                f"    * {c}" for c, ok in zip(collections, exists) if not ok
            )
            raise UnregisteredMetadataError(
                f"The following collections do not exist:\n{bad}"
            )

        return exists

    def has_gene_set(self, collection: str, name: str, as_error: bool = False) -> bool:
        """
        Whether a gene set exists, irrespective of its activation status.

        Raises
        ------
        ValidationError
            If ``as_error`` and the gene set does not exist. The message says
            whether the collection itself is missing.
        """

        exists = self._gsd_row_index(collection, name) is not None
        if not exists and as_error:
            if not self.has_gene_set_collection(collection)[0]:
                raise ValidationError(
                    f"geneset ('{collection}', '{name}') does not exist: "
                    f"collection '{collection}' is not defined"
                )
            raise ValidationError(f"geneset ('{collection}', '{name}') does not exist")

        return exists

    # collection metadata

    def collection_metadata(
        self, collection: Optional[str] = None, name: Optional[str] = None
    ) -> Any:
        """
        Collection metadata.

        Parameters
        ----------
        collection : str, optional
            Return only this collection's metadata
        name : str, optional
            Return only this entry's value; requires ``collection``

        Returns
        -------
        pd.DataFrame or Any
            The whole metadata table, one collection's rows, or one value

        Raises
        ------
        UnregisteredMetadataError
            If the collection or entry is not defined
        """

        if collection is None:
            if name is not None:
                raise ValidationError("name requires a collection")
            return self._collection_metadata.to_frame()

        if not is_single_string(collection):
            raise ValidationError("collection must be a single string")
        self.has_gene_set_collection(collection, as_error=True)
        if name is None:
            return self._collection_metadata.for_collection(collection)

        if not is_single_string(name):
            raise ValidationError("name must be a single string")
        return self._collection_metadata.get(collection, name)

    def set_collection_metadata(
        self, collection: str, name: str, value: Any
    ) -> "GeneSetDb":
        """
        Add or replace one metadata entry.

        url_function entries are validated as URL generators (see
        ``set_gene_set_collection_url_function``).

        Returns
        -------
        GeneSetDb
            A new GeneSetDb with the updated metadata.
        """

        if not (is_single_string(collection) and is_single_string(name)):
            raise ValidationError("collection and name must both be single strings")
        self.has_gene_set_collection(collection, as_error=True)

        return GeneSetDb._from_tables(
            self._db,
            self._feature_id_map,
            self._table,
            self._collection_metadata.upsert(collection, name, value),
        )

    def gene_set_collection_url_function(self, collection: str) -> UrlFunction:
        """
        The URL generator registered for a collection.

        Raises
        ------
        UnregisteredMetadataError
            If no URL generator is registered for the collection
        """

        url_function = self.collection_metadata(collection, METADATA_FIELDS.URL_FUNCTION)
        if not url_function.is_registered:
            raise UnregisteredMetadataError(
                f"No url_function for collection '{collection}' found"
            )
        return url_function

    def set_gene_set_collection_url_function(
        self, collection: str, fn: Union[str, Callable, UrlFunction, None]
    ) -> "GeneSetDb":
        """
        Register a URL generator for a collection.

        Parameters
        ----------
        collection : str
            The collection
        fn : str, Callable, UrlFunction or None
            A callable taking (collection, name), a str.format template with
            {collection}/{name} fields, a named template (e.g. "msigdb") or
            None to unregister.

        Returns
        -------
        GeneSetDb
            A new GeneSetDb with the URL generator registered.
        """

        return self.set_collection_metadata(collection, METADATA_FIELDS.URL_FUNCTION, fn)

    def gene_set_url(self, collection: str, name: str) -> str:
        """URL of one gene set from its collection's URL generator."""

        self.has_gene_set(collection, name, as_error=True)
        url_function = self.gene_set_collection_url_function(collection)
        return url_function(collection, name)

    # combining and replacing

    def append(self, values: Union["GeneSetDb", GeneSetsInput]) -> "GeneSetDb":
        """
        Merge another GeneSetDb into a new unconformed GeneSetDb.

        Gene set members and crosswalk rows are unioned (a feature id keeps
        every distinct x_id it maps to in either input), collection metadata
        keeps the first definition of each entry, and all conformation
        information is dropped.

        Parameters
        ----------
        values : GeneSetDb or gene sets
            A GeneSetDb or anything accepted by the GeneSetDb constructor

        Returns
        -------
        GeneSetDb
        """

        if not isinstance(values, GeneSetDb):
            values = GeneSetDb(values)

        db = _sort_db(pd.concat([self._db, values._db], ignore_index=True))

        feature_id_map = _unresolved_feature_id_map(
            pd.concat(
                [
                    self._feature_id_map[[FEATURE_ID_MAP.FEATURE_ID, FEATURE_ID_MAP.X_ID]],
                    values._feature_id_map[[FEATURE_ID_MAP.FEATURE_ID, FEATURE_ID_MAP.X_ID]],
                ],
                ignore_index=True,
            )
        )

        return GeneSetDb._from_tables(
            db,
            feature_id_map,
            _init_table_from_db(db),
            self._collection_metadata.union(values._collection_metadata),
        )

    def with_feature_id_map(self, value: pd.DataFrame) -> "GeneSetDb":
        """
        Replace the crosswalk.

        Parameters
        ----------
        value : pd.DataFrame
            Two columns: gene set feature ids and the identifiers they take
            in expression objects. Every feature id in ``db`` must appear in
            the first column; one feature id may map to several identifiers.

        Returns
        -------
        GeneSetDb
            A new, unconformed GeneSetDb using the crosswalk.
        """

        if not isinstance(value, pd.DataFrame):
            raise ValidationError("DataFrame required for feature_id_map")
        if value.shape[1] != 2:
            raise ValidationError("feature_id_map must be a 2 column DataFrame")

        crosswalk = value.dropna().astype(str)
        crosswalk.columns = [FEATURE_ID_MAP.FEATURE_ID, FEATURE_ID_MAP.X_ID]

        missing = set(self._db[GENESET_DB.FEATURE_ID]).difference(
            crosswalk[FEATURE_ID_MAP.FEATURE_ID]
        )
        if len(missing) > 0:
            raise ValidationError(
                f"{len(missing)} db feature_ids are not in the first column of the "
                "new feature_id_map"
            )

        return GeneSetDb._from_tables(
            self._db,
            _unresolved_feature_id_map(crosswalk),
            _init_table_from_db(self._db),
            self._collection_metadata,
        )

    # internal lookups

    def _gsd_row_index(self, collection: str, name: str) -> Optional[int]:
        """Row of a gene set in ``table`` or None if it does not exist."""

        if not (is_single_string(collection) and is_single_string(name)):
            raise ValidationError(
                "collection and name must both be single strings"
            )
        return self._table_index.get((collection, name))

    def _select_members(
        self,
        collection: str,
        name: str,
        active_only: Optional[bool],
        fetch_all: bool,
    ) -> pd.DataFrame:
        """Crosswalk rows of a gene set's members, validating access."""

        # direct index lookup rather than has_gene_set() to skip its extra checks
        idx = self._gsd_row_index(collection, name)
        if idx is None:
            raise ValidationError(
                f"collection={collection}, name={name} does not exist in GeneSetDb db"
            )

        if active_only is None:
            active_only = self.is_conformed()
        if active_only and not self._table[GENESET_TABLE.ACTIVE].iat[idx]:
            raise InactiveAccessError(
                "Selected geneset is inactive, set active_only=False or re-conform "
                "GeneSetDb to use it..."
            )

        feature_ids = self._db[GENESET_DB.FEATURE_ID].to_numpy()[
            self._db_index[(collection, name)]
        ]
        crosswalk_positions = np.concatenate(
            [self._feature_id_map_index[f] for f in feature_ids]
        )
        members = self._feature_id_map.iloc[crosswalk_positions]

        if self.is_conformed() and not fetch_all:
            members = members[members[FEATURE_ID_MAP.X_IDX].notna()]

        return members.reset_index(drop=True)

    def __len__(self) -> int:
        return self.gene_sets().shape[0]

    def __repr__(self) -> str:
        return (
            f"GeneSetDb({self._table.shape[0]} gene sets in "
            f"{len(self.collections)} collections, "
            f"{int(self._table[GENESET_TABLE.ACTIVE].sum())} active, "
            f"conformed={self.is_conformed()})"
        )


def _gene_sets_to_db(gene_sets: GeneSetsInput, collection_name: str) -> pd.DataFrame:
    """Convert any accepted gene set input to a deduplicated ``db`` table."""

    if isinstance(gene_sets, pd.DataFrame):
        db = gene_sets.copy()
        if GENESET_DB.COLLECTION not in db.columns:
            db[GENESET_DB.COLLECTION] = collection_name
        check_required_columns(db, GENESET_DB_VARS, "gene set table")
        db = db[GENESET_DB_VARS]
        if db.isna().any().any():
            raise ValidationError("The gene set table contains missing values")
        db = db.astype(str)
        if (db[GENESET_KEY_VARS] == "").any().any():
            raise ValidationError("collection and name must be non-empty strings")

    elif isinstance(gene_sets, Mapping):
        db = pd.DataFrame(
            [
                (gs.collection, gs.name, feature_id)
                for gs in _validate_gene_set_mapping(gene_sets, collection_name)
                for feature_id in gs.feature_ids
            ],
            columns=GENESET_DB_VARS,
        )

    else:
        raise ValidationError(
            f"gene_sets must be a mapping or a DataFrame, got {type(gene_sets)}"
        )

    if db.shape[0] == 0:
        raise ValidationError("No gene set members were provided")

    return _sort_db(db)


def _validate_gene_set_mapping(
    gene_sets: Mapping, collection_name: str
) -> List["_GeneSetValidator"]:

    if all(isinstance(v, Mapping) for v in gene_sets.values()):
        nested = gene_sets
    elif not any(isinstance(v, (Mapping, str)) for v in gene_sets.values()):
        nested = {collection_name: gene_sets}
    else:
        raise ValidationError(
            "gene_sets must map collections to {name: feature ids} mappings "
            "or names to feature ids, not a mix"
        )

    for collection_gene_sets in nested.values():
        if any(isinstance(v, str) for v in collection_gene_sets.values()):
            raise ValidationError(
                "Feature ids must be provided as a list, not a single string"
            )

    try:
        validated = [
            _GeneSetValidator(
                collection=collection,
                name=name,
                feature_ids=_clean_feature_ids(feature_ids),
            )
            for collection, collection_gene_sets in nested.items()
            for name, feature_ids in collection_gene_sets.items()
        ]
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e
    except TypeError as e:
        raise ValidationError(f"Feature ids must be provided as iterables: {e}") from e

    empty = [gs for gs in validated if len(gs.feature_ids) == 0]
    if len(empty) > 0:
        logger.warning(
            f"Dropping {len(empty)} empty gene sets including "
            f"({empty[0].collection}, {empty[0].name})"
        )

    return validated


def _clean_feature_ids(feature_ids: Iterable[Any]) -> List[str]:
    feature_ids = list(feature_ids)
    if any(pd.api.types.is_list_like(f) for f in feature_ids):
        raise ValidationError(
            "Feature ids must be scalars; found a nested collection of feature ids"
        )
    return [str(f) for f in feature_ids if not pd.isna(f)]


def _expression_index_labels(gene_sets: pd.DataFrame) -> List[str]:
    """Expression index labels ("collection.name") of gene sets, which must be unique."""

    collections = gene_sets[GENESET_TABLE.COLLECTION].tolist()
    names = gene_sets[GENESET_TABLE.NAME].tolist()
    labels = [f"{c}{EXPRESSION_INDEX_SEP}{n}" for c, n in zip(collections, names)]

    is_duplicated = pd.Series(labels, dtype=object).duplicated(keep=False).to_numpy()
    if is_duplicated.any():
        clashes = ", ".join(
            f"({c}, {n}) -> {label}"
            for c, n, label, dup in zip(collections, names, labels, is_duplicated)
            if dup
        )
        raise ValidationError(
            f"Several gene sets share the same expression index label: {clashes}"
        )

    return labels


def _sort_db(db: pd.DataFrame) -> pd.DataFrame:
    return (
        db.drop_duplicates(subset=GENESET_DB_VARS)
        .sort_values(GENESET_DB_VARS)
        .reset_index(drop=True)
    )


def _identity_feature_id_map(db: pd.DataFrame) -> pd.DataFrame:
    feature_ids = db[GENESET_DB.FEATURE_ID].unique()
    return _unresolved_feature_id_map(
        pd.DataFrame(
            {FEATURE_ID_MAP.FEATURE_ID: feature_ids, FEATURE_ID_MAP.X_ID: feature_ids}
        )
    )


def _unresolved_feature_id_map(crosswalk: pd.DataFrame) -> pd.DataFrame:
    """Deduplicate (feature_id, x_id) pairs and add an unresolved x_idx."""

    crosswalk = (
        crosswalk.drop_duplicates(subset=[FEATURE_ID_MAP.FEATURE_ID, FEATURE_ID_MAP.X_ID])
        .sort_values(FEATURE_ID_MAP.FEATURE_ID, kind="stable")
        .reset_index(drop=True)
    )
    crosswalk[FEATURE_ID_MAP.X_IDX] = pd.array(
        [pd.NA] * crosswalk.shape[0], dtype="Int64"
    )
    return crosswalk


def _init_table_from_db(db: pd.DataFrame) -> pd.DataFrame:
    """All-inactive gene set table with member counts and no matches."""

    table = (
        db.groupby(GENESET_KEY_VARS, sort=True)
        .size()
        .reset_index(name=GENESET_TABLE.N_TOTAL)
        .assign(**{GENESET_TABLE.ACTIVE: False, GENESET_TABLE.N_MATCHED: 0})
    )
    return table[GENESET_TABLE_VARS]


def _conformed_table(
    db: pd.DataFrame,
    feature_id_map: pd.DataFrame,
    min_gs_size: int,
    max_gs_size: float,
) -> pd.DataFrame:
    """Gene set table with matched member counts and activation flags."""

    resolved_feature_ids = set(
        feature_id_map.loc[
            feature_id_map[FEATURE_ID_MAP.X_IDX].notna(), FEATURE_ID_MAP.FEATURE_ID
        ]
    )

    table = (
        db.assign(_matched=db[GENESET_DB.FEATURE_ID].isin(resolved_feature_ids))
        .groupby(GENESET_KEY_VARS, sort=True)
        .agg(
            **{
                GENESET_TABLE.N_TOTAL: (GENESET_DB.FEATURE_ID, "size"),
                GENESET_TABLE.N_MATCHED: ("_matched", "sum"),
            }
        )
        .reset_index()
    )
    table[GENESET_TABLE.N_MATCHED] = table[GENESET_TABLE.N_MATCHED].astype(np.int64)
    table[GENESET_TABLE.ACTIVE] = (table[GENESET_TABLE.N_MATCHED] >= min_gs_size) & (
        table[GENESET_TABLE.N_MATCHED] <= max_gs_size
    )

    return table[GENESET_TABLE_VARS]


# validators


class _GeneSetValidator(BaseModel):
    collection: str = Field(min_length=1)
    name: str = Field(min_length=1)
    feature_ids: List[str]
