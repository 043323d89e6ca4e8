"""
Free-form metadata attached to gene set collections.

Metadata is a long table keyed by (collection, name) with an arbitrary
``value`` per entry. The only structured entry is ``url_function``, which is
one of a closed set of URL generators so that a GeneSetDb stays serializable
whenever custom callbacks are not used.

Classes
-------
CollectionMetadata
    Keyed (collection, name) -> value table.
UrlFunction
    Base class of the URL generators.
NoUrlFunction
    No URL generator registered.
UrlTemplate
    URL generator built from a str.format template.
CustomUrlFunction
    URL generator wrapping a user supplied callable.

Public Functions
----------------
url_function_from(value)
    Convert None, a template, a named template or a callable to a UrlFunction.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
import pydantic
from pydantic import BaseModel, ConfigDict, field_validator

from multigsea.constants import (
    COLLECTION_METADATA,
    COLLECTION_METADATA_VARS,
    METADATA_FIELDS,
    NAMED_URL_TEMPLATES,
)
from multigsea.errors import UnregisteredMetadataError, ValidationError
from multigsea.utils.pd_utils import check_required_columns, is_single_string

logger = logging.getLogger(__name__)


class UrlFunction(BaseModel):
    """A (collection, name) -> URL generator."""

    model_config = ConfigDict(frozen=True)

    @property
    def is_registered(self) -> bool:
        return True

    def __call__(self, collection: str, name: str) -> str:
        raise NotImplementedError


class NoUrlFunction(UrlFunction):
    """Placeholder for collections without a URL generator."""

    @property
    def is_registered(self) -> bool:
        return False

    def __call__(self, collection: str, name: str) -> str:
        raise UnregisteredMetadataError(
            f"No url_function for collection '{collection}' found"
        )


class UrlTemplate(UrlFunction):
    """
    URL generator built from a ``str.format`` template.

    Parameters
    ----------
    template : str
        A template using the ``{collection}`` and/or ``{name}`` fields.

    Examples
    --------
    >>> fn = UrlTemplate(template="https://example.org/{collection}/{name}")
    >>> fn("h", "HALLMARK_APOPTOSIS")
    'https://example.org/h/HALLMARK_APOPTOSIS'
    """

    template: str

    @field_validator("template")
    @classmethod
    def _validate_template(cls, v: str) -> str:
        try:
            v.format(collection="collection", name="name")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"URL templates may only use the {{collection}} and {{name}} fields: {v}"
            ) from e
        if "{collection}" not in v and "{name}" not in v:
            raise ValueError(
                f"URL templates must use at least one of {{collection}} or {{name}}: {v}"
            )
        return v

    def __call__(self, collection: str, name: str) -> str:
        return self.template.format(collection=collection, name=name)


class CustomUrlFunction(UrlFunction):
    """
    URL generator wrapping a callable taking (collection, name).

    GeneSetDbs holding a CustomUrlFunction can only be pickled when ``fn`` can.
    """

    fn: Callable

    @field_validator("fn")
    @classmethod
    def _validate_fn(cls, v: Callable) -> Callable:
        try:
            params = inspect.signature(v).parameters.values()
        except (TypeError, ValueError) as e:
            raise ValueError(f"Cannot inspect the signature of {v}") from e

        positional = [
            p
            for p in params
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(positional) != 2:
            raise ValueError("URL function needs to take two arguments")
        return v

    def __call__(self, collection: str, name: str) -> str:
        return self.fn(collection, name)


def url_function_from(
    value: Union[None, str, Callable, UrlFunction],
) -> UrlFunction:
    """
    Convert a user supplied URL generator to a UrlFunction.

    Parameters
    ----------
    value : None, str, Callable or UrlFunction
        - None: no URL generator
        - str: a named template (one of NAMED_URL_TEMPLATES) or a
          ``str.format`` template using {collection} and/or {name}
        - Callable: a function taking (collection, name)
        - UrlFunction: returned as is

    Returns
    -------
    UrlFunction

    Raises
    ------
    ValidationError
        If ``value`` is not callable or does not take two arguments
    """

    if value is None:
        return NoUrlFunction()
    if isinstance(value, UrlFunction):
        return value

    try:
        if isinstance(value, str):
            return UrlTemplate(template=NAMED_URL_TEMPLATES.get(value, value))
        if callable(value):
            return CustomUrlFunction(fn=value)
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e

    raise ValidationError(f"Function required, got {type(value)}")


class CollectionMetadata:
    """
    Metadata attached to gene set collections.

    Parameters
    ----------
    df : pd.DataFrame, optional
        A table with collection, name and value columns. Entries are unique by
        (collection, name); the first occurrence of a duplicated key is kept.

    Public Methods
    --------------
    from_collections(collections)
        Empty metadata with an unregistered url_function per collection.
    ensure(value)
        Convert a DataFrame or CollectionMetadata to CollectionMetadata.
    for_collection(collection)
        Metadata rows of one collection.
    get(collection, name)
        One metadata value.
    has(collection, name)
        Whether a metadata entry exists.
    to_frame()
        A copy of the metadata table.
    union(other)
        Combine two metadata tables, first occurrence wins.
    upsert(collection, name, value)
        Add or replace an entry.
    with_url_defaults(collections)
        Add an unregistered url_function for collections lacking one.
    """

    def __init__(self, df: Optional[pd.DataFrame] = None):
        if df is None:
            df = pd.DataFrame(columns=COLLECTION_METADATA_VARS)
        check_required_columns(df, COLLECTION_METADATA_VARS, "collection metadata")

        df = df[COLLECTION_METADATA_VARS].copy()
        df[COLLECTION_METADATA.COLLECTION] = df[COLLECTION_METADATA.COLLECTION].astype(
            str
        )
        df[COLLECTION_METADATA.NAME] = df[COLLECTION_METADATA.NAME].astype(str)
        df[COLLECTION_METADATA.VALUE] = df[COLLECTION_METADATA.VALUE].astype(object)

        is_url = df[COLLECTION_METADATA.NAME] == METADATA_FIELDS.URL_FUNCTION
        if is_url.any():
            df[COLLECTION_METADATA.VALUE] = _object_series(
                [
                    url_function_from(v) if u else v
                    for u, v in zip(is_url, df[COLLECTION_METADATA.VALUE])
                ],
                index=df.index,
            )

        self._df = df.drop_duplicates(
            subset=[COLLECTION_METADATA.COLLECTION, COLLECTION_METADATA.NAME],
            keep="first",
        ).reset_index(drop=True)
        self._index: Dict[Tuple[str, str], int] = {
            key: i
            for i, key in enumerate(
                zip(
                    self._df[COLLECTION_METADATA.COLLECTION],
                    self._df[COLLECTION_METADATA.NAME],
                )
            )
        }

    @classmethod
    def from_collections(cls, collections: Iterable[str]) -> "CollectionMetadata":
        return cls().with_url_defaults(collections)

    @classmethod
    def ensure(
        cls, value: Union[pd.DataFrame, "CollectionMetadata", None]
    ) -> "CollectionMetadata":
        if isinstance(value, cls):
            return value
        if value is None or isinstance(value, pd.DataFrame):
            return cls(value)
        raise ValidationError(
            f"collection metadata must be a DataFrame or CollectionMetadata, got {type(value)}"
        )

    @property
    def collections(self) -> list[str]:
        """Distinct collections in order of first appearance."""
        return self._df[COLLECTION_METADATA.COLLECTION].unique().tolist()

    def for_collection(self, collection: str) -> pd.DataFrame:
        return self._df[self._df[COLLECTION_METADATA.COLLECTION] == collection].copy()

    def has(self, collection: str, name: str) -> bool:
        return (collection, name) in self._index

    def get(self, collection: str, name: str) -> Any:
        """
        One metadata value.

        Raises
        ------
        UnregisteredMetadataError
            If the (collection, name) entry does not exist
        """
        idx = self._index.get((collection, name))
        if idx is None:
            raise UnregisteredMetadataError(
                f"metadata not defined for collection:{collection}, varname:{name}"
            )
        return self._df[COLLECTION_METADATA.VALUE].iat[idx]

    def to_frame(self) -> pd.DataFrame:
        return self._df.copy()

    def union(self, other: "CollectionMetadata") -> "CollectionMetadata":
        # the constructor keeps the first occurrence of each key
        return CollectionMetadata(
            pd.concat([self._df, other._df], ignore_index=True)
        )

    def upsert(self, collection: str, name: str, value: Any) -> "CollectionMetadata":
        """Return a copy with (collection, name) set to ``value``."""

        if not (is_single_string(collection) and is_single_string(name)):
            raise ValidationError(
                "collection and name must both be non-empty strings"
            )
        if name == METADATA_FIELDS.URL_FUNCTION:
            value = url_function_from(value)

        df = self._df.copy()
        idx = self._index.get((collection, name))
        if idx is None:
            new_row = pd.DataFrame(
                {
                    COLLECTION_METADATA.COLLECTION: [collection],
                    COLLECTION_METADATA.NAME: [name],
                    COLLECTION_METADATA.VALUE: _object_series([value]),
                }
            )
            df = pd.concat([df, new_row], ignore_index=True)
        else:
            values = df[COLLECTION_METADATA.VALUE].tolist()
            values[idx] = value
            df[COLLECTION_METADATA.VALUE] = _object_series(values, index=df.index)

        return CollectionMetadata(df)

    def with_url_defaults(self, collections: Iterable[str]) -> "CollectionMetadata":
        """Add an unregistered url_function for each collection lacking one."""

        missing = [
            c
            for c in dict.fromkeys(collections)
            if not self.has(c, METADATA_FIELDS.URL_FUNCTION)
        ]
        if len(missing) == 0:
            return self

        defaults = pd.DataFrame(
            {
                COLLECTION_METADATA.COLLECTION: missing,
                COLLECTION_METADATA.NAME: METADATA_FIELDS.URL_FUNCTION,
                COLLECTION_METADATA.VALUE: _object_series(
                    [NoUrlFunction() for _ in missing]
                ),
            }
        )
        if len(self) == 0:
            return CollectionMetadata(defaults)
        return CollectionMetadata(pd.concat([self._df, defaults], ignore_index=True))

    def __len__(self) -> int:
        return self._df.shape[0]

    def __repr__(self) -> str:
        return f"CollectionMetadata({len(self.collections)} collections, {len(self)} entries)"


def _object_series(values: list, index: Optional[pd.Index] = None) -> pd.Series:
    # element-wise assignment keeps list-like values as single cells
    arr = np.empty(len(values), dtype=object)
    for i, v in enumerate(values):
        arr[i] = v
    return pd.Series(arr, index=index, dtype=object)
