"""
Exceptions and warnings raised by multigsea.

Fatal errors are raised before a new GeneSetDb is assembled, so the object a
caller holds is never left half-updated. Warnings are advisory and are issued
through the ``warnings`` module.
"""

from __future__ import annotations


class MultiGSEAError(Exception):
    """Base class for multigsea errors."""


class ValidationError(MultiGSEAError, ValueError):
    """Malformed arguments, unsupported options or unknown gene sets."""


class EmptyMatchError(MultiGSEAError, ValueError):
    """No feature identifiers overlap the rows of the conformation target."""


class InactiveAccessError(MultiGSEAError):
    """Members of an inactive gene set were requested with ``active_only=True``."""


class UnregisteredMetadataError(MultiGSEAError, LookupError):
    """Requested collection metadata (e.g. a url_function) is not defined."""


class LowConfidenceWarning(UserWarning):
    """Only a small fraction of feature identifiers matched the target rows."""


class DeactivationWarning(UserWarning):
    """Conformation left one or more gene sets inactive."""
