"""retain: lossless partial-schema JSON records for pydantic."""

import logging
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("retain")
except PackageNotFoundError:
    __version__ = "dev"

# Library logging: callers configure handlers
logging.getLogger(__name__).addHandler(logging.NullHandler())

from retain.codec import canonicalize, json_equal
from retain.errors import (
    DecodeError,
    EncodeError,
    ErrorCode,
    MappingConflictError,
    RetainConfigError,
    RetainError,
    StoreFieldError,
)
from retain.helper import Retain
from retain.mapping import FieldEntry, FieldMapping, Ignore, field_mapping
from retain.model import RETAIN_CONTEXT, RetainModel, retained
from retain.shadow import shadow_model
from retain.store import UnknownFields

__all__ = [
    "__version__",
    "Retain",
    "RetainModel",
    "retained",
    "RETAIN_CONTEXT",
    "UnknownFields",
    "Ignore",
    "FieldEntry",
    "FieldMapping",
    "field_mapping",
    "shadow_model",
    "canonicalize",
    "json_equal",
    "ErrorCode",
    "RetainError",
    "RetainConfigError",
    "MappingConflictError",
    "StoreFieldError",
    "DecodeError",
    "EncodeError",
]
