"""Error types raised by retain.

Every error derives from RetainError (a ValueError) and carries an
ErrorCode so callers can branch without matching on message text.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorCode(str, Enum):
    """Error codes attached to every RetainError."""

    # Declaration errors (raised while building a FieldMapping)
    INVALID_MAPPING = "INVALID_MAPPING"
    MAPPING_CONFLICT = "MAPPING_CONFLICT"
    STORE_FIELD = "STORE_FIELD"

    # Runtime errors
    DECODE_FAILED = "DECODE_FAILED"
    ENCODE_FAILED = "ENCODE_FAILED"


class RetainError(ValueError):
    """Base class for all retain errors."""
    code: ErrorCode = ErrorCode.INVALID_MAPPING


class RetainConfigError(RetainError):
    """Raised when a record class cannot take part in retention."""
    code = ErrorCode.INVALID_MAPPING


class MappingConflictError(RetainConfigError):
    """Raised when two fields of one record resolve to the same wire key."""
    code = ErrorCode.MAPPING_CONFLICT

    def __init__(self, model: str, wire_key: str, fields: Tuple[str, str]):
        self.model = model
        self.wire_key = wire_key
        self.fields = fields
        super().__init__(
            f"{model}: fields {fields[0]!r} and {fields[1]!r} both map to wire key {wire_key!r}"
        )


class StoreFieldError(RetainConfigError):
    """Raised when a record declares no store field, or more than one."""
    code = ErrorCode.STORE_FIELD


class _PayloadError(RetainError):
    """Shared shape of DecodeError and EncodeError."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ):
        self.key = key
        self.expected = expected
        self.actual = actual
        details = []
        if key is not None:
            details.append(f"key={key!r}")
        if expected is not None:
            details.append(f"expected={expected}")
        if actual is not None:
            details.append(f"actual={actual}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class DecodeError(_PayloadError):
    """Raised when a payload cannot be decoded into a record.

    Covers malformed JSON, a top-level value that is not an object, and
    typed field values that do not convert to the declared field type.
    The record may be left partially updated.
    """
    code = ErrorCode.DECODE_FAILED

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.errors = errors or []
        super().__init__(message, key=key, expected=expected, actual=actual)


class EncodeError(_PayloadError):
    """Raised when a record or its store holds a value JSON cannot represent."""
    code = ErrorCode.ENCODE_FAILED
