"""JSON codec boundary.

Thin wrapper around the stdlib json module for the two generic operations
retention needs: parse a payload into a mapping, and encode a mapping back
to bytes. Typed field (de)serialization goes through pydantic instead.

Rules:
- UTF-8 in and out
- Top-level payload must be an object
- NaN and Infinity are rejected in both directions (RFC 8259)
- Object key order is preserved as parsed; canonical output sorts keys
"""

import json
import math
from typing import Any, Dict, Optional, Union

from retain.errors import DecodeError, EncodeError

JsonInput = Union[str, bytes, bytearray]


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def json_type_name(obj: Any) -> str:
    """Name a parsed value by its JSON type."""
    if obj is None:
        return "null"
    elif isinstance(obj, bool):
        return "boolean"
    elif isinstance(obj, (int, float)):
        return "number"
    elif isinstance(obj, str):
        return "string"
    elif isinstance(obj, list):
        return "array"
    elif isinstance(obj, dict):
        return "object"
    return type(obj).__name__


def decode_object(data: JsonInput) -> Dict[str, Any]:
    """Parse a JSON payload whose top-level value must be an object.

    Args:
        data: JSON text as str, bytes or bytearray

    Returns:
        Parsed object as an insertion-ordered dict

    Raises:
        DecodeError: If the payload is malformed or not an object
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError("Payload is not valid UTF-8", actual=str(e)) from e
    if not isinstance(data, str):
        raise DecodeError(
            "Payload must be JSON text",
            expected="str | bytes",
            actual=type(data).__name__,
        )

    try:
        obj = json.loads(data, parse_constant=_reject_constant)
    except ValueError as e:
        raise DecodeError(f"Malformed JSON: {e}") from e

    if not isinstance(obj, dict):
        raise DecodeError(
            "Top-level JSON value must be an object",
            expected="object",
            actual=json_type_name(obj),
        )
    return obj


def ensure_json_value(obj: Any, path: str = "") -> None:
    """Check that a value holds only JSON-representable types.

    Allowed: None, bool, int, finite float, str, list/tuple, and dicts
    with str keys. Raises EncodeError naming the offending path.
    """
    if obj is None or isinstance(obj, (bool, int, str)):
        return
    elif isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise EncodeError(
                "Non-finite number is not valid JSON",
                key=path or None,
                expected="finite number",
                actual=repr(obj),
            )
    elif isinstance(obj, dict):
        for key, value in obj.items():
            if not isinstance(key, str):
                raise EncodeError(
                    "Object keys must be strings",
                    key=path or None,
                    expected="str",
                    actual=type(key).__name__,
                )
            ensure_json_value(value, f"{path}.{key}" if path else key)
    elif isinstance(obj, (list, tuple)):
        for i, item in enumerate(obj):
            ensure_json_value(item, f"{path}[{i}]" if path else f"[{i}]")
    else:
        raise EncodeError(
            "Value is not JSON-representable",
            key=path or None,
            expected="JSON value",
            actual=type(obj).__name__,
        )


def encode_object(
    obj: Dict[str, Any],
    canonical: bool = False,
    indent: Optional[int] = None,
) -> bytes:
    """Encode a str-keyed mapping to UTF-8 JSON bytes.

    Args:
        obj: Mapping to encode
        canonical: Sort keys and use compact separators
        indent: Pretty-print indent (ignored when canonical)

    Returns:
        UTF-8 encoded JSON

    Raises:
        EncodeError: If any value is not JSON-representable
    """
    ensure_json_value(obj)
    if canonical:
        text = canonical_dumps(obj)
    else:
        separators = None if indent is not None else (",", ":")
        text = json.dumps(
            obj,
            ensure_ascii=False,
            allow_nan=False,
            indent=indent,
            separators=separators,
        )
    return text.encode("utf-8")


def canonical_dumps(obj: Any) -> str:
    """
    Canonical JSON serialization.

    Rules:
    - UTF-8 (no ASCII escaping)
    - Sorted keys, recursively
    - Stable separators (",", ":")
    - Arrays keep their order
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def canonicalize(data: Union[JsonInput, Dict[str, Any]]) -> str:
    """Canonical text for a JSON payload or an already-parsed object."""
    if isinstance(data, (str, bytes, bytearray)):
        data = decode_object(data)
    ensure_json_value(data)
    return canonical_dumps(data)


def json_equal(a: Union[JsonInput, Dict[str, Any]], b: Union[JsonInput, Dict[str, Any]]) -> bool:
    """Compare two JSON objects by value, ignoring key order.

    Numbers compare by value, so 1 and 1.0 are equal.
    """
    if isinstance(a, (str, bytes, bytearray)):
        a = decode_object(a)
    if isinstance(b, (str, bytes, bytearray)):
        b = decode_object(b)
    return _same_value(a, b)


def _same_value(a: Any, b: Any) -> bool:
    # bool is an int subclass; keep true distinct from 1
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_same_value(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(_same_value(x, y) for x, y in zip(a, b))
    if isinstance(a, (dict, list, tuple)) or isinstance(b, (dict, list, tuple)):
        return False
    return a == b
