"""The Retain helper: decode and encode one record without losing fields.

Decode parses the payload twice: once through the record's shadow model to
fill the typed fields, once through the plain JSON codec to fill the
UnknownFields store with every top-level key. Encode overlays the live
typed-field values onto the store, by wire key, and encodes the store.

Known keys stay in the store after decode. They are overwritten, not
pruned, on encode, so the output keeps every key the payload had.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from retain.codec import JsonInput, decode_object, encode_object, json_type_name
from retain.errors import DecodeError, EncodeError
from retain.mapping import FieldMapping, field_mapping
from retain.shadow import empty_shadow, shadow_model
from retain.store import UnknownFields

logger = logging.getLogger(__name__)


_NOT_AN_OBJECT = {"model_type", "model_attributes_type", "dict_type"}


def decode_error_from_validation(exc: ValidationError) -> DecodeError:
    """Translate a pydantic ValidationError into a DecodeError.

    The first error names the offending key (dotted path of wire keys), the
    expected kind (pydantic error type) and the JSON type actually found.
    """
    errors: List[Dict[str, Any]] = exc.errors(include_url=False)
    if not errors:
        return DecodeError(str(exc))
    first = errors[0]
    kind = first.get("type")
    loc = first.get("loc", ())

    if kind == "json_invalid":
        return DecodeError(f"Malformed JSON: {first.get('msg')}", errors=errors)
    if not loc and kind in _NOT_AN_OBJECT:
        return DecodeError(
            "Top-level JSON value must be an object",
            expected="object",
            actual=json_type_name(first.get("input")),
            errors=errors,
        )

    key = ".".join(str(part) for part in loc) or None
    actual = None if kind == "missing" else json_type_name(first.get("input"))
    return DecodeError(
        f"Field does not match its declared type: {first.get('msg')}",
        key=key,
        expected=kind,
        actual=actual,
        errors=errors,
    )


class Retain:
    """Retention helper bound to one record instance.

    The record's class must be a pydantic model with exactly one
    UnknownFields field. The helper keeps no state of its own besides the
    record; it is cheap to create per call.

    Not thread-safe: do not decode into and encode from one record
    concurrently without external locking.
    """

    def __init__(self, record: BaseModel):
        self.record = record
        self.mapping: FieldMapping = field_mapping(type(record))

    @property
    def store(self) -> UnknownFields:
        """The record's store, created empty if the record has none yet."""
        name = self.mapping.store_field
        store = self.record.__dict__.get(name)
        if not isinstance(store, UnknownFields):
            store = UnknownFields(store or {})
            self.record.__dict__[name] = store
        return store

    def _transfer(self, typed: BaseModel, raw: Dict[str, Any]) -> None:
        # Fields absent from the payload keep their current values
        for name in typed.model_fields_set:
            self.record.__dict__[name] = typed.__dict__[name]
        self.record.__pydantic_fields_set__.update(typed.model_fields_set)
        self.record.__dict__[self.mapping.store_field] = UnknownFields(raw)

    def decode(self, data: JsonInput) -> BaseModel:
        """Populate typed fields and the store from one JSON payload.

        Args:
            data: JSON object as str, bytes or bytearray

        Returns:
            The bound record, for chaining

        Raises:
            DecodeError: If the payload is malformed, not an object, or a
                typed field's value does not fit its type. The record may be
                partially updated; decode into a fresh record for atomicity.
        """
        if isinstance(data, bytearray):
            data = bytes(data)
        if not isinstance(data, (str, bytes)):
            raise DecodeError(
                "Payload must be JSON text",
                expected="str | bytes",
                actual=type(data).__name__,
            )
        shadow = shadow_model(type(self.record))
        try:
            typed = shadow.model_validate_json(data)
        except ValidationError as e:
            raise decode_error_from_validation(e) from e
        raw = decode_object(data)

        self._transfer(typed, raw)
        logger.debug(
            "Decoded %s: %d typed fields, %d stored keys",
            type(self.record).__name__, len(typed.model_fields_set), len(raw),
        )
        return self.record

    def decode_dict(self, obj: Mapping[str, Any]) -> BaseModel:
        """Like decode(), for an object that is already parsed.

        Values must be plain JSON values (as json.loads produces). The
        object is re-serialized so typed fields follow the same JSON
        conversion rules as decode(), and the store holds its own copy.
        """
        if not isinstance(obj, Mapping):
            raise DecodeError(
                "Top-level value must be an object",
                expected="object",
                actual=json_type_name(obj),
            )
        try:
            payload = encode_object(dict(obj))
        except EncodeError as e:
            raise DecodeError(
                "Object holds a value that is not plain JSON",
                key=e.key,
                expected=e.expected,
                actual=e.actual,
            ) from e
        return self.decode(payload)

    def _dump_typed(self) -> Dict[str, Any]:
        """Live typed-field values as JSON values, keyed by wire key."""
        values = {
            name: self.record.__dict__[name]
            for name in self.mapping.names()
            if name in self.record.__dict__
        }
        typed = empty_shadow(type(self.record))
        typed.__dict__.update(values)
        try:
            return typed.model_dump(mode="json", by_alias=True, warnings="error")
        except PydanticSerializationError as e:
            raise EncodeError(
                f"Typed field is not JSON-representable: {e}",
                key=self._failing_key(typed),
            ) from e

    def _failing_key(self, typed: BaseModel) -> Optional[str]:
        for entry in self.mapping.entries:
            try:
                typed.model_dump(mode="json", include={entry.name}, warnings="error")
            except PydanticSerializationError:
                return entry.wire_key
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Overlay typed fields onto the store and return it as a plain dict.

        The store itself is updated: each mapped wire key now holds the
        field's current value.
        """
        store = self.store
        typed = self._dump_typed()
        for entry in self.mapping.entries:
            if entry.wire_key in typed:
                store[entry.wire_key] = typed[entry.wire_key]
        return dict(store)

    def encode(self, canonical: bool = False, indent: Optional[int] = None) -> bytes:
        """Encode the record, typed fields overlaid on every retained key.

        Every mapped field is written, including fields the payload did not
        carry: a defaulted field absent on decode comes back with its
        default. An unmutated record therefore re-encodes to the payload's
        keys plus any such fields; records that need the exact key set
        should declare only fields the payload always carries.

        Args:
            canonical: Sort keys and use compact separators
            indent: Pretty-print indent

        Returns:
            UTF-8 JSON bytes. Key order follows the store (payload order,
            new keys last) unless canonical; callers must not rely on it.

        Raises:
            EncodeError: If a typed field or stored value is not
                JSON-representable
        """
        obj = self.to_dict()
        logger.debug("Encoding %s: %d keys", type(self.record).__name__, len(obj))
        return encode_object(obj, canonical=canonical, indent=indent)

    def unknown(self) -> Dict[str, Any]:
        """Stored entries whose keys have no mapped field."""
        store = self.store
        return {k: store[k] for k in self.mapping.unknown_keys(store)}
