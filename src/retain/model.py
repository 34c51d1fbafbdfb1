"""RetainModel: a pydantic base class that keeps unknown JSON fields.

Subclasses declare only the fields they use:

    class Page(RetainModel):
        title: str
        slug: str

    page = Page.from_json(b'{"title": "Contact Us", "slug": "contact", "icon": "email"}')
    page.slug = "contact-us"
    page.to_json()  # still carries "icon"

from_json/to_json go through the Retain helper and the record's shadow
model. Retention also works when a RetainModel is nested inside another
model and pydantic dispatches to it implicitly: the wrap validator captures
unknown keys whenever the input is JSON (or the validation context sets
RETAIN_CONTEXT), and the wrap serializer merges them back on dump. Both
hooks call pydantic's `handler`, the base structural (de)serializer, so
they never re-enter themselves.
"""

import copy
import logging
from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    Field,
    SerializationInfo,
    SerializerFunctionWrapHandler,
    ValidationInfo,
    model_serializer,
    model_validator,
)
from pydantic.functional_validators import ModelWrapValidatorHandler

from retain.codec import JsonInput
from retain.helper import Retain
from retain.mapping import field_mapping
from retain.store import UnknownFields

logger = logging.getLogger(__name__)

# Validation context flag: capture unknown keys in python-mode validation too
RETAIN_CONTEXT = "retain"


def retained(**kwargs: Any) -> Any:
    """Field declaration for a record's UnknownFields store.

    The store is excluded from pydantic's own dumps and reprs; its keys are
    merged back by the retention hooks instead.
    """
    kwargs.setdefault("default_factory", UnknownFields)
    kwargs.setdefault("exclude", True)
    kwargs.setdefault("repr", False)
    return Field(**kwargs)


def _retaining(info: ValidationInfo) -> bool:
    if info.mode == "json":
        return True
    context = info.context
    return isinstance(context, dict) and bool(context.get(RETAIN_CONTEXT))


class RetainModel(BaseModel):
    """Base class for records that preserve unknown top-level JSON fields.

    The store lives in the `unknown` field. Subclasses must not redeclare it.
    """

    unknown: UnknownFields = retained()

    @model_validator(mode="wrap")
    @classmethod
    def _capture_unknown_fields(
        cls, data: Any, handler: ModelWrapValidatorHandler["RetainModel"], info: ValidationInfo
    ) -> "RetainModel":
        if not isinstance(data, dict) or not _retaining(info):
            return handler(data)
        mapping = field_mapping(cls)
        wire_keys = set(mapping.wire_keys())
        # Ignored fields and the store field are never read from the payload
        record = handler({k: v for k, v in data.items() if k in wire_keys})
        # JSON input is freshly parsed; python input still belongs to the caller
        store = data if info.mode == "json" else copy.deepcopy(data)
        record.__dict__[mapping.store_field] = UnknownFields(store)
        return record

    @model_serializer(mode="wrap")
    def _merge_unknown_fields(
        self, handler: SerializerFunctionWrapHandler, info: SerializationInfo
    ) -> Dict[str, Any]:
        """Merge the store back around the typed fields.

        Known keys come only from pydantic's own output, so include, exclude
        and the exclude_* options apply to them as usual. Unknown keys are
        dropped under `include` unless named there, and dropped when named
        in `exclude`. Ignored fields are never written.
        """
        mapping = field_mapping(type(self))
        wire_keys = set(mapping.wire_keys())
        typed_keys = wire_keys if info.by_alias else set(mapping.names())
        typed = {k: v for k, v in handler(self).items() if k in typed_keys}
        known = wire_keys | typed_keys
        store = self.__dict__.get(mapping.store_field) or {}

        merged: Dict[str, Any] = {}
        for key, value in store.items():
            if key in known:
                # Known keys keep their payload position
                if key in typed:
                    merged[key] = typed[key]
                continue
            if info.include is not None and key not in info.include:
                continue
            if info.exclude is not None and key in info.exclude:
                continue
            merged[key] = value
        for key, value in typed.items():
            merged.setdefault(key, value)
        return merged

    @classmethod
    def from_json(cls, data: JsonInput) -> "RetainModel":
        """Decode a new record from a JSON object payload.

        The record is built fresh, so a failed decode never leaves a
        half-updated record behind.

        Raises:
            DecodeError: If the payload is malformed, not an object, or a
                field value does not fit its declared type
        """
        record = cls.model_construct()
        Retain(record).decode(data)
        logger.debug("Decoded %s with %d stored keys", cls.__name__, len(record.unknown))
        return record

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "RetainModel":
        """Decode a new record from an already-parsed JSON object."""
        record = cls.model_construct()
        Retain(record).decode_dict(obj)
        return record

    def unknown_fields(self) -> Dict[str, Any]:
        """Stored keys with no typed field behind them."""
        return Retain(self).unknown()

    def to_dict(self) -> Dict[str, Any]:
        """Typed fields overlaid on every retained key, as a plain dict."""
        return Retain(self).to_dict()

    def to_json(self, canonical: bool = False, indent: Optional[int] = None) -> bytes:
        """Encode this record, keeping every retained key.

        Raises:
            EncodeError: If a field or stored value is not JSON-representable
        """
        return Retain(self).encode(canonical=canonical, indent=indent)
