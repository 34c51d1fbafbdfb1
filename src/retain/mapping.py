"""Wire-key mapping for record classes.

A FieldMapping lists, in declaration order, which pydantic field of a
record is written under which top-level JSON key. It is derived purely from
the class, so it is built once per class and cached for the process.

Key resolution rules:
- The store field (annotated UnknownFields) is never mapped
- Fields marked Ignore, or declared with Field(exclude=True), are not mapped
- Wire key = the field's alias if it has one, else the field name
- Validation and serialization aliases must agree (decode and encode use one key)
- Two fields on the same wire key is a MappingConflictError
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from retain.errors import MappingConflictError, RetainConfigError, StoreFieldError
from retain.store import UnknownFields

logger = logging.getLogger(__name__)


class IgnoreField:
    """Annotated marker excluding a field from decode and encode."""

    def __repr__(self) -> str:
        return "Ignore"


Ignore = IgnoreField()


@dataclass(frozen=True)
class FieldEntry:
    """One mapped field: JSON key and the model attribute behind it."""
    wire_key: str
    name: str


@dataclass(frozen=True)
class FieldMapping:
    """Ordered wire-key mapping of one record class."""
    model: type
    store_field: str
    entries: Tuple[FieldEntry, ...]
    ignored: Tuple[str, ...] = ()

    def wire_keys(self) -> List[str]:
        return [entry.wire_key for entry in self.entries]

    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def key_for(self, name: str) -> Optional[str]:
        """Wire key of a field, or None if the field is not mapped."""
        for entry in self.entries:
            if entry.name == name:
                return entry.wire_key
        return None

    def unknown_keys(self, keys: Iterable[str]) -> List[str]:
        """Keys (in the given order) with no mapped field."""
        known = set(self.wire_keys())
        return [k for k in keys if k not in known]


def is_store_annotation(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, UnknownFields)


def is_ignored(info: FieldInfo) -> bool:
    if info.exclude is True:
        return True
    return any(isinstance(m, IgnoreField) for m in info.metadata)


def _wire_key(model_name: str, name: str, info: FieldInfo) -> str:
    """Resolve the single JSON key a field decodes from and encodes to."""
    for alias in (info.alias, info.validation_alias, info.serialization_alias):
        if alias is not None and not isinstance(alias, str):
            raise RetainConfigError(
                f"{model_name}.{name}: alias {alias!r} is not a plain string; "
                f"retained records need one wire key per field"
            )

    decode_key = info.validation_alias or info.alias or name
    encode_key = info.serialization_alias or info.alias or name
    if decode_key != encode_key:
        raise RetainConfigError(
            f"{model_name}.{name}: decodes from {decode_key!r} but encodes to {encode_key!r}"
        )
    return decode_key


def build_field_mapping(model: type) -> FieldMapping:
    """Introspect a record class without caching. See field_mapping()."""
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise RetainConfigError(
            f"Retained records must be pydantic models, got {model!r}"
        )
    model_name = model.__name__

    store_fields = [
        name for name, info in model.model_fields.items()
        if is_store_annotation(info.annotation)
    ]
    if not store_fields:
        raise StoreFieldError(
            f"{model_name} declares no UnknownFields store field"
        )
    if len(store_fields) > 1:
        raise StoreFieldError(
            f"{model_name} declares more than one UnknownFields store field: {store_fields}"
        )

    entries: List[FieldEntry] = []
    ignored: List[str] = []
    owners: Dict[str, str] = {}  # wire key -> field name

    for name, info in model.model_fields.items():
        if name == store_fields[0]:
            continue
        if is_ignored(info):
            ignored.append(name)
            continue
        key = _wire_key(model_name, name, info)
        if key in owners:
            raise MappingConflictError(model_name, key, (owners[key], name))
        owners[key] = name
        entries.append(FieldEntry(wire_key=key, name=name))

    logger.debug(
        "Built field mapping for %s: %d mapped, %d ignored, store=%s",
        model_name, len(entries), len(ignored), store_fields[0],
    )
    return FieldMapping(
        model=model,
        store_field=store_fields[0],
        entries=tuple(entries),
        ignored=tuple(ignored),
    )


@lru_cache(maxsize=None)
def field_mapping(model: type) -> FieldMapping:
    """Return the cached FieldMapping of a record class.

    Args:
        model: A pydantic model class declaring one UnknownFields field

    Returns:
        FieldMapping in field declaration order

    Raises:
        MappingConflictError: If two fields share a wire key
        StoreFieldError: If the store field is missing or duplicated
        RetainConfigError: If the class is not a pydantic model or a field
            has no single string wire key
    """
    return build_field_mapping(model)
