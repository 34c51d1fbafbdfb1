"""Shadow models.

A record class may carry hooks (model validators and serializers) that
dispatch back into retention. Decoding the record's typed fields through
the record class itself would then re-enter that logic. The shadow is a
plain pydantic model with the same mapped fields, aliases, Field
constraints and validators, but none of the record's wrap hooks or
serializers, so validating and serializing through it always stops at the
base structural behavior.

Only mapped fields are copied: the store field and ignored fields do not
exist on the shadow, and unknown keys are ignored rather than rejected.
"""

import copy
import logging
from functools import lru_cache
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, create_model, field_validator, model_validator

from retain.mapping import field_mapping

logger = logging.getLogger(__name__)

# Config keys that do not carry over to the shadow
_DROPPED_CONFIG_KEYS = (
    "alias_generator",  # aliases are already resolved on each FieldInfo
    "extra",
    "frozen",
    "title",
    "json_schema_extra",
)


def shadow_config(model: type) -> ConfigDict:
    """Config for a record's shadow.

    Inherits the record's config, including `strict`, and ignores extra
    keys. A record that sets no `strict` converts the way pydantic does by
    default, the same as when pydantic validates the record itself.
    """
    config: Dict[str, Any] = {
        k: v for k, v in model.model_config.items() if k not in _DROPPED_CONFIG_KEYS
    }
    config["extra"] = "ignore"
    return ConfigDict(**config)


def shadow_validators(model: type) -> Dict[str, Any]:
    """The record's own validators, redeclared for its shadow.

    Field validators (any mode) carry over for the fields the shadow has.
    Model validators carry over in "before" and "after" mode; "wrap" model
    validators are hooks around the whole record and stay behind. Class
    validators stay bound to the record class, so `cls` inside them is the
    record; "after" validators receive the shadow instance as `self`.
    """
    names = set(field_mapping(model).names())
    decorators = model.__pydantic_decorators__
    validators: Dict[str, Any] = {}

    for var_name, dec in decorators.field_validators.items():
        fields = tuple(f for f in dec.info.fields if f == "*" or f in names)
        if not fields:
            continue
        validators[var_name] = field_validator(
            *fields, mode=dec.info.mode, check_fields=False
        )(staticmethod(dec.func))

    for var_name, dec in decorators.model_validators.items():
        if dec.info.mode == "wrap":
            continue
        func = dec.func if dec.info.mode == "after" else staticmethod(dec.func)
        validators[var_name] = model_validator(mode=dec.info.mode)(func)

    return validators


@lru_cache(maxsize=None)
def shadow_model(model: type) -> type:
    """Return the cached hook-free shadow of a record class.

    Args:
        model: Record class (see retain.mapping.field_mapping)

    Returns:
        A BaseModel subclass named "<Record>Shadow"

    Raises:
        RetainConfigError: If the record's field mapping is invalid
    """
    mapping = field_mapping(model)
    fields: Dict[str, Tuple[Any, Any]] = {}
    for entry in mapping.entries:
        info = model.model_fields[entry.name]
        # FieldInfo objects belong to their model; never share them
        fields[entry.name] = (info.annotation, copy.copy(info))

    validators = shadow_validators(model)
    shadow = create_model(
        f"{model.__name__}Shadow",
        __config__=shadow_config(model),
        __module__=model.__module__,
        __validators__=validators,
        **fields,
    )
    logger.debug(
        "Created shadow model %s for %s with %d validators",
        shadow.__name__, model.__name__, len(validators),
    )
    return shadow


def empty_shadow(model: type) -> BaseModel:
    """An unvalidated shadow instance, ready to receive field values."""
    return shadow_model(model).model_construct()
