"""Unknown-field store.

UnknownFields holds every top-level key of the last decoded payload, in
payload order, with values exactly as the JSON parser produced them.
"""

from typing import Any, Dict

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema


class UnknownFields(dict):
    """Ordered mapping of wire key to raw decoded JSON value.

    Declaring a field of this type on a pydantic model marks it as the
    record's store field. The store is replaced wholesale on decode and
    selectively overwritten on encode; known keys are never pruned.
    """

    def copy(self) -> "UnknownFields":
        return UnknownFields(self)

    def __repr__(self) -> str:
        return f"UnknownFields({dict.__repr__(self)})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        # Validate as a plain str-keyed object, serialize back as a plain dict
        return core_schema.no_info_after_validator_function(
            cls,
            handler.generate_schema(Dict[str, Any]),
            serialization=core_schema.plain_serializer_function_ser_schema(dict),
        )
