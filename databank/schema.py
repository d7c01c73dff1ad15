"""Per-type schema declarations: primary key field and indexed properties."""

from collections.abc import Mapping
from typing import Any

import msgspec

from .errors import ConfigError

DEFAULT_PKEY = "id"


class TypeSchema(msgspec.Struct, frozen=True, kw_only=True):
    """Schema for one record type.

    ``indices`` lists dotted property paths that drivers may use to
    accelerate equality search. Paths not listed are still searchable by
    a full scan.
    """

    pkey: str | None = None
    indices: tuple[str, ...] = ()


Schema = dict[str, TypeSchema]


def parse_schema(schema: Mapping[str, Any] | None) -> Schema:
    """Convert a plain mapping (e.g. loaded from YAML) into a schema."""
    if not schema:
        return {}
    if not isinstance(schema, Mapping):
        raise ConfigError(f"Schema must be a mapping, not {type(schema).__name__}")

    result: Schema = {}
    for type_name, declaration in schema.items():
        if isinstance(declaration, TypeSchema):
            result[type_name] = declaration
            continue
        try:
            result[type_name] = msgspec.convert(declaration or {}, TypeSchema)
        except msgspec.ValidationError as e:
            raise ConfigError(f"Invalid schema for type '{type_name}': {e}") from e
    return result

