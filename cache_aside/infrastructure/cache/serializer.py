"""
JSON Serializer

Converts cached values to and from bytes with orjson. When the caller names
the expected type, the decoded JSON is validated into it with a pydantic
TypeAdapter, so a pydantic model or dataclass comes back as an instance
rather than a dict.

Any failure to parse or validate a stored payload is a MalformedEntryError,
which the orchestrator answers by deleting the entry.
"""

from functools import lru_cache
from typing import Any

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from cache_aside.core.exceptions import CacheSerializationError, MalformedEntryError


def _default(value: Any) -> Any:
    """orjson fallback for types it doesn't serialize natively."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


@lru_cache(maxsize=256)
def _cached_adapter(value_type: Any) -> TypeAdapter:
    return TypeAdapter(value_type)


def _adapter_for(value_type: Any) -> TypeAdapter:
    try:
        hash(value_type)
    except TypeError:
        return TypeAdapter(value_type)
    return _cached_adapter(value_type)


class JsonSerializer:
    """
    orjson-backed serializer.

    orjson handles dataclasses, datetimes, UUIDs and enums natively; pydantic
    models go through model_dump(mode="json").
    """

    def encode(self, value: Any) -> bytes:
        """
        Encode a value as compact JSON bytes.

        Raises:
            CacheSerializationError: If the value cannot be represented as JSON
        """
        try:
            return orjson.dumps(value, default=_default, option=orjson.OPT_NON_STR_KEYS)
        except (orjson.JSONEncodeError, TypeError) as e:
            raise CacheSerializationError.from_exception(
                e,
                message=f"Cannot serialize value of type {type(value).__name__}",
                value_type=type(value).__name__,
            ) from e

    def decode(self, payload: bytes | str, value_type: Any = None) -> Any:
        """
        Decode JSON bytes, optionally validating into value_type.

        Raises:
            MalformedEntryError: If the payload is not valid JSON or does not
                match value_type
        """
        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            raise MalformedEntryError.from_exception(e, message="Stored payload is not valid JSON") from e

        if value_type is None:
            return data

        try:
            return _adapter_for(value_type).validate_python(data)
        except ValidationError as e:
            raise MalformedEntryError.from_exception(
                e,
                message=f"Stored payload does not match {getattr(value_type, '__name__', value_type)}",
                error_count=e.error_count(),
            ) from e
