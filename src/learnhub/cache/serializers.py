"""Cache payload serializers.

Values are stored as bytes in both tiers' wire format. Two encodings are
supported:

- JSON via orjson (human readable, the default)
- MessagePack via msgpack (smaller, faster)

plus a migration mode that writes MessagePack but can still read JSON
entries written before the switch. Non-native values (pydantic models,
dataclasses, UUIDs, datetimes) are flattened with pydantic's
``to_jsonable_python``; ``deserialize`` rebuilds them when a
``response_type`` is given.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

import msgpack
import orjson
from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from learnhub.cache.exceptions import CacheSerializationError
from learnhub.config import SerializerMode

logger = logging.getLogger(__name__)

# Leading bytes of a JSON document that cannot start a multi-byte MessagePack value
_JSON_LEADING = frozenset(b'{["')


@lru_cache(maxsize=256)
def _adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


def rehydrate(raw: Any, response_type: Any | None) -> Any:
    """Validate a decoded payload into ``response_type`` (no-op when None)."""
    if response_type is None or raw is None:
        return raw
    try:
        return _adapter(response_type).validate_python(raw)
    except ValidationError as e:
        raise CacheSerializationError(f"Cached payload does not match {response_type!r}") from e


class CacheSerializer(ABC):
    """Encode values to bytes and back."""

    name: str

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Encode a value; raises CacheSerializationError."""

    @abstractmethod
    def decode(self, data: bytes) -> Any:
        """Decode bytes to plain Python data; raises CacheSerializationError."""

    def serialize(self, value: Any) -> bytes:
        return self.encode(value)

    def deserialize(self, data: bytes | None, response_type: Any | None = None) -> Any:
        """Decode ``data``; empty or missing input is the empty value (None)."""
        if not data:
            return None
        return rehydrate(self.decode(data), response_type)


class JsonCacheSerializer(CacheSerializer):
    name = "json"

    def encode(self, value: Any) -> bytes:
        try:
            return orjson.dumps(value, default=to_jsonable_python)
        except (orjson.JSONEncodeError, TypeError) as e:
            raise CacheSerializationError(f"JSON encoding failed: {e}") from e

    def decode(self, data: bytes) -> Any:
        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise CacheSerializationError(f"JSON decoding failed: {e}") from e


class MessagePackCacheSerializer(CacheSerializer):
    name = "msgpack"

    def encode(self, value: Any) -> bytes:
        try:
            return msgpack.packb(value, default=to_jsonable_python, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as e:
            raise CacheSerializationError(f"MessagePack encoding failed: {e}") from e

    def decode(self, data: bytes) -> Any:
        try:
            return msgpack.unpackb(data, raw=False, strict_map_key=False)
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            raise CacheSerializationError(f"MessagePack decoding failed: {e}") from e


class MigratingCacheSerializer(CacheSerializer):
    """Writes MessagePack, reads MessagePack or legacy JSON."""

    name = "json-read-msgpack-write"

    def __init__(self) -> None:
        self._json = JsonCacheSerializer()
        self._msgpack = MessagePackCacheSerializer()

    def encode(self, value: Any) -> bytes:
        return self._msgpack.encode(value)

    def decode(self, data: bytes) -> Any:
        if len(data) > 1 and data[0] in _JSON_LEADING:
            try:
                return self._json.decode(data)
            except CacheSerializationError:
                pass
        try:
            return self._msgpack.decode(data)
        except CacheSerializationError:
            logger.debug("Payload is not MessagePack, retrying as JSON")
            return self._json.decode(data)


def get_serializer(mode: SerializerMode | str) -> CacheSerializer:
    """Serializer for the configured mode."""
    mode = SerializerMode(mode)
    if mode is SerializerMode.MSGPACK:
        return MessagePackCacheSerializer()
    if mode is SerializerMode.JSON_READ_MSGPACK_WRITE:
        return MigratingCacheSerializer()
    return JsonCacheSerializer()
