"""
Value codec for the persistence boundary and compressed entries.

Values are rendered to JSON with pydantic and optionally zlib-compressed.
Decoding validates against the namespace's declared value type, so a
namespace holding pydantic models gets models back after a restart.
"""

import zlib
from typing import Any

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from tripcache.services.errors import CacheError


class ValueCodec:
    """JSON (+ zlib) codec bound to one value type."""

    def __init__(self, value_type: Any = None, compression_threshold: int = 1024):
        self._adapter: TypeAdapter[Any] = TypeAdapter(
            value_type if value_type is not None else Any
        )
        self._threshold = compression_threshold

    def dumps(self, value: Any) -> bytes:
        """Render value as JSON bytes."""
        try:
            return self._adapter.dump_json(value)
        except PydanticSerializationError as e:
            raise CacheError(f"Value is not serializable: {e}") from e

    def encode(self, value: Any, compress: bool = False) -> tuple[bytes, bool]:
        """Encode value; returns (payload, is_compressed)."""
        raw = self.dumps(value)
        if compress and len(raw) >= self._threshold:
            return zlib.compress(raw), True
        return raw, False

    def decode(self, payload: bytes, compressed: bool = False) -> Any:
        """Decode a payload produced by encode()."""
        raw = zlib.decompress(payload) if compressed else payload
        return self._adapter.validate_json(raw)

    def estimate_size(self, value: Any) -> int:
        """Approximate in-memory footprint of value, in bytes."""
        try:
            return len(self.dumps(value))
        except CacheError:
            return len(repr(value))
