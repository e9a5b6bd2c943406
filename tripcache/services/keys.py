"""
Deterministic cache keys.

A key is the base operation name plus a canonical JSON rendering of its
parameters, so identical requests collide and different ones do not. Long
keys are replaced by a hash; a hash collision is possible in principle, so
the builder remembers which canonical string produced each hashed key and
reports any collision it sees.
"""

import hashlib
import json
from typing import Any

from loguru import logger


def canonicalize(params: dict[str, Any] | None) -> str:
    """Stable JSON for a parameter mapping (sorted keys, compact)."""
    if not params:
        return ""
    return json.dumps(
        params,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


class CacheKeyBuilder:
    """
    Builds cache keys and watches hashed keys for collisions.

    Usage:
        keys = CacheKeyBuilder()
        key = keys.build("places.search", {"query": "museums", "city": "Lisbon"})
        # 'places.search?{"city":"Lisbon","query":"museums"}'
    """

    def __init__(self, max_length: int = 200):
        self._max_length = max_length
        self._hashed: dict[str, str] = {}
        self.collisions = 0

    def build(self, base: str, params: dict[str, Any] | None = None) -> str:
        """Build a key for base + params."""
        canonical = canonicalize(params)
        full_key = f"{base}?{canonical}" if canonical else base

        if len(full_key) <= self._max_length:
            return full_key

        digest = hashlib.sha256(full_key.encode()).hexdigest()[:32]
        key = f"{base[:64]}#{digest}"

        previous = self._hashed.setdefault(key, full_key)
        if previous != full_key:
            self.collisions += 1
            logger.warning(
                f"Cache key hash collision on {key}: "
                f"{previous[:80]!r} vs {full_key[:80]!r}"
            )
            self._hashed[key] = full_key
        return key

    def tracked_count(self) -> int:
        """Number of hashed keys being watched."""
        return len(self._hashed)
