"""
Cache entry model and wire format.

Wire format (distributed tier), orjson-encoded:
    {"key": ..., "value": ..., "createdAt": <epoch ms>, "ttlMillis": <ms>, "tags": [...]}
"""

from dataclasses import dataclass, field
from typing import Any

import orjson

from tiercache.core.exceptions import CacheSerializationError


def normalize_tags(tags) -> tuple[str, ...]:
    """De-duplicate tags, keeping first-seen order."""
    if not tags:
        return ()
    if isinstance(tags, str):
        tags = (tags,)
    return tuple(dict.fromkeys(str(tag) for tag in tags))


@dataclass(frozen=True)
class CacheEntry:
    """
    A single cached value.

    Entries are immutable: every write replaces the entry wholesale.
    An entry is live iff ``now - created_at < ttl_millis``.
    """

    key: str
    value: Any
    created_at: int
    ttl_millis: int
    tags: tuple[str, ...] = field(default=())

    @property
    def expires_at(self) -> int:
        return self.created_at + self.ttl_millis

    def is_live(self, now_millis: int) -> bool:
        return now_millis - self.created_at < self.ttl_millis

    def age_millis(self, now_millis: int) -> int:
        return max(0, now_millis - self.created_at)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def to_payload(self) -> bytes:
        """
        Serialize for the distributed tier.

        Raises:
            CacheSerializationError: If the value is not JSON-representable
        """
        try:
            return orjson.dumps(
                {
                    "key": self.key,
                    "value": self.value,
                    "createdAt": self.created_at,
                    "ttlMillis": self.ttl_millis,
                    "tags": list(self.tags),
                },
                option=orjson.OPT_NON_STR_KEYS,
            )
        except TypeError as e:
            # orjson.JSONEncodeError subclasses TypeError
            raise CacheSerializationError.from_exception(
                e, message="Cache value is not serializable", key=self.key
            )

    @classmethod
    def from_payload(cls, payload: bytes | str, key: str | None = None) -> "CacheEntry":
        """
        Deserialize a distributed-tier payload.

        Args:
            payload: Raw bytes as stored
            key: Key the payload was read under; wins over the embedded key

        Raises:
            CacheSerializationError: If the payload is malformed
        """
        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            raise CacheSerializationError.from_exception(
                e, message="Malformed cache payload", key=key
            )

        if not isinstance(data, dict) or "value" not in data:
            raise CacheSerializationError("Cache payload missing value", details={"key": key})

        try:
            created_at = int(data["createdAt"])
            ttl_millis = int(data["ttlMillis"])
        except (KeyError, TypeError, ValueError) as e:
            raise CacheSerializationError.from_exception(
                e, message="Cache payload missing expiry metadata", key=key
            )

        tags = data.get("tags") or []
        if not isinstance(tags, list):
            raise CacheSerializationError("Cache payload tags must be a list", details={"key": key})

        return cls(
            key=key or data.get("key") or "",
            value=data["value"],
            created_at=created_at,
            ttl_millis=ttl_millis,
            tags=normalize_tags(tags),
        )
