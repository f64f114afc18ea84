"""Cache configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from consigncache.duration import parse_duration
from consigncache.types import ENTITY_TYPES, Duration

DEFAULT_TTLS: dict[str, Duration] = {
    "categories": "24h",
    "locations": "24h",
    "accounts": "4h",
    "items": "2h",
    "sales": "1h",
    "batches": "2h",
    "items:id": "30m",
    "sales:id": "15m",
    "accounts:id": "1h",
    "batches:id": "30m",
    "categories:id": "24h",
    "locations:id": "24h",
}

DEFAULT_WARNING_THRESHOLD = 10_000


def id_cache_key(entity_type: str) -> str:
    """Name of the single-entity table for an entity type."""
    return f"{entity_type}:id"


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Configuration for a CacheManager.

    ``ttl`` is merged over ``DEFAULT_TTLS``, so only overrides need to be
    given. Keys are entity types ("items") or single-entity tables
    ("items:id").
    """

    enabled: bool = True
    warning_threshold: int = DEFAULT_WARNING_THRESHOLD
    ttl: Mapping[str, Duration] = field(default_factory=dict)
    default_ttl: Duration = "2h"

    def __post_init__(self) -> None:
        if self.warning_threshold <= 0:
            raise ValueError("warning_threshold must be positive")
        merged = {**DEFAULT_TTLS, **self.ttl}
        # Validate eagerly so a bad value fails at startup
        for value in merged.values():
            parse_duration(value)
        parse_duration(self.default_ttl)
        object.__setattr__(self, "ttl", merged)

    def ttl_for(self, key: str) -> float:
        """TTL in seconds for a cache key, falling back to default_ttl."""
        return parse_duration(self.ttl.get(key, self.default_ttl))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CacheConfig:
        """Build a config from CACHE_* environment variables.

        Reads CACHE_ENABLED, CACHE_WARNING_THRESHOLD, CACHE_TTL_<TYPE> and
        CACHE_TTL_<TYPE>_ID. TTL values are seconds or duration strings.
        """
        env = os.environ if environ is None else environ
        ttl: dict[str, Duration] = {}
        for entity_type in ENTITY_TYPES:
            name = f"CACHE_TTL_{entity_type.upper()}"
            if name in env:
                ttl[entity_type] = _env_duration(name, env[name])
            if f"{name}_ID" in env:
                ttl[id_cache_key(entity_type)] = _env_duration(
                    f"{name}_ID", env[f"{name}_ID"]
                )

        threshold = env.get("CACHE_WARNING_THRESHOLD")
        try:
            warning_threshold = (
                int(threshold) if threshold else DEFAULT_WARNING_THRESHOLD
            )
        except ValueError:
            raise ValueError(
                f"Invalid CACHE_WARNING_THRESHOLD: {threshold!r}"
            ) from None

        return cls(
            enabled=env.get("CACHE_ENABLED", "true").strip().lower() != "false",
            warning_threshold=warning_threshold,
            ttl=ttl,
        )


def _env_duration(name: str, raw: str) -> Duration:
    value = raw.strip()
    duration: Duration = int(value) if value.isdigit() else value
    try:
        parse_duration(duration)
    except ValueError:
        raise ValueError(f"Invalid {name}: {raw!r}") from None
    return duration
