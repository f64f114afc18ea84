"""Query fingerprinting and compatibility rules."""

import json
from collections.abc import Mapping
from typing import Any

from consigncache.types import QueryParams

# Keys that only steer pagination and never change the answer set
PAGINATION_KEYS = frozenset({"limit", "cursor"})


def strip_pagination(params: Mapping[str, Any]) -> QueryParams:
    """Return the filter keys of params, without pagination or unset values."""
    return {
        key: value
        for key, value in params.items()
        if key not in PAGINATION_KEYS and value is not None
    }


def fingerprint(params: Mapping[str, Any]) -> str:
    """Serialize filter params to a canonical, order-independent string.

    Example:
        fingerprint({"b": 2, "a": 1, "limit": 100})  # '{"a":1,"b":2}'
    """
    return json.dumps(
        strip_pagination(params),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def is_compatible(stored: Mapping[str, Any], params: Mapping[str, Any]) -> bool:
    """Check whether a query that returned an entity agrees with params.

    Compatible unless some filter key in params is also present in the
    stored query with a different value. Keys the stored query never set
    are not held against it.
    """
    for key, value in strip_pagination(params).items():
        if stored.get(key) is not None and stored[key] != value:
            return False
    return True
