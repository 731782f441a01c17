"""
Fast JSON Utility Module

orjson-backed serialization for log payloads and Bot API responses.

Usage:
    from utils.fast_json import json_dumps, json_loads

    line = json_dumps({"b": 1, "a": 2})  # '{"a":2,"b":1}'
"""

from __future__ import annotations

from typing import Any

import orjson


def _default(obj: Any) -> str:
    """Fallback for values orjson cannot encode natively."""
    return str(obj)


def json_loads(data: str | bytes) -> Any:
    """Parse JSON string/bytes to Python object."""
    return orjson.loads(data)


def json_dumps(obj: Any, *, sort_keys: bool = True, indent: bool = False) -> str:
    """
    Serialize Python object to a JSON string.

    Keys are sorted by default so the same payload always produces the same
    line. Unsupported values (paths, exceptions, sets) are stringified.
    """
    option = orjson.OPT_NON_STR_KEYS
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    if indent:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, default=_default, option=option).decode("utf-8")


__all__ = ["json_dumps", "json_loads"]
