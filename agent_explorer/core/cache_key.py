"""
Stable cache keys for filter and parameter objects.

Keys do not depend on mapping key order, but do depend on list order and
contents. The hash only needs to keep the key space compact; it is not
collision resistant.
"""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any, Optional

_MASK_32 = 0xFFFFFFFF
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def canonicalize(obj: Any) -> Any:
    """Return a structure equal to ``obj`` with every mapping's keys sorted.

    Raises:
        ValueError: If ``obj`` contains a reference cycle.
    """
    return _canonicalize(obj, set())


def _canonicalize(obj: Any, seen: set) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        obj = {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}

    if isinstance(obj, (dict, list, tuple, set, frozenset)):
        if id(obj) in seen:
            raise ValueError("Cannot build cache key: object contains a reference cycle")
        seen.add(id(obj))
        try:
            if isinstance(obj, dict):
                return {str(k): _canonicalize(obj[k], seen) for k in sorted(obj, key=str)}
            if isinstance(obj, (set, frozenset)):
                items = [_canonicalize(v, seen) for v in obj]
                return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
            return [_canonicalize(v, seen) for v in obj]
        finally:
            seen.discard(id(obj))

    return obj


def _rolling_hash(text: str) -> int:
    """Polynomial rolling hash (base 31), as a signed 32-bit integer."""
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) & _MASK_32
    return h - (1 << 32) if h & 0x80000000 else h


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def hash_key(obj: Any, namespace: Optional[str] = None) -> str:
    """Generate a compact cache key for an object.

    Args:
        obj: Plain data (mappings, sequences, scalars, dataclasses)
        namespace: Optional prefix separating key spaces that share one cache

    Returns:
        ``"<hash>"`` or ``"<namespace>:<hash>"``, hash in base 36
    """
    text = json.dumps(canonicalize(obj), separators=(",", ":"), ensure_ascii=True)
    key = _to_base36(_rolling_hash(text))
    return f"{namespace}:{key}" if namespace else key
