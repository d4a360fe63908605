"""Dot-path traversal over parsed JSON.

``"results.0.count"`` indexes lists by integer segment, ``"items.*.value"``
maps the remainder of the path over every element of ``items``.  A missing
segment yields ``MISSING`` rather than raising.
"""

from __future__ import annotations

from typing import Any


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def split_path(path: str | None) -> list[str]:
    if not path:
        return []
    return [seg for seg in path.strip().strip(".").split(".") if seg != ""]


def get_by_path(data: Any, path: str | None) -> Any:
    """Resolve *path* against *data*; an empty path returns *data* itself."""
    return _walk(data, split_path(path))


def _walk(current: Any, segments: list[str]) -> Any:
    for i, seg in enumerate(segments):
        if current is None or current is MISSING:
            return MISSING
        if seg == "*":
            if not isinstance(current, list):
                return MISSING
            rest = segments[i + 1:]
            if not rest:
                return list(current)
            return [_walk(item, rest) for item in current]
        if isinstance(current, dict):
            if seg not in current:
                return MISSING
            current = current[seg]
        elif isinstance(current, list):
            try:
                index = int(seg)
            except ValueError:
                return MISSING
            if not -len(current) <= index < len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current
