"""Deep merge of fixture datasets with caller overrides."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


def deep_merge(*sources: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge mappings left to right into a new dict.

    Later sources win. Nested mappings are merged recursively; lists and
    scalars from a later source replace the earlier value whole. Key order
    follows first appearance. ``None`` sources are skipped and no input is
    mutated.

    Example:
        >>> deep_merge({"a": {"x": 1, "y": 2}, "l": [1, 2]}, {"a": {"y": 3}, "l": [9]})
        {'a': {'x': 1, 'y': 3}, 'l': [9]}
    """
    result: dict[str, Any] = {}
    for source in sources:
        if source is None:
            continue
        _merge_into(result, source)
    return result


def _merge_into(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        elif isinstance(value, Mapping):
            target[key] = deep_merge(value)
        else:
            target[key] = copy.deepcopy(value)
