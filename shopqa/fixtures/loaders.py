"""Load default fixture datasets from JSON/YAML files."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import yaml

from shopqa.errors import FixtureLoadError

DATA_DIR = Path(__file__).parent / "data"
SUFFIXES = (".json", ".yaml", ".yml")


class FixtureLoader:
    """Load named datasets (``"product"`` -> ``product.json``) from a directory.

    Parsed files are cached; every call returns a deep copy so callers may
    mutate what they get.
    """

    def __init__(self, base_path: str | Path | None = None):
        self.base_path = Path(base_path) if base_path else DATA_DIR
        self._cache: dict[str, Any] = {}

    def exists(self, name: str) -> bool:
        return self._find(name) is not None

    def load(self, name: str, use_cache: bool = True) -> Any:
        """Load a dataset by name or by path relative to the base directory."""
        path = self._find(name)
        if path is None:
            raise FixtureLoadError(f"Fixture dataset not found: {name} (in {self.base_path})")

        cache_key = str(path)
        if use_cache and cache_key in self._cache:
            return copy.deepcopy(self._cache[cache_key])

        if path.suffix == ".json":
            data = self._load_json(path)
        else:
            data = self._load_yaml(path)

        if use_cache:
            self._cache[cache_key] = data

        return copy.deepcopy(data)

    def load_or_empty(self, name: str) -> dict[str, Any]:
        """Load a mapping dataset, or an empty dict when none exists."""
        if not self.exists(name):
            return {}
        data = self.load(name)
        if not isinstance(data, dict):
            raise FixtureLoadError(f"Fixture dataset {name} must contain an object")
        return data

    def _find(self, name: str) -> Path | None:
        path = Path(name)
        if not path.is_absolute():
            path = self.base_path / path
        if path.suffix in SUFFIXES:
            return path if path.is_file() else None
        for suffix in SUFFIXES:
            candidate = path.with_name(path.name + suffix)
            if candidate.is_file():
                return candidate
        return None

    def _load_json(self, path: Path) -> Any:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise FixtureLoadError(f"Invalid JSON in {path}: {e}", cause=e) from e

    def _load_yaml(self, path: Path) -> Any:
        try:
            with open(path, encoding="utf-8") as f:
                return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise FixtureLoadError(f"Invalid YAML in {path}: {e}", cause=e) from e

    def clear_cache(self) -> None:
        self._cache.clear()
