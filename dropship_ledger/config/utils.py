"""Helpers for assembling configuration dictionaries before validation."""

from pathlib import Path
from typing import Any, Dict, Mapping

import yaml


def deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` onto ``base`` section by section.

    Sections present in both are merged key by key; any other value in
    ``override`` replaces the one in ``base``. Neither input is mutated.

    Args:
        base: Baseline values, typically ``Config().model_dump()``.
        override: Values that win over the baseline.

    Returns:
        A new dictionary.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def unflatten(dotted: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn ``{"control.emergency_reserve": 250}`` into nested sections."""
    nested: Dict[str, Any] = {}
    for key, value in dotted.items():
        *sections, leaf = key.split(".")
        target = nested
        for section in sections:
            target = target.setdefault(section, {})
        target[leaf] = value
    return nested


def load_yaml_sections(path: Path) -> Dict[str, Any]:
    """Read a YAML run file, dropping top-level keys that start with ``_``.

    Underscore keys hold YAML anchors shared between sections and are not
    configuration themselves.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the document is not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping of sections")
    return {key: value for key, value in data.items() if not str(key).startswith("_")}
