"""Configuration loading for Quire.

Site configuration lives in ``quire.yaml`` at the project root. Missing keys
fall back to DEFAULT_CONFIG; nested mappings (``highlighter``) are merged key
by key so a project only needs to state what it changes.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "quire.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Quire Blog",
    "description": "",
    "url": "",
    "root_url": "",
    "author": "",
    "output_dir": "public",
    "content_dir": "content",
    "theme": "default",
    "port": 4000,
    "feed_limit": 20,
    "highlight_mode": "client",
    "highlighter": {
        "script": "static/js/highlight.min.js",
        "activation": "static/js/highlight-init.js",
        "integrity": "",
    },
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from quire.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if isinstance(loaded, dict):
            config = _merge(config, loaded)
    if not isinstance(config.get("highlighter"), dict):
        config["highlighter"] = copy.deepcopy(DEFAULT_CONFIG["highlighter"])
    return config


def update_config_value(project_root: Path, keys: tuple[str, ...], value: Any) -> None:
    """Set a (nested) key in quire.yaml.

    The file is re-serialised with ``yaml.safe_dump``: other keys and their
    order survive, but comments and hand formatting do not.

    Args:
        project_root: Root directory of the project.
        keys: Path of keys, e.g. ("highlighter", "integrity").
        value: New value.
    """
    config_path = project_root / CONFIG_FILENAME
    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if isinstance(loaded, dict):
            data = loaded
    node = data
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[keys[-1]] = value
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False, default_flow_style=False)
