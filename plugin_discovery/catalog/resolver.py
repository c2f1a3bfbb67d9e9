# -*- coding: utf-8 -*-
"""
Cache Path Resolver - Locate the plugin inventory cache directories.

Resolves the cache root using a priority chain:
1. PLUGIN_DISCOVERY_CACHE_DIR environment variable (highest priority)
2. ~/.config/plugin-discovery/config.json "cache_dir" field
3. ~/.cache/plugin-discovery (default fallback)

Each discovery source gets its own directory below the root so that
sources never share digest markers or inventory files.

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-10-18

Modified
--------
2026-10-18
"""

# Standard library
import json
import os
import re
from pathlib import Path


_ENV_VAR = "PLUGIN_DISCOVERY_CACHE_DIR"
_CONFIG_DIR = Path(".config") / "plugin-discovery"
_CONFIG_FILE = "config.json"
_DEFAULT_CACHE_DIR = Path(".cache") / "plugin-discovery"
_INVENTORY_SUBDIR = "plugin_inventory"

_UNSAFE_CHARS = re.compile(r'[^\w\-.]')


def resolve_cache_root() -> Path:
    """Resolve the root directory of the plugin inventory cache.

    Priority:
    1. ``PLUGIN_DISCOVERY_CACHE_DIR`` environment variable
    2. ``~/.config/plugin-discovery/config.json`` → ``cache_dir`` field
    3. ``~/.cache/plugin-discovery`` (default)

    Returns
    -------
    Path
        Resolved cache root.
    """
    # Priority 1: Environment variable
    env_path = os.environ.get(_ENV_VAR)
    if env_path:
        return Path(env_path)

    home = Path.home()

    # Priority 2: Config file
    config_path = home / _CONFIG_DIR / _CONFIG_FILE
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
            cache_dir = config.get('cache_dir')
            if cache_dir:
                return Path(cache_dir)
        except (json.JSONDecodeError, OSError, AttributeError):
            pass

    # Priority 3: Default location
    return home / _DEFAULT_CACHE_DIR


def source_cache_dir(source_name: str) -> Path:
    """Return (and create) the cache directory of one discovery source.

    Parameters
    ----------
    source_name : str
        Name of the discovery source. Characters that are not safe in a
        file name are replaced with ``_``.

    Returns
    -------
    Path
        ``<cache root>/plugin_inventory/<source_name>``.
    """
    if not source_name:
        raise ValueError("source_name must not be empty")
    safe_name = _UNSAFE_CHARS.sub('_', source_name)
    cache_dir = resolve_cache_root() / _INVENTORY_SUBDIR / safe_name
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir
