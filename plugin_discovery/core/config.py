# -*- coding: utf-8 -*-
"""
Configuration Module - Configurable defaults for plugin discovery.

Provides a DiscoveryConfig dataclass with default values for registry
timeouts, download size bounds, signature verification and worker
counts. Loads from ~/.config/plugin-discovery/config.json if it exists,
otherwise uses sensible defaults.

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
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

_CONFIG_DIR = Path.home() / ".config" / "plugin-discovery"
_CONFIG_FILE = _CONFIG_DIR / "config.json"

_MIB = 1024 * 1024


@dataclass
class DiscoveryConfig:
    """Global plugin discovery configuration with defaults.

    Attributes
    ----------
    request_timeout : float
        HTTP timeout for inventory image requests in seconds.
    metadata_request_timeout : float
        HTTP timeout for inventory metadata image requests in seconds.
    max_blob_size : int
        Largest inventory image layer accepted, in bytes.
    max_metadata_blob_size : int
        Largest inventory metadata image layer accepted, in bytes.
    verify_signatures : bool
        Verify the inventory image signature before downloading it.
    cosign_binary : str
        Name or path of the cosign executable.
    cosign_public_key : Optional[str]
        Public key used by cosign. If None, cosign's keyless mode is used.
    signature_timeout : float
        Timeout for one cosign invocation in seconds.
    plain_http_registries : List[str]
        Registry hosts contacted over plain HTTP instead of HTTPS.
    max_workers : int
        Maximum worker threads when discovering several sources.
    """

    request_timeout: float = 30.0
    metadata_request_timeout: float = 10.0
    max_blob_size: int = 512 * _MIB
    max_metadata_blob_size: int = 64 * _MIB
    verify_signatures: bool = True
    cosign_binary: str = "cosign"
    cosign_public_key: Optional[str] = None
    signature_timeout: float = 60.0
    plain_http_registries: List[str] = field(default_factory=list)
    max_workers: int = 4

    def save(self, path: Optional[Path] = None) -> None:
        """Save config to JSON file."""
        path = path or _CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2)


def load_config(path: Optional[Path] = None) -> DiscoveryConfig:
    """Load configuration from file, or return defaults.

    Parameters
    ----------
    path : Optional[Path]
        Config file path. Defaults to
        ~/.config/plugin-discovery/config.json.

    Returns
    -------
    DiscoveryConfig
        Loaded or default configuration.
    """
    path = path or _CONFIG_FILE
    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return DiscoveryConfig(**{
                k: v for k, v in data.items()
                if k in DiscoveryConfig.__dataclass_fields__
            })
        except Exception as e:
            logger.warning("Failed to load config from %s: %s", path, e)

    return DiscoveryConfig()
