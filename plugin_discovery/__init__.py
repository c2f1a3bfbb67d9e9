# -*- coding: utf-8 -*-
"""
plugin_discovery - Plugin inventory discovery and caching.

Discovers the plugins and plugin groups published in OCI-hosted plugin
inventories. Each discovery source keeps a digest-validated local copy
of its inventory database and refreshes it only when the published
image changes.

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

__version__ = "0.1.0"

from plugin_discovery.catalog.models import DiscoveredPlugin, PluginGroup
from plugin_discovery.discovery.criteria import (
    GroupDiscoveryCriteria,
    PluginDiscoveryCriteria,
    QueryOptions,
)
from plugin_discovery.discovery.pool import DiscoveryPool
from plugin_discovery.discovery.source import DBBackedOCIDiscovery
from plugin_discovery.exceptions import DiscoveryError, DiscoverySourceError


__all__: list = [
    "DBBackedOCIDiscovery",
    "DiscoveredPlugin",
    "DiscoveryError",
    "DiscoveryPool",
    "DiscoverySourceError",
    "GroupDiscoveryCriteria",
    "PluginDiscoveryCriteria",
    "PluginGroup",
    "QueryOptions",
]
