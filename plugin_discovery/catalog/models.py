# -*- coding: utf-8 -*-
"""
Catalog Models - Data models for plugin inventory records.

Defines the rows read from a plugin inventory database (plugin entries,
plugin groups and their artifacts), the filters used to query them, and
the DiscoveredPlugin value returned by a discovery source.

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
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Discovery kind tag for OCI-backed inventories.
DISCOVERY_TYPE_OCI = "oci"

PLUGIN_SCOPE_STANDALONE = "Standalone"
PLUGIN_STATUS_NOT_INSTALLED = "not installed"

# Special version filter value selecting the recommended version.
VERSION_LATEST = "latest"


@dataclass
class PluginArtifact:
    """A distributable binary of one plugin version for one platform.

    Attributes
    ----------
    os : str
        Operating system (e.g., 'linux', 'darwin', 'windows').
    arch : str
        CPU architecture (e.g., 'amd64', 'arm64').
    digest : str
        SHA256 digest of the plugin binary.
    image : str
        OCI image holding the binary, if distributed through a registry.
    uri : str
        Location of the binary as stored in the inventory.
    """

    os: str
    arch: str
    digest: str = ""
    image: str = ""
    uri: str = ""


# Version string -> artifacts for each supported platform
Distribution = Dict[str, List[PluginArtifact]]


class PluginInventoryEntry:
    """A plugin as described by the inventory, with all its versions.

    Parameters
    ----------
    name : str
        Plugin name.
    target : str
        Target the plugin applies to (e.g., 'kubernetes', 'mission-control',
        'global').
    description : str
        Human-readable description.
    publisher : str
        Publisher of the plugin.
    vendor : str
        Vendor of the plugin.
    recommended_version : str
        Version recommended for installation.
    hidden : bool
        Whether the plugin is deactivated in the inventory.
    artifacts : Optional[Distribution]
        Mapping of version to artifacts.
    """

    def __init__(
        self,
        name: str,
        target: str,
        description: str = "",
        publisher: str = "",
        vendor: str = "",
        recommended_version: str = "",
        hidden: bool = False,
        artifacts: Optional[Distribution] = None,
    ) -> None:
        self.name = name
        self.target = target
        self.description = description
        self.publisher = publisher
        self.vendor = vendor
        self.recommended_version = recommended_version
        self.hidden = hidden
        self.artifacts: Distribution = artifacts or {}

    def __repr__(self) -> str:
        return (
            f"PluginInventoryEntry(name={self.name!r}, target={self.target!r}, "
            f"versions={sorted(self.artifacts)!r})"
        )


@dataclass
class GroupPluginInfo:
    """A plugin referenced by a plugin group."""

    name: str
    target: str
    version: str
    mandatory: bool = True


@dataclass
class PluginGroup:
    """A named, versioned set of plugins that can be installed together.

    Attributes
    ----------
    vendor : str
    publisher : str
    name : str
    version : str
    description : str
    hidden : bool
        Whether the group is deactivated in the inventory.
    plugins : List[GroupPluginInfo]
        Members of the group.
    """

    vendor: str
    publisher: str
    name: str
    version: str
    description: str = ""
    hidden: bool = False
    plugins: List[GroupPluginInfo] = field(default_factory=list)

    @property
    def identifier(self) -> str:
        """Group identifier in ``vendor-publisher/name:version`` form."""
        return f"{self.vendor}-{self.publisher}/{self.name}:{self.version}"


@dataclass
class PluginInventoryFilter:
    """Filter for plugin queries. Empty fields match everything."""

    name: str = ""
    target: str = ""
    version: str = ""
    os: str = ""
    arch: str = ""
    include_hidden: bool = False


@dataclass
class PluginGroupFilter:
    """Filter for plugin group queries. Empty fields match everything."""

    vendor: str = ""
    publisher: str = ""
    name: str = ""
    version: str = ""
    include_hidden: bool = False


@dataclass
class DiscoveredPlugin:
    """A plugin found by a discovery source.

    ``installed_version``, ``context_name`` and ``status`` are filled in
    later by the plugin lifecycle manager; discovery leaves them unset.

    Attributes
    ----------
    name : str
    target : str
    description : str
    recommended_version : str
    supported_versions : List[str]
        Versions sorted in ascending semantic version order.
    distribution : Distribution
        Mapping of version to platform artifacts.
    source : str
        Name of the discovery source that found the plugin.
    discovery_type : str
        Kind of discovery source.
    scope : str
    optional : bool
    installed_version : str
    context_name : str
    status : str
    """

    name: str
    target: str
    description: str = ""
    recommended_version: str = ""
    supported_versions: List[str] = field(default_factory=list)
    distribution: Distribution = field(default_factory=dict)
    source: str = ""
    discovery_type: str = DISCOVERY_TYPE_OCI
    scope: str = PLUGIN_SCOPE_STANDALONE
    optional: bool = False
    installed_version: str = ""
    context_name: str = ""
    status: str = PLUGIN_STATUS_NOT_INSTALLED

    def display_version(self) -> str:
        """Installed version if any, otherwise the recommended version."""
        return self.installed_version or self.recommended_version

    def sort_key(self) -> tuple:
        return (self.name, self.target)
