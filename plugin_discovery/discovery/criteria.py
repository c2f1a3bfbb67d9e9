# -*- coding: utf-8 -*-
"""
Discovery Criteria - Filter and query options for discovery sources.

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
import os
from dataclasses import dataclass

# plugin_discovery internal
from plugin_discovery.catalog.models import PluginGroupFilter, PluginInventoryFilter


INCLUDE_DEACTIVATED_ENV_VAR = (
    "PLUGIN_DISCOVERY_INCLUDE_DEACTIVATED_PLUGINS_FOR_TESTING"
)

_TRUE_VALUES = ('1', 't', 'true', 'y', 'yes', 'on')


@dataclass(frozen=True)
class PluginDiscoveryCriteria:
    """Conditions a plugin must meet to be discovered."""

    name: str = ""
    target: str = ""
    version: str = ""
    os: str = ""
    arch: str = ""

    def to_filter(self, include_hidden: bool = False) -> PluginInventoryFilter:
        return PluginInventoryFilter(
            name=self.name,
            target=self.target,
            version=self.version,
            os=self.os,
            arch=self.arch,
            include_hidden=include_hidden,
        )


@dataclass(frozen=True)
class GroupDiscoveryCriteria:
    """Conditions a plugin group must meet to be discovered."""

    vendor: str = ""
    publisher: str = ""
    name: str = ""
    version: str = ""

    def to_filter(self, include_hidden: bool = False) -> PluginGroupFilter:
        return PluginGroupFilter(
            vendor=self.vendor,
            publisher=self.publisher,
            name=self.name,
            version=self.version,
            include_hidden=include_hidden,
        )


@dataclass(frozen=True)
class QueryOptions:
    """Options applied to a single discovery query.

    Attributes
    ----------
    include_hidden : bool
        Also return plugins and groups deactivated in the inventory.
    """

    include_hidden: bool = False

    @classmethod
    def from_env(cls) -> 'QueryOptions':
        """Build options from the environment.

        ``PLUGIN_DISCOVERY_INCLUDE_DEACTIVATED_PLUGINS_FOR_TESTING`` is
        read as a boolean; unset or unrecognised values mean False.
        """
        raw = os.environ.get(INCLUDE_DEACTIVATED_ENV_VAR, "")
        return cls(include_hidden=raw.strip().lower() in _TRUE_VALUES)
