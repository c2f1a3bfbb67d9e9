# -*- coding: utf-8 -*-
"""
Shared fixtures for plugin_discovery tests.

Created
-------
2026-10-18
"""

import pytest

from plugin_discovery.catalog.database import PluginInventory
from plugin_discovery.catalog.metadata import InventoryMetadata
from plugin_discovery.catalog.models import (
    GroupPluginInfo,
    PluginArtifact,
    PluginGroup,
    PluginInventoryEntry,
)


def _artifacts(*versions, platforms=(('linux', 'amd64'), ('darwin', 'arm64'))):
    return {
        v: [
            PluginArtifact(
                os=os_, arch=arch,
                digest=f"{v}-{os_}-{arch}",
                uri=f"plugins/{os_}/{arch}/plugin:{v}",
            )
            for os_, arch in platforms
        ]
        for v in versions
    }


def sample_entries():
    return [
        PluginInventoryEntry(
            name="cluster",
            target="kubernetes",
            description="Kubernetes cluster operations",
            publisher="tkg",
            vendor="vmware",
            recommended_version="v1.10.0",
            artifacts=_artifacts("v1.2.0", "v1.10.0", "v1.2.3"),
        ),
        PluginInventoryEntry(
            name="login",
            target="global",
            description="Login to the platform",
            publisher="core",
            vendor="vmware",
            recommended_version="v0.2.0",
            artifacts=_artifacts("v0.1.0", "v0.2.0"),
        ),
        PluginInventoryEntry(
            name="secret",
            target="kubernetes",
            description="Deactivated plugin",
            publisher="tkg",
            vendor="vmware",
            recommended_version="v0.1.0",
            hidden=True,
            artifacts=_artifacts("v0.1.0"),
        ),
    ]


def sample_groups():
    return [
        PluginGroup(
            vendor="vmware", publisher="tkg", name="default", version="v2.1.0",
            description="Default plugins",
            plugins=[
                GroupPluginInfo("cluster", "kubernetes", "v1.10.0"),
                GroupPluginInfo("login", "global", "v0.2.0", mandatory=False),
            ],
        ),
        PluginGroup(
            vendor="vmware", publisher="tkg", name="default", version="v2.2.0",
            description="Default plugins",
            plugins=[GroupPluginInfo("cluster", "kubernetes", "v1.10.0")],
        ),
        PluginGroup(
            vendor="vmware", publisher="tmc", name="tmc-user", version="v0.0.1",
            description="Hidden group", hidden=True,
            plugins=[GroupPluginInfo("login", "global", "v0.1.0")],
        ),
    ]


def build_inventory_db(path, entries=None, groups=None):
    """Write a plugin inventory database at ``path``."""
    inventory = PluginInventory(path)
    inventory.create_schema()
    for entry in sample_entries() if entries is None else entries:
        inventory.insert_plugin(entry)
    for group in sample_groups() if groups is None else groups:
        inventory.insert_plugin_group(group)
    return path


def build_metadata_db(path, plugins, groups=()):
    """Write an inventory metadata database at ``path``."""
    metadata = InventoryMetadata(path)
    metadata.create_schema()
    metadata.add_plugins(plugins)
    metadata.add_groups(groups)
    return path


@pytest.fixture
def inventory_db(tmp_path):
    """A populated plugin inventory database."""
    return build_inventory_db(tmp_path / "plugin_inventory.db")


@pytest.fixture(autouse=True)
def _clear_discovery_env(monkeypatch, tmp_path):
    """Keep user environment variables and config files out of the tests."""
    monkeypatch.setattr(
        'plugin_discovery.core.config._CONFIG_FILE',
        tmp_path / "discovery-config.json",
    )
    for var in (
        'PLUGIN_DISCOVERY_CACHE_DIR',
        'PLUGIN_DISCOVERY_INCLUDE_DEACTIVATED_PLUGINS_FOR_TESTING',
        'PLUGIN_DISCOVERY_IMAGE_SIGNATURE_VERIFICATION_SKIP_LIST',
    ):
        monkeypatch.delenv(var, raising=False)
