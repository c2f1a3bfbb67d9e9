# -*- coding: utf-8 -*-
"""
Tests for plugin_discovery.discovery.source - DBBackedOCIDiscovery.

Covers the full check / refresh / query cycle with the registry, cosign
and network replaced by mocks.

Created
-------
2026-10-18
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from plugin_discovery.catalog.models import (
    DISCOVERY_TYPE_OCI,
    PLUGIN_STATUS_NOT_INSTALLED,
    PluginArtifact,
    PluginInventoryEntry,
)
from plugin_discovery.core.config import DiscoveryConfig
from plugin_discovery.discovery.cache import CacheValidator
from plugin_discovery.discovery.criteria import (
    GroupDiscoveryCriteria,
    PluginDiscoveryCriteria,
    QueryOptions,
)
from plugin_discovery.discovery.refresher import CatalogRefresher
from plugin_discovery.discovery.source import DBBackedOCIDiscovery
from plugin_discovery.exceptions import (
    DiscoverySourceError,
    ImageResolutionError,
    RegistryError,
    SignatureVerificationError,
)
from plugin_discovery.oci.signature import CosignVerifier, NoopVerifier

from conftest import build_inventory_db, build_metadata_db

IMAGE = "registry.local/cli/plugin-inventory:latest"
METADATA_IMAGE = "registry.local/cli/plugin-inventory-metadata:latest"
D1 = "1" * 64
D2 = "2" * 64


class FakeRegistry:
    """In-memory registry: image -> (digest, writer of its files)."""

    def __init__(self):
        self.images = {}
        self.probe = MagicMock(side_effect=self._probe)
        self.fetch = MagicMock(side_effect=self._fetch)
        self.verify = MagicMock()

    def publish_inventory(self, digest, **kwargs):
        self.images[IMAGE] = (
            f"sha256:{digest}",
            lambda d: build_inventory_db(d / "plugin_inventory.db", **kwargs),
        )

    def publish_metadata(self, digest, plugins, groups=()):
        self.images[METADATA_IMAGE] = (
            f"sha256:{digest}",
            lambda d: build_metadata_db(
                d / "plugin_inventory_metadata.db", plugins, groups,
            ),
        )

    def _probe(self, image):
        if image not in self.images:
            raise RegistryError(f"{image}: not found")
        return self.images[image][0]

    def _fetch(self, image, dest_dir):
        if image not in self.images:
            raise RegistryError(f"{image}: not found")
        self.images[image][1](Path(dest_dir))

    def reset_calls(self):
        for m in (self.probe, self.fetch, self.verify):
            m.reset_mock()


@pytest.fixture
def registry():
    reg = FakeRegistry()
    reg.publish_inventory(D1)
    return reg


@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / "cache" / "default"
    path.mkdir(parents=True)
    return path


def _source(registry, cache_dir, **kwargs):
    validator = CacheValidator(cache_dir, registry.probe)
    refresher = CatalogRefresher(cache_dir, registry.fetch, registry.verify)
    return DBBackedOCIDiscovery(
        "default", IMAGE, cache_dir, validator, refresher, **kwargs
    )


def _markers(cache_dir):
    return sorted(p.name for p in cache_dir.glob("*digest.*"))


# ---------------------------------------------------------------------------
# Refresh scenarios
# ---------------------------------------------------------------------------

class TestRefreshScenarios:

    def test_fresh_install(self, registry, cache_dir):
        source = _source(registry, cache_dir)
        plugins = source.list_plugins()

        registry.verify.assert_called_once_with(IMAGE)
        assert _markers(cache_dir) == [f"digest.{D1}", "metadata.digest.none"]
        assert [(p.name, p.target) for p in plugins] == [
            ("cluster", "kubernetes"),
            ("login", "global"),
        ]

    def test_unchanged_source_skips_network_transfer(self, registry, cache_dir):
        source = _source(registry, cache_dir)
        source.list_plugins()
        registry.reset_calls()

        plugins = source.list_plugins()

        registry.verify.assert_not_called()
        registry.fetch.assert_not_called()
        assert len(plugins) == 2
        assert _markers(cache_dir) == [f"digest.{D1}", "metadata.digest.none"]

    def test_air_gapped_switch(self, registry, cache_dir):
        source = _source(registry, cache_dir)
        source.list_plugins()
        registry.reset_calls()

        registry.publish_metadata(
            D2, plugins=[("cluster", "kubernetes", "v1.10.0")],
        )
        plugins = source.list_plugins()

        registry.verify.assert_called_once_with(IMAGE)
        assert _markers(cache_dir) == [f"digest.{D1}", f"metadata.digest.{D2}"]
        assert [(p.name, p.supported_versions) for p in plugins] == [
            ("cluster", ["v1.10.0"]),
        ]

    def test_leaving_air_gapped_registry(self, registry, cache_dir):
        registry.publish_metadata(D2, plugins=[("login", "global", "v0.2.0")])
        source = _source(registry, cache_dir)
        assert [p.name for p in source.list_plugins()] == ["login"]

        del registry.images[METADATA_IMAGE]
        plugins = source.list_plugins()

        assert [p.name for p in plugins] == ["cluster", "login"]
        assert _markers(cache_dir) == [f"digest.{D1}", "metadata.digest.none"]

    def test_new_inventory_digest(self, registry, cache_dir):
        source = _source(registry, cache_dir)
        source.list_plugins()

        registry.publish_inventory(D2, entries=[])
        assert source.list_plugins() == []
        assert _markers(cache_dir) == [f"digest.{D2}", "metadata.digest.none"]

    def test_corrupted_markers_heal(self, registry, cache_dir):
        for name in ("digest.aaaa", "digest.bbbb", f"digest.{D1}",
                     "metadata.digest.none", "metadata.digest.cccc"):
            (cache_dir / name).touch()

        _source(registry, cache_dir).list_plugins()

        assert registry.fetch.call_args_list[0].args[0] == IMAGE
        assert _markers(cache_dir) == [f"digest.{D1}", "metadata.digest.none"]

    def test_merge_failure_keeps_previous_cache(self, registry, cache_dir):
        source = _source(registry, cache_dir)
        source.list_plugins()
        before = {p.name: p.read_bytes() for p in cache_dir.iterdir()}

        registry.images[METADATA_IMAGE] = (
            f"sha256:{D2}",
            lambda d: (d / "plugin_inventory_metadata.db").write_bytes(b"garbage"),
        )
        with pytest.raises(DiscoverySourceError) as exc_info:
            source.list_plugins()
        assert exc_info.value.phase == "merge"

        # The stale metadata marker was reconciled away, the rest is unchanged.
        after = {p.name: p.read_bytes() for p in cache_dir.iterdir()}
        del before["metadata.digest.none"]
        assert after == before

        # The missing marker forces the next query to refresh again.
        registry.publish_metadata(D2, plugins=[("login", "global", "v0.2.0")])
        assert [p.name for p in source.list_plugins()] == ["login"]
        assert _markers(cache_dir) == [f"digest.{D1}", f"metadata.digest.{D2}"]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:

    def test_resolution_failure_wrapped(self, registry, cache_dir):
        del registry.images[IMAGE]
        source = _source(registry, cache_dir)

        with pytest.raises(DiscoverySourceError) as exc_info:
            source.list_plugins()

        err = exc_info.value
        assert err.source == "default"
        assert err.phase == "resolution"
        assert "discovery 'default' for plugins" in str(err)
        assert isinstance(err.__cause__, ImageResolutionError)
        registry.fetch.assert_not_called()

    def test_verification_failure_wrapped(self, registry, cache_dir):
        registry.verify.side_effect = SignatureVerificationError("untrusted")
        source = _source(registry, cache_dir)

        with pytest.raises(DiscoverySourceError) as exc_info:
            source.get_groups()
        assert exc_info.value.phase == "verification"
        assert "for groups" in str(exc_info.value)
        registry.fetch.assert_not_called()
        assert _markers(cache_dir) == []

    def test_transfer_failure_wrapped(self, registry, cache_dir):
        registry.fetch.side_effect = RegistryError("connection reset")
        with pytest.raises(DiscoverySourceError) as exc_info:
            _source(registry, cache_dir).list_plugins()
        assert exc_info.value.phase == "transfer"
        assert not (cache_dir / "plugin_inventory.db").exists()

    def test_local_cache_only_without_cache(self, registry, cache_dir):
        source = _source(registry, cache_dir, use_local_cache_only=True)
        with pytest.raises(DiscoverySourceError) as exc_info:
            source.list_plugins()
        assert exc_info.value.phase == "query"
        registry.probe.assert_not_called()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestListPlugins:

    def test_discovered_plugin_fields(self, registry, cache_dir):
        source = _source(registry, cache_dir)
        cluster = source.list_plugins()[0]

        assert cluster.name == "cluster"
        assert cluster.description == "Kubernetes cluster operations"
        assert cluster.recommended_version == "v1.10.0"
        assert cluster.supported_versions == ["v1.2.0", "v1.2.3", "v1.10.0"]
        assert set(cluster.distribution) == set(cluster.supported_versions)
        assert cluster.source == "default"
        assert cluster.discovery_type == DISCOVERY_TYPE_OCI
        assert cluster.installed_version == ""
        assert cluster.context_name == ""
        assert cluster.status == PLUGIN_STATUS_NOT_INSTALLED
        assert cluster.display_version() == "v1.10.0"

    def test_artifact_images_resolved_against_repository(self, registry, cache_dir):
        login = _source(registry, cache_dir).list_plugins()[1]
        artifact = login.distribution["v0.2.0"][0]
        assert artifact.image == f"registry.local/cli/{artifact.uri}"

    def test_plugin_criteria(self, registry, cache_dir):
        source = _source(
            registry, cache_dir,
            plugin_criteria=PluginDiscoveryCriteria(
                target="kubernetes", version="v1.2.3", os="linux", arch="amd64",
            ),
        )
        plugins = source.list_plugins()
        assert [p.name for p in plugins] == ["cluster"]
        assert plugins[0].supported_versions == ["v1.2.3"]
        assert len(plugins[0].distribution["v1.2.3"]) == 1

    def test_include_hidden_option(self, registry, cache_dir):
        source = _source(registry, cache_dir)
        plugins = source.list_plugins(QueryOptions(include_hidden=True))
        assert "secret" in [p.name for p in plugins]

    def test_include_hidden_from_env(self, registry, cache_dir, monkeypatch):
        monkeypatch.setenv(
            'PLUGIN_DISCOVERY_INCLUDE_DEACTIVATED_PLUGINS_FOR_TESTING', 'true'
        )
        assert "secret" in [p.name for p in _source(registry, cache_dir).list_plugins()]

    def test_invalid_env_value_means_false(self, registry, cache_dir, monkeypatch):
        monkeypatch.setenv(
            'PLUGIN_DISCOVERY_INCLUDE_DEACTIVATED_PLUGINS_FOR_TESTING', 'maybe'
        )
        assert "secret" not in [
            p.name for p in _source(registry, cache_dir).list_plugins()
        ]

    def test_local_cache_only_uses_existing_cache(self, registry, cache_dir):
        _source(registry, cache_dir).list_plugins()
        registry.reset_calls()
        registry.publish_inventory(D2, entries=[])

        source = _source(registry, cache_dir, use_local_cache_only=True)
        assert len(source.list_plugins()) == 2
        registry.probe.assert_not_called()

    def test_unparseable_version_still_listed(self, registry, cache_dir, caplog):
        registry.publish_inventory(D1, entries=[PluginInventoryEntry(
            name="odd", target="global", recommended_version="1.2.0",
            artifacts={
                v: [PluginArtifact(os="linux", arch="amd64")]
                for v in ("1.2.0", "bogus", "1.10.0", "1.2.3")
            },
        )])
        plugins = _source(registry, cache_dir).list_plugins()
        assert plugins[0].supported_versions == ["1.2.0", "1.2.3", "1.10.0", "bogus"]
        assert "odd" in caplog.text


class TestGetGroups:

    def test_all_groups(self, registry, cache_dir):
        groups = _source(registry, cache_dir).get_groups()
        assert [g.identifier for g in groups] == [
            "vmware-tkg/default:v2.1.0",
            "vmware-tkg/default:v2.2.0",
        ]

    def test_group_criteria(self, registry, cache_dir):
        source = _source(
            registry, cache_dir,
            group_criteria=GroupDiscoveryCriteria(
                vendor="vmware", publisher="tkg", name="default", version="v2.2.0",
            ),
        )
        groups = source.get_groups()
        assert [g.version for g in groups] == ["v2.2.0"]
        assert [p.name for p in groups[0].plugins] == ["cluster"]

    def test_hidden_groups(self, registry, cache_dir):
        groups = _source(registry, cache_dir).get_groups(
            QueryOptions(include_hidden=True)
        )
        assert "tmc-user" in [g.name for g in groups]


# ---------------------------------------------------------------------------
# from_config
# ---------------------------------------------------------------------------

class TestFromConfig:

    @patch('plugin_discovery.discovery.source.RegistryClient')
    def test_wires_default_collaborators(self, mock_client, tmp_path):
        config = DiscoveryConfig(
            request_timeout=12.0,
            metadata_request_timeout=3.0,
            max_blob_size=1000,
            max_metadata_blob_size=100,
        )
        source = DBBackedOCIDiscovery.from_config(
            "default", IMAGE, config=config, cache_dir=tmp_path,
        )

        assert source.name == "default"
        assert source.type == "oci"
        assert source.image == IMAGE
        assert source.cache_dir == tmp_path
        timeouts = [c.kwargs['timeout'] for c in mock_client.call_args_list]
        sizes = [c.kwargs['max_blob_size'] for c in mock_client.call_args_list]
        assert timeouts == [12.0, 3.0]
        assert sizes == [1000, 100]
        assert isinstance(source._refresher._verify.__self__, CosignVerifier)

    @patch('plugin_discovery.discovery.source.RegistryClient')
    def test_signature_verification_disabled(self, mock_client, tmp_path):
        source = DBBackedOCIDiscovery.from_config(
            "default", IMAGE,
            config=DiscoveryConfig(verify_signatures=False),
            cache_dir=tmp_path,
        )
        assert isinstance(source._refresher._verify.__self__, NoopVerifier)

    @patch('plugin_discovery.discovery.source.RegistryClient')
    def test_default_cache_dir(self, mock_client, tmp_path, monkeypatch):
        monkeypatch.setenv('PLUGIN_DISCOVERY_CACHE_DIR', str(tmp_path))
        source = DBBackedOCIDiscovery.from_config("team", IMAGE)
        assert source.cache_dir == tmp_path / "plugin_inventory" / "team"
        assert source.cache_dir.is_dir()

    @patch('plugin_discovery.discovery.source.RegistryClient')
    def test_saved_config_used_by_default(self, mock_client, tmp_path):
        DiscoveryConfig(
            request_timeout=7.0,
            metadata_request_timeout=2.0,
            verify_signatures=False,
            plain_http_registries=["registry.local"],
        ).save()

        source = DBBackedOCIDiscovery.from_config(
            "default", IMAGE, cache_dir=tmp_path,
        )

        timeouts = [c.kwargs['timeout'] for c in mock_client.call_args_list]
        assert timeouts == [7.0, 2.0]
        for call in mock_client.call_args_list:
            assert call.kwargs['plain_http_registries'] == ["registry.local"]
        assert isinstance(source._refresher._verify.__self__, NoopVerifier)
