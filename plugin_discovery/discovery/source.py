# -*- coding: utf-8 -*-
"""
OCI Discovery Source - Discover plugins from a database-backed OCI image.

A DBBackedOCIDiscovery represents one configured plugin discovery source:
an OCI image containing a single SQLite plugin inventory database. Before
each query the cached copy of that database is validated against the
image digest and refreshed if needed, then plugins or plugin groups are
read from it using the source's discovery criteria.

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
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.catalog.database import PluginInventory
from plugin_discovery.catalog.models import (
    DISCOVERY_TYPE_OCI,
    DiscoveredPlugin,
    PluginGroup,
    PluginGroupFilter,
    PluginInventoryEntry,
    PluginInventoryFilter,
)
from plugin_discovery.catalog.resolver import source_cache_dir
from plugin_discovery.core.config import DiscoveryConfig, load_config
from plugin_discovery.core.versions import sort_versions
from plugin_discovery.discovery.cache import CacheValidator
from plugin_discovery.discovery.criteria import (
    GroupDiscoveryCriteria,
    PluginDiscoveryCriteria,
    QueryOptions,
)
from plugin_discovery.discovery.refresher import CatalogRefresher
from plugin_discovery.exceptions import (
    DiscoveryError,
    DiscoverySourceError,
    InvalidImageReferenceError,
    InventoryQueryError,
)
from plugin_discovery.oci.reference import parse_image_reference
from plugin_discovery.oci.registry import RegistryClient
from plugin_discovery.oci.signature import CosignVerifier, NoopVerifier


class DBBackedOCIDiscovery:
    """Plugin discovery backed by an OCI image holding a SQLite inventory.

    Parameters
    ----------
    name : str
        Name of the discovery source.
    image : str
        Inventory image reference, e.g.
        ``registry.example.com/tanzu-cli/plugins/plugin-inventory:latest``.
    cache_dir : Path
        Directory owned by this source for its digest markers and
        inventory database.
    validator : CacheValidator
        Decides whether the cached inventory is current.
    refresher : CatalogRefresher
        Downloads and installs a new inventory.
    plugin_criteria : Optional[PluginDiscoveryCriteria]
        Plugin filter. None discovers every plugin.
    group_criteria : Optional[GroupDiscoveryCriteria]
        Plugin group filter. None discovers every group.
    use_local_cache_only : bool
        Never refresh; query whatever inventory is cached.
    """

    def __init__(
        self,
        name: str,
        image: str,
        cache_dir: Path,
        validator: CacheValidator,
        refresher: CatalogRefresher,
        plugin_criteria: Optional[PluginDiscoveryCriteria] = None,
        group_criteria: Optional[GroupDiscoveryCriteria] = None,
        use_local_cache_only: bool = False,
    ) -> None:
        self._name = name
        self._image = image
        self._cache_dir = Path(cache_dir)
        self._validator = validator
        self._refresher = refresher
        self.plugin_criteria = plugin_criteria
        self.group_criteria = group_criteria
        self.use_local_cache_only = use_local_cache_only
        self._inventory = PluginInventory(
            refresher.inventory_path, uri_prefix=_uri_prefix(image),
        )

    @classmethod
    def from_config(
        cls,
        name: str,
        image: str,
        config: Optional[DiscoveryConfig] = None,
        cache_dir: Optional[Path] = None,
        plugin_criteria: Optional[PluginDiscoveryCriteria] = None,
        group_criteria: Optional[GroupDiscoveryCriteria] = None,
        use_local_cache_only: bool = False,
    ) -> 'DBBackedOCIDiscovery':
        """Build a discovery source wired to the default collaborators.

        Parameters
        ----------
        name : str
        image : str
        config : Optional[DiscoveryConfig]
            Timeouts, size bounds and verification settings. Defaults
            to the saved configuration, see ``load_config``.
        cache_dir : Optional[Path]
            Cache directory. Defaults to the per-source directory below
            the resolved cache root.
        plugin_criteria : Optional[PluginDiscoveryCriteria]
        group_criteria : Optional[GroupDiscoveryCriteria]
        use_local_cache_only : bool

        Returns
        -------
        DBBackedOCIDiscovery
        """
        config = config or load_config()
        cache_dir = Path(cache_dir) if cache_dir else source_cache_dir(name)

        inventory_client = RegistryClient(
            timeout=config.request_timeout,
            max_blob_size=config.max_blob_size,
            plain_http_registries=config.plain_http_registries,
        )
        metadata_client = RegistryClient(
            timeout=config.metadata_request_timeout,
            max_blob_size=config.max_metadata_blob_size,
            plain_http_registries=config.plain_http_registries,
        )
        if config.verify_signatures:
            verifier = CosignVerifier(
                public_key=config.cosign_public_key,
                cosign_binary=config.cosign_binary,
                timeout=config.signature_timeout,
            )
        else:
            verifier = NoopVerifier()

        validator = CacheValidator(
            cache_dir,
            digest_probe=inventory_client.get_image_digest,
            metadata_digest_probe=metadata_client.get_image_digest,
        )
        refresher = CatalogRefresher(
            cache_dir,
            fetcher=inventory_client.download_image,
            verifier=verifier.verify,
            metadata_fetcher=metadata_client.download_image,
        )
        return cls(
            name, image, cache_dir, validator, refresher,
            plugin_criteria=plugin_criteria,
            group_criteria=group_criteria,
            use_local_cache_only=use_local_cache_only,
        )

    @property
    def name(self) -> str:
        """Name of the discovery."""
        return self._name

    @property
    def type(self) -> str:
        """Type of the discovery."""
        return DISCOVERY_TYPE_OCI

    @property
    def image(self) -> str:
        return self._image

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def list_plugins(
        self,
        options: Optional[QueryOptions] = None,
    ) -> List[DiscoveredPlugin]:
        """List the plugins available from this discovery.

        Parameters
        ----------
        options : Optional[QueryOptions]
            Query options. Read from the environment if None.

        Returns
        -------
        List[DiscoveredPlugin]

        Raises
        ------
        DiscoverySourceError
            If the inventory cannot be refreshed or read.
        """
        self._ensure_inventory("plugins")
        options = options or QueryOptions.from_env()

        if self.plugin_criteria is None:
            plugin_filter = PluginInventoryFilter(
                include_hidden=options.include_hidden,
            )
        else:
            plugin_filter = self.plugin_criteria.to_filter(options.include_hidden)

        try:
            entries = self._inventory.get_plugins(plugin_filter)
        except sqlite3.Error as e:
            raise self._wrap(InventoryQueryError(
                f"unable to read plugins from {self._inventory.db_path}: {e}"
            ), "plugins", action="read") from e

        return [self._to_discovered(entry) for entry in entries]

    def get_groups(
        self,
        options: Optional[QueryOptions] = None,
    ) -> List[PluginGroup]:
        """List the plugin groups defined in this discovery.

        Parameters
        ----------
        options : Optional[QueryOptions]
            Query options. Read from the environment if None.

        Returns
        -------
        List[PluginGroup]

        Raises
        ------
        DiscoverySourceError
            If the inventory cannot be refreshed or read.
        """
        self._ensure_inventory("groups")
        options = options or QueryOptions.from_env()

        if self.group_criteria is None:
            group_filter = PluginGroupFilter(include_hidden=options.include_hidden)
        else:
            group_filter = self.group_criteria.to_filter(options.include_hidden)

        try:
            return self._inventory.get_plugin_groups(group_filter)
        except sqlite3.Error as e:
            raise self._wrap(InventoryQueryError(
                f"unable to read plugin groups from {self._inventory.db_path}: {e}"
            ), "groups", action="read") from e

    def fetch_inventory_image(self) -> None:
        """Refresh the cached inventory if its image digests changed.

        Raises
        ------
        DiscoveryError
            If resolving, verifying, downloading or merging fails.
        """
        check = self._validator.check_cache(self._image)
        if not check.needs_refresh:
            logger.debug("Plugin inventory cache of %r is up to date", self._name)
            return
        self._refresher.refresh(self._image, check)

    def _ensure_inventory(self, kind: str) -> None:
        if self.use_local_cache_only:
            return
        try:
            self.fetch_inventory_image()
        except DiscoveryError as e:
            raise self._wrap(e, kind) from e

    def _wrap(
        self,
        error: DiscoveryError,
        kind: str,
        action: str = "fetch",
    ) -> DiscoverySourceError:
        return DiscoverySourceError(
            self._name,
            f"unable to {action} the inventory of discovery '{self._name}' "
            f"for {kind}: {error}",
            phase=error.phase,
        )

    def _to_discovered(self, entry: PluginInventoryEntry) -> DiscoveredPlugin:
        return DiscoveredPlugin(
            name=entry.name,
            target=entry.target,
            description=entry.description,
            recommended_version=entry.recommended_version,
            supported_versions=sort_versions(entry.artifacts, entry.name),
            distribution=entry.artifacts,
            source=self._name,
            discovery_type=DISCOVERY_TYPE_OCI,
        )

    def __repr__(self) -> str:
        return f"DBBackedOCIDiscovery(name={self._name!r}, image={self._image!r})"


def _uri_prefix(image: str) -> str:
    """Repository prefix that relative artifact URIs are resolved against."""
    try:
        return parse_image_reference(image).repository_prefix
    except InvalidImageReferenceError:
        return ""
