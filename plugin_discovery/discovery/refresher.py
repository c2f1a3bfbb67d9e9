# -*- coding: utf-8 -*-
"""
Inventory Refresher - Download, verify and install a plugin inventory.

Refreshes the cached inventory database of a discovery source: verifies
the inventory image signature, downloads the inventory image, applies the
optional inventory metadata image used in air-gapped registries, promotes
the result into the cache directory and finally records the digest
markers computed by the CacheValidator.

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
import os
import shutil
import sqlite3
import tempfile
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.catalog.database import SQLITE_DB_FILE_NAME
from plugin_discovery.catalog.metadata import (
    SQLITE_METADATA_DB_FILE_NAME,
    InventoryMetadata,
)
from plugin_discovery.discovery.cache import CacheCheckResult, MetadataImageResolver
from plugin_discovery.exceptions import (
    DiscoveryError,
    ImageDownloadError,
    InventoryMergeError,
)
from plugin_discovery.oci.reference import get_metadata_image_ref

ArtifactFetcher = Callable[[str, Path], None]
SignatureVerifier = Callable[[str], None]
InventoryMerger = Callable[[Path, Path], None]


def merge_inventory_metadata(metadata_db: Path, inventory_db: Path) -> None:
    """Apply an inventory metadata database onto an inventory database."""
    InventoryMetadata(metadata_db).update_inventory_database(inventory_db)


class CatalogRefresher:
    """Refresh the cached inventory database of one discovery source.

    Parameters
    ----------
    cache_dir : Path
        Cache directory owned by the discovery source.
    fetcher : ArtifactFetcher
        Downloads the files of an image into a directory.
    verifier : SignatureVerifier
        Raises if the signature of an image is not trusted.
    metadata_fetcher : Optional[ArtifactFetcher]
        Fetcher used for the metadata image. Defaults to ``fetcher``.
    merger : InventoryMerger
        Applies a metadata database onto an inventory database in place.
    metadata_resolver : MetadataImageResolver
        Derives the metadata image reference from the inventory image.
    """

    def __init__(
        self,
        cache_dir: Path,
        fetcher: ArtifactFetcher,
        verifier: SignatureVerifier,
        metadata_fetcher: Optional[ArtifactFetcher] = None,
        merger: InventoryMerger = merge_inventory_metadata,
        metadata_resolver: MetadataImageResolver = get_metadata_image_ref,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._fetch = fetcher
        self._verify = verifier
        self._fetch_metadata = metadata_fetcher or fetcher
        self._merge = merger
        self._metadata_resolver = metadata_resolver

    @property
    def inventory_path(self) -> Path:
        """Location of the cached inventory database."""
        return self._cache_dir / SQLITE_DB_FILE_NAME

    def refresh(self, image: str, check: CacheCheckResult) -> None:
        """Download the inventory of ``image`` and install it in the cache.

        Parameters
        ----------
        image : str
            Inventory image reference.
        check : CacheCheckResult
            Result of the cache check; its markers are created once the
            new inventory is in place.

        Raises
        ------
        SignatureVerificationError
            If the image signature is not trusted. Nothing is downloaded.
        ImageDownloadError
            If the inventory image cannot be downloaded.
        InventoryMergeError
            If the metadata image exists but cannot be applied.
        """
        logger.info(
            "Reading plugin inventory for %r, this will take a few seconds.",
            image,
        )
        self._verify(image)

        with tempfile.TemporaryDirectory(prefix="plugin-inventory-") as inv_dir, \
                tempfile.TemporaryDirectory(prefix="plugin-metadata-") as meta_dir:
            inventory_db = self._download_inventory(image, Path(inv_dir))

            metadata_db = self._download_metadata(image, Path(meta_dir))
            if metadata_db is not None:
                try:
                    self._merge(metadata_db, inventory_db)
                except InventoryMergeError:
                    raise
                except (DiscoveryError, sqlite3.Error, OSError) as e:
                    raise InventoryMergeError(
                        f"error while updating inventory database based on "
                        f"the inventory metadata database: {e}"
                    ) from e

            self._promote(inventory_db)

        for marker in (check.inventory_marker, check.metadata_marker):
            if marker is not None:
                self._create_marker(marker)

    def _download_inventory(self, image: str, dest_dir: Path) -> Path:
        try:
            self._fetch(image, dest_dir)
        except DiscoveryError as e:
            raise ImageDownloadError(
                f"failed to download OCI image {image!r}: {e}"
            ) from e

        inventory_db = dest_dir / SQLITE_DB_FILE_NAME
        if not inventory_db.is_file():
            raise ImageDownloadError(
                f"OCI image {image!r} does not contain {SQLITE_DB_FILE_NAME}"
            )
        return inventory_db

    def _download_metadata(self, image: str, dest_dir: Path) -> Optional[Path]:
        """Download the metadata image, returning None if there is none.

        Once the image is downloaded its database is always returned, so
        an image lacking the file fails the merge.
        """
        try:
            metadata_image = self._metadata_resolver(image)
            self._fetch_metadata(metadata_image, dest_dir)
        except DiscoveryError as e:
            logger.debug("No inventory metadata image for %s: %s", image, e)
            return None

        return dest_dir / SQLITE_METADATA_DB_FILE_NAME

    def _promote(self, inventory_db: Path) -> None:
        """Replace the cached inventory database with ``inventory_db``."""
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        staging = self._cache_dir / f"{SQLITE_DB_FILE_NAME}.tmp"
        try:
            shutil.copyfile(inventory_db, staging)
            os.replace(staging, self.inventory_path)
        except OSError as e:
            staging.unlink(missing_ok=True)
            raise ImageDownloadError(
                f"unable to install the inventory database into "
                f"{self._cache_dir}: {e}"
            ) from e
        logger.info("Installed inventory database %s", self.inventory_path)

    def _create_marker(self, marker: Path) -> None:
        try:
            marker.touch()
        except OSError as e:
            logger.warning("Unable to create digest file %s: %s", marker, e)
