# -*- coding: utf-8 -*-
"""
Inventory Cache Validation - Decide whether a cached inventory is current.

The cache directory of a discovery source holds one zero-byte marker file
per image, named ``<prefix>digest.<value>``: ``digest.<hex>`` for the
inventory image and ``metadata.digest.<hex>`` for the inventory metadata
image (``metadata.digest.none`` when no metadata image exists). Comparing
these markers with freshly resolved digests tells whether the cached
inventory database must be downloaded again.

The metadata digest is tracked separately so that moving a source
between a registry with a metadata image and one without invalidates the
cache even when the inventory image digest is unchanged.

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
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.exceptions import DiscoveryError, ImageResolutionError
from plugin_discovery.oci.reference import get_metadata_image_ref


INVENTORY_DIGEST_PREFIX = ""
METADATA_DIGEST_PREFIX = "metadata."

# Marker value when there is no metadata image. A name ending in '.'
# would not match the glob on Windows.
ABSENT_DIGEST_TOKEN = "none"

DigestProbe = Callable[[str], str]
MetadataImageResolver = Callable[[str], str]


class DigestState(Enum):
    """Whether an image exists."""

    ABSENT = "absent"
    PRESENT = "present"


@dataclass(frozen=True)
class ImageDigest:
    """Digest of an image, or the absence of the image."""

    state: DigestState
    value: str = ""

    @classmethod
    def present(cls, digest: str) -> 'ImageDigest':
        """Build from an ``<algorithm>:<hex>`` or bare hex digest."""
        value = digest.rpartition(':')[2]
        if not value:
            return cls.absent()
        return cls(DigestState.PRESENT, value)

    @classmethod
    def absent(cls) -> 'ImageDigest':
        return cls(DigestState.ABSENT)

    @property
    def marker_token(self) -> str:
        """Value written into the marker file name."""
        if self.state is DigestState.PRESENT:
            return self.value
        return ABSENT_DIGEST_TOKEN


@dataclass(frozen=True)
class CacheCheckResult:
    """Markers to create once the inventory has been refreshed.

    Attributes
    ----------
    inventory_marker : Optional[Path]
        Marker for the inventory image, or None if it is current.
    metadata_marker : Optional[Path]
        Marker for the metadata image, or None if it is current.
    """

    inventory_marker: Optional[Path] = None
    metadata_marker: Optional[Path] = None

    @property
    def needs_refresh(self) -> bool:
        return self.inventory_marker is not None or self.metadata_marker is not None


class CacheValidator:
    """Compare cached digest markers with the current image digests.

    Parameters
    ----------
    cache_dir : Path
        Cache directory owned by one discovery source.
    digest_probe : DigestProbe
        Returns the current digest of an image reference.
    metadata_digest_probe : Optional[DigestProbe]
        Probe used for the metadata image. Defaults to ``digest_probe``.
    metadata_resolver : MetadataImageResolver
        Derives the metadata image reference from the inventory image.
    """

    def __init__(
        self,
        cache_dir: Path,
        digest_probe: DigestProbe,
        metadata_digest_probe: Optional[DigestProbe] = None,
        metadata_resolver: MetadataImageResolver = get_metadata_image_ref,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._probe = digest_probe
        self._metadata_probe = metadata_digest_probe or digest_probe
        self._metadata_resolver = metadata_resolver

    def check_cache(self, image: str) -> CacheCheckResult:
        """Check whether the cached inventory of ``image`` is current.

        Stale or duplicated markers are deleted as a side effect.

        Parameters
        ----------
        image : str
            Inventory image reference.

        Returns
        -------
        CacheCheckResult
            Markers to create after a refresh. Both None means the cache
            can be used as is.

        Raises
        ------
        ImageResolutionError
            If the digest of the inventory image cannot be resolved.
        """
        try:
            inventory_digest = ImageDigest.present(self._probe(image))
        except DiscoveryError as e:
            raise ImageResolutionError(
                image,
                f"plugins discovery image resolution failed. Please check "
                f"that the repository image URL {image!r} is correct: {e}",
            ) from e

        return CacheCheckResult(
            inventory_marker=self.reconcile_marker(
                inventory_digest, INVENTORY_DIGEST_PREFIX,
            ),
            metadata_marker=self.reconcile_marker(
                self._probe_metadata(image), METADATA_DIGEST_PREFIX,
            ),
        )

    def _probe_metadata(self, image: str) -> ImageDigest:
        try:
            metadata_image = self._metadata_resolver(image)
            return ImageDigest.present(self._metadata_probe(metadata_image))
        except DiscoveryError as e:
            logger.debug("No inventory metadata image for %s: %s", image, e)
            return ImageDigest.absent()

    def reconcile_marker(self, digest: ImageDigest, prefix: str) -> Optional[Path]:
        """Reconcile the marker files of one prefix with a digest.

        There should be at most one ``<prefix>digest.*`` file. If several
        exist they are all removed. A single marker for another digest is
        removed.

        Parameters
        ----------
        digest : ImageDigest
            Current digest of the image.
        prefix : str
            Marker prefix.

        Returns
        -------
        Optional[Path]
            None if the matching marker already exists, otherwise the
            marker to create after the refresh.
        """
        expected = self._cache_dir / f"{prefix}digest.{digest.marker_token}"
        matches = sorted(self._cache_dir.glob(f"{prefix}digest.*"))

        if len(matches) > 1:
            logger.warning(
                "Too many digest files in the cache %s! Invalidating the cache.",
                self._cache_dir,
            )
            for path in matches:
                path.unlink(missing_ok=True)
        elif len(matches) == 1:
            if matches[0] == expected:
                return None
            matches[0].unlink(missing_ok=True)
        return expected
