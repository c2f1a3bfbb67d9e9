# -*- coding: utf-8 -*-
"""
Exceptions - Error taxonomy for plugin inventory discovery.

Every fatal condition raised while resolving, verifying, downloading,
merging or querying a plugin inventory derives from ``DiscoveryError``.
Each subclass carries a ``phase`` name so callers can report which step
of a refresh failed.

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
from typing import Optional


class DiscoveryError(Exception):
    """Base class for all plugin discovery errors."""

    phase = "discovery"


class InvalidImageReferenceError(DiscoveryError, ValueError):
    """An image reference string could not be parsed."""

    phase = "resolution"


class RegistryError(DiscoveryError):
    """A request against an OCI registry failed."""

    phase = "transport"


class ImageResolutionError(DiscoveryError):
    """The digest of the inventory image could not be resolved.

    Parameters
    ----------
    image : str
        The image reference that failed to resolve.
    message : str
        Human-readable description.
    """

    phase = "resolution"

    def __init__(self, image: str, message: str) -> None:
        super().__init__(message)
        self.image = image


class SignatureVerificationError(DiscoveryError):
    """The inventory image signature is not trusted."""

    phase = "verification"


class ImageDownloadError(DiscoveryError):
    """The inventory image could not be downloaded."""

    phase = "transfer"


class InventoryMergeError(DiscoveryError):
    """Applying the inventory metadata onto the inventory database failed."""

    phase = "merge"


class InventoryQueryError(DiscoveryError):
    """Reading plugins or plugin groups from the inventory failed."""

    phase = "query"


class DiscoverySourceError(DiscoveryError):
    """Wraps any failure of a discovery source, naming the source.

    Parameters
    ----------
    source : str
        Name of the discovery source.
    message : str
        Human-readable description.
    phase : Optional[str]
        Phase of the underlying failure. Defaults to ``'discovery'``.
    """

    def __init__(
        self,
        source: str,
        message: str,
        phase: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.phase = phase or DiscoveryError.phase
