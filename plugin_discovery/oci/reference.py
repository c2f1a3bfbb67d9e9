# -*- coding: utf-8 -*-
"""
Image References - Parse OCI image references.

Parses ``[registry/]repository[:tag][@digest]`` strings with the same
defaulting rules as the docker CLI, and derives the location of the
inventory metadata image that accompanies an inventory image in
air-gapped registries.

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
import re
from dataclasses import dataclass

# plugin_discovery internal
from plugin_discovery.exceptions import InvalidImageReferenceError


DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"

# Image holding the inventory metadata database, next to the inventory image.
PLUGIN_INVENTORY_METADATA_IMAGE_NAME = "plugin-inventory-metadata"

_REPOSITORY_RE = re.compile(
    r'^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*'
    r'(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*$'
)
_TAG_RE = re.compile(r'^[\w][\w.-]{0,127}$')
_DIGEST_RE = re.compile(r'^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$')


@dataclass(frozen=True)
class ImageReference:
    """A parsed OCI image reference.

    Attributes
    ----------
    registry : str
        Registry host, with optional port.
    repository : str
        Repository path within the registry.
    tag : str
        Image tag. Defaults to 'latest'.
    digest : str
        Pinned manifest digest, or empty.
    """

    registry: str
    repository: str
    tag: str = DEFAULT_TAG
    digest: str = ""

    @property
    def identifier(self) -> str:
        """Digest if pinned, otherwise the tag."""
        return self.digest or self.tag

    @property
    def repository_prefix(self) -> str:
        """Registry and parent path of the repository."""
        parent = self.repository.rpartition('/')[0]
        return f"{self.registry}/{parent}" if parent else self.registry

    def __str__(self) -> str:
        ref = f"{self.registry}/{self.repository}"
        if self.tag:
            ref += f":{self.tag}"
        if self.digest:
            ref += f"@{self.digest}"
        return ref


def parse_image_reference(image: str) -> ImageReference:
    """Parse an image reference string.

    Parameters
    ----------
    image : str
        Reference such as ``registry.example.com/tanzu/plugin-inventory:latest``.

    Returns
    -------
    ImageReference

    Raises
    ------
    InvalidImageReferenceError
        If the reference is malformed.
    """
    if not image or image != image.strip():
        raise InvalidImageReferenceError(
            f"invalid image reference {image!r}"
        )

    name, digest = image, ""
    if '@' in image:
        name, _, digest = image.partition('@')
        if not _DIGEST_RE.match(digest):
            raise InvalidImageReferenceError(
                f"invalid digest in image reference {image!r}"
            )

    tag = ""
    last_slash = name.rfind('/')
    last_colon = name.rfind(':')
    if last_colon > last_slash:
        name, tag = name[:last_colon], name[last_colon + 1:]
        if not _TAG_RE.match(tag):
            raise InvalidImageReferenceError(
                f"invalid tag in image reference {image!r}"
            )

    registry, _, remainder = name.partition('/')
    if not remainder or not (
        '.' in registry or ':' in registry or registry == 'localhost'
    ):
        registry, remainder = DEFAULT_REGISTRY, name
        if '/' not in remainder:
            remainder = f"library/{remainder}"

    if not _REPOSITORY_RE.match(remainder):
        raise InvalidImageReferenceError(
            f"invalid repository in image reference {image!r}"
        )

    if not tag and not digest:
        tag = DEFAULT_TAG
    return ImageReference(
        registry=registry, repository=remainder, tag=tag, digest=digest,
    )


def get_metadata_image_ref(image: str) -> str:
    """Return the inventory metadata image matching an inventory image.

    The metadata image lives beside the inventory image in the same
    parent repository, e.g. ``registry.local/tanzu/plugin-inventory:latest``
    maps to ``registry.local/tanzu/plugin-inventory-metadata:latest``.

    Raises
    ------
    InvalidImageReferenceError
        If ``image`` cannot be parsed.
    """
    ref = parse_image_reference(image)
    return (
        f"{ref.repository_prefix}/"
        f"{PLUGIN_INVENTORY_METADATA_IMAGE_NAME}:{DEFAULT_TAG}"
    )
