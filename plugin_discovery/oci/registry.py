# -*- coding: utf-8 -*-
"""
Registry Client - Resolve digests and download images from OCI registries.

Implements the subset of the OCI distribution API needed for plugin
discovery: resolving the manifest digest of a tagged image without
downloading it, and downloading the files an image carries into a
directory. Layer content is streamed, bounded in size and verified
against its digest before use.

Dependencies
------------
requests

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
import hashlib
import logging
import re
import tarfile
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, Optional, Tuple

# Third-party
import requests

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.exceptions import RegistryError
from plugin_discovery.oci.reference import ImageReference, parse_image_reference


MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_DOCKER_MANIFEST = (
    "application/vnd.docker.distribution.manifest.v2+json"
)
MEDIA_TYPE_DOCKER_MANIFEST_LIST = (
    "application/vnd.docker.distribution.manifest.list.v2+json"
)

_MANIFEST_ACCEPT = ", ".join((
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_DOCKER_MANIFEST,
    MEDIA_TYPE_DOCKER_MANIFEST_LIST,
))
_INDEX_TYPES = (MEDIA_TYPE_OCI_INDEX, MEDIA_TYPE_DOCKER_MANIFEST_LIST)

_TITLE_ANNOTATION = "org.opencontainers.image.title"
_DOCKER_HUB_API = "registry-1.docker.io"
_CHUNK_SIZE = 64 * 1024
_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')


class RegistryClient:
    """Client for OCI registries over HTTP(S).

    Parameters
    ----------
    session : Optional[requests.Session]
        HTTP session to use. A new one is created if None.
    timeout : float
        Timeout of each HTTP request in seconds. Default 30.0.
    max_blob_size : int
        Largest layer accepted, in bytes. Default 512 MiB.
    plain_http_registries : Iterable[str]
        Registry hosts contacted over plain HTTP.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        max_blob_size: int = 512 * 1024 * 1024,
        plain_http_registries: Iterable[str] = (),
    ) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout
        self._max_blob_size = max_blob_size
        self._plain_http = set(plain_http_registries)
        self._tokens: Dict[Tuple[str, str], str] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_image_digest(self, image: str) -> str:
        """Resolve the manifest digest of an image.

        Parameters
        ----------
        image : str
            Image reference.

        Returns
        -------
        str
            Digest in ``<algorithm>:<hex>`` form.

        Raises
        ------
        RegistryError
            If the registry cannot be reached or the image does not exist.
        InvalidImageReferenceError
            If the reference is malformed.
        """
        ref = parse_image_reference(image)
        if ref.digest:
            return ref.digest

        url = self._manifest_url(ref, ref.tag)
        resp = self._request(
            'HEAD', ref, url, headers={'Accept': _MANIFEST_ACCEPT},
        )
        digest = resp.headers.get('Docker-Content-Digest')
        if digest:
            return digest

        # Some registries omit the digest header on HEAD.
        resp = self._request(
            'GET', ref, url, headers={'Accept': _MANIFEST_ACCEPT},
        )
        return "sha256:" + hashlib.sha256(resp.content).hexdigest()

    def download_image(self, image: str, dest_dir: Path) -> None:
        """Download the files carried by an image into a directory.

        Tar layers are extracted; other layers are written under the
        name given by their ``org.opencontainers.image.title`` annotation.

        Parameters
        ----------
        image : str
            Image reference.
        dest_dir : Path
            Existing directory receiving the files.

        Raises
        ------
        RegistryError
            If the manifest or a layer cannot be fetched or verified.
        """
        ref = parse_image_reference(image)
        dest_dir = Path(dest_dir)
        manifest = self._get_manifest(ref, ref.identifier)

        if manifest.get('mediaType') in _INDEX_TYPES or 'manifests' in manifest:
            entries = manifest.get('manifests') or []
            if not entries:
                raise RegistryError(f"image index of {image} is empty")
            manifest = self._get_manifest(ref, entries[0]['digest'])

        layers = manifest.get('layers') or []
        if not layers:
            raise RegistryError(f"image {image} has no layers")

        for layer in layers:
            self._download_layer(ref, layer, dest_dir)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _base_url(self, ref: ImageReference) -> str:
        host = _DOCKER_HUB_API if ref.registry == "docker.io" else ref.registry
        scheme = 'http' if ref.registry in self._plain_http else 'https'
        return f"{scheme}://{host}/v2/{ref.repository}"

    def _manifest_url(self, ref: ImageReference, identifier: str) -> str:
        return f"{self._base_url(ref)}/manifests/{identifier}"

    def _request(
        self,
        method: str,
        ref: ImageReference,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response:
        """Send a request, answering one bearer-token challenge if needed."""
        headers = dict(headers or {})
        token_key = (ref.registry, ref.repository)
        if token_key in self._tokens:
            headers['Authorization'] = f"Bearer {self._tokens[token_key]}"

        try:
            resp = self._session.request(
                method, url, headers=headers, timeout=self._timeout,
                stream=stream,
            )
            if resp.status_code == 401 and token_key not in self._tokens:
                token = self._fetch_token(
                    resp.headers.get('WWW-Authenticate', ''), ref,
                )
                if token:
                    self._tokens[token_key] = token
                    headers['Authorization'] = f"Bearer {token}"
                    resp = self._session.request(
                        method, url, headers=headers, timeout=self._timeout,
                        stream=stream,
                    )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise RegistryError(f"{method} {url} failed: {e}") from e
        return resp

    def _fetch_token(self, challenge: str, ref: ImageReference) -> Optional[str]:
        """Obtain an anonymous bearer token from a WWW-Authenticate challenge."""
        if not challenge.lower().startswith('bearer '):
            return None
        params = dict(_CHALLENGE_PARAM_RE.findall(challenge))
        realm = params.pop('realm', None)
        if not realm:
            return None
        params.setdefault('scope', f"repository:{ref.repository}:pull")

        resp = self._session.get(realm, params=params, timeout=self._timeout)
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as e:
            raise RegistryError(f"invalid token response from {realm}: {e}") from e
        if not isinstance(data, dict):
            raise RegistryError(f"invalid token response from {realm}")
        return data.get('token') or data.get('access_token')

    def _get_manifest(self, ref: ImageReference, identifier: str) -> dict:
        resp = self._request(
            'GET', ref, self._manifest_url(ref, identifier),
            headers={'Accept': _MANIFEST_ACCEPT},
        )
        try:
            return resp.json()
        except ValueError as e:
            raise RegistryError(
                f"invalid manifest for {ref}: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def _download_layer(
        self,
        ref: ImageReference,
        layer: dict,
        dest_dir: Path,
    ) -> None:
        digest = layer.get('digest', '')
        algorithm, _, expected = digest.partition(':')
        if not expected:
            raise RegistryError(f"layer of {ref} has an invalid digest {digest!r}")

        size = layer.get('size')
        if size is not None and size > self._max_blob_size:
            raise RegistryError(
                f"layer {digest} of {ref} is {size} bytes, "
                f"exceeding the {self._max_blob_size} byte limit"
            )

        try:
            hasher = hashlib.new(algorithm)
        except ValueError as e:
            raise RegistryError(f"unsupported digest algorithm {algorithm!r}") from e

        blob_path = dest_dir / f".blob-{expected[:16]}"
        url = f"{self._base_url(ref)}/blobs/{digest}"
        resp = self._request('GET', ref, url, stream=True)
        received = 0
        try:
            with open(blob_path, 'wb') as f:
                for chunk in resp.iter_content(_CHUNK_SIZE):
                    received += len(chunk)
                    if received > self._max_blob_size:
                        raise RegistryError(
                            f"layer {digest} of {ref} exceeds the "
                            f"{self._max_blob_size} byte limit"
                        )
                    hasher.update(chunk)
                    f.write(chunk)
        except requests.RequestException as e:
            blob_path.unlink(missing_ok=True)
            raise RegistryError(f"download of layer {digest} failed: {e}") from e
        except RegistryError:
            blob_path.unlink(missing_ok=True)
            raise
        finally:
            resp.close()

        if hasher.hexdigest() != expected.lower():
            blob_path.unlink(missing_ok=True)
            raise RegistryError(
                f"layer {digest} of {ref} failed digest verification"
            )

        try:
            media_type = layer.get('mediaType', '')
            title = (layer.get('annotations') or {}).get(_TITLE_ANNOTATION)
            if 'tar' in media_type and not title:
                _extract_tar(blob_path, dest_dir, self._max_blob_size)
            else:
                name = _safe_name(title or expected)
                blob_path.replace(dest_dir / name)
        finally:
            blob_path.unlink(missing_ok=True)


def _safe_name(name: str) -> str:
    """Validate a file name taken from an image annotation."""
    path = PurePosixPath(name)
    if path.is_absolute() or '..' in path.parts or len(path.parts) != 1:
        raise RegistryError(f"refusing unsafe file name {name!r} from image")
    return name


def _extract_tar(archive: Path, dest_dir: Path, max_size: int) -> None:
    """Extract regular files and directories from a layer tarball.

    Entries whose path would escape ``dest_dir`` are rejected, as is an
    archive whose extracted content exceeds ``max_size`` bytes.
    """
    root = dest_dir.resolve()
    extracted = 0
    try:
        with tarfile.open(archive, 'r:*') as tar:
            for member in tar:
                target = (root / member.name).resolve()
                if target != root and root not in target.parents:
                    raise RegistryError(
                        f"refusing tar entry {member.name!r} outside "
                        f"the destination directory"
                    )
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    target.parent.mkdir(parents=True, exist_ok=True)
                    src = tar.extractfile(member)
                    if src is None:
                        continue
                    with src, open(target, 'wb') as out:
                        while True:
                            chunk = src.read(_CHUNK_SIZE)
                            if not chunk:
                                break
                            extracted += len(chunk)
                            if extracted > max_size:
                                raise RegistryError(
                                    f"extracted layer content exceeds the "
                                    f"{max_size} byte limit"
                                )
                            out.write(chunk)
                else:
                    logger.debug("Skipping tar entry %s", member.name)
    except (tarfile.TarError, OSError) as e:
        raise RegistryError(f"failed to extract layer: {e}") from e
