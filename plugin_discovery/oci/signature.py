# -*- coding: utf-8 -*-
"""
Signature Verification - Verify inventory image signatures with cosign.

Runs the ``cosign`` executable to check that an inventory image was
signed by a trusted key before its content is downloaded. Images listed
in the skip list (constructor argument or the
PLUGIN_DISCOVERY_IMAGE_SIGNATURE_VERIFICATION_SKIP_LIST environment
variable) are not verified.

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
import subprocess
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.exceptions import SignatureVerificationError


SKIP_LIST_ENV_VAR = "PLUGIN_DISCOVERY_IMAGE_SIGNATURE_VERIFICATION_SKIP_LIST"


def skip_list_from_env() -> Set[str]:
    """Read the comma-separated signature verification skip list."""
    raw = os.environ.get(SKIP_LIST_ENV_VAR, "")
    return {item.strip() for item in raw.split(',') if item.strip()}


class CosignVerifier:
    """Verify image signatures by invoking cosign.

    Parameters
    ----------
    public_key : Optional[str]
        Key reference passed to ``cosign verify --key``. If None,
        cosign's keyless verification is used.
    skip_list : Iterable[str]
        Images whose verification is skipped.
    cosign_binary : str
        Name or path of the cosign executable. Default 'cosign'.
    timeout : float
        Timeout of one cosign invocation in seconds. Default 60.0.
    """

    def __init__(
        self,
        public_key: Optional[str] = None,
        skip_list: Iterable[str] = (),
        cosign_binary: str = "cosign",
        timeout: float = 60.0,
    ) -> None:
        self._public_key = public_key
        self._skip_list = set(skip_list)
        self._cosign = cosign_binary
        self._timeout = timeout

    def verify(self, image: str) -> None:
        """Verify the signature of an image.

        Parameters
        ----------
        image : str
            Image reference.

        Raises
        ------
        SignatureVerificationError
            If cosign is unavailable or rejects the signature.
        """
        if image in self._skip_list or image in skip_list_from_env():
            logger.warning(
                "Skipping the signature verification of image %r", image
            )
            return

        cmd: List[str] = [self._cosign, 'verify']
        if self._public_key:
            cmd.extend(['--key', self._public_key])
        cmd.append(image)

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise SignatureVerificationError(
                f"cosign executable {self._cosign!r} not found; unable to "
                f"verify the signature of image {image!r}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise SignatureVerificationError(
                f"signature verification of image {image!r} timed out "
                f"after {self._timeout} seconds"
            ) from e

        if result.returncode != 0:
            logger.error(
                "cosign verify failed for '%s': %s", image, result.stderr
            )
            raise SignatureVerificationError(
                f"signature verification failed for image {image!r}: "
                f"{result.stderr.strip()}"
            )
        logger.debug("Verified signature of image %s", image)


class NoopVerifier:
    """Verifier that accepts every image."""

    def verify(self, image: str) -> None:
        logger.debug("Signature verification disabled for %s", image)
