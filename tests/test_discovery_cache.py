# -*- coding: utf-8 -*-
"""
Tests for plugin_discovery.discovery.cache - CacheValidator.

Created
-------
2026-10-18
"""

from unittest.mock import MagicMock

import pytest

from plugin_discovery.discovery.cache import (
    CacheCheckResult,
    CacheValidator,
    DigestState,
    ImageDigest,
)
from plugin_discovery.exceptions import ImageResolutionError, RegistryError

IMAGE = "registry.local/cli/plugin-inventory:latest"
METADATA_IMAGE = "registry.local/cli/plugin-inventory-metadata:latest"
D1 = "1" * 64
D2 = "2" * 64
D3 = "3" * 64


def _probe(digests):
    """Digest probe returning digests[image], raising if missing."""
    def probe(image):
        if image not in digests:
            raise RegistryError(f"{image} not found")
        return digests[image]
    return MagicMock(side_effect=probe)


def _markers(cache_dir):
    return sorted(p.name for p in cache_dir.glob("*digest.*"))


class TestImageDigest:

    def test_present_strips_algorithm(self):
        digest = ImageDigest.present(f"sha256:{D1}")
        assert digest.state is DigestState.PRESENT
        assert digest.marker_token == D1

    def test_absent_token(self):
        assert ImageDigest.absent().marker_token == "none"

    def test_empty_digest_is_absent(self):
        assert ImageDigest.present("").state is DigestState.ABSENT


class TestCheckCache:

    def test_empty_cache_needs_both_markers(self, tmp_path):
        validator = CacheValidator(tmp_path, _probe({IMAGE: f"sha256:{D1}"}))
        check = validator.check_cache(IMAGE)
        assert check.inventory_marker == tmp_path / f"digest.{D1}"
        assert check.metadata_marker == tmp_path / "metadata.digest.none"
        assert check.needs_refresh

    def test_current_cache(self, tmp_path):
        (tmp_path / f"digest.{D1}").touch()
        (tmp_path / "metadata.digest.none").touch()
        validator = CacheValidator(tmp_path, _probe({IMAGE: f"sha256:{D1}"}))

        check = validator.check_cache(IMAGE)
        assert check == CacheCheckResult()
        assert not check.needs_refresh
        assert _markers(tmp_path) == [f"digest.{D1}", "metadata.digest.none"]

    def test_idempotent_after_markers_created(self, tmp_path):
        validator = CacheValidator(tmp_path, _probe({IMAGE: f"sha256:{D1}"}))
        first = validator.check_cache(IMAGE)
        first.inventory_marker.touch()
        first.metadata_marker.touch()

        assert not validator.check_cache(IMAGE).needs_refresh

    def test_stale_inventory_marker_removed(self, tmp_path):
        (tmp_path / f"digest.{D2}").touch()
        (tmp_path / "metadata.digest.none").touch()
        validator = CacheValidator(tmp_path, _probe({IMAGE: f"sha256:{D1}"}))

        check = validator.check_cache(IMAGE)
        assert check.inventory_marker == tmp_path / f"digest.{D1}"
        assert check.metadata_marker is None
        assert _markers(tmp_path) == ["metadata.digest.none"]

    def test_multiple_markers_self_heal(self, tmp_path, caplog):
        for d in (D1, D2, D3):
            (tmp_path / f"digest.{d}").touch()
        (tmp_path / "metadata.digest.none").touch()
        validator = CacheValidator(tmp_path, _probe({IMAGE: f"sha256:{D1}"}))

        check = validator.check_cache(IMAGE)
        # Even the matching marker is discarded.
        assert check.inventory_marker == tmp_path / f"digest.{D1}"
        assert _markers(tmp_path) == ["metadata.digest.none"]
        assert "Too many digest files" in caplog.text

    def test_overlay_appearing_invalidates(self, tmp_path):
        (tmp_path / f"digest.{D1}").touch()
        (tmp_path / "metadata.digest.none").touch()
        validator = CacheValidator(tmp_path, _probe({
            IMAGE: f"sha256:{D1}",
            METADATA_IMAGE: f"sha256:{D2}",
        }))

        check = validator.check_cache(IMAGE)
        assert check.inventory_marker is None
        assert check.metadata_marker == tmp_path / f"metadata.digest.{D2}"
        assert _markers(tmp_path) == [f"digest.{D1}"]

    def test_overlay_disappearing_invalidates(self, tmp_path):
        (tmp_path / f"digest.{D1}").touch()
        (tmp_path / f"metadata.digest.{D2}").touch()
        validator = CacheValidator(tmp_path, _probe({IMAGE: f"sha256:{D1}"}))

        check = validator.check_cache(IMAGE)
        assert check.inventory_marker is None
        assert check.metadata_marker == tmp_path / "metadata.digest.none"

    def test_inventory_resolution_failure(self, tmp_path):
        (tmp_path / f"digest.{D1}").touch()
        validator = CacheValidator(tmp_path, _probe({}))

        with pytest.raises(ImageResolutionError) as exc_info:
            validator.check_cache(IMAGE)
        assert exc_info.value.image == IMAGE
        assert IMAGE in str(exc_info.value)
        assert _markers(tmp_path) == [f"digest.{D1}"]

    def test_unresolvable_metadata_reference_is_absent(self, tmp_path):
        def resolver(image):
            raise RegistryError("cannot derive")

        validator = CacheValidator(
            tmp_path, _probe({IMAGE: f"sha256:{D1}"}), metadata_resolver=resolver,
        )
        check = validator.check_cache(IMAGE)
        assert check.metadata_marker == tmp_path / "metadata.digest.none"

    def test_separate_metadata_probe(self, tmp_path):
        inventory_probe = _probe({IMAGE: f"sha256:{D1}"})
        metadata_probe = _probe({METADATA_IMAGE: f"sha256:{D2}"})
        validator = CacheValidator(
            tmp_path, inventory_probe, metadata_digest_probe=metadata_probe,
        )
        check = validator.check_cache(IMAGE)
        inventory_probe.assert_called_once_with(IMAGE)
        metadata_probe.assert_called_once_with(METADATA_IMAGE)
        assert check.metadata_marker == tmp_path / f"metadata.digest.{D2}"

    def test_metadata_markers_do_not_match_inventory_prefix(self, tmp_path):
        (tmp_path / f"metadata.digest.{D1}").touch()
        validator = CacheValidator(tmp_path, _probe({IMAGE: f"sha256:{D1}"}))
        assert validator.reconcile_marker(ImageDigest.present(D1), "") == (
            tmp_path / f"digest.{D1}"
        )
        assert (tmp_path / f"metadata.digest.{D1}").exists()
