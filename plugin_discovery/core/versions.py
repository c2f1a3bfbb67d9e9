# -*- coding: utf-8 -*-
"""
Version Sorting - Order plugin versions by semantic version precedence.

Dependencies
------------
semver

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
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

# Third-party
import semver


def parse_version(version: str) -> Optional[semver.Version]:
    """Parse a plugin version string, accepting a leading ``v``.

    Missing minor and patch numbers are read as zero, so ``v1.2`` parses
    as ``1.2.0``.

    Returns
    -------
    Optional[semver.Version]
        Parsed version, or None if the string is not a semantic version.
    """
    if isinstance(version, str) and version[:1] in ('v', 'V'):
        version = version[1:]
    try:
        return semver.Version.parse(version, optional_minor_and_patch=True)
    except (ValueError, TypeError):
        return None


def sort_versions(versions: Iterable[str], subject: str = "") -> List[str]:
    """Sort version strings in ascending semantic version precedence.

    Pre-release identifiers are compared as SemVer 2.0 prescribes and
    build metadata is ignored; versions of equal precedence keep their
    input order.

    Versions that cannot be parsed are kept and placed after all valid
    versions, in their original relative order. A single warning lists
    them.

    Parameters
    ----------
    versions : Iterable[str]
        Version strings, e.g. ``['v1.10.0', 'v1.2.0']``.
    subject : str
        Name used in the warning, typically the plugin name.

    Returns
    -------
    List[str]
        Sorted version strings.
    """
    parsed = []
    invalid: List[str] = []
    for v in versions:
        pv = parse_version(v)
        if pv is None:
            invalid.append(v)
        else:
            parsed.append((pv, v))

    if invalid:
        logger.warning(
            "error parsing versions%s: %s",
            f" for plugin {subject}" if subject else "",
            ', '.join(repr(v) for v in invalid),
        )

    parsed.sort(key=lambda item: item[0])
    return [v for _, v in parsed] + invalid
