# -*- coding: utf-8 -*-
"""
Inventory Metadata - Air-gapped overlay for a plugin inventory database.

An inventory metadata database lists which plugins and plugin groups have
actually been mirrored into a restricted-connectivity registry. Merging it
onto a plugin inventory database removes every entry the registry does
not carry, so discovery only reports plugins that can be installed.

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
from contextlib import closing
from pathlib import Path
from typing import Iterable, Tuple

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.exceptions import InventoryMergeError

# Name of the database file shipped inside the inventory metadata image.
SQLITE_METADATA_DB_FILE_NAME = "plugin_inventory_metadata.db"


_METADATA_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS available_plugin_binaries (
    plugin_name TEXT NOT NULL,
    target TEXT NOT NULL,
    version TEXT NOT NULL,
    PRIMARY KEY (plugin_name, target, version)
);

CREATE TABLE IF NOT EXISTS available_plugin_groups (
    vendor TEXT NOT NULL,
    publisher TEXT NOT NULL,
    group_name TEXT NOT NULL,
    group_version TEXT NOT NULL,
    PRIMARY KEY (vendor, publisher, group_name, group_version)
);
"""

_PRUNE_PLUGINS_SQL = """
DELETE FROM main.plugin_binaries
WHERE NOT EXISTS (
    SELECT 1 FROM meta.available_plugin_binaries a
    WHERE a.plugin_name = plugin_binaries.plugin_name
      AND a.target = plugin_binaries.target
      AND a.version = plugin_binaries.version
)
"""

_PRUNE_GROUPS_SQL = """
DELETE FROM main.plugin_groups
WHERE NOT EXISTS (
    SELECT 1 FROM meta.available_plugin_groups a
    WHERE a.vendor = plugin_groups.vendor
      AND a.publisher = plugin_groups.publisher
      AND a.group_name = plugin_groups.group_name
      AND a.group_version = plugin_groups.group_version
)
"""


class InventoryMetadata:
    """SQLite inventory metadata database.

    Parameters
    ----------
    db_path : Path
        Path to the inventory metadata database file.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def create_schema(self) -> None:
        """Create the metadata tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(sqlite3.connect(str(self._db_path))) as conn:
            conn.executescript(_METADATA_SCHEMA_SQL)
            conn.commit()

    def add_plugins(self, plugins: Iterable[Tuple[str, str, str]]) -> None:
        """Record available plugins as (name, target, version) tuples."""
        with closing(sqlite3.connect(str(self._db_path))) as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO available_plugin_binaries "
                "(plugin_name, target, version) VALUES (?, ?, ?)",
                list(plugins),
            )
            conn.commit()

    def add_groups(self, groups: Iterable[Tuple[str, str, str, str]]) -> None:
        """Record available groups as (vendor, publisher, name, version)."""
        with closing(sqlite3.connect(str(self._db_path))) as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO available_plugin_groups "
                "(vendor, publisher, group_name, group_version) "
                "VALUES (?, ?, ?, ?)",
                list(groups),
            )
            conn.commit()

    def update_inventory_database(self, inventory_db_path: Path) -> None:
        """Apply this metadata onto a plugin inventory database in place.

        Plugins and groups not listed in the metadata are deleted from
        the inventory database. The change is applied in a single
        transaction; on failure the inventory database is left untouched.

        Parameters
        ----------
        inventory_db_path : Path
            Inventory database to modify.

        Raises
        ------
        InventoryMergeError
            If either database is missing or the update fails.
        """
        inventory_db_path = Path(inventory_db_path)
        for path in (self._db_path, inventory_db_path):
            if not path.is_file():
                raise InventoryMergeError(f"database file not found: {path}")

        try:
            with closing(sqlite3.connect(str(inventory_db_path))) as conn:
                conn.execute(
                    "ATTACH DATABASE ? AS meta", (str(self._db_path),)
                )
                try:
                    with conn:
                        plugins = conn.execute(_PRUNE_PLUGINS_SQL).rowcount
                        groups = conn.execute(_PRUNE_GROUPS_SQL).rowcount
                finally:
                    conn.execute("DETACH DATABASE meta")
        except sqlite3.Error as e:
            raise InventoryMergeError(
                f"error while updating inventory database {inventory_db_path} "
                f"based on the inventory metadata database: {e}"
            ) from e

        logger.debug(
            "Pruned %d plugin rows and %d group rows not present in %s",
            plugins, groups, self._db_path,
        )
