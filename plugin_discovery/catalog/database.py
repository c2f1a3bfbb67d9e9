# -*- coding: utf-8 -*-
"""
Catalog Database - SQLite-backed plugin inventory.

Provides the PluginInventory class for querying the plugins and plugin
groups described by a plugin inventory database file, and for writing
such a file when publishing an inventory.

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
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.catalog.models import (
    VERSION_LATEST,
    GroupPluginInfo,
    PluginArtifact,
    PluginGroup,
    PluginGroupFilter,
    PluginInventoryEntry,
    PluginInventoryFilter,
)

# Name of the database file shipped inside the inventory image.
SQLITE_DB_FILE_NAME = "plugin_inventory.db"


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS plugin_binaries (
    plugin_name TEXT NOT NULL,
    target TEXT NOT NULL,
    recommended_version TEXT NOT NULL,
    version TEXT NOT NULL,
    hidden INTEGER NOT NULL DEFAULT 0,
    description TEXT NOT NULL DEFAULT '',
    publisher TEXT NOT NULL DEFAULT '',
    vendor TEXT NOT NULL DEFAULT '',
    os TEXT NOT NULL,
    arch TEXT NOT NULL,
    digest TEXT NOT NULL DEFAULT '',
    uri TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (plugin_name, target, version, os, arch)
);

CREATE TABLE IF NOT EXISTS plugin_groups (
    vendor TEXT NOT NULL,
    publisher TEXT NOT NULL,
    group_name TEXT NOT NULL,
    group_version TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    plugin_name TEXT NOT NULL,
    target TEXT NOT NULL,
    plugin_version TEXT NOT NULL,
    mandatory INTEGER NOT NULL DEFAULT 1,
    hidden INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (vendor, publisher, group_name, group_version,
                 plugin_name, target, plugin_version)
);
"""


class PluginInventory:
    """SQLite-backed inventory of plugins and plugin groups.

    A connection is opened per operation so the database file can be
    replaced on disk between queries.

    Parameters
    ----------
    db_path : Path
        Path to the inventory database file.
    uri_prefix : str
        Prefix joined to each artifact URI to form its image reference,
        usually the repository holding the inventory image.
    """

    def __init__(self, db_path: Path, uri_prefix: str = "") -> None:
        self._db_path = Path(db_path)
        self._uri_prefix = uri_prefix.rstrip('/')

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self, readonly: bool = True) -> sqlite3.Connection:
        if readonly:
            # Read-only mode fails instead of creating an empty database.
            conn = sqlite3.connect(
                f"file:{quote(self._db_path.as_posix())}?mode=ro", uri=True
            )
        else:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def create_schema(self) -> None:
        """Create the inventory tables if they don't exist."""
        with closing(self._connect(readonly=False)) as conn:
            conn.executescript(_SCHEMA_SQL)
            conn.commit()

    def insert_plugin(self, entry: PluginInventoryEntry) -> None:
        """Add or replace every artifact of a plugin entry.

        Parameters
        ----------
        entry : PluginInventoryEntry
        """
        with closing(self._connect(readonly=False)) as conn:
            for version, artifacts in entry.artifacts.items():
                for artifact in artifacts:
                    conn.execute(
                        """INSERT OR REPLACE INTO plugin_binaries
                        (plugin_name, target, recommended_version, version,
                         hidden, description, publisher, vendor,
                         os, arch, digest, uri)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (
                            entry.name, entry.target,
                            entry.recommended_version, version,
                            int(entry.hidden), entry.description,
                            entry.publisher, entry.vendor,
                            artifact.os, artifact.arch,
                            artifact.digest, artifact.uri,
                        ),
                    )
            conn.commit()

    def insert_plugin_group(self, group: PluginGroup) -> None:
        """Add or replace a plugin group and its members.

        Parameters
        ----------
        group : PluginGroup
        """
        with closing(self._connect(readonly=False)) as conn:
            for plugin in group.plugins:
                conn.execute(
                    """INSERT OR REPLACE INTO plugin_groups
                    (vendor, publisher, group_name, group_version,
                     description, plugin_name, target, plugin_version,
                     mandatory, hidden)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        group.vendor, group.publisher, group.name,
                        group.version, group.description,
                        plugin.name, plugin.target, plugin.version,
                        int(plugin.mandatory), int(group.hidden),
                    ),
                )
            conn.commit()

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def get_plugins(
        self,
        plugin_filter: Optional[PluginInventoryFilter] = None,
    ) -> List[PluginInventoryEntry]:
        """Return the plugin entries matching a filter.

        Parameters
        ----------
        plugin_filter : Optional[PluginInventoryFilter]
            Filter to apply. None returns every non-hidden plugin.

        Returns
        -------
        List[PluginInventoryEntry]
            One entry per (name, target), ordered by name then target.

        Raises
        ------
        sqlite3.Error
            If the database cannot be opened or read.
        """
        plugin_filter = plugin_filter or PluginInventoryFilter()

        conditions: List[str] = []
        params: list = []
        for column, value in (
            ('plugin_name', plugin_filter.name),
            ('target', plugin_filter.target),
            ('os', plugin_filter.os),
            ('arch', plugin_filter.arch),
        ):
            if value:
                conditions.append(f"{column} = ?")
                params.append(value)

        if plugin_filter.version == VERSION_LATEST:
            conditions.append("version = recommended_version")
        elif plugin_filter.version:
            conditions.append("version = ?")
            params.append(plugin_filter.version)

        if not plugin_filter.include_hidden:
            conditions.append("hidden = 0")

        sql = "SELECT * FROM plugin_binaries"
        if conditions:
            sql += f" WHERE {' AND '.join(conditions)}"
        sql += " ORDER BY plugin_name, target, version, os, arch"

        with closing(self._connect()) as conn:
            rows = conn.execute(sql, params).fetchall()

        entries: Dict[Tuple[str, str], PluginInventoryEntry] = {}
        for row in rows:
            key = (row['plugin_name'], row['target'])
            entry = entries.get(key)
            if entry is None:
                entry = PluginInventoryEntry(
                    name=row['plugin_name'],
                    target=row['target'],
                    description=row['description'],
                    publisher=row['publisher'],
                    vendor=row['vendor'],
                    recommended_version=row['recommended_version'],
                    hidden=bool(row['hidden']),
                )
                entries[key] = entry
            entry.artifacts.setdefault(row['version'], []).append(
                self._row_to_artifact(row)
            )
        logger.debug(
            "Read %d plugin entries from %s", len(entries), self._db_path
        )
        return list(entries.values())

    def get_plugin_groups(
        self,
        group_filter: Optional[PluginGroupFilter] = None,
    ) -> List[PluginGroup]:
        """Return the plugin groups matching a filter.

        Parameters
        ----------
        group_filter : Optional[PluginGroupFilter]
            Filter to apply. None returns every non-hidden group.

        Returns
        -------
        List[PluginGroup]

        Raises
        ------
        sqlite3.Error
            If the database cannot be opened or read.
        """
        group_filter = group_filter or PluginGroupFilter()

        conditions: List[str] = []
        params: list = []
        for column, value in (
            ('vendor', group_filter.vendor),
            ('publisher', group_filter.publisher),
            ('group_name', group_filter.name),
            ('group_version', group_filter.version),
        ):
            if value:
                conditions.append(f"{column} = ?")
                params.append(value)
        if not group_filter.include_hidden:
            conditions.append("hidden = 0")

        sql = "SELECT * FROM plugin_groups"
        if conditions:
            sql += f" WHERE {' AND '.join(conditions)}"
        sql += (
            " ORDER BY vendor, publisher, group_name, group_version,"
            " plugin_name, target"
        )

        with closing(self._connect()) as conn:
            rows = conn.execute(sql, params).fetchall()

        groups: Dict[Tuple[str, str, str, str], PluginGroup] = {}
        for row in rows:
            key = (
                row['vendor'], row['publisher'],
                row['group_name'], row['group_version'],
            )
            group = groups.get(key)
            if group is None:
                group = PluginGroup(
                    vendor=row['vendor'],
                    publisher=row['publisher'],
                    name=row['group_name'],
                    version=row['group_version'],
                    description=row['description'],
                    hidden=bool(row['hidden']),
                )
                groups[key] = group
            group.plugins.append(GroupPluginInfo(
                name=row['plugin_name'],
                target=row['target'],
                version=row['plugin_version'],
                mandatory=bool(row['mandatory']),
            ))
        return list(groups.values())

    def _row_to_artifact(self, row: sqlite3.Row) -> PluginArtifact:
        """Convert a plugin_binaries row to a PluginArtifact."""
        uri = row['uri']
        image = f"{self._uri_prefix}/{uri}" if self._uri_prefix and uri else uri
        return PluginArtifact(
            os=row['os'],
            arch=row['arch'],
            digest=row['digest'],
            image=image,
            uri=uri,
        )
