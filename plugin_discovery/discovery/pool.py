# -*- coding: utf-8 -*-
"""
DiscoveryPool - Thread pool for querying several discovery sources.

Each discovery source owns its cache directory, so sources can be
refreshed and queried concurrently. A single source is never queried
from two workers at once by ``available_plugins``.

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
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

# plugin_discovery internal
from plugin_discovery.catalog.models import DiscoveredPlugin
from plugin_discovery.core.config import DiscoveryConfig, load_config
from plugin_discovery.discovery.criteria import QueryOptions
from plugin_discovery.discovery.source import DBBackedOCIDiscovery


class DiscoveryPool:
    """Manages a pool of worker threads for discovery queries.

    Parameters
    ----------
    max_workers : int
        Maximum number of concurrent threads. Default 4.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    @classmethod
    def from_config(cls, config: Optional[DiscoveryConfig] = None) -> 'DiscoveryPool':
        """Create a pool sized by ``config.max_workers``.

        Parameters
        ----------
        config : Optional[DiscoveryConfig]
            Defaults to the saved configuration.
        """
        config = config or load_config()
        return cls(max_workers=config.max_workers)

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def __enter__(self) -> 'DiscoveryPool':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.shutdown()
        return False

    def submit_list_plugins(
        self,
        source: DBBackedOCIDiscovery,
        options: Optional[QueryOptions] = None,
    ) -> Future:
        """Submit a plugin listing job to run in the background.

        Returns
        -------
        Future
            Future resolving to List[DiscoveredPlugin].
        """
        return self._executor.submit(source.list_plugins, options)

    def submit_get_groups(
        self,
        source: DBBackedOCIDiscovery,
        options: Optional[QueryOptions] = None,
    ) -> Future:
        """Submit a plugin group listing job to run in the background.

        Returns
        -------
        Future
            Future resolving to List[PluginGroup].
        """
        return self._executor.submit(source.get_groups, options)

    def available_plugins(
        self,
        sources: Iterable[DBBackedOCIDiscovery],
        options: Optional[QueryOptions] = None,
    ) -> List[DiscoveredPlugin]:
        """List the plugins of every source, sorted by name and target.

        Parameters
        ----------
        sources : Iterable[DBBackedOCIDiscovery]
            Discovery sources. Names must be unique.
        options : Optional[QueryOptions]
            Query options shared by all sources.

        Returns
        -------
        List[DiscoveredPlugin]

        Raises
        ------
        DiscoverySourceError
            From the first source, in iteration order, that failed.
        """
        sources = list(sources)
        names = [source.name for source in sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate discovery source names: {duplicates}")

        options = options or QueryOptions.from_env()
        futures = [
            (source, self.submit_list_plugins(source, options))
            for source in sources
        ]

        plugins: List[DiscoveredPlugin] = []
        for source, future in futures:
            found = future.result()
            logger.debug(
                "Discovered %d plugins from %r", len(found), source.name,
            )
            plugins.extend(found)
        plugins.sort(key=DiscoveredPlugin.sort_key)
        return plugins

    def shutdown(self, wait: bool = True) -> None:
        """Shut down the thread pool.

        Parameters
        ----------
        wait : bool
            If True, wait for running tasks to complete.
        """
        self._executor.shutdown(wait=wait)
