# -*- coding: utf-8 -*-
"""
Discovery Module - Discovery sources backed by OCI inventory images.

Contains cache validation, inventory refresh, the discovery source query
surface and a thread pool for querying several sources.

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
