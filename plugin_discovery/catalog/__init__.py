# -*- coding: utf-8 -*-
"""
Catalog Module - Local plugin inventory storage.

Provides the SQLite plugin inventory database, the air-gapped inventory
metadata overlay, and resolution of the cache directories holding them.

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
