# -*- coding: utf-8 -*-
"""
OCI Module - Registry access for inventory images.

Parses image references, resolves image digests, downloads image content
and verifies image signatures.

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
