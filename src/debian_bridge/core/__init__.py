# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""debian-bridge core.

Package reading, integration policy, image specs, the registry and the
bridge engine.
"""

from .engine import BridgeEngine, open_engine
from .exceptions import (
    AlreadyExists,
    BridgeError,
    ExternalEngineFailure,
    InUse,
    MalformedPackage,
    NotFound,
    NotInstalled,
    RegistryCorrupt,
    ResourceUnavailable,
    UnsupportedBase,
)
from .policy import Feature, IntegrationFlags
from .registry import BridgeEntry, JsonFileStorage, Registry

__all__ = [
    "AlreadyExists",
    "BridgeEngine",
    "BridgeEntry",
    "BridgeError",
    "ExternalEngineFailure",
    "Feature",
    "InUse",
    "IntegrationFlags",
    "JsonFileStorage",
    "MalformedPackage",
    "NotFound",
    "NotInstalled",
    "Registry",
    "RegistryCorrupt",
    "ResourceUnavailable",
    "UnsupportedBase",
    "open_engine",
]
