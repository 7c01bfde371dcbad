# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""debian-bridge configuration.

This module handles configuration with systemd-style layered precedence:

1. ~/.config/debian-bridge/debian-bridge.conf  (user overrides - highest priority)
2. /etc/debian-bridge/debian-bridge.conf       (admin/system overrides)
3. /usr/lib/debian-bridge/debian-bridge.conf   (package defaults - lowest priority)

A file passed with ``--config`` replaces the whole lookup.

Configuration options (section ``[debian-bridge]``):
- registry: Path of the registry file holding installed programs
- base_image: Base image overriding the architecture table
- prefix: Prefix for image tags
- devices: Device allowlist (globs) shared by the ``--devices`` flag
- docker_socket: Path of the Docker Engine Unix socket
"""

import configparser
import os
import re
from pathlib import Path
from typing import NamedTuple

SECTION = "debian-bridge"
CONFIG_FILE_NAME = "debian-bridge.conf"
REGISTRY_FILE_NAME = "registry.json"

# Default values (used if no config files exist)
DEFAULT_PREFIX = "debian_bridge"
DEFAULT_DOCKER_SOCKET = "/var/run/docker.sock"


class BridgeSettings(NamedTuple):
    """Settings consumed by the bridge engine."""

    registry_path: Path
    base_image: str | None
    prefix: str
    devices: tuple[str, ...]
    docker_socket: str


def _config_home() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME", "")
    if not config_home:
        config_home = os.path.expanduser("~/.config")
    return Path(config_home)


def get_config_path() -> Path:
    """Get the user config file path.

    Returns:
        Path to the user's config file.
    """
    return _config_home() / "debian-bridge" / CONFIG_FILE_NAME


def get_config_paths(override: Path | None = None) -> list[Path]:
    """Get all config file paths in priority order (highest first).

    Args:
        override: Explicit config file. When given, it is the only path.

    Returns:
        List of paths to check, highest priority first.
    """
    if override is not None:
        return [override]

    return [
        get_config_path(),
        Path("/etc/debian-bridge") / CONFIG_FILE_NAME,
        Path("/usr/lib/debian-bridge") / CONFIG_FILE_NAME,
    ]


def _default_docker_socket() -> str:
    docker_host = os.environ.get("DOCKER_HOST", "")
    if docker_host.startswith("unix://"):
        return docker_host[len("unix://"):]
    return DEFAULT_DOCKER_SOCKET


def split_list(value: str) -> list[str]:
    """Split a comma and/or whitespace separated option value."""
    return [item for item in re.split(r"[,\s]+", value) if item]


def load_settings(override: Path | None = None) -> BridgeSettings:
    """Load configuration from all config paths, merging with precedence.

    Reads config files from lowest to highest priority, with higher
    priority values overriding lower ones.

    Args:
        override: Config file given on the command line, if any.

    Returns:
        BridgeSettings with merged settings.
    """
    paths = get_config_paths(override)

    # The registry lives next to the highest-priority config file by default
    registry_path = paths[0].parent / REGISTRY_FILE_NAME
    base_image: str | None = None
    prefix = DEFAULT_PREFIX
    devices: tuple[str, ...] = ()
    docker_socket = _default_docker_socket()

    for config_path in reversed(paths):
        if not config_path.exists():
            continue

        parser = configparser.ConfigParser()
        try:
            parser.read(config_path)
        except configparser.Error:
            # Skip malformed config files
            continue

        if not parser.has_section(SECTION):
            continue

        if parser.has_option(SECTION, "registry"):
            registry_path = Path(os.path.expanduser(parser.get(SECTION, "registry")))
        if parser.has_option(SECTION, "base_image"):
            base_image = parser.get(SECTION, "base_image") or None
        if parser.has_option(SECTION, "prefix"):
            prefix = parser.get(SECTION, "prefix")
        if parser.has_option(SECTION, "devices"):
            devices = tuple(split_list(parser.get(SECTION, "devices")))
        if parser.has_option(SECTION, "docker_socket"):
            docker_socket = parser.get(SECTION, "docker_socket")

    return BridgeSettings(
        registry_path=registry_path,
        base_image=base_image,
        prefix=prefix,
        devices=devices,
        docker_socket=docker_socket,
    )
