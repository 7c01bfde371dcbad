# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""debian-bridge exceptions.

Every failure the core can report is a BridgeError subclass. Each class
carries the process exit code the CLI uses for it.
"""


class BridgeError(Exception):
    """Base exception for debian-bridge errors."""

    exit_code = 1


class NotFound(BridgeError):
    """A package archive or file does not exist or is not readable."""

    exit_code = 3

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"file not found or not readable: {path}")


class MalformedPackage(BridgeError):
    """The package descriptor could not be read from the archive."""

    exit_code = 4

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"malformed package {path}: {reason}")


class UnsupportedBase(BridgeError):
    """No base image is known for the package's platform."""

    exit_code = 5

    def __init__(self, package: str, architecture: str):
        self.package = package
        self.architecture = architecture
        super().__init__(
            f"no base image for package '{package}' (architecture: {architecture})"
        )


class ResourceUnavailable(BridgeError):
    """A requested host integration cannot be satisfied on this host."""

    exit_code = 6

    def __init__(self, feature: str, reason: str):
        self.feature = feature
        self.reason = reason
        super().__init__(f"{feature} unavailable: {reason}")


class AlreadyExists(BridgeError):
    """A program with the same name is already installed."""

    exit_code = 7

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"program '{name}' already exists. Remove it first with: "
            f"debian-bridge remove {name}"
        )


class NotInstalled(BridgeError):
    """The requested program is not in the registry."""

    exit_code = 8

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"program not installed: {name}")


class InUse(BridgeError):
    """The program is running and cannot be removed."""

    exit_code = 9

    def __init__(self, name: str, containers: list[str] | None = None):
        self.name = name
        self.containers = containers or []
        super().__init__(f"program '{name}' is running. Stop it before removing")


class ExternalEngineFailure(BridgeError):
    """The container engine reported an error."""

    exit_code = 10

    def __init__(self, action: str, message: str):
        self.action = action
        self.message = message
        super().__init__(f"container engine failed to {action}: {message}")


class RegistryCorrupt(BridgeError):
    """The registry file exists but cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"registry {path} is corrupt: {reason}")
