# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Image build specifications for bridged packages.

An ImageSpec describes the image that runs one package: the base layer
matching the package architecture, an install step for the archive and
any extra dependencies, and the command the container starts with.
"""

from __future__ import annotations

import io
import json
import os
import shlex
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, NamedTuple

from .deb import PackageDescriptor
from .exceptions import UnsupportedBase

# Name of the archive inside the build context
CONTEXT_ARCHIVE_NAME = "package.deb"


class BaseLayer(NamedTuple):
    """Base image and Docker platform for a package architecture."""

    image: str
    platform: str | None


# Debian architecture -> base layer
BASE_LAYERS: dict[str, BaseLayer] = {
    "all": BaseLayer("debian:stable-slim", None),
    "amd64": BaseLayer("debian:stable-slim", "linux/amd64"),
    "arm64": BaseLayer("debian:stable-slim", "linux/arm64"),
    "armhf": BaseLayer("debian:stable-slim", "linux/arm/v7"),
    "i386": BaseLayer("debian:stable-slim", "linux/386"),
}


@dataclass(frozen=True)
class ImageSpec:
    """Everything needed to build the image of one package."""

    tag: str
    base_reference: str
    platform: str | None
    package_archive_path: str
    install_command: str
    entrypoint: str
    custom_command: str | None
    dependencies: tuple[str, ...]
    extra_dependencies: tuple[str, ...]

    def dockerfile(self) -> str:
        """Render the Dockerfile for this spec."""
        lines = [
            f"FROM {self.base_reference}",
            "",
            "ENV DEBIAN_FRONTEND=noninteractive",
            f"COPY {CONTEXT_ARCHIVE_NAME} /tmp/{CONTEXT_ARCHIVE_NAME}",
            f"RUN {self.install_command}",
            "",
            # Exec form, so the command string is never re-parsed by the builder
            f"CMD {json.dumps(['/bin/sh', '-c', self.entrypoint])}",
            "",
        ]
        return "\n".join(lines)

    def context(self) -> bytes:
        """Build an uncompressed tar build context.

        The context holds the Dockerfile and the package archive.
        """
        buffer = io.BytesIO()
        dockerfile = self.dockerfile().encode()

        with tarfile.open(fileobj=buffer, mode="w") as tar:
            info = tarfile.TarInfo("Dockerfile")
            info.size = len(dockerfile)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(dockerfile))
            tar.add(self.package_archive_path, arcname=CONTEXT_ARCHIVE_NAME)

        return buffer.getvalue()


def image_tag(prefix: str, name: str) -> str:
    """Image tag for a program. Docker repository names must be lower case."""
    return f"{prefix}_{name}".lower()


def default_entrypoint(descriptor: PackageDescriptor) -> str:
    """Command a package runs with when no custom command is given.

    The package name wins when the package ships an executable of that
    name or ships no executables we could detect. Otherwise the first
    executable in sorted order is used.
    """
    if not descriptor.executables or descriptor.name in descriptor.executables:
        return descriptor.name
    return descriptor.executables[0]


def install_command(extra_dependencies: Iterable[str]) -> str:
    """Shell command installing the archive, its dependencies and the extras.

    apt resolves the archive's declared dependencies itself.
    """
    packages = [f"/tmp/{CONTEXT_ARCHIVE_NAME}", *extra_dependencies]
    return " && ".join(
        [
            "apt-get update",
            "apt-get install -y --no-install-recommends "
            + " ".join(shlex.quote(p) for p in packages),
            f"rm -rf /var/lib/apt/lists/* /tmp/{CONTEXT_ARCHIVE_NAME}",
        ]
    )


def build_image_spec(
    descriptor: PackageDescriptor,
    archive_path: str | os.PathLike[str],
    custom_command: str | None = None,
    extra_dependencies: Iterable[str] | None = None,
    base_image: str | None = None,
    prefix: str = "debian_bridge",
) -> ImageSpec:
    """Compose the image spec for a package.

    Args:
        descriptor: Descriptor read from the archive.
        archive_path: Path to the archive copied into the image.
        custom_command: Command overriding the package's executable.
        extra_dependencies: Packages installed in addition to the
            archive's declared dependencies.
        base_image: Base image overriding the architecture table.
        prefix: Prefix of the image tag.

    Raises:
        UnsupportedBase: No base layer is known for the architecture.
    """
    layer = BASE_LAYERS.get(descriptor.architecture)
    if layer is None:
        raise UnsupportedBase(descriptor.name, descriptor.architecture)

    extras = tuple(extra_dependencies or ())
    entrypoint = custom_command or default_entrypoint(descriptor)

    return ImageSpec(
        tag=image_tag(prefix, descriptor.name),
        base_reference=base_image or layer.image,
        platform=layer.platform,
        package_archive_path=str(Path(archive_path)),
        install_command=install_command(extras),
        entrypoint=entrypoint,
        custom_command=custom_command,
        dependencies=descriptor.declared_dependencies + extras,
        extra_dependencies=extras,
    )
