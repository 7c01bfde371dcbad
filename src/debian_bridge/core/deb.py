# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Reading package descriptors from Debian binary packages.

A .deb is an ar archive holding ``debian-binary``, ``control.tar.*`` and
``data.tar.*``. Only the control metadata and the file listing of the
data member are read.
"""

from __future__ import annotations

import io
import logging
import os
import re
import shutil
import subprocess
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterator

from .exceptions import MalformedPackage, NotFound

logger = logging.getLogger(__name__)

AR_MAGIC = b"!<arch>\n"
AR_HEADER_SIZE = 60

# Names end up in image tags, which Docker requires to be lower case
SAFE_NAME = re.compile(r"^[a-z0-9][a-z0-9_-]*$")

# Directories whose files count as the package's executables
EXECUTABLE_DIRS = ("usr/bin", "bin", "usr/games", "usr/local/bin")


@dataclass(frozen=True)
class PackageDescriptor:
    """Identity and dependency metadata of a package."""

    name: str
    version: str
    declared_dependencies: tuple[str, ...] = ()
    architecture: str = "all"
    description: str | None = None
    executables: tuple[str, ...] = field(default=())


def _iter_ar_members(fh: BinaryIO, path: str) -> Iterator[tuple[str, bytes]]:
    """Yield (name, content) for each member of an ar archive."""
    if fh.read(len(AR_MAGIC)) != AR_MAGIC:
        raise MalformedPackage(path, "not an ar archive")

    while True:
        header = fh.read(AR_HEADER_SIZE)
        if not header:
            return
        if len(header) < AR_HEADER_SIZE or header[58:60] != b"`\n":
            raise MalformedPackage(path, "truncated ar member header")

        name = header[0:16].decode("ascii", errors="replace").strip().rstrip("/")
        try:
            size = int(header[48:58].decode("ascii").strip())
        except ValueError:
            raise MalformedPackage(path, f"bad size for ar member '{name}'") from None

        content = fh.read(size)
        if len(content) < size:
            raise MalformedPackage(path, f"truncated ar member '{name}'")
        # Members are aligned to even offsets
        if size % 2:
            fh.read(1)

        yield name, content


def _open_tar(member: str, content: bytes, path: str) -> tarfile.TarFile:
    """Open a control/data tarball, handling every compression dpkg emits."""
    if member.endswith(".zst"):
        if shutil.which("zstd") is None:
            raise MalformedPackage(path, "zstd is required to read .tar.zst members")
        result = subprocess.run(
            ["zstd", "-d", "-q", "-c"],
            input=content,
            capture_output=True,
        )
        if result.returncode != 0:
            raise MalformedPackage(
                path, f"failed to decompress {member}: {result.stderr.decode().strip()}"
            )
        content = result.stdout

    try:
        return tarfile.open(fileobj=io.BytesIO(content), mode="r:*")
    except tarfile.TarError as e:
        raise MalformedPackage(path, f"cannot read {member}: {e}") from None


def _normalize_member_name(name: str) -> str:
    cleaned = name.lstrip("/")
    if cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned


def parse_control(text: str) -> dict[str, str]:
    """Parse a deb822 control paragraph into lower-cased fields.

    Continuation lines are folded into the preceding field.
    """
    fields: dict[str, str] = {}
    current_key: str | None = None

    for line in text.splitlines():
        if not line.strip():
            continue

        if line[0].isspace():
            if current_key:
                fields[current_key] = f"{fields[current_key]}\n{line.strip()}".strip()
            continue

        if ":" not in line:
            continue

        key, value = line.split(":", 1)
        current_key = key.strip().lower()
        fields[current_key] = value.strip()

    return fields


def parse_relations(value: str) -> list[str]:
    """Split a Depends-style field into its comma separated relations."""
    relations = []
    for relation in value.split(","):
        relation = " ".join(relation.split())
        if relation:
            relations.append(relation)
    return relations


def _read_control(member: str, content: bytes, path: str) -> dict[str, str]:
    with _open_tar(member, content, path) as tar:
        for info in tar.getmembers():
            if _normalize_member_name(info.name) == "control" and info.isfile():
                extracted = tar.extractfile(info)
                if extracted is None:
                    break
                return parse_control(extracted.read().decode("utf-8", errors="replace"))

    raise MalformedPackage(path, "control.tar has no control file")


def _list_executables(member: str, content: bytes, path: str) -> list[str]:
    executables = set()
    with _open_tar(member, content, path) as tar:
        for info in tar.getmembers():
            if not (info.isfile() or info.issym()):
                continue
            cleaned = _normalize_member_name(info.name)
            directory, _, basename = cleaned.rpartition("/")
            if directory in EXECUTABLE_DIRS and basename:
                executables.add(basename)
    return sorted(executables)


def read_descriptor(archive_path: str | os.PathLike[str]) -> PackageDescriptor:
    """Read the package descriptor of a .deb archive.

    Args:
        archive_path: Path to the .deb file.

    Returns:
        The package's descriptor.

    Raises:
        NotFound: The path is missing, not a file, or not readable.
        MalformedPackage: The archive lacks usable identity metadata or
            declares a name unsafe for use as an image identifier.
    """
    path = Path(archive_path)
    display_path = str(path)

    if not path.is_file() or not os.access(path, os.R_OK):
        raise NotFound(display_path)

    control: dict[str, str] | None = None
    data_member: tuple[str, bytes] | None = None

    with path.open("rb") as fh:
        for name, content in _iter_ar_members(fh, display_path):
            if name.startswith("control.tar"):
                control = _read_control(name, content, display_path)
            elif name.startswith("data.tar"):
                data_member = (name, content)

    if control is None:
        raise MalformedPackage(display_path, "missing control.tar member")

    name = control.get("package", "")
    version = control.get("version", "")
    if not name:
        raise MalformedPackage(display_path, "control file has no Package field")
    if not version:
        raise MalformedPackage(display_path, "control file has no Version field")
    if not SAFE_NAME.match(name):
        raise MalformedPackage(
            display_path,
            f"package name '{name}' must start with a lower-case letter or digit "
            "and contain only lower-case letters, digits, '-' and '_'",
        )

    dependencies = parse_relations(control.get("pre-depends", ""))
    dependencies += parse_relations(control.get("depends", ""))

    executables: list[str] = []
    if data_member is not None:
        try:
            executables = _list_executables(*data_member, display_path)
        except MalformedPackage as e:
            logger.warning("Cannot list executables of %s: %s", display_path, e.reason)

    description = control.get("description")
    if description:
        # The synopsis is the first line
        description = description.splitlines()[0]

    descriptor = PackageDescriptor(
        name=name,
        version=version,
        declared_dependencies=tuple(dependencies),
        architecture=control.get("architecture", "all") or "all",
        description=description or None,
        executables=tuple(executables),
    )
    logger.debug("Read descriptor %s %s from %s", name, version, display_path)
    return descriptor
