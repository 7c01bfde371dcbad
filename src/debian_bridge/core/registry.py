# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Registry of installed programs.

The registry maps program names to their bridge entries. It is backed by
a storage object, normally a JSON file, that supports atomic single-entry
changes so that concurrent invocations never lose an update.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol

from pydantic import BaseModel, ValidationError

from .exceptions import AlreadyExists, NotInstalled, RegistryCorrupt
from .policy import IntegrationFlags

logger = logging.getLogger(__name__)


class BridgeEntry(BaseModel):
    """Registry record of one installed program."""

    name: str
    image: str
    flags: IntegrationFlags = IntegrationFlags()
    desktop_icon: str | None = None
    command: str | None = None
    dependencies: list[str] = []
    version: str | None = None
    description: str | None = None


class RegistryStorage(Protocol):
    """Storage backend for the registry."""

    def load(self) -> list[dict[str, Any]]:
        """Return all stored records in insertion order."""
        ...

    def transaction(self) -> Any:
        """Context manager yielding the mutable record list.

        Changes to the list are persisted atomically on exit.
        """
        ...


class JsonFileStorage:
    """Registry storage in a JSON file.

    Mutations take an exclusive lock on a sibling ``.lock`` file, re-read
    the document and atomically replace it.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def _lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []

        text = self.path.read_text()
        if not text.strip():
            return []

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RegistryCorrupt(str(self.path), str(e)) from None

        programs = data.get("programs") if isinstance(data, dict) else None
        if not isinstance(programs, list):
            raise RegistryCorrupt(str(self.path), "missing 'programs' list")
        return programs

    def _write(self, programs: list[dict[str, Any]]) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump({"programs": programs}, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    @contextmanager
    def transaction(self) -> Iterator[list[dict[str, Any]]]:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with open(self._lock_path, "a") as lock:
            fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
            try:
                programs = self.load()
                yield programs
                self._write(programs)
            finally:
                fcntl.flock(lock.fileno(), fcntl.LOCK_UN)


class EntryListing:
    """Lazy, restartable view over all registry entries.

    Each iteration reads the storage again.
    """

    def __init__(self, storage: RegistryStorage):
        self._storage = storage

    def __iter__(self) -> Iterator[BridgeEntry]:
        for record in self._storage.load():
            yield _to_entry(record)


def _to_entry(record: dict[str, Any]) -> BridgeEntry:
    try:
        return BridgeEntry.model_validate(record)
    except ValidationError as e:
        raise RegistryCorrupt(str(record.get("name", "?")), str(e)) from None


class Registry:
    """Installed programs, keyed by program name."""

    def __init__(self, storage: RegistryStorage):
        self._storage = storage

    def insert(self, entry: BridgeEntry) -> None:
        """Add a new entry.

        Raises:
            AlreadyExists: An entry with the same name is present.
        """
        with self._storage.transaction() as programs:
            if any(record.get("name") == entry.name for record in programs):
                raise AlreadyExists(entry.name)
            programs.append(entry.model_dump(mode="json"))
        logger.debug("Registered program %s", entry.name)

    def get(self, name: str) -> BridgeEntry:
        """Look up an entry.

        Raises:
            NotInstalled: No entry has this name.
        """
        for record in self._storage.load():
            if record.get("name") == name:
                return _to_entry(record)
        raise NotInstalled(name)

    def contains(self, name: str) -> bool:
        return any(record.get("name") == name for record in self._storage.load())

    def remove(self, name: str) -> BridgeEntry:
        """Delete an entry and return it.

        The caller is responsible for releasing the entry's image.

        Raises:
            NotInstalled: No entry has this name.
        """
        with self._storage.transaction() as programs:
            for index, record in enumerate(programs):
                if record.get("name") == name:
                    removed = programs.pop(index)
                    break
            else:
                raise NotInstalled(name)
        logger.debug("Unregistered program %s", name)
        return _to_entry(removed)

    def list(self) -> EntryListing:
        """All entries in insertion order."""
        return EntryListing(self._storage)
