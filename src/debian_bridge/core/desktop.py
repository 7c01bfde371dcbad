# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Desktop launcher files for bridged programs.

Writes and deletes ``<program>.desktop`` files in the user's desktop
directory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_ICON_KEYWORD = "default"
DEFAULT_ICON_NAME = "debian_bridge_default.ico"
USER_DIRS_FILE_NAME = "user-dirs.dirs"


def _user_dirs_file() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME", "")
    if not config_home:
        config_home = os.path.expanduser("~/.config")
    return Path(config_home) / USER_DIRS_FILE_NAME


def _read_user_desktop_dir() -> Path | None:
    """Desktop directory recorded by xdg-user-dirs-update, if any.

    Values are either absolute or relative to ``$HOME``, e.g.
    ``XDG_DESKTOP_DIR="$HOME/Schreibtisch"``.
    """
    path = _user_dirs_file()
    try:
        text = path.read_text()
    except OSError:
        return None

    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if key != "XDG_DESKTOP_DIR" or not sep:
            continue
        value = value.strip().strip('"')
        if value == "$HOME" or value.startswith("$HOME/"):
            value = os.path.expanduser("~") + value[len("$HOME"):]
        if value.startswith("/"):
            return Path(value)
        logger.debug("Ignoring XDG_DESKTOP_DIR=%s in %s", value, path)
    return None


def desktop_dir() -> Path:
    """The XDG desktop directory.

    ``$XDG_DESKTOP_DIR`` wins, then ``user-dirs.dirs``, then ``~/Desktop``.
    """
    configured = os.environ.get("XDG_DESKTOP_DIR", "")
    if configured:
        return Path(os.path.expanduser(configured))
    return _read_user_desktop_dir() or Path(os.path.expanduser("~/Desktop"))


def resolve_icon(icon: str) -> str:
    """Map the ``default`` keyword to the bundled icon path."""
    if icon == DEFAULT_ICON_KEYWORD:
        return str(Path(os.path.expanduser("~/.icons")) / DEFAULT_ICON_NAME)
    return str(Path(os.path.expanduser(icon)).absolute())


def entry_path(program: str) -> Path:
    return desktop_dir() / f"{program}.desktop"


def render_entry(program: str, icon: str, comment: str | None) -> str:
    lines = [
        "[Desktop Entry]",
        "Version=1.0",
        "Type=Application",
        f"Name={program}",
        f"Comment={comment or 'Application'}",
        f"Exec=debian-bridge run {program}",
        f"Icon={icon}",
        "Terminal=false",
        "",
    ]
    return "\n".join(lines)


def write_entry(program: str, icon: str, comment: str | None = None) -> Path:
    """Write the launcher for a program.

    Returns:
        Path of the written file.
    """
    path = entry_path(program)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_entry(program, icon, comment))
    path.chmod(0o755)
    logger.info("Created desktop entry %s", path)
    return path


def remove_entry(program: str) -> None:
    """Delete a program's launcher. Failures are logged, not raised."""
    path = entry_path(program)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug("No desktop entry at %s", path)
    except OSError as e:
        logger.error("Can't remove desktop entry %s: %s", path, e)
    else:
        logger.info("Removed desktop entry %s", path)
