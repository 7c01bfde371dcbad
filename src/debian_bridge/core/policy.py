# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Host integration policy.

Maps the integration flags of a program to the concrete host resources
shared with its container: bind mounts, device nodes and environment
variables. Resolution is a pure function of the flags and a snapshot of
the host, so the same inputs always produce the same grants in the same
order.
"""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Mapping, Union

from pydantic import BaseModel, ConfigDict

from .exceptions import ResourceUnavailable

logger = logging.getLogger(__name__)

# Host sockets are mounted below this directory inside the container
CONTAINER_RUNTIME_DIR = "/tmp/debian-bridge-runtime"
CONTAINER_XAUTHORITY = "/tmp/.Xauthority"


class Feature(Enum):
    """Host integration categories, in canonical order."""

    DISPLAY = "display"
    SOUND = "sound"
    HOME = "home"
    NOTIFICATIONS = "notifications"
    TIMEZONE = "timezone"
    DEVICES = "devices"


class IntegrationFlags(BaseModel):
    """Which host integrations a program requested at create time."""

    model_config = ConfigDict(frozen=True)

    display: bool = False
    sound: bool = False
    home: bool = False
    notifications: bool = False
    timezone: bool = False
    devices: bool = False

    @classmethod
    def from_features(cls, features: Iterable[Feature]) -> IntegrationFlags:
        return cls(**{feature.value: True for feature in features})

    def features(self) -> tuple[Feature, ...]:
        """Enabled features in canonical order."""
        return tuple(feature for feature in Feature if getattr(self, feature.value))


@dataclass(frozen=True)
class BindMount:
    host_path: str
    container_path: str
    read_only: bool = True


@dataclass(frozen=True)
class DeviceExpose:
    device_path: str


@dataclass(frozen=True)
class EnvVar:
    key: str
    value: str


ResourceGrant = Union[BindMount, DeviceExpose, EnvVar]


@dataclass(frozen=True)
class HostEnvironment:
    """Snapshot of the host state that grants are resolved against.

    Paths default to the standard locations; tests point them elsewhere.
    """

    environ: Mapping[str, str] = field(default_factory=dict)
    x11_socket_dir: Path = Path("/tmp/.X11-unix")
    sound_dir: Path = Path("/dev/snd")
    localtime: Path = Path("/etc/localtime")
    device_allowlist: tuple[str, ...] = ()

    @classmethod
    def current(cls, device_allowlist: Iterable[str] = ()) -> HostEnvironment:
        """Capture the environment of the running process."""
        return cls(environ=dict(os.environ), device_allowlist=tuple(device_allowlist))


@dataclass(frozen=True)
class ProbeResult:
    """Availability of one integration category on the host."""

    feature: Feature
    available: bool
    detail: str


def _is_node(path: Path) -> bool:
    return path.exists() and not path.is_dir()


def _resolve_display(host: HostEnvironment) -> list[ResourceGrant]:
    grants: list[ResourceGrant] = []

    display = host.environ.get("DISPLAY")
    if display and host.x11_socket_dir.is_dir():
        grants.append(BindMount(str(host.x11_socket_dir), "/tmp/.X11-unix", read_only=True))
        grants.append(EnvVar("DISPLAY", display))

        xauthority = host.environ.get("XAUTHORITY")
        if xauthority and Path(xauthority).is_file():
            grants.append(BindMount(xauthority, CONTAINER_XAUTHORITY, read_only=True))
            grants.append(EnvVar("XAUTHORITY", CONTAINER_XAUTHORITY))

    wayland_display = host.environ.get("WAYLAND_DISPLAY")
    runtime_dir = host.environ.get("XDG_RUNTIME_DIR")
    if wayland_display and runtime_dir:
        socket = Path(runtime_dir) / wayland_display
        if socket.exists():
            socket_name = socket.name
            grants.append(
                BindMount(str(socket), f"{CONTAINER_RUNTIME_DIR}/{socket_name}", read_only=True)
            )
            grants.append(EnvVar("WAYLAND_DISPLAY", socket_name))
            grants.append(EnvVar("XDG_RUNTIME_DIR", CONTAINER_RUNTIME_DIR))

    if not grants:
        raise ResourceUnavailable(Feature.DISPLAY.value, "no X11 or Wayland display socket found")
    return grants


def _resolve_sound(host: HostEnvironment) -> list[ResourceGrant]:
    if not host.sound_dir.is_dir():
        raise ResourceUnavailable(Feature.SOUND.value, f"{host.sound_dir} does not exist")

    nodes = sorted(p for p in host.sound_dir.iterdir() if _is_node(p))
    if not nodes:
        raise ResourceUnavailable(Feature.SOUND.value, f"no audio devices in {host.sound_dir}")

    grants: list[ResourceGrant] = [DeviceExpose(str(node)) for node in nodes]

    # PulseAudio or pipewire-pulse socket, when the host runs a sound server
    runtime_dir = host.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        pulse = Path(runtime_dir) / "pulse" / "native"
        if pulse.exists():
            container_pulse = f"{CONTAINER_RUNTIME_DIR}/pulse/native"
            grants.append(BindMount(str(pulse), container_pulse, read_only=False))
            grants.append(EnvVar("PULSE_SERVER", f"unix:{container_pulse}"))

    return grants


def _resolve_home(host: HostEnvironment) -> list[ResourceGrant]:
    home = host.environ.get("HOME")
    if not home:
        raise ResourceUnavailable(Feature.HOME.value, "HOME is not set")
    if not Path(home).is_dir():
        raise ResourceUnavailable(Feature.HOME.value, f"home directory {home} does not exist")

    return [BindMount(home, home, read_only=False), EnvVar("HOME", home)]


def session_bus_path(address: str | None) -> str | None:
    """Extract the socket path of a ``unix:path=`` D-Bus address."""
    if not address:
        return None

    for candidate in address.split(";"):
        transport, _, params = candidate.partition(":")
        if transport != "unix":
            continue
        for param in params.split(","):
            key, _, value = param.partition("=")
            if key == "path" and value:
                return value
    return None


def _resolve_notifications(host: HostEnvironment) -> list[ResourceGrant]:
    address = host.environ.get("DBUS_SESSION_BUS_ADDRESS")
    path = session_bus_path(address)
    if path is None:
        reason = (
            "DBUS_SESSION_BUS_ADDRESS is not set"
            if not address
            else f"session bus address {address} has no socket path"
        )
        raise ResourceUnavailable(Feature.NOTIFICATIONS.value, reason)
    if not Path(path).exists():
        raise ResourceUnavailable(
            Feature.NOTIFICATIONS.value, f"session bus socket {path} does not exist"
        )

    return [
        BindMount(path, path, read_only=False),
        EnvVar("DBUS_SESSION_BUS_ADDRESS", f"unix:path={path}"),
    ]


def _resolve_timezone(host: HostEnvironment) -> list[ResourceGrant]:
    if host.localtime.exists():
        return [BindMount(str(host.localtime.resolve()), "/etc/localtime", read_only=True)]

    tz = host.environ.get("TZ")
    if tz:
        return [EnvVar("TZ", tz)]

    raise ResourceUnavailable(
        Feature.TIMEZONE.value, f"{host.localtime} does not exist and TZ is not set"
    )


def _resolve_devices(host: HostEnvironment) -> list[ResourceGrant]:
    if not host.device_allowlist:
        raise ResourceUnavailable(
            Feature.DEVICES.value, "no device allowlist configured (option 'devices')"
        )

    devices: set[str] = set()
    for pattern in host.device_allowlist:
        for match in glob.glob(pattern):
            path = Path(match)
            if _is_node(path) and os.access(path, os.R_OK | os.W_OK):
                devices.add(str(path))

    if not devices:
        raise ResourceUnavailable(
            Feature.DEVICES.value, "no accessible device matches the configured allowlist"
        )
    return [DeviceExpose(device) for device in sorted(devices)]


_RESOLVERS: dict[Feature, Callable[[HostEnvironment], list[ResourceGrant]]] = {
    Feature.DISPLAY: _resolve_display,
    Feature.SOUND: _resolve_sound,
    Feature.HOME: _resolve_home,
    Feature.NOTIFICATIONS: _resolve_notifications,
    Feature.TIMEZONE: _resolve_timezone,
    Feature.DEVICES: _resolve_devices,
}


def resolve(flags: IntegrationFlags, host: HostEnvironment) -> tuple[ResourceGrant, ...]:
    """Resolve requested flags into grants.

    Raises:
        ResourceUnavailable: A requested feature cannot be satisfied.
    """
    grants: list[ResourceGrant] = []
    for feature in flags.features():
        grants.extend(_RESOLVERS[feature](host))
    return tuple(grants)


def probe(host: HostEnvironment) -> list[ProbeResult]:
    """Check every integration category independently."""
    results = []
    for feature in Feature:
        try:
            grants = _RESOLVERS[feature](host)
        except ResourceUnavailable as e:
            logger.debug("Probe %s failed: %s", feature.value, e.reason)
            results.append(ProbeResult(feature, False, e.reason))
        else:
            results.append(ProbeResult(feature, True, f"{len(grants)} grant(s)"))
    return results
