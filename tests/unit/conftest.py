"""Shared fixtures for debian-bridge unit tests."""

from __future__ import annotations

import asyncio
import io
import tarfile
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from debian_bridge.core.config import BridgeSettings
from debian_bridge.core.engine import PROGRAM_LABEL, BridgeEngine
from debian_bridge.core.policy import HostEnvironment
from debian_bridge.core.registry import JsonFileStorage, Registry
from debian_bridge.docker import DockerError
from debian_bridge.docker.models import ContainerSummary

DEFAULT_FIELDS = {
    "Package": "foo",
    "Version": "1.0-1",
    "Architecture": "amd64",
    "Depends": "libc6 (>= 2.31), libx11-6",
    "Description": "Foo player\n A longer description of foo.",
}


def _ar_member(name: str, data: bytes) -> bytes:
    header = f"{name:<16}{0:<12}{0:<6}{0:<6}{100644:<8}{len(data):<10}".encode() + b"`\n"
    if len(data) % 2:
        data += b"\n"
    return header + data


def _tar_bytes(files: dict[str, bytes], mode: str) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


@pytest.fixture
def make_deb(tmp_path):
    """Factory writing a minimal .deb and returning its path."""

    def _make(
        name: str = "foo.deb",
        fields: dict[str, str] | None = None,
        executables: tuple[str, ...] = ("foo",),
        compression: str = "gz",
        with_control: bool = True,
    ) -> Path:
        fields = DEFAULT_FIELDS if fields is None else fields
        control = "".join(f"{key}: {value}\n" for key, value in fields.items())

        members = [_ar_member("debian-binary", b"2.0\n")]
        if with_control:
            members.append(
                _ar_member(
                    f"control.tar.{compression}",
                    _tar_bytes({"./control": control.encode()}, f"w:{compression}"),
                )
            )
        data = {f"./usr/bin/{exe}": b"#!/bin/sh\n" for exe in executables}
        data["./usr/share/doc/foo/copyright"] = b"GPL"
        members.append(_ar_member("data.tar.xz", _tar_bytes(data, "w:xz")))

        path = tmp_path / name
        path.write_bytes(b"!<arch>\n" + b"".join(members))
        return path

    return _make


@pytest.fixture
def host(tmp_path) -> HostEnvironment:
    """A host where every integration is available."""
    x11 = tmp_path / "x11"
    x11.mkdir()
    (x11 / "X0").touch()

    snd = tmp_path / "snd"
    snd.mkdir()
    (snd / "pcmC0D0p").touch()
    (snd / "controlC0").touch()

    home = tmp_path / "home" / "user"
    home.mkdir(parents=True)

    runtime = tmp_path / "run"
    runtime.mkdir()
    (runtime / "bus").touch()

    zone = tmp_path / "zoneinfo" / "Europe" / "Berlin"
    zone.parent.mkdir(parents=True)
    zone.write_bytes(b"TZif")
    localtime = tmp_path / "localtime"
    localtime.symlink_to(zone)

    dev = tmp_path / "dev"
    dev.mkdir()
    (dev / "video1").touch()
    (dev / "video0").touch()

    return HostEnvironment(
        environ={
            "DISPLAY": ":0",
            "HOME": str(home),
            "XDG_RUNTIME_DIR": str(runtime),
            "DBUS_SESSION_BUS_ADDRESS": f"unix:path={runtime / 'bus'}",
        },
        x11_socket_dir=x11,
        sound_dir=snd,
        localtime=localtime,
        device_allowlist=(str(dev / "video*"),),
    )


class FakeDocker:
    """In-memory stand-in for DockerClient."""

    def __init__(self):
        self.images: dict[str, bytes] = {}
        self.platforms: dict[str, str | None] = {}
        self.containers: dict[str, object] = {}
        self.running: dict[str, str] = {}
        self.killed: list[str] = []
        self.removed_images: list[str] = []
        self.build_error: str | None = None
        self.auto_exit = True
        self.exit_status = 0
        self.wait_conditions: list[str] = []
        self.build_started = asyncio.Event()
        self.build_gate: asyncio.Event | None = None
        self._exits: dict[str, asyncio.Event] = {}

    async def is_available(self) -> bool:
        return True

    async def build_image(self, context, tag, *, platform=None):
        self.build_started.set()
        if self.build_gate is not None:
            await self.build_gate.wait()
        if self.build_error:
            raise DockerError(self.build_error)
        self.images[tag] = context
        self.platforms[tag] = platform
        return f"sha256:{tag}"

    async def remove_image(self, name, *, force=False):
        self.removed_images.append(name)
        return self.images.pop(name, None) is not None

    async def create_container(self, config):
        container_id = f"container{len(self.containers)}"
        self.containers[container_id] = config
        return container_id

    async def start_container(self, container_id):
        config = self.containers[container_id]
        self.running[container_id] = config.labels[PROGRAM_LABEL]

    @asynccontextmanager
    async def exit_waiter(self, container_id, *, condition="next-exit"):
        self.wait_conditions.append(condition)
        exited = self._exits[container_id] = asyncio.Event()

        async def wait():
            if not self.auto_exit:
                await exited.wait()
            self.running.pop(container_id, None)
            return self.exit_status

        yield wait

    async def kill_container(self, container_id):
        self.killed.append(container_id)
        self.running.pop(container_id, None)
        self._exits[container_id].set()

    async def remove_container(self, container_id, *, force=False):
        self.containers.pop(container_id, None)

    async def list_containers(self, *, labels=None, running_only=True):
        wanted = (labels or {}).get(PROGRAM_LABEL)
        return [
            ContainerSummary(Id=container_id, Labels={PROGRAM_LABEL: program})
            for container_id, program in self.running.items()
            if wanted is None or program == wanted
        ]

    def finish(self, program: str) -> None:
        """Let every running container of a program exit."""
        for container_id, name in list(self.running.items()):
            if name == program:
                self._exits[container_id].set()


@pytest.fixture
def docker() -> FakeDocker:
    return FakeDocker()


@pytest.fixture
def settings(tmp_path) -> BridgeSettings:
    return BridgeSettings(
        registry_path=tmp_path / "state" / "registry.json",
        base_image=None,
        prefix="debian_bridge",
        devices=(),
        docker_socket="/nonexistent/docker.sock",
    )


@pytest.fixture
def registry(settings) -> Registry:
    return Registry(JsonFileStorage(settings.registry_path))


@pytest.fixture
def engine(registry, docker, settings, host) -> BridgeEngine:
    return BridgeEngine(
        registry, docker, settings, host_factory=lambda: host, bus_probe=None
    )
