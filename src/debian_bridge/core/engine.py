# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Program lifecycle operations.

The BridgeEngine combines the descriptor reader, the integration policy,
the image spec builder and the registry, and drives the Docker Engine for
image builds and container runs.

Per program the lifecycle is::

    Uninstalled -> Building -> Installed -> Running -> Installed -> Removed

A registry entry is only written after a successful build, and the
registry is re-read before every operation.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable

from ..docker import ContainerCreate, DeviceMapping, DockerClient, DockerError, HostConfig
from . import desktop
from .config import BridgeSettings
from .deb import read_descriptor
from .exceptions import AlreadyExists, ExternalEngineFailure, InUse
from .image import build_image_spec
from .notify import notification_service_available
from .policy import (
    BindMount,
    DeviceExpose,
    EnvVar,
    Feature,
    HostEnvironment,
    IntegrationFlags,
    ProbeResult,
    ResourceGrant,
    probe,
    resolve,
    session_bus_path,
)
from .registry import BridgeEntry, EntryListing, JsonFileStorage, Registry

logger = logging.getLogger(__name__)

# Label carried by every container started for a program
PROGRAM_LABEL = "debian-bridge.program"

BusProbe = Callable[[str], Awaitable[tuple[bool, str]]]


def container_config(
    entry: BridgeEntry, grants: Iterable[ResourceGrant], user: str | None = None
) -> ContainerCreate:
    """Translate a program's grants into a container create request."""
    binds: list[str] = []
    devices: list[DeviceMapping] = []
    env: list[str] = []

    for grant in grants:
        if isinstance(grant, BindMount):
            mode = "ro" if grant.read_only else "rw"
            binds.append(f"{grant.host_path}:{grant.container_path}:{mode}")
        elif isinstance(grant, DeviceExpose):
            devices.append(
                DeviceMapping(path_on_host=grant.device_path, path_in_container=grant.device_path)
            )
        elif isinstance(grant, EnvVar):
            env.append(f"{grant.key}={grant.value}")

    return ContainerCreate(
        image=entry.image,
        env=env or None,
        user=user,
        labels={PROGRAM_LABEL: entry.name},
        host_config=HostConfig(
            binds=binds or None,
            devices=devices or None,
            auto_remove=True,
        ),
    )


class BridgeEngine:
    """Create, run, list and remove bridged programs."""

    def __init__(
        self,
        registry: Registry,
        docker: DockerClient,
        settings: BridgeSettings,
        *,
        host_factory: Callable[[], HostEnvironment] | None = None,
        bus_probe: BusProbe | None = notification_service_available,
    ):
        """Initialize the engine.

        Args:
            registry: Registry of installed programs
            docker: Docker Engine client
            settings: Loaded configuration
            host_factory: Returns the current host snapshot; defaults to
                the running process environment
            bus_probe: Live check of the notification service used by test
        """
        self._registry = registry
        self._docker = docker
        self._settings = settings
        self._host_factory = host_factory or (
            lambda: HostEnvironment.current(settings.devices)
        )
        self._bus_probe = bus_probe

    # -------------------------------------------------------------------------
    # Lifecycle Operations
    # -------------------------------------------------------------------------

    async def create(
        self,
        archive_path: str | os.PathLike[str],
        flags: IntegrationFlags,
        *,
        command: str | None = None,
        dependencies: Iterable[str] | None = None,
        desktop_icon: str | None = None,
    ) -> BridgeEntry:
        """Build the image of a package and register it.

        Args:
            archive_path: Path to the .deb archive
            flags: Host integrations to grant when the program runs
            command: Command overriding the package's executable
            dependencies: Extra packages to install into the image
            desktop_icon: Icon path, or "default", for a desktop launcher

        Raises:
            ResourceUnavailable: A requested flag cannot be satisfied here
            AlreadyExists: The package name is already registered
            NotFound, MalformedPackage, UnsupportedBase: Reader/builder errors
            ExternalEngineFailure: The image build failed
        """
        # Fail before any work if the host cannot honour the flags
        resolve(flags, self._host_factory())

        descriptor = read_descriptor(archive_path)
        if self._registry.contains(descriptor.name):
            raise AlreadyExists(descriptor.name)

        spec = build_image_spec(
            descriptor,
            archive_path,
            custom_command=command,
            extra_dependencies=dependencies,
            base_image=self._settings.base_image,
            prefix=self._settings.prefix,
        )
        logger.debug("Generated Dockerfile:\n%s", spec.dockerfile())

        logger.info("Building image %s from %s", spec.tag, spec.base_reference)
        try:
            image_id = await self._docker.build_image(
                spec.context(), spec.tag, platform=spec.platform
            )
        except DockerError as e:
            raise ExternalEngineFailure(f"build image {spec.tag}", str(e)) from e
        logger.info("Built image %s (%s)", spec.tag, image_id)

        icon = desktop.resolve_icon(desktop_icon) if desktop_icon else None
        entry = BridgeEntry(
            name=descriptor.name,
            image=spec.tag,
            flags=flags,
            desktop_icon=icon,
            command=command,
            dependencies=list(spec.extra_dependencies),
            version=descriptor.version,
            description=descriptor.description,
        )

        try:
            self._registry.insert(entry)
        except AlreadyExists:
            # Another invocation registered the same name while we were
            # building; the tag now belongs to its entry.
            logger.warning("Program %s was registered concurrently", entry.name)
            raise
        except Exception:
            await self._release_image(spec.tag)
            raise

        if icon is not None:
            try:
                desktop.write_entry(entry.name, icon, entry.description)
            except OSError as e:
                logger.warning("Can't create desktop entry for %s: %s", entry.name, e)

        return entry

    async def run(self, name: str) -> int:
        """Run an installed program and wait for it to exit.

        Grants are resolved from the current host state, not replayed
        from install time. Cancelling the awaiting task kills the
        container.

        Returns:
            The program's exit status.

        Raises:
            NotInstalled: No such program
            ResourceUnavailable: A stored flag cannot be satisfied any more
            ExternalEngineFailure: The container could not be run
        """
        entry = self._registry.get(name)
        grants = resolve(entry.flags, self._host_factory())

        user = f"{os.getuid()}:{os.getgid()}" if entry.flags.home else None
        config = container_config(entry, grants, user=user)

        try:
            container_id = await self._docker.create_container(config)
        except DockerError as e:
            raise ExternalEngineFailure(f"create container for {name}", str(e)) from e

        started = False
        try:
            # The wait must be registered before start: AutoRemove deletes
            # a container that exits quickly before a later wait arrives.
            async with self._docker.exit_waiter(container_id, condition="next-exit") as wait:
                try:
                    await self._docker.start_container(container_id)
                except DockerError as e:
                    raise ExternalEngineFailure(f"start {name}", str(e)) from e
                started = True

                logger.info("Started %s in container %s", name, container_id[:12])
                try:
                    status = await wait()
                except asyncio.CancelledError:
                    logger.info("Interrupted, killing container %s", container_id[:12])
                    await self._docker.kill_container(container_id)
                    raise
        except DockerError as e:
            if not started:
                await self._discard_container(container_id)
            raise ExternalEngineFailure(f"wait for {name}", str(e)) from e
        except ExternalEngineFailure:
            await self._discard_container(container_id)
            raise

        logger.info("%s exited with status %d", name, status)
        return status

    async def remove(self, name: str) -> BridgeEntry:
        """Remove an installed program and release its image.

        Raises:
            NotInstalled: No such program
            InUse: The program is running
            ExternalEngineFailure: The image could not be removed
        """
        entry = self._registry.get(name)

        running = await self.running_containers(name)
        if running:
            raise InUse(name, running)

        try:
            removed = await self._docker.remove_image(entry.image)
        except DockerError as e:
            raise ExternalEngineFailure(f"remove image {entry.image}", str(e)) from e
        if not removed:
            logger.warning("Image %s was already gone", entry.image)

        entry = self._registry.remove(name)
        if entry.desktop_icon:
            desktop.remove_entry(name)
        return entry

    def list(self) -> EntryListing:
        """All installed programs."""
        return self._registry.list()

    async def test(self) -> list[ProbeResult]:
        """Probe every integration category on this host."""
        host = self._host_factory()
        results = []
        for result in probe(host):
            if result.feature is Feature.NOTIFICATIONS and result.available and self._bus_probe:
                path = session_bus_path(host.environ.get("DBUS_SESSION_BUS_ADDRESS"))
                available, detail = await self._bus_probe(f"unix:path={path}")
                result = ProbeResult(result.feature, available, detail)
            results.append(result)
        return results

    # -------------------------------------------------------------------------
    # Engine state
    # -------------------------------------------------------------------------

    async def running_containers(self, name: str) -> list[str]:
        """IDs of running containers of a program, from live engine state."""
        try:
            containers = await self._docker.list_containers(
                labels={PROGRAM_LABEL: name}, running_only=True
            )
        except DockerError as e:
            raise ExternalEngineFailure("list containers", str(e)) from e
        return [c.id for c in containers]

    async def engine_available(self) -> bool:
        return await self._docker.is_available()

    async def _release_image(self, tag: str) -> None:
        try:
            await self._docker.remove_image(tag, force=True)
        except DockerError as e:
            logger.error("Can't release image %s: %s", tag, e)

    async def _discard_container(self, container_id: str) -> None:
        try:
            await self._docker.remove_container(container_id, force=True)
        except DockerError as e:
            logger.error("Can't remove container %s: %s", container_id[:12], e)


@asynccontextmanager
async def open_engine(settings: BridgeSettings) -> AsyncIterator[BridgeEngine]:
    """Engine wired to the configured registry and Docker socket."""
    registry = Registry(JsonFileStorage(Path(settings.registry_path)))
    async with DockerClient(settings.docker_socket) as docker:
        yield BridgeEngine(registry, docker, settings)
