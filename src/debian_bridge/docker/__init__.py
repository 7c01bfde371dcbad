"""Docker Engine API client library."""

from .client import DockerClient, DockerError
from .models import ContainerCreate, DeviceMapping, HostConfig

__all__ = [
    "ContainerCreate",
    "DeviceMapping",
    "DockerClient",
    "DockerError",
    "HostConfig",
]
