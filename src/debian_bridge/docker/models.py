# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Docker Engine API models.

Only the fields debian-bridge sends or reads are modelled. Field names
follow the API's PascalCase through aliases.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DeviceMapping(_ApiModel):
    path_on_host: str = Field(alias="PathOnHost")
    path_in_container: str = Field(alias="PathInContainer")
    cgroup_permissions: str = Field("rwm", alias="CgroupPermissions")


class HostConfig(_ApiModel):
    binds: list[str] | None = Field(None, alias="Binds")
    devices: list[DeviceMapping] | None = Field(None, alias="Devices")
    auto_remove: bool | None = Field(None, alias="AutoRemove")


class ContainerCreate(_ApiModel):
    image: str = Field(alias="Image")
    env: list[str] | None = Field(None, alias="Env")
    user: str | None = Field(None, alias="User")
    labels: dict[str, str] | None = Field(None, alias="Labels")
    host_config: HostConfig | None = Field(None, alias="HostConfig")


class ContainerCreated(_ApiModel):
    id: str = Field(alias="Id")
    warnings: list[str] | None = Field(None, alias="Warnings")


class ContainerSummary(_ApiModel):
    id: str = Field(alias="Id")
    names: list[str] = Field(default_factory=list, alias="Names")
    image: str | None = Field(None, alias="Image")
    state: str | None = Field(None, alias="State")
    labels: dict[str, str] | None = Field(None, alias="Labels")


class WaitError(_ApiModel):
    message: str | None = Field(None, alias="Message")


class ContainerWaitResponse(_ApiModel):
    status_code: int = Field(alias="StatusCode")
    error: WaitError | None = Field(None, alias="Error")


class BuildMessage(_ApiModel):
    """One line of the streamed build output."""

    stream: str | None = None
    status: str | None = None
    error: str | None = None
    aux: dict[str, Any] | None = None
