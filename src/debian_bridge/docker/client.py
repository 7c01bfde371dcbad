# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""High-level Docker Engine API client.

This module provides a typed async client for the Docker Engine API,
communicating over the Unix socket at /var/run/docker.sock.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, RootModel

from .models import (
    BuildMessage,
    ContainerCreate,
    ContainerCreated,
    ContainerSummary,
    ContainerWaitResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

API_VERSION = "v1.41"


class ContainerList(RootModel[list[ContainerSummary]]):
    """List of ContainerSummary objects."""
    pass


class EmptyResponse(BaseModel):
    """Empty or ignored response body."""

    model_config = ConfigDict(extra="allow")


class ImageDeleteList(RootModel[list[dict[str, str]]]):
    """Untagged/Deleted records of an image removal."""
    pass


class DockerError(Exception):
    """Error from the Docker Engine API."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class DockerClient:
    """Async client for the Docker Engine API over a Unix socket."""

    def __init__(
        self,
        socket_path: str = "/var/run/docker.sock",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._socket_path = socket_path
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            transport = self._transport or httpx.AsyncHTTPTransport(uds=self._socket_path)
            self._client = httpx.AsyncClient(
                transport=transport,
                base_url=f"http://localhost/{API_VERSION}",
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DockerClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            message = response.json().get("message", response.reason_phrase)
        except (json.JSONDecodeError, AttributeError):
            message = response.text or response.reason_phrase
        raise DockerError(message, response.status_code)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        response_type: type[T],
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> T:
        """Make a request and validate the response body.

        Args:
            method: HTTP method.
            path: API path, relative to the versioned base URL.
            response_type: Pydantic model to deserialize the response into.
            params: Query parameters.
            json: Optional JSON body for the request.
            timeout: Request timeout; None waits forever.

        Returns:
            A validated instance of response_type.
        """
        client = await self._get_client()
        try:
            response = await client.request(
                method, path, params=params, json=json, timeout=timeout
            )
        except httpx.TransportError as e:
            raise DockerError(f"cannot reach Docker at {self._socket_path}: {e}") from e

        self._raise_for_status(response)

        if not response.content:
            return response_type.model_validate({})
        return response_type.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Daemon
    # -------------------------------------------------------------------------

    async def is_available(self) -> bool:
        """Check if the Docker daemon is reachable.

        Returns:
            True if the daemon answers /_ping.
        """
        client = await self._get_client()
        try:
            response = await client.get("/_ping")
        except httpx.TransportError:
            return False
        return response.status_code == 200

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    async def build_image(
        self, context: bytes, tag: str, *, platform: str | None = None
    ) -> str:
        """Build an image from a tar build context.

        Progress lines are logged at debug level. The build runs until the
        daemon finishes; cancelling the awaiting task closes the connection,
        which makes the daemon abort the build.

        Args:
            context: Uncompressed tar archive with a Dockerfile at its root.
            tag: Tag of the resulting image.
            platform: Target platform, e.g. "linux/amd64".

        Returns:
            The built image ID, or the tag if the daemon did not report one.
        """
        params: dict[str, Any] = {"t": tag, "rm": "1", "forcerm": "1"}
        if platform:
            params["platform"] = platform

        client = await self._get_client()
        image_id: str | None = None
        try:
            async with client.stream(
                "POST",
                "/build",
                params=params,
                content=context,
                headers={"Content-Type": "application/x-tar"},
                timeout=None,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    self._raise_for_status(response)

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    message = BuildMessage.model_validate_json(line)
                    if message.error:
                        raise DockerError(message.error.strip())
                    if message.stream and message.stream.strip():
                        logger.debug("build: %s", message.stream.rstrip())
                    elif message.status:
                        logger.debug("build: %s", message.status)
                    if message.aux and "ID" in message.aux:
                        image_id = message.aux["ID"]
        except httpx.TransportError as e:
            raise DockerError(f"cannot reach Docker at {self._socket_path}: {e}") from e

        return image_id or tag

    async def remove_image(self, name: str, *, force: bool = False) -> bool:
        """Remove an image.

        Returns:
            True if removed, False if no such image existed.
        """
        try:
            await self._request(
                "DELETE",
                f"/images/{name}",
                response_type=ImageDeleteList,
                params={"force": "1" if force else "0"},
            )
        except DockerError as e:
            if e.code == 404:
                return False
            raise
        return True

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    async def create_container(self, config: ContainerCreate) -> str:
        """Create a container.

        Returns:
            The container ID.
        """
        created = await self._request(
            "POST",
            "/containers/create",
            response_type=ContainerCreated,
            json=config.model_dump(by_alias=True, exclude_none=True),
        )
        for warning in created.warnings or []:
            logger.warning("Docker: %s", warning)
        return created.id

    async def start_container(self, container_id: str) -> None:
        await self._request(
            "POST", f"/containers/{container_id}/start", response_type=EmptyResponse
        )

    async def wait_container(self, container_id: str, *, condition: str = "not-running") -> int:
        """Block until a container exits.

        Returns:
            The container's exit status.
        """
        async with self.exit_waiter(container_id, condition=condition) as wait:
            return await wait()

    @asynccontextmanager
    async def exit_waiter(
        self, container_id: str, *, condition: str = "next-exit"
    ) -> AsyncIterator[Callable[[], Awaitable[int]]]:
        """Register a wait on a container and yield a function awaiting its exit.

        The daemon answers with headers as soon as the wait is registered,
        so a container started inside the block cannot exit unnoticed, even
        when AutoRemove deletes it right away.

        Args:
            container_id: Container to wait for.
            condition: "next-exit" for containers not started yet,
                "not-running" otherwise.
        """
        client = await self._get_client()
        try:
            async with client.stream(
                "POST",
                f"/containers/{container_id}/wait",
                params={"condition": condition},
                timeout=None,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    self._raise_for_status(response)

                async def wait() -> int:
                    result = ContainerWaitResponse.model_validate_json(await response.aread())
                    if result.error and result.error.message:
                        raise DockerError(result.error.message)
                    return result.status_code

                yield wait
        except httpx.TransportError as e:
            raise DockerError(f"cannot reach Docker at {self._socket_path}: {e}") from e

    async def kill_container(self, container_id: str) -> None:
        """Kill a container. Containers that are already gone are ignored."""
        try:
            await self._request(
                "POST", f"/containers/{container_id}/kill", response_type=EmptyResponse
            )
        except DockerError as e:
            if e.code not in (404, 409):
                raise

    async def remove_container(self, container_id: str, *, force: bool = False) -> None:
        """Remove a container. Containers that are already gone are ignored."""
        try:
            await self._request(
                "DELETE",
                f"/containers/{container_id}",
                response_type=EmptyResponse,
                params={"force": "1" if force else "0"},
            )
        except DockerError as e:
            if e.code != 404:
                raise

    async def list_containers(
        self, *, labels: dict[str, str] | None = None, running_only: bool = True
    ) -> list[ContainerSummary]:
        """List containers, optionally filtered by label.

        Args:
            labels: Label key/values every returned container must carry.
            running_only: Only return running containers.
        """
        filters: dict[str, list[str]] = {}
        if labels:
            filters["label"] = [f"{key}={value}" for key, value in labels.items()]
        params: dict[str, Any] = {"all": "0" if running_only else "1"}
        if filters:
            params["filters"] = json.dumps(filters)

        result = await self._request(
            "GET", "/containers/json", response_type=ContainerList, params=params
        )
        return result.root
