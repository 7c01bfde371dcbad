"""Tests for the Docker Engine API client."""

import json

import httpx
import pytest

from debian_bridge.docker import ContainerCreate, DockerClient, DockerError, HostConfig


def client_for(handler) -> DockerClient:
    return DockerClient("/test/docker.sock", transport=httpx.MockTransport(handler))


def json_lines(*messages) -> bytes:
    return b"".join(json.dumps(m).encode() + b"\r\n" for m in messages)


@pytest.mark.asyncio
async def test_build_image_returns_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(
            200,
            content=json_lines(
                {"stream": "Step 1/4 : FROM debian:stable-slim\n"},
                {"aux": {"ID": "sha256:abc"}},
                {"stream": "Successfully tagged debian_bridge_foo:latest\n"},
            ),
        )

    async with client_for(handler) as client:
        image_id = await client.build_image(b"tar", "debian_bridge_foo", platform="linux/amd64")

    assert image_id == "sha256:abc"
    assert seen["path"] == "/v1.41/build"
    assert seen["params"]["t"] == "debian_bridge_foo"
    assert seen["params"]["platform"] == "linux/amd64"
    assert seen["content_type"] == "application/x-tar"
    assert seen["body"] == b"tar"


@pytest.mark.asyncio
async def test_build_error_line_raises():
    def handler(request):
        return httpx.Response(
            200,
            content=json_lines(
                {"stream": "Step 3/4 : RUN apt-get install\n"},
                {"error": "The command returned a non-zero code: 100",
                 "errorDetail": {"code": 100}},
            ),
        )

    async with client_for(handler) as client:
        with pytest.raises(DockerError, match="non-zero code: 100"):
            await client.build_image(b"tar", "debian_bridge_foo")


@pytest.mark.asyncio
async def test_build_http_error():
    def handler(request):
        return httpx.Response(500, json={"message": "dockerfile parse error"})

    async with client_for(handler) as client:
        with pytest.raises(DockerError) as exc_info:
            await client.build_image(b"tar", "debian_bridge_foo")

    assert exc_info.value.code == 500
    assert "dockerfile parse error" in str(exc_info.value)


@pytest.mark.asyncio
async def test_remove_missing_image():
    def handler(request):
        return httpx.Response(404, json={"message": "No such image: debian_bridge_foo"})

    async with client_for(handler) as client:
        assert await client.remove_image("debian_bridge_foo") is False


@pytest.mark.asyncio
async def test_remove_image():
    def handler(request):
        assert request.method == "DELETE"
        assert request.url.path == "/v1.41/images/debian_bridge_foo"
        return httpx.Response(200, json=[{"Untagged": "debian_bridge_foo:latest"}])

    async with client_for(handler) as client:
        assert await client.remove_image("debian_bridge_foo") is True


@pytest.mark.asyncio
async def test_create_container_uses_api_field_names():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.read())
        return httpx.Response(201, json={"Id": "abc123", "Warnings": []})

    config = ContainerCreate(
        image="debian_bridge_foo",
        env=["DISPLAY=:0"],
        labels={"debian-bridge.program": "foo"},
        host_config=HostConfig(binds=["/tmp/.X11-unix:/tmp/.X11-unix:ro"], auto_remove=True),
    )

    async with client_for(handler) as client:
        assert await client.create_container(config) == "abc123"

    assert seen["body"] == {
        "Image": "debian_bridge_foo",
        "Env": ["DISPLAY=:0"],
        "Labels": {"debian-bridge.program": "foo"},
        "HostConfig": {"Binds": ["/tmp/.X11-unix:/tmp/.X11-unix:ro"], "AutoRemove": True},
    }


@pytest.mark.asyncio
async def test_wait_container_returns_status():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"StatusCode": 2, "Error": None})

    async with client_for(handler) as client:
        assert await client.wait_container("abc123") == 2

    assert seen["params"] == {"condition": "not-running"}


@pytest.mark.asyncio
async def test_exit_waiter_is_registered_before_the_block():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json={"StatusCode": 0})

    async with client_for(handler) as client:
        async with client.exit_waiter("abc123", condition="next-exit") as wait:
            assert calls == ["/v1.41/containers/abc123/wait"]
            assert await wait() == 0


@pytest.mark.asyncio
async def test_exit_waiter_missing_container():
    def handler(request):
        return httpx.Response(404, json={"message": "No such container: abc123"})

    async with client_for(handler) as client:
        with pytest.raises(DockerError) as exc_info:
            async with client.exit_waiter("abc123"):
                pass

    assert exc_info.value.code == 404


@pytest.mark.asyncio
async def test_kill_ignores_stopped_container():
    def handler(request):
        return httpx.Response(409, json={"message": "container is not running"})

    async with client_for(handler) as client:
        await client.kill_container("abc123")


@pytest.mark.asyncio
async def test_list_containers_filters_by_label():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json=[{"Id": "abc123", "Names": ["/x"], "State": "running",
                   "Labels": {"debian-bridge.program": "foo"}}],
        )

    async with client_for(handler) as client:
        containers = await client.list_containers(labels={"debian-bridge.program": "foo"})

    assert [c.id for c in containers] == ["abc123"]
    assert json.loads(seen["params"]["filters"]) == {"label": ["debian-bridge.program=foo"]}
    assert seen["params"]["all"] == "0"


@pytest.mark.asyncio
async def test_unreachable_daemon():
    def handler(request):
        raise httpx.ConnectError("Connection refused")

    async with client_for(handler) as client:
        assert await client.is_available() is False
        with pytest.raises(DockerError, match="cannot reach Docker"):
            await client.list_containers()
