"""Tests for layered configuration loading."""

from pathlib import Path

import pytest

from debian_bridge.core.config import (
    DEFAULT_PREFIX,
    get_config_path,
    get_config_paths,
    load_settings,
    split_list,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("DOCKER_HOST", raising=False)


def write_config(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("[debian-bridge]\n" + body)
    return path


def test_user_config_path(tmp_path):
    assert get_config_path() == tmp_path / "config" / "debian-bridge" / "debian-bridge.conf"


def test_override_replaces_lookup(tmp_path):
    override = tmp_path / "custom.conf"
    assert get_config_paths(override) == [override]


def test_defaults_without_config(tmp_path):
    settings = load_settings(tmp_path / "missing.conf")

    assert settings.registry_path == tmp_path / "registry.json"
    assert settings.prefix == DEFAULT_PREFIX
    assert settings.base_image is None
    assert settings.devices == ()
    assert settings.docker_socket == "/var/run/docker.sock"


def test_registry_defaults_beside_user_config(tmp_path):
    settings = load_settings()
    assert settings.registry_path == tmp_path / "config" / "debian-bridge" / "registry.json"


def test_override_values(tmp_path):
    config = write_config(
        tmp_path / "custom.conf",
        "registry = /srv/bridge/programs.json\n"
        "base_image = debian:bookworm\n"
        "prefix = mybridge\n"
        "devices = /dev/video*, /dev/ttyUSB*\n"
        "docker_socket = /run/user/1000/docker.sock\n",
    )

    settings = load_settings(config)

    assert settings.registry_path == Path("/srv/bridge/programs.json")
    assert settings.base_image == "debian:bookworm"
    assert settings.prefix == "mybridge"
    assert settings.devices == ("/dev/video*", "/dev/ttyUSB*")
    assert settings.docker_socket == "/run/user/1000/docker.sock"


def test_user_config_is_read(tmp_path):
    write_config(get_config_path(), "prefix = userbridge\n")
    assert load_settings().prefix == "userbridge"


def test_malformed_config_is_skipped(tmp_path):
    config = tmp_path / "broken.conf"
    config.write_text("prefix = no section header\n")

    assert load_settings(config).prefix == DEFAULT_PREFIX


def test_docker_host_unix_socket(monkeypatch, tmp_path):
    monkeypatch.setenv("DOCKER_HOST", "unix:///run/user/1000/docker.sock")
    assert load_settings(tmp_path / "missing.conf").docker_socket == "/run/user/1000/docker.sock"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("libgl1", ["libgl1"]),
        ("libgl1,fonts-dejavu", ["libgl1", "fonts-dejavu"]),
        ("libgl1, fonts-dejavu  libxt6", ["libgl1", "fonts-dejavu", "libxt6"]),
        (" , ", []),
    ],
)
def test_split_list(value, expected):
    assert split_list(value) == expected
