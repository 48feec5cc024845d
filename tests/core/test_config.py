"""Tests for environment configuration."""

import pytest

from provcli.core.config import (
    DEFAULT_API_VERSION,
    DEFAULT_HOST,
    Settings,
    get_server_host,
    get_settings,
    resolve_client_config,
)
from provcli.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PROVIDENCE_HOST", "PROVIDENCE_API_VERSION", "PROVIDENCE_CONNECT_TIMEOUT", "PROVIDENCE_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.host == ""
        assert settings.api_version == DEFAULT_API_VERSION
        assert settings.connect_timeout == 30.0
        assert settings.log_format == "console"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("PROVIDENCE_HOST", "tcp://10.0.0.5:2375")
        monkeypatch.setenv("PROVIDENCE_API_VERSION", "1.2")
        monkeypatch.setenv("PROVIDENCE_LOG_FORMAT", "json")
        settings = get_settings()
        assert settings.host == "tcp://10.0.0.5:2375"
        assert settings.api_version == "1.2"
        assert settings.log_format == "json"

    def test_blank_version_means_default(self, monkeypatch):
        monkeypatch.setenv("PROVIDENCE_API_VERSION", "")
        assert get_settings().api_version == DEFAULT_API_VERSION

    def test_invalid_environment(self, monkeypatch):
        monkeypatch.setenv("PROVIDENCE_LOG_FORMAT", "xml")
        with pytest.raises(ConfigurationError):
            get_settings()


class TestServerHost:
    def test_flag_wins(self, monkeypatch):
        monkeypatch.setenv("PROVIDENCE_HOST", "tcp://env:1")
        assert get_server_host(["tcp://flag:2"], get_settings()) == "tcp://flag:2"

    def test_environment_fallback(self, monkeypatch):
        monkeypatch.setenv("PROVIDENCE_HOST", "tcp://env:1")
        assert get_server_host([], get_settings()) == "tcp://env:1"

    def test_default(self):
        assert get_server_host([], get_settings()) == DEFAULT_HOST

    def test_more_than_one_host(self):
        with pytest.raises(ConfigurationError, match="Please specify only one -H"):
            get_server_host(["tcp://a:1", "tcp://b:2"], get_settings())


def test_resolve_client_config(monkeypatch):
    monkeypatch.setenv("PROVIDENCE_CONNECT_TIMEOUT", "5")
    config = resolve_client_config(["http://prov"], get_settings())
    assert config.host == "http://prov"
    assert config.api_version == DEFAULT_API_VERSION
    assert config.connect_timeout == 5.0
