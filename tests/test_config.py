"""Tests for environment-driven configuration."""

import pytest

from orgchart_explorer.config import ServerConfig
from orgchart_explorer.models import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # Keep a developer's .env or ORGCHART_* variables out of these tests
    monkeypatch.chdir(tmp_path)
    for name in (
        "ORGCHART_ROOT_ENDPOINTS",
        "ORGCHART_API_KEY",
        "ORGCHART_API_BASE_URL",
        "ORGCHART_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)


class TestServerConfig:
    def test_defaults(self):
        config = ServerConfig()
        assert config.root_endpoints == ["/departments2", "/departments3"]
        assert config.api_key is None

    def test_comma_separated_endpoints(self, monkeypatch):
        monkeypatch.setenv("ORGCHART_ROOT_ENDPOINTS", "/a, /b ,/c")
        assert ServerConfig().root_endpoints == ["/a", "/b", "/c"]

    def test_json_endpoints(self, monkeypatch):
        monkeypatch.setenv("ORGCHART_ROOT_ENDPOINTS", '["/x", "/y"]')
        assert ServerConfig().root_endpoints == ["/x", "/y"]

    def test_api_config_carries_settings(self, monkeypatch):
        monkeypatch.setenv("ORGCHART_API_BASE_URL", "https://hr.example.test")
        monkeypatch.setenv("ORGCHART_API_KEY", "k")
        monkeypatch.setenv("ORGCHART_MAX_RETRIES", "5")
        api = ServerConfig().get_api_config()
        assert api.base_url == "https://hr.example.test"
        assert api.api_key.get_secret_value() == "k"
        assert api.max_retries == 5

    def test_empty_endpoint_list_is_fatal(self, monkeypatch):
        monkeypatch.setenv("ORGCHART_ROOT_ENDPOINTS", " , ")
        with pytest.raises(ConfigurationError):
            ServerConfig().get_api_config()
