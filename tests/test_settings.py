"""Tests for controller settings."""
import pytest

from gateway_reconciler.client import HttpControllerClient, InMemoryController, create_client
from gateway_reconciler.config import ControllerSettings, load_settings
from gateway_reconciler.utils.retry import ADVERTISED_CIDR_ATTEMPTS, ROUTE_EDIT_ATTEMPTS

SETTINGS_YAML = """
controller:
  url: https://controller.example.com
  username: admin
  password_env: TEST_CONTROLLER_PASSWORD
  timeout: 30
  backend: memory
retry:
  route_edit_attempts: 5
  wait_seconds: 0.5
remote_defaults:
  - enable_jumbo_frame
"""


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "controller.yaml"
    path.write_text(SETTINGS_YAML)
    return path


class TestLoadSettings:

    def test_from_file(self, settings_file, monkeypatch):
        monkeypatch.delenv("GATEWAY_RECONCILER_CONTROLLER_URL", raising=False)
        monkeypatch.delenv("GATEWAY_RECONCILER_USERNAME", raising=False)

        settings = load_settings(str(settings_file))

        assert settings.url == "https://controller.example.com"
        assert settings.timeout == 30
        assert settings.backend == "memory"
        assert settings.route_edit_attempts == 5
        assert settings.advertised_cidr_attempts == ADVERTISED_CIDR_ATTEMPTS
        assert settings.retry_wait_seconds == 0.5
        assert settings.remote_defaults == ("enable_jumbo_frame",)
        assert settings.source == str(settings_file)

    def test_env_overrides(self, settings_file, monkeypatch):
        monkeypatch.setenv("GATEWAY_RECONCILER_CONTROLLER_URL", "https://other.example.com")
        monkeypatch.setenv("GATEWAY_RECONCILER_USERNAME", "ops")

        settings = load_settings(str(settings_file))

        assert settings.url == "https://other.example.com"
        assert settings.username == "ops"

    def test_password_from_env(self, settings_file, monkeypatch):
        monkeypatch.setenv("TEST_CONTROLLER_PASSWORD", "s3cret")

        assert load_settings(str(settings_file)).get_password() == "s3cret"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "absent.yaml"))


class TestDefaults:

    def test_defaults(self):
        settings = ControllerSettings()

        assert settings.backend == "http"
        assert settings.route_edit_attempts == ROUTE_EDIT_ATTEMPTS
        assert settings.remote_defaults == ("single_az_ha", "enable_jumbo_frame", "enable_gro_gso")

    def test_empty_remote_defaults(self):
        settings = ControllerSettings.from_dict({"remote_defaults": None})
        assert settings.remote_defaults == ()


class TestCreateClient:

    def test_memory_backend(self):
        assert isinstance(create_client(ControllerSettings(backend="memory")), InMemoryController)

    def test_http_backend(self):
        client = create_client(ControllerSettings(url="https://controller.example.com"))
        assert isinstance(client, HttpControllerClient)
        client.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_client(ControllerSettings(backend="ssh"))
