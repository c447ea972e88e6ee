"""
Unit tests for gate settings loading.
"""

import pytest

from conftest import RO_KEY, RW_KEY
from service_token_gate.app.settings import PLUGIN_NAME, GateSettings, load_gate_settings
from shared.errors import ConfigurationError

REGISTRY_CONFIG = f"""
storage: ./storage
uplinks:
  npmjs:
    url: https://registry.npmjs.org/
middlewares:
  {PLUGIN_NAME}:
    enabled: true
staticAccessTokens:
  - key: {RW_KEY}
    user: alice
    pass: alice-password
    groups: dev ops
  - key: {RO_KEY}
    user: ci-bot
    pass: ci-password
    readonly: true
policy: readonly
"""


class TestGateSettings:
    """Test cases for GateSettings."""

    @pytest.fixture
    def config_path(self, tmp_path):
        """Registry config file on disk."""
        path = tmp_path / "config.yaml"
        path.write_text(REGISTRY_CONFIG, encoding="utf-8")
        return path

    def test_defaults(self):
        """Test defaults for a bare configuration."""
        settings = GateSettings()

        assert settings.service_name == "token_gate"
        assert settings.port == 4873
        assert settings.policy == "exchange"
        assert settings.token_cache_ttl_seconds == 60
        assert settings.token_cache_sweep_interval_seconds == 30
        assert settings.single_flight is True
        assert settings.min_token_length == 16
        assert settings.is_plugin_enabled() is False

    def test_load_registry_config(self, config_path):
        """Test middleware toggle and tokens are read from registry YAML."""
        settings = load_gate_settings(config_path)

        assert settings.is_plugin_enabled() is True
        assert settings.policy == "readonly"
        assert [record.user for record in settings.static_access_tokens] == ["alice", "ci-bot"]
        assert settings.static_access_tokens[0].secret == "alice-password"
        assert settings.static_access_tokens[1].readonly is True

    def test_unknown_keys_ignored(self, config_path):
        """Test unrelated registry keys do not leak into settings."""
        settings = load_gate_settings(config_path)

        assert "storage" not in settings.model_dump()
        assert "uplinks" not in settings.model_dump()

    def test_plugin_disabled_without_middleware_block(self, tmp_path):
        """Test the gate stays off when the config does not enable it."""
        path = tmp_path / "config.yaml"
        path.write_text("middlewares:\n  audit:\n    enabled: true\n", encoding="utf-8")

        assert load_gate_settings(path).is_plugin_enabled() is False

    def test_plugin_explicitly_disabled(self, tmp_path):
        """Test ``enabled: false`` keeps the gate off."""
        path = tmp_path / "config.yaml"
        path.write_text(f"middlewares:\n  {PLUGIN_NAME}:\n    enabled: false\n", encoding="utf-8")

        assert load_gate_settings(path).is_plugin_enabled() is False

    def test_overrides_win(self, config_path):
        """Test keyword overrides replace file values."""
        settings = load_gate_settings(config_path, policy="exchange", jwt_secret="s" * 32)

        assert settings.policy == "exchange"
        assert settings.jwt_secret == "s" * 32

    def test_environment_applied(self, config_path, monkeypatch):
        """Test prefixed environment variables configure the cache."""
        monkeypatch.setenv("TOKENGATE_TOKEN_CACHE_TTL_SECONDS", "5")
        monkeypatch.setenv("TOKENGATE_SINGLE_FLIGHT", "false")

        settings = load_gate_settings(config_path)

        assert settings.token_cache_ttl_seconds == 5
        assert settings.single_flight is False

    def test_port_from_environment(self, monkeypatch):
        """Test TOKENGATE_PORT and TOKENGATE_HOST set the listen address."""
        monkeypatch.setenv("TOKENGATE_PORT", "9000")
        monkeypatch.setenv("TOKENGATE_HOST", "127.0.0.1")

        settings = GateSettings()

        assert settings.port == 9000
        assert settings.host == "127.0.0.1"

    def test_explicit_port_outranks_environment(self, monkeypatch):
        """Test a port passed in code wins over TOKENGATE_PORT."""
        monkeypatch.setenv("TOKENGATE_PORT", "9000")
        monkeypatch.delenv("TOKENGATE_CONFIG_FILE", raising=False)

        assert GateSettings(port=8080).port == 8080
        assert load_gate_settings(None, port=8081).port == 8081

    def test_config_file_from_environment(self, config_path, monkeypatch):
        """Test the config path defaults to TOKENGATE_CONFIG_FILE."""
        monkeypatch.setenv("TOKENGATE_CONFIG_FILE", str(config_path))

        settings = load_gate_settings()

        assert settings.is_plugin_enabled() is True

    def test_no_config_file(self, monkeypatch):
        """Test settings load without any file."""
        monkeypatch.delenv("TOKENGATE_CONFIG_FILE", raising=False)

        settings = load_gate_settings()

        assert settings.static_access_tokens == []

    def test_missing_file_raises(self, tmp_path):
        """Test an unreadable config path is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_gate_settings(tmp_path / "absent.yaml")

        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_invalid_yaml_raises(self, tmp_path):
        """Test malformed YAML is a configuration error."""
        path = tmp_path / "config.yaml"
        path.write_text("middlewares: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_gate_settings(path)

    def test_non_mapping_raises(self, tmp_path):
        """Test a YAML list at the top level is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_gate_settings(path)

    def test_empty_file_yields_defaults(self, tmp_path):
        """Test an empty config file is treated as no settings."""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        settings = load_gate_settings(path)

        assert settings.is_plugin_enabled() is False
        assert settings.policy == "exchange"
