"""Tests for settings loading and validation."""
import json

import pytest

from udonbridge.config import BridgeSettings, RemoteSettings, load_settings
from udonbridge.errors import ConfigError


class TestDefaults:
    def test_defaults_without_file(self):
        settings = load_settings(None, environ={})
        assert settings.remote.host == "localhost"
        assert settings.remote.port is None
        assert settings.converter.locked_terrain_character_collider is True
        assert settings.probe.enabled is True

    def test_environment_supplies_host_and_port(self):
        settings = load_settings(None, environ={"RESONITELINK_HOST": "world.local", "RESONITELINK_PORT": "7000"})
        assert settings.remote.host == "world.local"
        assert settings.remote.port == 7000

    def test_invalid_environment_port_is_ignored(self):
        settings = load_settings(None, environ={"RESONITELINK_PORT": "not-a-port"})
        assert settings.remote.port is None

    def test_retry_defaults(self):
        remote = RemoteSettings()
        assert (remote.max_attempts, remote.initial_delay, remote.max_delay) == (3, 1.0, 10.0)


class TestFiles:
    def test_yaml_settings(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            """
import_name: Session 12
converter:
  locked_terrain_character_collider: "no"
  table_character_collider: false
remote:
  host: 10.0.0.5
  port: 6000
  retry:
    max_attempts: 5
    initial_delay: 0.5
probe:
  enabled: true
  timeout: 3
images:
  token.png:
    aspect_ratio: 1.5
    blend_mode: Alpha
""",
            encoding="utf-8",
        )
        settings = load_settings(path, environ={"RESONITELINK_PORT": "7000"})

        assert settings.import_name == "Session 12"
        assert settings.converter.locked_terrain_character_collider is False
        assert settings.converter.table_character_collider is False
        assert settings.remote.host == "10.0.0.5"
        assert settings.remote.port == 6000
        assert settings.remote.max_attempts == 5
        assert settings.remote.initial_delay == 0.5
        assert settings.probe.timeout == 3.0
        assert settings.image_overrides["token.png"].aspect_ratio == 1.5
        assert settings.image_overrides["token.png"].blend_mode == "Alpha"

    def test_environment_used_when_file_omits_remote(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"import_name": "x"}), encoding="utf-8")
        settings = load_settings(path, environ={"RESONITELINK_PORT": "7001"})
        assert settings.remote.port == 7001

    @pytest.mark.parametrize(
        "document",
        [
            {"images": {"a.png": {"blend_mode": "Glow"}}},
            {"images": {"a.png": {"aspect_ratio": 0}}},
            {"remote": {"port": 70000}},
            {"remote": {"retry": {"max_attempts": "three"}}},
            {"remote": {"retry": {"max_attempts": 0}}},
            {"probe": {"timeout": -1}},
            {"converter": {"table_character_collider": "maybe"}},
        ],
    )
    def test_invalid_values(self, tmp_path, document):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_settings(path, environ={})

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text("x = 1", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "absent.yaml")

    def test_config_error_is_value_error(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("a: [1, 2", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(path)


class TestOverrides:
    def test_cli_remote_override(self):
        settings = BridgeSettings().with_remote("example", 9000)
        assert (settings.remote.host, settings.remote.port) == ("example", 9000)

    def test_probe_toggle(self):
        assert BridgeSettings().with_probe(enabled=False).probe.enabled is False
        assert BridgeSettings().with_probe().probe.enabled is True

    def test_non_integer_attempts_raise_config_error(self):
        with pytest.raises(ConfigError, match="retry.max_attempts"):
            RemoteSettings.from_mapping({"retry": {"max_attempts": "lots"}})
