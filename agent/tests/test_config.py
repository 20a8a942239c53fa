"""
Statsd Agent - Configuration Tests
"""

import pytest

from telemetry.config import AgentConfig, DatabaseSettings, StatsdSettings, load_config


class TestStatsdSettings:
    """Test statsd section parsing."""

    def test_defaults(self):
        """Missing section gives the collector defaults."""
        settings = StatsdSettings.from_mapping(None)

        assert settings.host == "127.0.0.1"
        assert settings.port == 8125
        assert settings.namespace is None
        assert settings.interval == 1.0

    def test_valid_values_kept(self):
        """Valid values pass through, port strings are coerced."""
        settings = StatsdSettings.from_mapping(
            {"host": "stats.local", "port": "9999", "namespace": "fs", "interval": 5}
        )

        assert settings.host == "stats.local"
        assert settings.port == 9999
        assert settings.namespace == "fs"
        assert settings.interval == 5.0

    @pytest.mark.parametrize("raw,field,default", [
        ({"host": ""}, "host", "127.0.0.1"),
        ({"host": "   "}, "host", "127.0.0.1"),
        ({"port": 0}, "port", 8125),
        ({"port": 70000}, "port", 8125),
        ({"port": "not-a-port"}, "port", 8125),
        ({"namespace": ""}, "namespace", None),
        ({"namespace": "bad:ns"}, "namespace", None),
        ({"namespace": "fs_\u00e9"}, "namespace", None),
        ({"interval": 0}, "interval", 1.0),
    ])
    def test_invalid_value_replaced_by_default(self, raw, field, default):
        """A bad value falls back to that field's default."""
        settings = StatsdSettings.from_mapping(raw, "statsd")

        assert getattr(settings, field) == default

    def test_one_bad_field_keeps_the_others(self):
        """Fallback is per field."""
        settings = StatsdSettings.from_mapping({"host": "10.0.0.5", "port": 0, "namespace": "fs"})

        assert settings.host == "10.0.0.5"
        assert settings.port == 8125
        assert settings.namespace == "fs"

    def test_keys_case_insensitive(self):
        """Setting names match regardless of case."""
        settings = StatsdSettings.from_mapping({"HOST": "10.0.0.5", "Port": 9125})

        assert settings.host == "10.0.0.5"
        assert settings.port == 9125

    def test_unknown_keys_ignored(self):
        """Unknown settings do not fail parsing."""
        settings = StatsdSettings.from_mapping({"protocol": "tcp"})

        assert settings == StatsdSettings()

    def test_non_mapping_section(self):
        """A scalar section is replaced by defaults."""
        assert StatsdSettings.from_mapping("127.0.0.1", "statsd") == StatsdSettings()

    def test_settings_are_frozen(self):
        """Settings cannot be changed after construction."""
        settings = StatsdSettings()

        with pytest.raises(Exception):
            settings.port = 9999


class TestLoadConfig:
    """Test loading the YAML file."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """No config file is not an error."""
        config = load_config(str(tmp_path / "missing.yaml"))

        assert config == AgentConfig()

    def test_full_file(self, tmp_path):
        """All sections are read from YAML."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "statsd:\n"
            "  host: 127.0.0.1\n"
            "  port: 9999\n"
            "  namespace: fs\n"
            "database:\n"
            "  path: /var/lib/switch/db/core.db\n"
            "  hostname: switch01\n"
            "logging:\n"
            "  level: debug\n"
        )

        config = load_config(str(path))

        assert config.statsd == StatsdSettings(host="127.0.0.1", port=9999, namespace="fs")
        assert config.database == DatabaseSettings(path="/var/lib/switch/db/core.db", hostname="switch01")
        assert config.logging.level == "DEBUG"

    def test_malformed_yaml_uses_defaults(self, tmp_path):
        """Unparseable YAML falls back to defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("statsd: [host: : ::\n")

        assert load_config(str(path)) == AgentConfig()

    def test_non_mapping_document_uses_defaults(self, tmp_path):
        """A YAML list is not a configuration."""
        path = tmp_path / "config.yaml"
        path.write_text("- statsd\n- host\n")

        assert load_config(str(path)) == AgentConfig()

    def test_empty_file_uses_defaults(self, tmp_path):
        """An empty file is treated as no settings."""
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(str(path)) == AgentConfig()

    def test_invalid_log_level_falls_back(self):
        """Unknown levels are replaced by INFO."""
        config = AgentConfig.from_mapping({"logging": {"level": "chatty"}})

        assert config.logging.level == "INFO"
