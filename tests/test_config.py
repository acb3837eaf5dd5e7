"""Tests for YAML scan config loading."""

import pytest

from guardian.config import default_config_path, load_scan_config, parse_scan_config
from guardian.models import DEFAULT_INCLUDE_PATTERNS, ConfigError, ScanConfig, Severity


class TestLoadScanConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_scan_config(str(tmp_path / "nope.yaml")) == ScanConfig()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_scan_config(str(path)) == ScanConfig()

    def test_values_override_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "include:\n  - 'src/**/*.py'\n"
            "disabledRules: [SEC-004]\n"
            "customRulesPath: policies\n"
            "minSeverity: high\n"
        )

        config = load_scan_config(str(path))

        assert config.include_patterns == ["src/**/*.py"]
        assert config.disabled_rules == ["SEC-004"]
        assert config.custom_rules_path == "policies"
        assert config.min_severity is Severity.HIGH
        assert config.exclude_patterns == ScanConfig().exclude_patterns

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("include: [unclosed")
        with pytest.raises(ConfigError, match="Malformed YAML"):
            load_scan_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must be a YAML mapping"):
            load_scan_config(str(path))

    def test_default_path(self, tmp_path):
        assert default_config_path(str(tmp_path)).endswith("config.yaml")


class TestParseScanConfig:
    def test_bad_list(self):
        with pytest.raises(ConfigError, match="'include'"):
            parse_scan_config({"include": "**/*.py"})

    def test_bad_severity(self):
        with pytest.raises(ConfigError):
            parse_scan_config({"minSeverity": "urgent"})

    def test_unknown_keys_warned(self, caplog):
        config = parse_scan_config({"colour": "blue"})
        assert config.include_patterns == DEFAULT_INCLUDE_PATTERNS
        assert "colour" in caplog.text
