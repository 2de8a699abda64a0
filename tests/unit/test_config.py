"""Unit tests for configuration loading."""

import pytest

from tpdesk.config import DEFAULT_CONFIG, load_config, merge_config
from tpdesk.errors import ConfigError


class TestMergeConfig:
    """Tests for merge_config."""

    def test_nested_merge(self):
        merged = merge_config({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}

    def test_base_not_modified(self):
        base = {"a": {"x": 1}}
        merge_config(base, {"a": {"x": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TPDESK_API_URL", raising=False)
        config = load_config(tmp_path / "missing.yaml", load_env=False)
        assert config == DEFAULT_CONFIG

    def test_file_overrides_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TPDESK_API_URL", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("api:\n  mode: offline\ntasks:\n  page_size: 10\n")

        config = load_config(path, load_env=False)

        assert config["api"]["mode"] == "offline"
        assert config["api"]["timeout_seconds"] == 30
        assert config["tasks"] == {"page_size": 10, "search_debounce_seconds": 0.3}

    def test_env_overrides_base_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TPDESK_API_URL", "https://tp.example.com/api")
        config = load_config(tmp_path / "missing.yaml", load_env=False)
        assert config["api"]["base_url"] == "https://tp.example.com/api"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("api: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path, load_env=False)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, load_env=False)

    def test_empty_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TPDESK_API_URL", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path, load_env=False) == DEFAULT_CONFIG
