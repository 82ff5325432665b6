"""Tests for configuration loading and parsing."""
from __future__ import annotations

import pytest
import yaml

from xcwarden.config import WardenConfig, load_config
from xcwarden.errors import InvalidConfiguration


class TestLoadConfig:
    def test_defaults_when_no_file(self, tmp_path):
        config = load_config(tmp_path)
        assert config.home == tmp_path
        assert config.flush_delay == 0.5
        assert config.tail_lines == 100
        assert config.cross_process_lock is False
        assert config.marker_name == ".xcwarden.rc"

    def test_paths_derive_from_home(self, tmp_path):
        config = load_config(tmp_path)
        assert config.state_file == tmp_path / "state.json"
        assert config.log_dir == tmp_path / "logs"

    def test_home_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XCWARDEN_HOME", str(tmp_path / "custom"))
        assert load_config().home == tmp_path / "custom"

    def test_explicit_home_overrides_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XCWARDEN_HOME", str(tmp_path / "env"))
        assert load_config(tmp_path / "arg").home == tmp_path / "arg"

    def test_default_home(self, monkeypatch):
        monkeypatch.delenv("XCWARDEN_HOME", raising=False)
        assert WardenConfig().home.name == ".xcwarden"

    def test_loads_overrides_from_yaml(self, tmp_path):
        cfg = {"flush_delay": 0, "tail_lines": 20, "cross_process_lock": True, "xcrun": "/opt/xcrun"}
        (tmp_path / "config.yml").write_text(yaml.dump(cfg))
        config = load_config(tmp_path)
        assert config.flush_delay == 0.0
        assert isinstance(config.flush_delay, float)
        assert config.tail_lines == 20
        assert config.cross_process_lock is True
        assert config.xcrun == "/opt/xcrun"

    def test_loads_from_yaml_extension(self, tmp_path):
        (tmp_path / "config.yaml").write_text(yaml.dump({"tail_lines": 5}))
        assert load_config(tmp_path).tail_lines == 5

    def test_empty_file_means_defaults(self, tmp_path):
        (tmp_path / "config.yml").write_text("")
        assert load_config(tmp_path).tail_lines == 100

    def test_unknown_key_warns(self, tmp_path, caplog):
        (tmp_path / "config.yml").write_text(yaml.dump({"colour": "blue"}))
        with caplog.at_level("WARNING", logger="xcwarden"):
            load_config(tmp_path)
        assert "colour" in caplog.text

    @pytest.mark.parametrize("cfg", [
        {"tail_lines": "many"},
        {"tail_lines": True},
        {"cross_process_lock": "yes"},
        {"flush_delay": -1},
        {"tail_lines": 0},
        {"marker_name": "dir/marker"},
    ])
    def test_invalid_values_raise(self, tmp_path, cfg):
        (tmp_path / "config.yml").write_text(yaml.dump(cfg))
        with pytest.raises(InvalidConfiguration):
            load_config(tmp_path)

    def test_non_mapping_raises(self, tmp_path):
        (tmp_path / "config.yml").write_text("- a\n- b\n")
        with pytest.raises(InvalidConfiguration):
            load_config(tmp_path)

    def test_invalid_yaml_raises(self, tmp_path):
        (tmp_path / "config.yml").write_text("key: [unclosed")
        with pytest.raises(InvalidConfiguration):
            load_config(tmp_path)
