"""
Tests for configuration loading — emap.yml parsing, env overrides, defaults.
"""

import textwrap
from pathlib import Path

import pytest

from emap.core.config.loader import ConfigError, find_config_file, load_settings


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "emap.yml"
    path.write_text(textwrap.dedent("""\
        data_dir: store
        assets_dir: /srv/media
        port: 9090
        auto_load_last_project: true
        lock_timeout: 2.5
    """))
    return path


class TestLoadSettings:
    def test_values_from_file(self, config_file: Path):
        s = load_settings(config_file, env={})
        assert s.port == 9090
        assert s.auto_load_last_project is True
        assert s.lock_timeout == 2.5

    def test_relative_dirs_anchor_at_config(self, config_file: Path):
        s = load_settings(config_file, env={})
        assert s.data_dir == config_file.parent.resolve() / "store"
        assert s.assets_dir == Path("/srv/media")

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        s = load_settings(env={})
        assert s.port == 8080
        assert s.host == "127.0.0.1"
        assert s.auto_load_last_project is False
        assert s.data_dir == tmp_path / "data"
        assert s.assets_dir == tmp_path / "assets"

    def test_nested_server_key(self, tmp_path: Path):
        path = tmp_path / "emap.yml"
        path.write_text("server:\n  port: 7000\n")
        assert load_settings(path, env={}).port == 7000

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "emap.yml"
        path.write_text("")
        assert load_settings(path, env={}).port == 8080

    def test_env_overrides_file(self, config_file: Path):
        s = load_settings(config_file, env={"EMAP_PORT": "7777", "EMAP_AUTO_LOAD": "false"})
        assert s.port == 7777
        assert s.auto_load_last_project is False

    def test_env_data_dir(self, config_file: Path, tmp_path: Path):
        s = load_settings(config_file, env={"EMAP_DATA_DIR": str(tmp_path / "elsewhere")})
        assert s.data_dir == tmp_path / "elsewhere"


class TestConfigErrors:
    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "missing.yml", env={})

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "emap.yml"
        path.write_text("port: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path, env={})

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "emap.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path, env={})

    @pytest.mark.parametrize("body", ["server:\n", "server: nope\n", "server: [1, 2]\n"])
    def test_server_section_not_a_mapping(self, tmp_path: Path, body: str):
        path = tmp_path / "emap.yml"
        path.write_text(body)
        with pytest.raises(ConfigError, match="mapping under 'server'"):
            load_settings(path, env={})

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "emap.yml"
        path.write_text("port: 99999\n")
        with pytest.raises(ConfigError, match="Invalid server configuration"):
            load_settings(path, env={})


class TestFindConfigFile:
    def test_walks_up(self, config_file: Path):
        nested = config_file.parent / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == config_file.resolve()

    def test_none_when_absent(self, tmp_path: Path):
        # tmp_path has no emap.yml; parents are system dirs without one
        result = find_config_file(tmp_path)
        assert result is None or result.parent != tmp_path
