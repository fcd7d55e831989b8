"""Tests for configuration loading and environment overrides."""

import os
import pytest
import yaml
from pathlib import Path

from clamlocal.config import ConfigManager


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("CLAMLOCAL_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestConfigManager:
    def test_defaults_without_file(self):
        config = ConfigManager().get_config()
        assert config.log_level == "INFO"
        assert config.logs_dir is None
        assert config.build.build_type == "Release"
        assert config.dependencies.required == ["cmake", "make", "gcc", "g++"]
        assert "clamd" in config.verify.expected_binaries

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigManager(str(tmp_path / "nope.yaml"))

    def test_loads_yaml(self, tmp_path):
        config_file = tmp_path / "custom.yaml"
        config_file.write_text(yaml.safe_dump({
            "log_level": "DEBUG",
            "paths": {"prefix": "opt/clamav"},
            "build": {"jobs": 6, "build_type": "Debug"},
        }))
        manager = ConfigManager(str(config_file))
        config = manager.get_config()
        assert config.log_level == "DEBUG"
        assert config.build.jobs == 6
        assert manager.get_section("paths")["prefix"] == "opt/clamav"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CLAMLOCAL_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("CLAMLOCAL_BUILD_JOBS", "3")
        monkeypatch.setenv("CLAMLOCAL_PATHS_DATABASE_DIR", "/srv/sigs")
        monkeypatch.setenv("CLAMLOCAL_VERIFY_SYSTEM_BIN_DIRS", "/a,/b")
        monkeypatch.setenv("CLAMLOCAL_PYTHON", "python3.12")
        config = ConfigManager().get_config()
        assert config.log_level == "WARNING"
        assert config.build.jobs == 3
        assert config.paths.database_dir == "/srv/sigs"
        assert config.verify.system_bin_dirs == ["/a", "/b"]

    def test_env_beats_file(self, tmp_path, monkeypatch):
        (tmp_path / "clamlocal.yaml").write_text("build:\n  jobs: 8\n  build_type: Debug\n")
        monkeypatch.setenv("CLAMLOCAL_BUILD_JOBS", "2")
        config = ConfigManager().get_config()
        assert config.build.jobs == 2
        assert config.build.build_type == "Debug"

    def test_build_paths(self, tmp_path):
        (tmp_path / "clamlocal.yaml").write_text("paths:\n  prefix: install\n")
        paths = ConfigManager().build_paths(str(tmp_path / "proj"))
        assert paths.project_root == (tmp_path / "proj").resolve()
        assert paths.prefix == (tmp_path / "proj" / "install").resolve()

    def test_build_options_overrides(self):
        manager = ConfigManager()
        assert manager.build_options(jobs=None).jobs is None
        assert manager.build_options(jobs=5).jobs == 5
        # The stored configuration is not modified
        assert manager.get_config().build.jobs is None

    def test_save_roundtrip(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CLAMLOCAL_BUILD_JOBS", "7")
        target = tmp_path / "saved.yaml"
        ConfigManager().save_config(target)
        monkeypatch.delenv("CLAMLOCAL_BUILD_JOBS")
        assert ConfigManager(str(target)).get_config().build.jobs == 7
        assert "logs_dir" not in yaml.safe_load(Path(target).read_text())
