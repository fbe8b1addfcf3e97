"""Tests for scan configuration loading."""

from pathlib import Path

import pytest

from pinscan import config as config_module
from pinscan.config import ScanConfig, load_config


@pytest.fixture(autouse=True)
def no_user_config(tmp_path: Path, monkeypatch):
    """Keep the developer's ~/.pinscan/config.yaml out of the tests."""
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "home" / "config.yaml")


class TestLoadConfig:
    """Config lookup order and validation."""

    def test_defaults(self, tmp_path: Path):
        config = load_config(tmp_path)
        assert config == ScanConfig()
        assert config.analyzers.workflow_run is True
        assert config.fail_under is None

    def test_project_config(self, tmp_path: Path):
        (tmp_path / ".pinscan.yaml").write_text(
            "analyzers:\n  workflow_run: false\nexclude_patterns:\n  - examples\nfail_under: 7\n"
        )
        config = load_config(tmp_path)
        assert config.analyzers.workflow_run is False
        assert config.analyzers.actions is True
        assert config.exclude_patterns == ["examples"]
        assert config.fail_under == 7

    def test_explicit_wins(self, tmp_path: Path):
        (tmp_path / ".pinscan.yaml").write_text("fail_under: 7\n")
        explicit = tmp_path / "custom.yaml"
        explicit.write_text("fail_under: 3\n")
        assert load_config(tmp_path, explicit).fail_under == 3

    def test_invalid_value_falls_back(self, tmp_path: Path):
        (tmp_path / ".pinscan.yaml").write_text("fail_under: 42\n")
        assert load_config(tmp_path) == ScanConfig()

    def test_invalid_yaml_falls_back(self, tmp_path: Path):
        (tmp_path / ".pinscan.yaml").write_text("analyzers: [unclosed\n")
        assert load_config(tmp_path) == ScanConfig()

    def test_non_mapping_falls_back(self, tmp_path: Path):
        (tmp_path / ".pinscan.yaml").write_text("- a\n- b\n")
        assert load_config(tmp_path) == ScanConfig()

    def test_empty_file_is_defaults(self, tmp_path: Path):
        (tmp_path / ".pinscan.yaml").write_text("")
        assert load_config(tmp_path) == ScanConfig()

    def test_user_config(self, tmp_path: Path, monkeypatch):
        user_file = tmp_path / "user.yaml"
        user_file.write_text("skip_testdata: false\n")
        monkeypatch.setattr(config_module, "CONFIG_FILE", user_file)
        assert load_config(tmp_path / "project").skip_testdata is False
