"""Tests for level_cleanup.config."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from level_cleanup.config import AppConfig, load_config


# --- load_config ----------------------------------------------------------

class TestLoadConfig:
    def test_defaults_when_file_missing(self, tmp_path: Path):
        cfg = load_config(tmp_path / "none.yaml")
        assert cfg.paths.level_dir is None
        assert cfg.scan.scene_pattern == "items.level.json"
        assert cfg.scan.mesh_extension == ".dae"
        assert cfg.cleanup.dry_run is False
        assert cfg.cleanup.write_report is True

    def test_yaml_overrides(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "paths:\n"
            f"  level_dir: {tmp_path / 'levels' / 'demo'}\n"
            "scan:\n"
            "  compressed_mesh_extension: .CDAE\n"
            "cleanup:\n"
            "  dry_run: true\n"
        )
        cfg = load_config(path)
        assert cfg.level_dir == tmp_path / "levels" / "demo"
        assert cfg.scan.compressed_mesh_extension == ".cdae"
        assert cfg.cleanup.dry_run is True

    def test_empty_yaml_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == AppConfig()


# --- validation -----------------------------------------------------------

class TestScanConfig:
    def test_extension_must_start_with_dot(self):
        with pytest.raises(ValidationError):
            AppConfig.model_validate({"scan": {"mesh_extension": "dae"}})


# --- derived paths --------------------------------------------------------

class TestPaths:
    def test_levels_root_and_summary_dir_default_to_parent(self, tmp_path: Path):
        cfg = AppConfig()
        cfg.paths.level_dir = tmp_path / "levels" / "demo"
        assert cfg.levels_root == tmp_path / "levels"
        assert cfg.summary_dir == tmp_path / "levels"

    def test_explicit_roots(self, tmp_path: Path):
        cfg = AppConfig()
        cfg.paths.level_dir = tmp_path / "levels" / "demo"
        cfg.paths.levels_root = tmp_path / "unpacked"
        assert cfg.levels_root == tmp_path / "unpacked"
        assert cfg.summary_dir == tmp_path / "unpacked"
        cfg.paths.summary_dir = tmp_path / "reports"
        assert cfg.summary_dir == tmp_path / "reports"

    def test_level_dir_required(self):
        with pytest.raises(ValueError):
            AppConfig().level_dir


class TestPackage:
    def test_top_level_exports(self):
        import level_cleanup
        from level_cleanup.pipeline import run_cleanup

        assert level_cleanup.AppConfig is AppConfig
        assert level_cleanup.load_config is load_config
        assert level_cleanup.run_cleanup is run_cleanup
