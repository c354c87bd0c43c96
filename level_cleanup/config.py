"""Configuration models and loader for the level cleanup suite."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class PathsConfig(BaseModel):
    level_dir: Optional[Path] = Field(None, description="Level folder, e.g. <unpacked>/levels/my_level.")
    levels_root: Optional[Path] = Field(
        None,
        description="Base that scene references are resolved against. Defaults to the parent of level_dir.",
    )
    summary_dir: Optional[Path] = Field(None, description="Where summaries and reports go. Defaults to levels_root.")
    game_log: Optional[Path] = Field(None, description="Optional game log scanned for missing source textures.")

    def resolved_levels_root(self) -> Path:
        if self.levels_root is not None:
            return Path(self.levels_root)
        if self.level_dir is None:
            raise ValueError("paths.level_dir must be set")
        return Path(self.level_dir).parent

    def resolved_summary_dir(self) -> Path:
        return Path(self.summary_dir) if self.summary_dir is not None else self.resolved_levels_root()


class ScanConfig(BaseModel):
    scene_pattern: str = Field("items.level.json", description="Scene files, one JSON object per line.")
    root_scene: str = Field("main/items.level.json", description="Root scene file relative to the level folder.")
    material_patterns: List[str] = Field(default_factory=lambda: ["*.materials.json"])
    decal_instance_patterns: List[str] = Field(default_factory=lambda: ["main.decals.json"])
    managed_decal_patterns: List[str] = Field(
        default_factory=lambda: ["managedDecalData.json", "*.managedDecalData.json", "managedDecalData.cs"]
    )
    forest_patterns: List[str] = Field(default_factory=lambda: ["*.forest4.json"])
    managed_forest_patterns: List[str] = Field(
        default_factory=lambda: ["managedItemData.json", "*.managedItemData.json", "managedItemData.cs"]
    )
    terrain_patterns: List[str] = Field(default_factory=lambda: ["*.terrain.json"])
    generic_text_patterns: List[str] = Field(default_factory=lambda: ["*.cs"])
    info_file: str = Field("info.json")
    facility_patterns: List[str] = Field(default_factory=lambda: ["*.facilities.json"])
    mesh_extension: str = Field(".dae")
    compressed_mesh_extension: str = Field(".cdae")

    @field_validator("mesh_extension", "compressed_mesh_extension")
    @classmethod
    def validate_extension(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError("extensions must start with '.'")
        return value.lower()


class CleanupConfig(BaseModel):
    dry_run: bool = Field(False, description="Plan and summarise without deleting anything.")
    remove_duplicate_materials: bool = Field(
        False, description="Rewrite material files so that each material name is declared once."
    )
    sweep_unreferenced_materials: bool = Field(
        False, description="Also remove textures of catalog materials that nothing references."
    )
    allow_unknown_mesh_materials: bool = Field(
        False,
        description="Delete orphan textures even when some used meshes could not be scanned for materials.",
    )
    write_report: bool = Field(True, description="Write cleanup_report.json/.md next to the summaries.")


class AppConfig(BaseModel):
    paths: PathsConfig = Field(default_factory=PathsConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)

    @property
    def level_dir(self) -> Path:
        if self.paths.level_dir is None:
            raise ValueError("paths.level_dir must be set")
        return Path(self.paths.level_dir)

    @property
    def levels_root(self) -> Path:
        return self.paths.resolved_levels_root()

    @property
    def summary_dir(self) -> Path:
        return self.paths.resolved_summary_dir()


def load_config(path: Path | str) -> AppConfig:
    """Load configuration from YAML, falling back to defaults when missing."""

    cfg_path = Path(path)
    if not cfg_path.exists():
        return AppConfig()
    data = yaml.safe_load(cfg_path.read_text()) or {}
    return AppConfig.model_validate(data)
