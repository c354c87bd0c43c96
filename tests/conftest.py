"""Shared fixtures for the level cleanup test suite."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from level_cleanup.config import AppConfig
from level_cleanup.scanning import ScanContext

LEVEL_NAME = "test_level"


def collada(*materials: str) -> str:
    """Minimal Collada document declaring the given material names."""
    body = "".join(f'<material id="{m}-material" name="{m}"/>' for m in materials)
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<COLLADA xmlns="http://www.collada.org/2005/11/COLLADASchema" version="1.4.1">'
        f"<library_materials>{body}</library_materials>"
        "</COLLADA>"
    )


class LevelBuilder:
    """Writes files into ``<tmp>/levels/<name>/``."""

    def __init__(self, root: Path, name: str = LEVEL_NAME) -> None:
        self.root = root
        self.name = name
        self.level_dir = root / name
        self.level_dir.mkdir(parents=True, exist_ok=True)

    def path(self, rel: str) -> Path:
        return self.level_dir / rel

    def ref(self, rel: str) -> str:
        """The in-game spelling of a level file, ``/levels/<name>/<rel>``."""
        return f"/levels/{self.name}/{rel}"

    def write(self, rel: str, text: str = "") -> Path:
        target = self.path(rel)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        return target

    def touch(self, rel: str) -> Path:
        return self.write(rel, "data")

    def dae(self, rel: str, *materials: str) -> Path:
        return self.write(rel, collada(*materials))

    def json(self, rel: str, data: Any) -> Path:
        return self.write(rel, json.dumps(data, indent=2))

    def lines(self, rel: str, *entries: Dict[str, Any]) -> Path:
        return self.write(rel, "\n".join(json.dumps(e) for e in entries) + "\n")

    def scene(self, *entries: Dict[str, Any], rel: str = "main/items.level.json") -> Path:
        return self.lines(rel, *entries)

    def materials(self, rel: str, **definitions: Dict[str, Any]) -> Path:
        return self.json(rel, definitions)


@pytest.fixture
def level(tmp_path: Path) -> LevelBuilder:
    """An empty level folder under ``tmp_path/levels``."""
    return LevelBuilder(tmp_path / "levels")


@pytest.fixture
def make_level(tmp_path: Path):
    """Build a level under any folder of ``tmp_path``, not only ``levels``."""

    def _make(folder: str) -> LevelBuilder:
        return LevelBuilder(tmp_path / folder)

    return _make


@pytest.fixture
def ctx(level: LevelBuilder) -> ScanContext:
    """A fresh scan context for the level fixture."""
    return ScanContext.for_level(level.level_dir)


@pytest.fixture
def config(level: LevelBuilder, tmp_path: Path) -> AppConfig:
    """Configuration pointing at the level fixture, summaries in tmp_path/out."""
    cfg = AppConfig()
    cfg.paths.level_dir = level.level_dir
    cfg.paths.summary_dir = tmp_path / "out"
    return cfg


@pytest.fixture
def scenario_level(level: LevelBuilder) -> LevelBuilder:
    """A used mesh A (material M1) next to an unused mesh B (material M2)."""
    level.dae("art/shapes/A.dae", "M1")
    level.dae("art/shapes/B.dae", "M2")
    level.touch("art/shapes/B.cdae")
    level.touch("art/textures/t1.png")
    level.touch("art/textures/t2.png")
    level.materials(
        "art/shapes/main.materials.json",
        M1={"name": "M1", "class": "Material", "Stages": [{"baseColorMap": level.ref("art/textures/t1.png")}]},
        M2={"name": "M2", "class": "Material", "Stages": [{"baseColorMap": level.ref("art/textures/t2.png")}]},
    )
    level.scene(
        {"class": "SimGroup", "name": "MissionGroup"},
        {"class": "TSStatic", "name": "a", "shapeName": level.ref("art/shapes/A.dae")},
    )
    return level
