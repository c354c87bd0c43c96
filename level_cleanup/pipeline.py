"""Run the scanners in order, compute the plan and optionally sweep."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from .config import AppConfig
from .decals import DecalScanner
from .forest import ForestScanner
from .generic import GenericTextScanner
from .io import LevelReadError, iter_files, read_lines
from .level_info import FacilityScanner, GameLogScanner, InfoJsonScanner
from .materials import DuplicateRemoval, MaterialCatalog
from .prefab import PrefabScanner
from .reachability import ReachabilityOptions, ReachabilityResult, find_unreachable, mesh_inventory
from .scanning import ScanContext, Scanner
from .scene import SceneScanner
from .sweep import SweepResult, sweep
from .terrain import TerrainScanner
from .utils import load_report


@dataclass
class ScanOutcome:
    ctx: ScanContext
    catalog: MaterialCatalog
    inventory: List[Path]
    reachability: ReachabilityResult
    contributions: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def summary(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "level": self.ctx.level_dir.as_posix(),
            "assets": len(self.ctx.assets),
            "excluded_paths": len(self.ctx.exclude),
            "materials": len(self.catalog),
            "mesh_files": len(self.inventory),
            "diagnostics": len(self.ctx.diagnostics),
        }
        for kind, counts in self.contributions.items():
            data[f"{kind}_assets"] = counts["assets"]
            data[f"{kind}_paths"] = counts["paths"]
        return data


@dataclass
class CleanupOutcome:
    scan: ScanOutcome
    sweep: SweepResult
    duplicates: Optional[DuplicateRemoval] = None


def check_level(level_dir: Path) -> None:
    if not level_dir.is_dir():
        raise LevelReadError(f"level directory not found: {level_dir}")
    try:
        os.listdir(level_dir)
    except OSError as exc:
        raise LevelReadError(f"cannot list level directory {level_dir}: {exc}") from exc


def check_levels_root(config: AppConfig) -> None:
    """References are written as ``/levels/<name>/...``.

    Without an explicit levels root they only resolve when the level sits in a
    folder named ``levels``.
    """

    if config.paths.levels_root is not None:
        return
    parent = config.level_dir.parent
    if parent.name.casefold() != "levels":
        raise LevelReadError(
            f"{config.level_dir} is not inside a 'levels' folder, so its references cannot be resolved; "
            "pass --levels-root or set paths.levels_root"
        )


def find_scene_files(config: AppConfig, ctx: ScanContext) -> List[Path]:
    """All scene files of the level; the run cannot continue without them."""

    scenes = iter_files(ctx.level_dir, [config.scan.scene_pattern], ctx.diagnostics)
    if not scenes:
        raise LevelReadError(f"no {config.scan.scene_pattern} found under {ctx.level_dir}")
    root_scene = ctx.level_dir / config.scan.root_scene
    if root_scene.exists():
        try:
            read_lines(root_scene)
        except OSError as exc:
            raise LevelReadError(f"cannot read root scene {root_scene}: {exc}") from exc
    else:
        logger.warning("Root scene {} not found, scanning {} other scene file(s)", root_scene, len(scenes))
    return scenes


def _files(ctx: ScanContext, patterns: List[str]) -> List[Path]:
    return iter_files(ctx.level_dir, patterns, ctx.diagnostics)


def build_catalog(config: AppConfig, ctx: ScanContext) -> MaterialCatalog:
    return MaterialCatalog.build(ctx, _files(ctx, config.scan.material_patterns))


def scan_level(config: AppConfig) -> ScanOutcome:
    level_dir = config.level_dir
    check_level(level_dir)
    check_levels_root(config)
    ctx = ScanContext.for_level(level_dir, config.levels_root)
    logger.info("Scanning level {} (references resolved against {})", level_dir, ctx.levels_root)
    scenes = find_scene_files(config, ctx)

    catalog = build_catalog(config, ctx)
    scan = config.scan
    info_file = level_dir / scan.info_file
    scanners: List[Scanner] = [
        SceneScanner(ctx, scenes, PrefabScanner(ctx)),
        DecalScanner(ctx, _files(ctx, scan.decal_instance_patterns), _files(ctx, scan.managed_decal_patterns)),
        ForestScanner(ctx, _files(ctx, scan.forest_patterns), _files(ctx, scan.managed_forest_patterns)),
        TerrainScanner(ctx, _files(ctx, scan.terrain_patterns)),
        GenericTextScanner(ctx, _files(ctx, scan.generic_text_patterns)),
        InfoJsonScanner(ctx, [info_file] if info_file.is_file() else []),
        FacilityScanner(ctx, _files(ctx, scan.facility_patterns)),
        GameLogScanner(ctx, config.paths.game_log),
    ]
    contributions: Dict[str, Dict[str, int]] = {}
    for scanner in scanners:
        result = scanner.scan_safely()
        contributions[scanner.kind] = {"assets": len(result.assets), "paths": len(result.paths)}

    extensions = (scan.mesh_extension, scan.compressed_mesh_extension)
    inventory = mesh_inventory(level_dir, ctx.diagnostics, extensions)
    options = ReachabilityOptions(
        mesh_extension=scan.mesh_extension,
        compressed_mesh_extension=scan.compressed_mesh_extension,
        sweep_unreferenced_materials=config.cleanup.sweep_unreferenced_materials,
        allow_unknown_mesh_materials=config.cleanup.allow_unknown_mesh_materials,
    )
    reachability = find_unreachable(inventory, ctx.assets, catalog, ctx.exclude, options, ctx.diagnostics)
    return ScanOutcome(
        ctx=ctx, catalog=catalog, inventory=inventory, reachability=reachability, contributions=contributions
    )


def run_scan(config: AppConfig) -> ScanOutcome:
    outcome = scan_level(config)
    if config.cleanup.write_report:
        report = load_report(config.summary_dir)
        report.update("scan", outcome.summary())
        report.update("reachability", outcome.reachability.summary())
    return outcome


def run_cleanup(config: AppConfig) -> CleanupOutcome:
    """Scan, drop duplicate materials when asked, then delete what nothing reaches."""

    outcome = run_scan(config)
    dry_run = config.cleanup.dry_run
    duplicates = None
    if config.cleanup.remove_duplicate_materials:
        duplicates = outcome.catalog.remove_duplicates(dry_run=dry_run)
    swept = sweep(outcome.reachability.plan, config.summary_dir, dry_run=dry_run)
    if config.cleanup.write_report:
        report = load_report(config.summary_dir)
        if duplicates is not None:
            report.update("duplicates", duplicates_summary(duplicates))
        report.update("sweep", swept.counts())
    return CleanupOutcome(scan=outcome, sweep=swept, duplicates=duplicates)


def duplicates_summary(removal: DuplicateRemoval) -> Dict[str, object]:
    return {
        "groups": len(removal.groups),
        "removed": removal.removed_count,
        "rewritten_files": len(removal.rewritten_files),
        "dry_run": removal.dry_run,
    }


def run_duplicates(config: AppConfig, remove: bool = False) -> DuplicateRemoval:
    """Material catalog only: report duplicate declarations and optionally rewrite them away."""

    level_dir = config.level_dir
    check_level(level_dir)
    check_levels_root(config)
    ctx = ScanContext.for_level(level_dir, config.levels_root)
    catalog = build_catalog(config, ctx)
    if remove:
        removal = catalog.remove_duplicates(dry_run=config.cleanup.dry_run)
    else:
        removal = DuplicateRemoval(groups=catalog.find_duplicates(), dry_run=True)
    for group in removal.groups:
        logger.info(
            "{}: keep {} ({} texture(s)), drop {}",
            group.name,
            group.keep.source_file,
            group.keep.existing_texture_count(),
            ", ".join(str(m.source_file) for m in group.remove),
        )
    if config.cleanup.write_report:
        load_report(config.summary_dir).update("duplicates", duplicates_summary(removal))
    return removal
