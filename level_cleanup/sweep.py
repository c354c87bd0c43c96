"""Sweep phase: delete planned files and write the per-category summaries."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from loguru import logger

from .io import write_lines
from .models import CATEGORIES, MESH, TEXTURE, DeletionPlan

DRY_RUN_PREFIX = "dryrun_"


@dataclass
class SweepResult:
    dry_run: bool = False
    deleted: Dict[str, List[Path]] = field(default_factory=lambda: {c: [] for c in CATEGORIES})
    not_found: Dict[str, List[Path]] = field(default_factory=lambda: {c: [] for c in CATEGORIES})
    failed: Dict[str, List[Path]] = field(default_factory=lambda: {c: [] for c in CATEGORIES})
    summary_files: List[Path] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {"dry_run": int(self.dry_run)}
        for c in CATEGORIES:
            out[f"{c}_deleted"] = len(self.deleted[c])
            out[f"{c}_not_found"] = len(self.not_found[c])
            out[f"{c}_failed"] = len(self.failed[c])
        return out


def summary_name(category: str, outcome: str, dry_run: bool) -> str:
    prefix = DRY_RUN_PREFIX if dry_run else ""
    return f"{prefix}{category}_{outcome}.txt"


def safe_remove(path: Path) -> bool:
    """Delete ``path``; a file that is already gone is reported as ``False``."""

    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def sweep(plan: DeletionPlan, summary_dir: Path, dry_run: bool = False) -> SweepResult:
    result = SweepResult(dry_run=dry_run)
    for category in CATEGORIES:
        result.not_found[category].extend(plan.not_found[category])
        for path in plan.to_delete[category]:
            if dry_run:
                if path.is_file():
                    result.deleted[category].append(path)
                else:
                    result.not_found[category].append(path)
                continue
            try:
                removed = safe_remove(path)
            except OSError as exc:
                logger.warning("Failed to remove {}: {}", path, exc)
                result.failed[category].append(path)
                continue
            if removed:
                result.deleted[category].append(path)
            else:
                result.not_found[category].append(path)

        deleted_file = Path(summary_dir) / summary_name(category, "deleted", dry_run)
        missing_file = Path(summary_dir) / summary_name(category, "not_found", dry_run)
        write_lines(deleted_file, (str(p) for p in result.deleted[category]))
        write_lines(missing_file, (str(p) for p in result.not_found[category]))
        result.summary_files.extend([deleted_file, missing_file])

    verb = "Would delete" if dry_run else "Deleted"
    logger.info(
        "{} {} mesh file(s) and {} texture file(s); {} not found",
        verb,
        len(result.deleted[MESH]),
        len(result.deleted[TEXTURE]),
        sum(len(v) for v in result.not_found.values()),
    )
    return result
