"""Fallback scanner for legacy TorqueScript files with no recognised schema."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from loguru import logger
from tqdm import tqdm

from .io import read_lines
from .models import Asset
from .paths import ResolveStrategy, normalize_reference, resolve_texture
from .scanning import CLASS_TSSTATIC, ScanContext, Scanner, ScanResult
from .utils import quoted_literals

MESH_SUFFIXES = (".dae", ".cdae")


class GenericTextScanner(Scanner):
    """Protect every existing file named by any quoted literal in the given files."""

    kind = "generic"

    def __init__(self, ctx: ScanContext, files: Sequence[Path]) -> None:
        super().__init__(ctx)
        self.files = list(files)

    def scan(self) -> ScanResult:
        for path in tqdm(self.files, desc="Legacy files", leave=False):
            try:
                lines = read_lines(path)
            except OSError as exc:
                self.skip_file(path, exc)
                continue
            for line_no, line in enumerate(lines, start=1):
                for literal in quoted_literals(line):
                    self.scan_literal(literal, path, line_no)
        logger.info("Legacy files protected {} path(s)", len(self.result.paths))
        return self.result

    def locate(self, literal: str, owner: Path) -> Optional[Path]:
        """Resolve a literal the two ways legacy files write paths; ``None`` if neither exists."""

        reference = normalize_reference(literal, owner)
        if not reference:
            return None
        found = resolve_texture(self.ctx.levels_root, reference)
        if found.is_file():
            return found
        found = resolve_texture(owner.parent, reference, ResolveStrategy.DISTINCT_CONCAT)
        if found.is_file():
            return found
        return None

    def scan_literal(self, literal: str, owner: Path, line_no: Optional[int] = None) -> Optional[Path]:
        found = self.locate(literal, owner)
        if found is None:
            return None
        self.exclude_path(found)
        if found.suffix.lower() in MESH_SUFFIXES:
            asset = Asset(
                class_name=CLASS_TSSTATIC,
                shape_reference=str(found),
                source_file=owner,
                source_line=line_no,
            )
            self.add_mesh_asset(asset, full_path=True)
        return found
