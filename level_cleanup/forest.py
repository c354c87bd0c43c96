"""Forest items: placed forest types and the managed item data that maps them to meshes."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger
from tqdm import tqdm

from .io import JsonFormatError, iter_json_lines, load_json_document, read_lines
from .models import Asset
from .paths import normalize_reference
from .scanning import CLASS_TSSTATIC, ScanContext, Scanner, ScanResult
from .utils import find_block_assignments, lookup_str, unique


@dataclass
class ForestInfo:
    """Where a forest type's mesh came from and which forest files place it."""

    type_name: str
    shape_reference: str
    declared_in: Path
    mesh_path: Optional[Path] = None
    used_in: List[Path] = field(default_factory=list)


class ForestScanner(Scanner):
    kind = "forest"

    def __init__(self, ctx: ScanContext, forest_files: Sequence[Path], managed_files: Sequence[Path]) -> None:
        super().__init__(ctx)
        self.forest_files = list(forest_files)
        self.managed_files = list(managed_files)
        self.placements: Dict[str, List[Path]] = {}
        self.info: List[ForestInfo] = []

    def scan(self) -> ScanResult:
        self.collect_types()
        if not self.placements:
            logger.debug("No forest items placed")
            return self.result
        shapes: List[Tuple[str, str, Path]] = []
        for path in self.managed_files:
            try:
                if path.suffix.lower() == ".json":
                    shapes.extend(self._shapes_from_json(path))
                else:
                    shapes.extend(self._shapes_from_legacy(path))
            except OSError as exc:
                self.skip_file(path, exc)

        seen = set()
        for shape, type_name, origin in shapes:
            key = (shape.casefold(), type_name.casefold())
            if key in seen:
                continue
            seen.add(key)
            asset = self.add_mesh_asset(
                Asset(class_name=CLASS_TSSTATIC, name=type_name, shape_reference=shape, source_file=origin)
            )
            self.info.append(
                ForestInfo(
                    type_name=type_name,
                    shape_reference=shape,
                    declared_in=origin,
                    mesh_path=asset.resolved_mesh_path,
                    used_in=self.placements.get(type_name.casefold(), []),
                )
            )
        logger.info("{} forest type(s) placed, {} mesh reference(s)", len(self.placements), len(self.info))
        return self.result

    def collect_types(self) -> Dict[str, List[Path]]:
        """Map each placed forest type (case-folded) to the forest files using it."""

        for path in tqdm(self.forest_files, desc="Forest files", leave=False):
            try:
                self._collect_file(path)
            except OSError as exc:
                self.skip_file(path, exc)
        return self.placements

    def _collect_file(self, path: Path) -> None:
        for line in iter_json_lines(path):
            if not line.ok:
                self.ctx.diagnostics.record("json", path, line.error or "invalid line", line.line_no)
                continue
            type_name = lookup_str(line.value or {}, "type")
            if not type_name:
                continue
            files = self.placements.setdefault(type_name.casefold(), [])
            if path not in files:
                files.append(path)

    def type_names(self) -> List[str]:
        return sorted(self.placements)

    def _shapes_from_json(self, path: Path) -> List[Tuple[str, str, Path]]:
        try:
            document = load_json_document(path)
        except JsonFormatError as exc:
            self.ctx.diagnostics.record("json", path, str(exc))
            return []
        if not isinstance(document, dict):
            return []
        found: List[Tuple[str, str, Path]] = []
        for key, entry in document.items():
            if not isinstance(entry, dict):
                continue
            shape = lookup_str(entry, "shapeFile")
            if not shape:
                continue
            candidates = unique([key, lookup_str(entry, "internalName") or "", lookup_str(entry, "name") or ""])
            for name in candidates:
                if name and name.casefold() in self.placements:
                    found.append((normalize_reference(shape, path), name, path))
                    break
        return found

    def _shapes_from_legacy(self, path: Path) -> List[Tuple[str, str, Path]]:
        lines = read_lines(path)
        found: List[Tuple[str, str, Path]] = []
        for type_name in self.placements:
            for shape in find_block_assignments(lines, type_name, ["shapeFile"]):
                found.append((normalize_reference(shape, path), type_name, path))
        return found
