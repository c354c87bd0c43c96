"""Expand prefab files into the meshes and materials they place."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Set

from loguru import logger

from .io import iter_json_lines, read_lines
from .models import Asset
from .paths import ResolveStrategy, normalize_reference, path_key, resolve
from .scanning import (
    CLASS_DECAL,
    CLASS_PREFAB_EXPANSION,
    MATERIAL_FIELDS,
    ScanContext,
    Scanner,
    ScanResult,
)
from .utils import assignment_value, lookup_str


class PrefabScanner(Scanner):
    """Recursive prefab expansion.

    ``.prefab.json`` files hold one object per line, legacy ``.prefab`` files
    hold ``key = "value";`` declarations. A prefab may point at further prefabs
    through ``filename``; every file is expanded at most once per run.

    The scene scanner drives :meth:`expand` as it meets ``Prefab`` objects;
    :meth:`scan` expands the references given up front.
    """

    kind = "prefab"

    def __init__(self, ctx: ScanContext, references: Sequence[str] = ()) -> None:
        super().__init__(ctx)
        self.references = list(references)
        self.visited: Set[str] = set()

    def scan(self) -> ScanResult:
        for reference in self.references:
            self.expand(reference)
        return self.result

    def expand(self, reference: str, owner: Optional[Path] = None) -> ScanResult:
        if owner is not None:
            reference = normalize_reference(reference, owner)
        path = resolve(self.ctx.levels_root, reference, ResolveStrategy.EXACT_JOIN)
        key = path_key(path)
        if key in self.visited:
            logger.debug("Prefab already expanded: {}", path)
            return self.result
        self.visited.add(key)
        if not path.is_file():
            logger.debug("Prefab not found: {}", path)
            return self.result

        try:
            if path.suffix.lower() == ".json":
                nested = self._read_json(path)
            else:
                nested = self._read_legacy(path)
        except OSError as exc:
            self.skip_file(path, exc)
            return self.result
        self.exclude_path(path)
        for child in nested:
            self.expand(child, owner=path)
        return self.result

    def _add_shapes(self, path: Path, shapes: List[str]) -> None:
        for counter, shape in enumerate(shapes, start=1):
            asset = Asset(
                class_name=CLASS_PREFAB_EXPANSION,
                name=f"{path.name}_{counter}",
                shape_reference=normalize_reference(shape, path),
                source_file=path,
            )
            self.add_mesh_asset(asset)

    def _read_json(self, path: Path) -> List[str]:
        shapes: List[str] = []
        nested: List[str] = []
        for line in iter_json_lines(path):
            if not line.ok:
                self.ctx.diagnostics.record("json", path, line.error or "invalid line", line.line_no)
                continue
            entry = line.value or {}
            shape = lookup_str(entry, "shapeName")
            if shape:
                shapes.append(shape)
            if any(lookup_str(entry, f) for f in MATERIAL_FIELDS):
                self.add_asset(self.asset_from_entry(entry, path, line.line_no, shape_reference=""))
            self.exclude_entry_textures(entry)
            filename = lookup_str(entry, "filename")
            if filename:
                nested.append(filename)
        self._add_shapes(path, shapes)
        return nested

    def _read_legacy(self, path: Path) -> List[str]:
        shapes: List[str] = []
        nested: List[str] = []
        for line_no, line in enumerate(read_lines(path), start=1):
            shape = assignment_value(line, ["shapeName"])
            if shape:
                shapes.append(shape)
            material = assignment_value(line, MATERIAL_FIELDS)
            if material:
                self.add_asset(
                    Asset(class_name=CLASS_DECAL, material_name=material, source_file=path, source_line=line_no)
                )
            filename = assignment_value(line, ["filename"])
            if filename:
                nested.append(filename)
        self._add_shapes(path, shapes)
        return nested
