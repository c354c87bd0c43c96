"""Decals: placed decal instances and the managed decal data that gives them a material."""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from loguru import logger

from .io import JsonFormatError, load_json_document, read_lines
from .models import Asset
from .scanning import CLASS_DECAL, ScanContext, Scanner, ScanResult
from .utils import find_block_assignments, lookup, lookup_str, unique


class DecalScanner(Scanner):
    """Two passes: collect used decal names, then look up their materials."""

    kind = "decals"

    def __init__(self, ctx: ScanContext, instance_files: Sequence[Path], managed_files: Sequence[Path]) -> None:
        super().__init__(ctx)
        self.instance_files = list(instance_files)
        self.managed_files = list(managed_files)
        self.decal_names: List[str] = []
        self.material_names: List[str] = []

    def scan(self) -> ScanResult:
        self.decal_names = unique(self.collect_decal_names())
        if not self.decal_names:
            logger.debug("No placed decals found")
            return self.result
        for path in self.managed_files:
            try:
                if path.suffix.lower() == ".json":
                    self.material_names.extend(self._materials_from_json(path))
                else:
                    self.material_names.extend(self._materials_from_legacy(path))
            except OSError as exc:
                self.skip_file(path, exc)
        for name in unique(self.material_names):
            self.add_asset(Asset(class_name=CLASS_DECAL, material_name=name))
        logger.info("{} decal type(s) placed, {} decal material(s) used", len(self.decal_names), len(self.result.assets))
        return self.result

    def collect_decal_names(self) -> List[str]:
        names: List[str] = []
        for path in self.instance_files:
            try:
                document = load_json_document(path)
            except JsonFormatError as exc:
                self.ctx.diagnostics.record("json", path, str(exc))
                continue
            except OSError as exc:
                self.skip_file(path, exc)
                continue
            instances = lookup(document, "instances") if isinstance(document, dict) else None
            if isinstance(instances, dict):
                names.extend(k for k in instances if isinstance(k, str))
        return names

    def _materials_from_json(self, path: Path) -> List[str]:
        try:
            document = load_json_document(path)
        except JsonFormatError as exc:
            self.ctx.diagnostics.record("json", path, str(exc))
            return []
        if not isinstance(document, dict):
            return []
        wanted = {n.casefold() for n in self.decal_names}
        found: List[str] = []
        for key, entry in document.items():
            if not isinstance(entry, dict):
                continue
            names = {key.casefold()}
            declared = lookup_str(entry, "name")
            if declared:
                names.add(declared.casefold())
            material = lookup_str(entry, "material")
            if material and names & wanted:
                found.append(material)
        return found

    def _materials_from_legacy(self, path: Path) -> List[str]:
        lines = read_lines(path)
        found: List[str] = []
        for name in self.decal_names:
            found.extend(find_block_assignments(lines, name, ["material"]))
        return found
