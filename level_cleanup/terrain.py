"""Terrain descriptors: terrain materials in use plus the data files the terrain needs."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

from loguru import logger

from .io import JsonFormatError, load_json_document
from .models import Asset
from .scanning import CLASS_TERRAIN, ScanContext, Scanner, ScanResult
from .utils import lookup, lookup_str, string_list, unique


class TerrainScanner(Scanner):
    kind = "terrain"

    def __init__(self, ctx: ScanContext, files: Sequence[Path]) -> None:
        super().__init__(ctx)
        self.files = list(files)

    def scan(self) -> ScanResult:
        for path in self.files:
            try:
                self.scan_file(path)
            except OSError as exc:
                self.skip_file(path, exc)
        return self.result

    def scan_file(self, path: Path) -> None:
        logger.info("Scanning terrain {}", path.name)
        try:
            document = load_json_document(path)
        except JsonFormatError as exc:
            self.ctx.diagnostics.record("json", path, f"terrain descriptor skipped: {exc}")
            return
        if not isinstance(document, dict):
            self.ctx.diagnostics.record("json", path, "terrain descriptor is not a JSON object")
            return

        for name in unique(string_list(lookup(document, "materials"))):
            self.add_asset(Asset(class_name=CLASS_TERRAIN, material_name=name, source_file=path))
            if self.ctx.catalog is None:
                continue
            # Terrain files list internal names; the catalog knows the display names.
            for material in self.ctx.catalog.by_internal_name(name):
                self.add_asset(Asset(class_name=CLASS_TERRAIN, material_name=material.name, source_file=path))

        for field_name in ("datafile", "heightmapImage"):
            value = lookup_str(document, field_name)
            if value:
                self.exclude(value)
