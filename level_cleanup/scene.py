"""Scene (mission group) files: one JSON object per line, one object per placed item."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from loguru import logger
from tqdm import tqdm

from .io import iter_json_lines
from .models import Asset
from .prefab import PrefabScanner
from .scanning import CLASS_PREFAB, ScanContext, Scanner, ScanResult
from .utils import lookup, lookup_str


class SceneScanner(Scanner):
    kind = "scene"

    def __init__(self, ctx: ScanContext, files: Sequence[Path], prefabs: Optional[PrefabScanner] = None) -> None:
        super().__init__(ctx)
        self.files = list(files)
        self.prefabs = prefabs or PrefabScanner(ctx)

    def scan(self) -> ScanResult:
        for path in tqdm(self.files, desc="Scene files", leave=False):
            try:
                self.scan_file(path)
            except OSError as exc:
                self.skip_file(path, exc)
        logger.info("Scanned {} scene file(s), {} asset(s)", len(self.files), len(self.result.assets))
        return self.result

    def scan_file(self, path: Path) -> None:
        for line in iter_json_lines(path):
            if not line.ok:
                self.ctx.diagnostics.record("json", path, line.error or "invalid line", line.line_no)
                continue
            self.scan_entry(line.value or {}, path, line.line_no)

    def scan_entry(self, entry: Dict[str, Any], path: Path, line_no: Optional[int] = None) -> None:
        class_name = lookup_str(entry, "class")
        filename = lookup_str(entry, "filename")
        if class_name == CLASS_PREFAB and filename:
            self.prefabs.expand(filename)
            return

        self.exclude_entry_textures(entry)
        types = lookup(entry, "types")
        if isinstance(types, list):
            for item in types:
                if not isinstance(item, dict):
                    continue
                shape = lookup_str(item, "shapeFilename")
                if shape:
                    asset = Asset(name="AssetType", shape_reference=shape, source_file=path, source_line=line_no)
                    self.add_mesh_asset(asset)
        self.add_mesh_asset(self.asset_from_entry(entry, path, line_no))
