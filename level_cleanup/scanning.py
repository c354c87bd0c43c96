"""Run-scoped accumulators and the base class every format scanner builds on."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Mapping, Optional

from loguru import logger

from .dae import DaeScanner, MeshScanError
from .io import ScanDiagnostics
from .models import Asset, ExcludeSet
from .paths import ResolveStrategy, resolve, resolve_texture
from .utils import lookup_str

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .materials import MaterialCatalog

CLASS_TSSTATIC = "TSStatic"
CLASS_DECAL = "Decal"
CLASS_TERRAIN = "Terrain"
CLASS_PREFAB = "Prefab"
CLASS_PREFAB_EXPANSION = "PrefabExpansion"
CLASS_FOREST_ITEM = "ForestItem"
CLASS_LEGACY_REFERENCE = "LegacyReference"

MATERIAL_FIELDS = ("material", "sideMaterial", "topMaterial", "bottomMaterial")

# Scene-object fields that point straight at texture or gradient files.
TEXTURE_FIELDS = (
    "texture",
    "foamTex",
    "rippleTex",
    "depthGradientTex",
    "colorizeGradientFile",
    "ambientScaleGradientFile",
    "fogScaleGradientFile",
    "nightFogGradientFile",
    "nightGradientFile",
    "sunScaleGradientFile",
)


@dataclass
class ScanContext:
    """Everything one reachability run accumulates.

    Scanners receive the context explicitly and only ever append to it.
    """

    levels_root: Path
    level_dir: Path
    assets: List[Asset] = field(default_factory=list)
    exclude: ExcludeSet = field(default_factory=ExcludeSet)
    diagnostics: ScanDiagnostics = field(default_factory=ScanDiagnostics)
    catalog: Optional["MaterialCatalog"] = None

    @classmethod
    def for_level(cls, level_dir: Path, levels_root: Optional[Path] = None) -> "ScanContext":
        level_dir = Path(level_dir)
        return cls(levels_root=Path(levels_root) if levels_root else level_dir.parent, level_dir=level_dir)


@dataclass
class ScanResult:
    assets: List[Asset] = field(default_factory=list)
    paths: List[Path] = field(default_factory=list)


class Scanner:
    """One file-format parser feeding the shared accumulators."""

    kind = "scanner"

    def __init__(self, ctx: ScanContext) -> None:
        self.ctx = ctx
        self.result = ScanResult()

    def scan(self) -> ScanResult:
        raise NotImplementedError

    def scan_safely(self) -> ScanResult:
        """Run :meth:`scan`, keeping what was collected if the scanner itself fails.

        Per-file failures are handled inside :meth:`scan` through
        :meth:`skip_file`; this is the last boundary.
        """

        try:
            return self.scan()
        except OSError as exc:
            self.ctx.diagnostics.record("io", Path(exc.filename or self.ctx.level_dir), f"{self.kind}: {exc}")
            return self.result

    def skip_file(self, path: Path, exc: OSError) -> None:
        """Record an unreadable input file; it contributes nothing, the other files still count."""

        self.ctx.diagnostics.record("io", path, f"{self.kind}: file skipped ({exc})")

    def add_asset(self, asset: Asset) -> Asset:
        self.ctx.assets.append(asset)
        self.result.assets.append(asset)
        return asset

    def add_mesh_asset(self, asset: Asset, full_path: bool = False) -> Asset:
        if asset.shape_reference:
            attach_mesh(self.ctx, asset, full_path=full_path)
        return self.add_asset(asset)

    def exclude(self, reference: str, *, texture: bool = False) -> Path:
        """Resolve ``reference`` and mark it as never-delete."""

        if texture:
            path = resolve_texture(self.ctx.levels_root, reference)
        else:
            path = resolve(self.ctx.levels_root, reference, ResolveStrategy.EXACT_JOIN)
        self.exclude_path(path)
        return path

    def exclude_path(self, path: Path) -> None:
        if self.ctx.exclude.add(path):
            self.result.paths.append(path)

    def exclude_entry_textures(self, entry: Mapping[str, Any]) -> None:
        for name in TEXTURE_FIELDS:
            value = lookup_str(entry, name)
            if value:
                self.exclude(value, texture=True)

    def asset_from_entry(
        self,
        entry: Mapping[str, Any],
        source: Path,
        line_no: Optional[int] = None,
        class_name: Optional[str] = None,
        shape_reference: Optional[str] = None,
    ) -> Asset:
        materials = [lookup_str(entry, f) for f in MATERIAL_FIELDS]
        return Asset(
            class_name=class_name or lookup_str(entry, "class"),
            name=lookup_str(entry, "name"),
            shape_reference=shape_reference if shape_reference is not None else lookup_str(entry, "shapeName"),
            material_name=materials[0],
            extra_material_names=tuple(m for m in materials[1:] if m),
            source_file=source,
            source_line=line_no,
        )


def attach_mesh(ctx: ScanContext, asset: Asset, full_path: bool = False) -> None:
    """Resolve the asset's shape and fill in the materials its mesh declares."""

    scanner = DaeScanner(ctx.levels_root, asset.shape_reference or "", full_path=full_path)
    if not scanner.exists():
        asset.attach_mesh(scanner.resolved_path, False, None)
        logger.debug("Mesh not found for {}: {}", asset.name or asset.class_name, scanner.resolved_path)
        return
    try:
        materials = scanner.materials()
    except MeshScanError as exc:
        ctx.diagnostics.record("mesh", exc.path, str(exc))
        asset.attach_mesh(scanner.resolved_path, True, None)
        return
    asset.attach_mesh(scanner.resolved_path, True, materials)
