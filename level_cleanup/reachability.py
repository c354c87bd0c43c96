"""Mark phase: decide which meshes and textures nothing in the level can reach."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from loguru import logger

from .dae import DaeScanner, MeshScanError
from .io import ScanDiagnostics, iter_files
from .materials import MaterialCatalog
from .models import MESH, TEXTURE, Asset, DeletionPlan, ExcludeSet
from .paths import path_key

MESH_EXTENSIONS = (".dae", ".cdae")


@dataclass
class ReachabilityOptions:
    mesh_extension: str = ".dae"
    compressed_mesh_extension: str = ".cdae"
    sweep_unreferenced_materials: bool = False
    allow_unknown_mesh_materials: bool = False


@dataclass
class ReachabilityResult:
    used_mesh_keys: Set[str] = field(default_factory=set)
    unused_meshes: List[Path] = field(default_factory=list)
    used_material_names: Set[str] = field(default_factory=set)
    materials_in_unused_meshes: Set[str] = field(default_factory=set)
    orphan_materials: List[str] = field(default_factory=list)
    shared_textures_kept: List[Path] = field(default_factory=list)
    texture_sweep_suppressed: bool = False
    planning_refused: bool = False
    warnings: List[str] = field(default_factory=list)
    plan: DeletionPlan = field(default_factory=DeletionPlan)

    def summary(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "used_meshes": len(self.used_mesh_keys),
            "unused_meshes": len(self.unused_meshes),
            "used_materials": len(self.used_material_names),
            "orphan_materials": len(self.orphan_materials),
            "shared_textures_kept": len(self.shared_textures_kept),
            "texture_sweep_suppressed": self.texture_sweep_suppressed,
            "planning_refused": self.planning_refused,
        }
        data.update(self.plan.counts())
        return data


def mesh_key(path: Path, extensions: Sequence[str] = MESH_EXTENSIONS) -> str:
    """Identity of a mesh regardless of whether it is the source or compiled file."""

    key = path_key(path)
    for ext in extensions:
        if key.endswith(ext):
            return key[: -len(ext)]
    return key


def mesh_inventory(
    level_dir: Path,
    diagnostics: Optional[ScanDiagnostics] = None,
    extensions: Sequence[str] = MESH_EXTENSIONS,
) -> List[Path]:
    return iter_files(level_dir, [f"*{ext}" for ext in extensions], diagnostics)


def _unused_mesh_groups(
    inventory: Iterable[Path], used: Set[str], extensions: Sequence[str]
) -> Dict[str, List[Path]]:
    groups: Dict[str, List[Path]] = {}
    for path in inventory:
        key = mesh_key(path, extensions)
        if key not in used:
            groups.setdefault(key, []).append(Path(path))
    return groups


def find_unreachable(
    inventory: Sequence[Path],
    assets: Sequence[Asset],
    catalog: MaterialCatalog,
    exclude: ExcludeSet,
    options: Optional[ReachabilityOptions] = None,
    diagnostics: Optional[ScanDiagnostics] = None,
) -> ReachabilityResult:
    """Compute the deletion plan for one level.

    A mesh is used when an asset resolved to it. Materials declared only in
    unused meshes are orphaned, and their textures are deleted unless a used
    material shares them or something else protects them. A level whose
    meshes are all unreferenced gets an empty plan and a warning.
    """

    options = options or ReachabilityOptions()
    diagnostics = diagnostics if diagnostics is not None else ScanDiagnostics()
    extensions = (options.mesh_extension, options.compressed_mesh_extension)
    result = ReachabilityResult()

    result.used_mesh_keys = {
        mesh_key(a.resolved_mesh_path, extensions) for a in assets if a.mesh_exists and a.resolved_mesh_path
    }
    groups = _unused_mesh_groups(inventory, result.used_mesh_keys, extensions)

    mesh_candidates: List[Path] = []
    for key in sorted(groups):
        members = sorted(groups[key], key=lambda p: path_key(p))
        result.unused_meshes.extend(members)
        mesh_candidates.extend(members)
        stem = members[0].with_suffix("")
        present = {p.suffix.lower() for p in members}
        for ext in extensions:
            if ext not in present:
                mesh_candidates.append(stem.with_name(stem.name + ext))

        source = next((p for p in members if p.suffix.lower() == options.mesh_extension), members[0])
        scanner = DaeScanner("", source, full_path=True)
        try:
            declared = scanner.materials()
        except MeshScanError as exc:
            diagnostics.record("mesh", exc.path, f"unused mesh not scanned: {exc}")
            continue
        result.materials_in_unused_meshes.update(
            m.material_name.casefold() for m in declared if m.material_name
        )

    used_names = {n.casefold() for a in assets for n in a.material_names()}
    used_materials = [m for m in catalog if any(alias.casefold() in used_names for alias in m.aliases())]
    for material in used_materials:
        used_names.update(alias.casefold() for alias in material.aliases())
    result.used_material_names = used_names

    orphans = result.materials_in_unused_meshes - used_names
    if options.sweep_unreferenced_materials:
        orphans.update(m.name_key for m in catalog if m.name_key not in used_names)
    result.orphan_materials = sorted(orphans)

    mesh_candidates = [p for p in mesh_candidates if p not in exclude]

    unknown = [a for a in assets if a.mesh_exists and not a.mesh_materials_known]
    if unknown and not options.allow_unknown_mesh_materials:
        result.texture_sweep_suppressed = True
        message = (
            f"{len(unknown)} used mesh(es) have undeterminable materials; orphan textures are not deleted"
        )
        result.warnings.append(message)
        logger.warning(message)
        texture_candidates: List[Path] = []
    else:
        texture_candidates = _orphan_textures(result, catalog, used_materials, exclude)

    if inventory and not result.used_mesh_keys:
        # No asset resolved to a mesh on disk, so every mesh would look unused.
        result.planning_refused = True
        message = f"none of the {len(inventory)} mesh file(s) is referenced by a resolved asset; nothing planned"
        result.warnings.append(message)
        logger.warning(message)
        mesh_candidates, texture_candidates = [], []

    result.plan = DeletionPlan.from_candidates({MESH: mesh_candidates, TEXTURE: texture_candidates})
    logger.info(
        "{} unused mesh file(s), {} orphan material(s), {} file(s) to delete",
        len(result.unused_meshes),
        len(result.orphan_materials),
        len(result.plan.all_to_delete()),
    )
    return result


def _orphan_textures(
    result: ReachabilityResult,
    catalog: MaterialCatalog,
    used_materials: Sequence,
    exclude: ExcludeSet,
) -> List[Path]:
    shared = {path_key(f.path) for m in used_materials for f in m.resolved_files}
    orphans = set(result.orphan_materials)
    candidates: List[Path] = []
    for material in catalog:
        if not any(alias.casefold() in orphans for alias in material.aliases()):
            continue
        for texture in material.resolved_files:
            key = path_key(texture.path)
            if key in shared:
                if texture.path not in result.shared_textures_kept:
                    result.shared_textures_kept.append(texture.path)
                continue
            if texture.path in exclude:
                continue
            candidates.append(texture.path)
    return candidates
