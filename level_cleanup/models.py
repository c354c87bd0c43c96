"""Records shared by the scanners, the material catalog and the reachability pass."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .paths import path_key

MESH = "mesh"
TEXTURE = "texture"
CATEGORIES = (MESH, TEXTURE)


@dataclass(frozen=True)
class MeshMaterial:
    material_id: str
    material_name: Optional[str] = None


@dataclass
class Asset:
    """One placed or declared use of a mesh or material in the level."""

    class_name: Optional[str] = None
    name: Optional[str] = None
    shape_reference: Optional[str] = None
    material_name: Optional[str] = None
    extra_material_names: Tuple[str, ...] = ()
    source_file: Optional[Path] = None
    source_line: Optional[int] = None
    resolved_mesh_path: Optional[Path] = None
    mesh_exists: Optional[bool] = None
    mesh_materials_known: bool = True
    materials_declared_in_mesh: List[MeshMaterial] = field(default_factory=list)

    def attach_mesh(self, path: Path, exists: bool, materials: Optional[Iterable[MeshMaterial]]) -> None:
        """Record the resolved mesh; ``materials=None`` means they could not be determined."""

        self.mesh_exists = exists
        if not exists:
            return
        self.resolved_mesh_path = path
        if materials is None:
            self.mesh_materials_known = False
            return
        for material in materials:
            if material not in self.materials_declared_in_mesh:
                self.materials_declared_in_mesh.append(material)

    def material_names(self) -> List[str]:
        names: List[str] = []
        if self.material_name:
            names.append(self.material_name)
        names.extend(n for n in self.extra_material_names if n)
        names.extend(m.material_name for m in self.materials_declared_in_mesh if m.material_name)
        return names


@dataclass(frozen=True)
class ResolvedTexture:
    slot: str
    path: Path
    missing: bool


@dataclass
class MaterialDefinition:
    name: str
    source_file: Path
    key: str = ""
    internal_name: Optional[str] = None
    map_to: Optional[str] = None
    class_name: Optional[str] = None
    order: int = 0
    texture_slots: Dict[str, str] = field(default_factory=dict)
    resolved_files: List[ResolvedTexture] = field(default_factory=list)
    is_duplicate: bool = False
    duplicate_count: int = 0
    duplicate_source_files: List[Path] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not (self.name or "").strip():
            self.name = (self.internal_name or "").strip() or self.key
        if not self.name:
            raise ValueError(f"material in {self.source_file} has no name")

    @property
    def name_key(self) -> str:
        return self.name.casefold()

    def existing_texture_count(self) -> int:
        return sum(1 for f in self.resolved_files if not f.missing)

    def aliases(self) -> List[str]:
        """Names under which scene data or meshes may refer to this material."""

        names = [self.name]
        if self.map_to and self.map_to.casefold() != self.name_key and self.map_to != "unmapped_mat":
            names.append(self.map_to)
        return names


class ExcludeSet:
    """Files known to be referenced; never deletion candidates.

    Membership is case-insensitive, the first spelling seen is kept for reports.
    """

    def __init__(self, paths: Iterable[Path] = ()) -> None:
        self._paths: Dict[str, Path] = {}
        for p in paths:
            self.add(p)

    def add(self, path: Path) -> bool:
        key = path_key(path)
        if key in self._paths:
            return False
        self._paths[key] = Path(path)
        return True

    def update(self, paths: Iterable[Path]) -> None:
        for p in paths:
            self.add(p)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return path_key(path) in self._paths

    def __iter__(self) -> Iterator[Path]:
        return iter(self._paths.values())

    def __len__(self) -> int:
        return len(self._paths)


def _sorted_unique(paths: Iterable[Path]) -> List[Path]:
    unique: Dict[str, Path] = {}
    for p in paths:
        unique.setdefault(path_key(p), Path(p))
    return [unique[k] for k in sorted(unique)]


@dataclass
class DeletionPlan:
    """Existence-checked deletion candidates, split by category."""

    to_delete: Dict[str, List[Path]] = field(default_factory=lambda: {c: [] for c in CATEGORIES})
    not_found: Dict[str, List[Path]] = field(default_factory=lambda: {c: [] for c in CATEGORIES})

    @classmethod
    def from_candidates(cls, candidates: Dict[str, Iterable[Path]]) -> "DeletionPlan":
        plan = cls()
        claimed: set = set()
        for category in CATEGORIES:
            for path in _sorted_unique(candidates.get(category, ())):
                key = path_key(path)
                if key in claimed:
                    continue
                claimed.add(key)
                bucket = plan.to_delete if path.is_file() else plan.not_found
                bucket[category].append(path)
        return plan

    def all_to_delete(self) -> List[Path]:
        return [p for c in CATEGORIES for p in self.to_delete[c]]

    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for c in CATEGORIES:
            out[f"{c}_to_delete"] = len(self.to_delete[c])
            out[f"{c}_not_found"] = len(self.not_found[c])
        return out

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        key = path_key(path)
        return any(path_key(p) == key for p in self.all_to_delete())
