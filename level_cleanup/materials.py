"""Material catalog: parse ``*.materials.json`` files and resolve duplicate declarations."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from loguru import logger
from tqdm import tqdm

from .io import JsonFormatError, ScanDiagnostics, load_json_document, write_json_document
from .models import Asset, MaterialDefinition, ResolvedTexture
from .paths import normalize_reference, path_key, resolve_texture
from .scanning import CLASS_DECAL, ScanContext, Scanner, ScanResult
from .utils import lookup, lookup_str, string_list

# Texture slots of a material stage.
STAGE_SLOTS = (
    "ambientOcclusionMap",
    "baseColorMap",
    "baseColorPaletteMap",
    "baseColorDetailMap",
    "clearCoatMap",
    "clearCoatBottomNormalMap",
    "colorMap",
    "colorPaletteMap",
    "detailMap",
    "detailNormalMap",
    "diffuseMap",
    "emissiveMap",
    "macroMap",
    "metallicMap",
    "normalMap",
    "normalDetailMap",
    "opacityMap",
    "overlayMap",
    "reflectivityMap",
    "roughnessMap",
    "specularMap",
)

# Texture slots of a terrain material, read from the entry itself.
TERRAIN_SLOTS = (
    "aoBaseTex",
    "aoDetailTex",
    "aoMacroTex",
    "baseColorBaseTex",
    "baseColorDetailTex",
    "baseColorMacroTex",
    "heightBaseTex",
    "heightDetailTex",
    "heightMacroTex",
    "normalBaseTex",
    "normalDetailTex",
    "normalMacroTex",
    "roughnessBaseTex",
    "roughnessDetailTex",
    "roughnessMacroTex",
)


@dataclass
class DuplicateGroup:
    name: str
    keep: MaterialDefinition
    remove: List[MaterialDefinition] = field(default_factory=list)


@dataclass
class DuplicateRemoval:
    groups: List[DuplicateGroup] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    rewritten_files: List[Path] = field(default_factory=list)
    dry_run: bool = False

    @property
    def removed_count(self) -> int:
        return sum(len(g.remove) for g in self.groups)


def _slot_values(stage: Mapping[str, Any], slots: Sequence[str]) -> Iterator[tuple]:
    for slot in slots:
        value = lookup_str(stage, slot)
        if value:
            yield slot, value


class MaterialCatalog:
    """Every material definition of a level, in parse order, duplicates included."""

    def __init__(self, diagnostics: Optional[ScanDiagnostics] = None) -> None:
        self.materials: List[MaterialDefinition] = []
        self.diagnostics = diagnostics or ScanDiagnostics()

    @classmethod
    def build(cls, ctx: ScanContext, files: Sequence[Path]) -> "MaterialCatalog":
        catalog = cls(ctx.diagnostics)
        ctx.catalog = catalog
        MaterialScanner(ctx, files, catalog).scan_safely()
        return catalog

    def add(self, definition: MaterialDefinition) -> None:
        definition.order = len(self.materials)
        self.materials.append(definition)

    def by_name(self, name: str) -> List[MaterialDefinition]:
        key = name.casefold()
        return [m for m in self.materials if m.name_key == key]

    def by_alias(self, name: str) -> List[MaterialDefinition]:
        key = name.casefold()
        return [m for m in self.materials if key in (a.casefold() for a in m.aliases())]

    def by_internal_name(self, name: str) -> List[MaterialDefinition]:
        key = name.casefold()
        return [m for m in self.materials if m.internal_name and m.internal_name.casefold() == key]

    def __iter__(self) -> Iterator[MaterialDefinition]:
        return iter(self.materials)

    def __len__(self) -> int:
        return len(self.materials)

    def find_duplicates(self) -> List[DuplicateGroup]:
        """Group definitions sharing a name and choose the one to keep.

        The member with the most existing texture files wins, earlier parse
        order breaks ties. Groups whose best member has no existing textures
        are left alone.
        """

        grouped: Dict[str, List[MaterialDefinition]] = defaultdict(list)
        for material in self.materials:
            grouped[material.name_key].append(material)

        groups: List[DuplicateGroup] = []
        for members in grouped.values():
            if len(members) < 2:
                continue
            for member in members:
                member.is_duplicate = True
                member.duplicate_count = len(members) - 1
                member.duplicate_source_files = [
                    m.source_file for m in members if m is not member and m.source_file != member.source_file
                ]
            ranked = sorted(members, key=lambda m: (-m.existing_texture_count(), m.order))
            best = ranked[0]
            if best.existing_texture_count() == 0:
                logger.info("Duplicate material {} has no existing textures anywhere, keeping all", best.name)
                continue
            groups.append(DuplicateGroup(name=best.name, keep=best, remove=ranked[1:]))
        return groups

    def remove_duplicates(self, dry_run: bool = False) -> DuplicateRemoval:
        """Drop losing duplicate entries from their material files.

        Runs after every material file was read. Each affected file is loaded,
        edited and written exactly once.
        """

        result = DuplicateRemoval(groups=self.find_duplicates(), dry_run=dry_run)
        by_file: Dict[str, List[MaterialDefinition]] = defaultdict(list)
        files: Dict[str, Path] = {}
        for group in result.groups:
            for material in group.remove:
                key = path_key(material.source_file)
                files.setdefault(key, material.source_file)
                by_file[key].append(material)

        for key in sorted(by_file):
            path = files[key]
            losers = by_file[key]
            if dry_run:
                logger.info("[dry-run] Would remove {} duplicate(s) from {}", len(losers), path)
                continue
            try:
                document = load_json_document(path)
            except (JsonFormatError, OSError) as exc:
                self.diagnostics.record("duplicates", path, f"cannot reload material file: {exc}")
                continue
            if not isinstance(document, dict):
                self.diagnostics.record("duplicates", path, "material file is not a JSON object")
                continue
            for material in losers:
                document.pop(material.key, None)
            try:
                write_json_document(path, document)
            except OSError as exc:
                self.diagnostics.record("duplicates", path, f"cannot rewrite material file: {exc}")
                continue
            result.rewritten_files.append(path)
            removed = {id(m) for m in losers}
            self.materials = [m for m in self.materials if id(m) not in removed]
            logger.info("Removed {} duplicate material(s) from {}", len(losers), path)
        return result


class MaterialScanner(Scanner):
    """Fill a :class:`MaterialCatalog` from material definition files."""

    kind = "materials"

    def __init__(self, ctx: ScanContext, files: Sequence[Path], catalog: MaterialCatalog) -> None:
        super().__init__(ctx)
        self.files = list(files)
        self.catalog = catalog

    def scan(self) -> ScanResult:
        for path in tqdm(self.files, desc="Material files", leave=False):
            try:
                document = load_json_document(path)
            except JsonFormatError as exc:
                self.ctx.diagnostics.record("json", path, str(exc))
                continue
            except OSError as exc:
                self.skip_file(path, exc)
                continue
            if not isinstance(document, dict):
                self.ctx.diagnostics.record("json", path, "material file is not a JSON object")
                continue
            for key, entry in document.items():
                if isinstance(entry, dict):
                    self.scan_entry(path, key, entry)
        logger.info("Read {} material definition(s) from {} file(s)", len(self.catalog), len(self.files))
        return self.result

    def scan_entry(self, path: Path, key: str, entry: Dict[str, Any]) -> Optional[MaterialDefinition]:
        try:
            material = MaterialDefinition(
                name=lookup_str(entry, "name") or "",
                source_file=path,
                key=key,
                internal_name=lookup_str(entry, "internalName"),
                map_to=lookup_str(entry, "mapTo"),
                class_name=lookup_str(entry, "class"),
            )
        except ValueError as exc:
            self.ctx.diagnostics.record("materials", path, str(exc))
            return None

        stages = lookup(entry, "Stages")
        if isinstance(stages, list):
            for index, stage in enumerate(stages):
                if isinstance(stage, dict):
                    for slot, value in _slot_values(stage, STAGE_SLOTS):
                        material.texture_slots[f"{slot}[{index}]"] = value
        else:
            for slot, value in _slot_values(entry, STAGE_SLOTS):
                material.texture_slots[slot] = value
        for slot, value in _slot_values(entry, TERRAIN_SLOTS):
            material.texture_slots[slot] = value
        for index, value in enumerate(string_list(lookup(entry, "cubeFace"))):
            material.texture_slots[f"cubeFace[{index}]"] = value

        for slot, value in material.texture_slots.items():
            target = resolve_texture(self.ctx.levels_root, normalize_reference(value, path))
            material.resolved_files.append(ResolvedTexture(slot=slot, path=target, missing=not target.is_file()))
            if slot.startswith("cubeFace["):
                self.exclude_path(target)

        for name, value in entry.items():
            if isinstance(name, str) and name.endswith("Tex") and isinstance(value, str) and value.strip():
                self.exclude_path(resolve_texture(self.ctx.levels_root, normalize_reference(value, path)))

        cubemap = lookup_str(entry, "cubemap")
        if cubemap:
            self.add_asset(Asset(class_name=CLASS_DECAL, material_name=cubemap, source_file=path))

        self.catalog.add(material)
        return material
