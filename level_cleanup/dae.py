"""Read material declarations from Collada meshes."""
from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Union

from .models import MeshMaterial
from .paths import ResolveStrategy, match_case, resolve

__all__ = ["DaeScanner", "MalformedMeshError", "MeshScanError", "MissingCompanionError"]

COMPRESSED_EXTENSION = ".cdae"
SOURCE_EXTENSION = ".dae"


class MeshScanError(RuntimeError):
    """The materials of a mesh cannot be determined (as opposed to: it has none)."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path


class MissingCompanionError(MeshScanError):
    pass


class MalformedMeshError(MeshScanError):
    pass


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class DaeScanner:
    """Resolve one mesh reference and list the materials it declares.

    ``.cdae`` files are compiled and cannot be parsed; their materials are read
    from the ``.dae`` next to them.
    """

    def __init__(self, levels_root: Union[str, Path], reference: Union[str, Path], full_path: bool = False) -> None:
        self.reference = str(reference)
        if full_path:
            resolved = Path(reference)
        else:
            resolved = resolve(levels_root, self.reference, ResolveStrategy.EXACT_JOIN)
        self.resolved_path = match_case(resolved)

    def exists(self) -> bool:
        return self.resolved_path.is_file()

    def is_compressed(self) -> bool:
        return self.resolved_path.suffix.lower() == COMPRESSED_EXTENSION

    def source_path(self) -> Path:
        if self.is_compressed():
            return match_case(self.resolved_path.with_suffix(SOURCE_EXTENSION))
        return self.resolved_path

    def materials(self) -> List[MeshMaterial]:
        """Return ``(id, name)`` pairs for every ``<material>`` with an id.

        Raises :class:`MissingCompanionError` for a compressed mesh without its
        source file and :class:`MalformedMeshError` for unreadable XML.
        """

        path = self.source_path()
        if not path.is_file():
            if self.is_compressed():
                raise MissingCompanionError(path, "compressed mesh has no source companion")
            raise MalformedMeshError(path, "mesh file not found")
        try:
            tree = ET.parse(path)
        except (ET.ParseError, OSError) as exc:
            raise MalformedMeshError(path, f"cannot parse Collada ({exc})") from exc

        found: List[MeshMaterial] = []
        for elem in tree.getroot().iter():
            if not isinstance(elem.tag, str) or _local_name(elem.tag) != "material":
                continue
            material_id = elem.get("id")
            if not material_id:
                continue
            raw_name = elem.get("name")
            name = raw_name.split()[0] if raw_name and raw_name.split() else None
            entry = MeshMaterial(material_id=material_id, material_name=name)
            if entry not in found:
                found.append(entry)
        return found
