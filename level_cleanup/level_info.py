"""Level metadata that keeps files alive without being scene data.

``info.json`` previews and minimaps, facility previews, and textures the game
log reports as loaded from source are all protected from deletion.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence

from loguru import logger

from .io import JsonFormatError, load_json_document, read_lines
from .paths import ResolveStrategy, normalize_reference, resolve_texture
from .scanning import ScanContext, Scanner, ScanResult
from .utils import lookup, lookup_str, string_list

MISSING_TEXTURE_MARKER = "Missing source texture"


def _field_of_each(items: Any, name: str) -> Iterator[str]:
    if not isinstance(items, list):
        return
    for item in items:
        if isinstance(item, dict):
            value = lookup_str(item, name)
            if value:
                yield value


class _DocumentScanner(Scanner):
    def __init__(self, ctx: ScanContext, files: Sequence[Path]) -> None:
        super().__init__(ctx)
        self.files = list(files)

    def references(self, document: Any) -> Iterable[str]:
        raise NotImplementedError

    def scan(self) -> ScanResult:
        for path in self.files:
            try:
                document = load_json_document(path)
            except JsonFormatError as exc:
                self.ctx.diagnostics.record("json", path, str(exc))
                continue
            except OSError as exc:
                self.skip_file(path, exc)
                continue
            for reference in self.references(document):
                self.exclude_path(resolve_texture(self.ctx.levels_root, normalize_reference(reference, path)))
        logger.debug("{} protected {} path(s)", self.kind, len(self.result.paths))
        return self.result


class InfoJsonScanner(_DocumentScanner):
    kind = "info"

    def references(self, document: Any) -> Iterable[str]:
        if not isinstance(document, dict):
            return []
        refs = string_list(lookup(document, "previews"))
        refs.extend(_field_of_each(lookup(document, "spawnPoints"), "preview"))
        refs.extend(_field_of_each(lookup(document, "gasStationPoints"), "preview"))
        refs.extend(_field_of_each(lookup(document, "minimap"), "file"))
        return refs


class FacilityScanner(_DocumentScanner):
    kind = "facilities"

    def references(self, document: Any) -> Iterable[str]:
        if not isinstance(document, dict):
            return []
        refs = []
        for group in document.values():
            refs.extend(_field_of_each(group, "preview"))
        return refs


class GameLogScanner(Scanner):
    """Textures the game reported loading from their source format."""

    kind = "game_log"

    def __init__(self, ctx: ScanContext, log_file: Optional[Path]) -> None:
        super().__init__(ctx)
        self.log_file = log_file

    def scan(self) -> ScanResult:
        if self.log_file is None:
            return self.result
        if not self.log_file.is_file():
            logger.warning("Game log not found: {}", self.log_file)
            return self.result
        for line in read_lines(self.log_file):
            if MISSING_TEXTURE_MARKER not in line:
                continue
            name = line.split(MISSING_TEXTURE_MARKER, 1)[1].strip()
            if name.startswith("."):
                name = name[1:]
            if not name:
                continue
            found = resolve_texture(self.ctx.levels_root, name, ResolveStrategy.DISTINCT_CONCAT)
            if found.is_file():
                self.exclude_path(found)
        logger.info("Game log protected {} texture(s)", len(self.result.paths))
        return self.result
