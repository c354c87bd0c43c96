"""File reading helpers for the loosely formatted JSON and text files found in levels."""
from __future__ import annotations

import fnmatch
import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from loguru import logger

__all__ = [
    "Diagnostic",
    "JsonFormatError",
    "LevelReadError",
    "LineResult",
    "ScanDiagnostics",
    "iter_files",
    "iter_json_lines",
    "load_json_document",
    "loads_lenient",
    "read_lines",
    "write_json_document",
    "write_lines",
]

_TRAILING_COMMA = re.compile(r",\s*(?=[}\]])")


class JsonFormatError(ValueError):
    pass


class LevelReadError(RuntimeError):
    """The level itself cannot be read; nothing else can proceed."""


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    path: Path
    message: str
    line: Optional[int] = None

    def __str__(self) -> str:
        where = f"{self.path}:{self.line}" if self.line is not None else str(self.path)
        return f"[{self.kind}] {where}: {self.message}"


@dataclass
class ScanDiagnostics:
    """Non-fatal problems collected during one run."""

    entries: List[Diagnostic] = field(default_factory=list)

    def record(self, kind: str, path: Path, message: str, line: Optional[int] = None) -> Diagnostic:
        entry = Diagnostic(kind=kind, path=Path(path), message=message, line=line)
        self.entries.append(entry)
        logger.warning("{}", entry)
        return entry

    def count(self, kind: Optional[str] = None) -> int:
        if kind is None:
            return len(self.entries)
        return sum(1 for e in self.entries if e.kind == kind)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class LineResult:
    """Outcome of parsing one line of a JSON-lines file."""

    path: Path
    line_no: int
    raw: str
    value: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def loads_lenient(text: str) -> Any:
    """``json.loads`` that tolerates trailing commas after the last value."""

    stripped = text.strip()
    if stripped.endswith(","):
        stripped = stripped[:-1]
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(_TRAILING_COMMA.sub("", stripped))
    except json.JSONDecodeError as exc:
        raise JsonFormatError(str(exc)) from exc


def read_lines(path: Path) -> List[str]:
    return path.read_text(encoding="utf-8", errors="replace").splitlines()


def iter_json_lines(path: Path) -> Iterator[LineResult]:
    """Yield one tagged result per non-empty line; a bad line never stops the file."""

    for line_no, raw in enumerate(read_lines(path), start=1):
        if not raw.strip():
            continue
        try:
            value = loads_lenient(raw)
        except JsonFormatError as exc:
            yield LineResult(path=path, line_no=line_no, raw=raw, error=str(exc))
            continue
        if not isinstance(value, dict):
            yield LineResult(path=path, line_no=line_no, raw=raw, error="line is not a JSON object")
            continue
        yield LineResult(path=path, line_no=line_no, raw=raw, value=value)


def load_json_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8", errors="replace")
    if not text.strip():
        raise JsonFormatError("empty document")
    return loads_lenient(text)


def write_json_document(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def write_lines(path: Path, lines: Iterable[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    body = "\n".join(lines)
    path.write_text(body + ("\n" if body else ""), encoding="utf-8")


def _matches(name: str, patterns: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(fnmatch.fnmatchcase(lowered, p.lower()) for p in patterns)


def iter_files(
    root: Path,
    patterns: Sequence[str],
    diagnostics: Optional[ScanDiagnostics] = None,
) -> List[Path]:
    """Return files under ``root`` whose names match any pattern (case-insensitive).

    Directories that cannot be listed are logged and skipped; their siblings
    are still visited. Results are sorted for a stable scan order.
    """

    def _on_error(exc: OSError) -> None:
        target = Path(exc.filename) if exc.filename else root
        if diagnostics is not None:
            diagnostics.record("io", target, f"cannot list directory: {exc.strerror or exc}")
        else:
            logger.warning("Cannot list {}: {}", target, exc)

    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames.sort()
        for name in filenames:
            if _matches(name, patterns):
                found.append(Path(dirpath) / name)
    found.sort(key=lambda p: str(p).casefold())
    return found
