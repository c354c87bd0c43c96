"""Utility helpers used across scanning stages."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence

_QUOTED = re.compile(r'"([^"]*)"')
REPORT_NAME = "cleanup_report.json"


def quoted_literals(line: str) -> List[str]:
    """Every closed ``"..."`` literal on a line, in order."""

    return _QUOTED.findall(line)


def _assignment_pattern(keys: Sequence[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(k) for k in keys)
    return re.compile(rf"(?<![\w])(?:{alternatives})\s*(?:\[\s*\d+\s*\])?\s*=", re.IGNORECASE)


def assignment_value(line: str, keys: Sequence[str]) -> Optional[str]:
    """Return the quoted value of ``key = "value";`` when ``line`` assigns one of ``keys``."""

    match = _assignment_pattern(keys).search(line)
    if not match:
        return None
    literals = quoted_literals(line[match.end():])
    return literals[0] if literals else None


def find_block_assignments(lines: Sequence[str], name: str, keys: Sequence[str]) -> List[str]:
    """Values assigned to ``keys`` inside blocks declared as ``...(name)``.

    Scanning starts at each line containing ``(name)`` (case-insensitive) and
    moves forward until the first assignment or the end of the block. The
    rest of the file is never searched for a given declaration.
    """

    needle = f"({name})".casefold()
    values: List[str] = []
    for start, header in enumerate(lines):
        if needle not in header.casefold():
            continue
        for cursor in range(start, len(lines)):
            line = lines[cursor]
            if cursor > start and (line.strip().startswith("}") or needle in line.casefold()):
                break
            value = assignment_value(line, keys)
            if value is not None:
                values.append(value)
                break
    return values


def lookup(data: Mapping[str, Any], key: str) -> Any:
    """Case-insensitive mapping lookup, exact match first."""

    if key in data:
        return data[key]
    folded = key.casefold()
    for k, v in data.items():
        if isinstance(k, str) and k.casefold() == folded:
            return v
    return None


def lookup_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = lookup(data, key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return []


@dataclass
class PipelineReport:
    path: Path
    data: dict

    def update(self, section: str, payload: dict) -> None:
        self.data[section] = payload
        self.write()

    def write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.data, indent=2, default=str))
        write_report_md(self.path.with_suffix(".md"), self.data)


def load_report(base_dir: Path) -> PipelineReport:
    json_path = base_dir / REPORT_NAME
    if json_path.exists():
        data = json.loads(json_path.read_text())
    else:
        data = {}
    return PipelineReport(path=json_path, data=data)


def write_report_md(path: Path, data: dict) -> None:
    lines = ["# Level Cleanup Report", ""]
    if not data:
        lines.append("No cleanup runs recorded yet.")
    else:
        for section, payload in data.items():
            lines.append(f"## {section.replace('_', ' ').title()}")
            for key, value in payload.items():
                lines.append(f"- **{key.replace('_', ' ').title()}**: {value}")
            lines.append("")
    path.write_text("\n".join(lines))


def unique(values: Iterable[str]) -> List[str]:
    """Order-preserving, case-insensitive de-duplication."""

    seen = set()
    out: List[str] = []
    for v in values:
        key = v.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(v)
    return out
