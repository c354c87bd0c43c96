"""Resolve resource references written in level data to files on disk.

Level data refers to files in several inconsistent ways: ``/levels/foo/art/x.dae``,
``levels/foo/art/x.dae``, ``./x.dae``, bare ``x.dae`` next to the declaring file,
Windows separators, and legacy text files that repeat part of the level path.
Everything here is pure path algebra plus ``exists`` checks; nothing raises
for a reference that cannot be found.
"""
from __future__ import annotations

import enum
import os
import re
from pathlib import Path
from typing import Iterable, List, Union

__all__ = [
    "ResolveStrategy",
    "TEXTURE_FALLBACK_EXTENSIONS",
    "match_case",
    "normalize_reference",
    "path_key",
    "resolve",
    "resolve_texture",
    "resolve_with_extension_fallback",
    "sanitize_directory",
]

PathLike = Union[str, "os.PathLike[str]"]

# Probe order matters: the game's native format first.
TEXTURE_FALLBACK_EXTENSIONS = (".dds", ".png", ".jpg", ".jpeg")

_SEPARATORS = re.compile(r"[\\/]+")
_DOUBLED_LEVELS = re.compile(
    r"(?:^|(?<=[\\/]))(?P<first>levels)[\\/](?:game:)?levels(?=[\\/]|$)",
    re.IGNORECASE,
)


class ResolveStrategy(enum.Enum):
    EXACT_JOIN = "exact"
    DISTINCT_CONCAT = "distinct"


def path_key(path: PathLike) -> str:
    """Case-folded comparison key for a filesystem path."""

    text = os.path.normpath(os.fspath(path)).replace("\\", "/")
    return text.casefold()


def sanitize_directory(path: str) -> str:
    """Collapse ``levels/levels`` and ``levels/game:levels`` into ``levels``."""

    previous = None
    while previous != path:
        previous = path
        path = _DOUBLED_LEVELS.sub(lambda m: m.group("first"), path)
    return path


def _split(path: str) -> List[str]:
    return _SEPARATORS.split(path)


def _is_resolved(reference: str, root: str) -> bool:
    if not os.path.isabs(reference):
        return False
    ref_key = path_key(reference)
    root_key = path_key(root).rstrip("/")
    return ref_key == root_key or ref_key.startswith(root_key + "/") or os.path.exists(reference)


def _distinct_tokens(tokens: Iterable[str]) -> List[str]:
    seen = set()
    kept: List[str] = []
    for token in tokens:
        key = token.casefold()
        if key in seen:
            continue
        seen.add(key)
        kept.append(token)
    return kept


def resolve(level_root: PathLike, reference: str, strategy: ResolveStrategy = ResolveStrategy.EXACT_JOIN) -> Path:
    """Resolve ``reference`` against ``level_root``.

    ``EXACT_JOIN`` joins the two. ``DISTINCT_CONCAT`` concatenates the tokens
    of both and drops every token already seen (compared case-insensitively),
    which undoes references that re-embed part of the level path. The result
    may not exist; callers decide what a missing file means.
    """

    root = os.fspath(level_root)
    ref = reference.strip()
    if _is_resolved(ref, root):
        return Path(sanitize_directory(os.path.normpath(ref)))
    if strategy is ResolveStrategy.DISTINCT_CONCAT:
        tokens = _distinct_tokens(_split(root) + [t for t in _split(ref) if t])
        joined = os.sep.join(tokens)
    else:
        relative = os.sep.join(t for t in _split(ref) if t)
        joined = os.path.join(root, relative) if relative else root
    return Path(sanitize_directory(joined))


def resolve_with_extension_fallback(path: PathLike) -> Path:
    """Return ``path`` if it is a file, else the first existing ``.dds/.png/.jpg/.jpeg`` sibling.

    When nothing exists the original path is returned unchanged.
    """

    original = Path(path)
    if original.is_file() or original.name in ("", ".", ".."):
        return original
    for ext in TEXTURE_FALLBACK_EXTENSIONS:
        candidate = original.with_suffix(ext)
        if candidate.is_file():
            return candidate
    return original


def resolve_texture(level_root: PathLike, reference: str, strategy: ResolveStrategy = ResolveStrategy.EXACT_JOIN) -> Path:
    return resolve_with_extension_fallback(resolve(level_root, reference, strategy))


def normalize_reference(value: str, owner_file: PathLike) -> str:
    """Apply the relative-reference conventions of level files.

    A leading ``./`` is dropped, and a bare file name is taken relative to the
    directory of the file that declared it.
    """

    name = value.strip()
    if name.startswith("./"):
        name = name[2:]
    if name and "/" not in name and "\\" not in name:
        name = os.path.join(os.path.dirname(os.fspath(owner_file)), name)
    return name


def match_case(path: PathLike) -> Path:
    """Return the on-disk spelling of ``path``, matching each component case-insensitively.

    Level data is written on case-insensitive filesystems, so ``Rock.dae`` may
    name ``rock.dae``. ``path`` is returned unchanged when it exists as given
    or when no spelling matches.
    """

    target = Path(path)
    if target.exists() or not target.parts:
        return target
    current = Path(target.parts[0])
    for part in target.parts[1:]:
        candidate = current / part
        if candidate.exists():
            current = candidate
            continue
        try:
            names = sorted(os.listdir(current))
        except OSError:
            return target
        folded = part.casefold()
        match = next((n for n in names if n.casefold() == folded), None)
        if match is None:
            return target
        current = current / match
    return current
