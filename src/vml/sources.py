"""Source resolution and composition loading.

Turns the optional `source` CLI argument into a sorted list of source
files, then asks the toolchain's loader for the compositions each one
declares.

Discovery rules when no argument is given:
  - ./content/ exists: every source file under it (recursively).
  - otherwise: exactly one source file directly in cwd.
"""

import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .common import resolve_path
from .errors import AmbiguousDiscoveryError, NotFoundError, ValidationError


SOURCE_SUFFIXES = (".babulus.ts", ".babulus.xml", ".videoml.ts", ".videoml.xml")

CONTENT_DIR = "content"


@dataclass(frozen=True)
class SourceRun:
    """One source file and the compositions it declares, in order."""
    path: Path
    compositions: tuple


def is_source_file(name: str) -> bool:
    return name.endswith(SOURCE_SUFFIXES)


def find_source_files(root: Path, recursive: bool = True) -> list[Path]:
    """Collect source files under root, sorted by path.

    Walks with an explicit stack so deep trees don't grow the call stack.
    """
    found = set()
    pending = [Path(root)]
    while pending:
        directory = pending.pop()
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir():
                    if recursive:
                        pending.append(Path(entry.path))
                    continue
                if entry.is_file() and is_source_file(entry.name):
                    found.add(Path(entry.path))
    return sorted(found, key=str)


def discover_sources(cwd: Path) -> list[Path]:
    """Find candidate sources for a bare invocation (no path argument)."""
    content_dir = Path(cwd) / CONTENT_DIR
    if content_dir.is_dir():
        return find_source_files(content_dir)
    return find_source_files(Path(cwd), recursive=False)


def resolve_sources(source_arg: str | None, cwd: str | Path) -> list[Path]:
    """Resolve the user's source argument to absolute source paths.

    Args:
        source_arg: File or directory path, or None for discovery.
        cwd: Directory relative paths and discovery start from.

    Returns:
        Absolute paths, sorted and deduplicated.

    Raises:
        NotFoundError: An explicit path does not exist, or an explicit
            directory holds no source files.
        AmbiguousDiscoveryError: Discovery found nothing, or found several
            files outside ./content/.
    """
    cwd = resolve_path(cwd)
    if source_arg:
        candidate = resolve_path(source_arg, cwd)
        if not candidate.exists():
            raise NotFoundError(f"Path does not exist: {candidate}")
        if candidate.is_file():
            return [candidate]
        found = find_source_files(candidate)
        if not found:
            raise NotFoundError(f"No source files found under {candidate}")
        return found

    found = discover_sources(cwd)
    if not found:
        raise AmbiguousDiscoveryError(
            "No .babulus.ts/.babulus.xml (or .videoml.ts/.videoml.xml) files found. "
            f"Pass a file or directory path, or create one under ./{CONTENT_DIR}/"
        )
    inside_content = (cwd / CONTENT_DIR).is_dir()
    if len(found) > 1 and not inside_content:
        raise AmbiguousDiscoveryError(
            f"Multiple source files found ({len(found)}). "
            "Pass a specific file or directory path."
        )
    return found


# ── Composition loading ───────────────────────────────────────────


def composition_id(composition: Any) -> str:
    """Read the id of a toolchain composition (attribute or mapping key)."""
    if isinstance(composition, dict):
        cid = composition.get("id")
    else:
        cid = getattr(composition, "id", None)
    if not cid:
        raise ValidationError(f"Composition has no id: {composition!r}")
    return str(cid)


def load_runs(
    sources: Sequence[Path],
    load_source: Callable[[Path], Sequence[Any]],
) -> list[SourceRun]:
    """Load every source once, keeping source and composition order.

    Loader failures propagate unchanged; a malformed source stops the run.
    """
    return [SourceRun(path=path, compositions=tuple(load_source(path))) for path in sources]


def count_compositions(runs: Sequence[SourceRun]) -> int:
    return sum(len(run.compositions) for run in runs)
