"""vml.common — shared utilities for the orchestrator.

Contains: cwd-relative path resolution, project-root discovery, config
file discovery and loading, and logging setup.
"""

import logging
import os
import sys
from pathlib import Path

import yaml

from .errors import ValidationError


# ── Project layout ─────────────────────────────────────────────────
# A directory holding any of these is treated as the project root.

PROJECT_MARKERS = (".videoml", ".babulus", "package.json", "pyproject.toml", ".git")

# Config locations relative to the project root, in lookup order.
CONFIG_LOCATIONS = (
    Path(".videoml") / "config.yml",
    Path(".babulus") / "config.yml",
)


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path(value: str | Path, cwd: str | Path | None = None) -> Path:
    """Return an absolute, normalized path for a user-supplied value.

    Relative values are joined onto cwd (the process cwd if not given).
    Symlinks are left alone so that paths reported to the user match
    what they typed.
    """
    base = Path(cwd) if cwd is not None else Path.cwd()
    return Path(os.path.normpath(base / Path(value).expanduser()))


def find_project_root(source_path: str | Path) -> Path:
    """Walk upward from a source file to the nearest project marker.

    Falls back to the source's own directory when no ancestor carries a
    marker, so a lone source file still gets a stable output root.
    """
    start = Path(source_path)
    if not start.is_dir():
        start = start.parent
    for candidate in (start, *start.parents):
        if any((candidate / marker).exists() for marker in PROJECT_MARKERS):
            return candidate
    return start


# ── Config ─────────────────────────────────────────────────────────

def find_config_path(project_dir: Path | None, source_path: Path) -> Path | None:
    """Locate the project config file, or None if there is none."""
    root = project_dir if project_dir is not None else find_project_root(source_path)
    for location in CONFIG_LOCATIONS:
        candidate = root / location
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Path | None) -> dict:
    """Load a YAML project config. Missing path or empty file gives {}.

    Raises:
        ValidationError: The document is not a mapping.
    """
    if config_path is None:
        return {}
    with open(config_path) as f:
        raw = yaml.safe_load(f)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError(
            f"Config {config_path}: expected a mapping at the top level, "
            f"got {type(raw).__name__}"
        )
    return raw


# ── Logging ────────────────────────────────────────────────────────

def configure_logging(quiet: bool = False) -> None:
    """Send vml log records to stderr with a wall-clock prefix."""
    logging.basicConfig(
        level=logging.WARNING if quiet else logging.INFO,
        format="[%(asctime)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("vml").setLevel(logging.WARNING if quiet else logging.INFO)
