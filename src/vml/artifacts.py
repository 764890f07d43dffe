"""Artifact path derivation.

Every composition produces four outputs. Unless overridden they live at
fixed locations under the project root:

  script:   <root>/src/videos/<id>/<id>.script.json
  timeline: <root>/src/videos/<id>/<id>.timeline.json
  audio:    <root>/public/videoml/<id>.wav
  out_dir:  <root>/.videoml/out/<id>

Overrides apply per field: setting only the script path leaves the other
three at their defaults.
"""

from dataclasses import dataclass
from pathlib import Path

from .common import find_project_root


@dataclass(frozen=True)
class ArtifactOverrides:
    """Explicit output paths from the CLI. None means use the default."""
    script: Path | None = None
    timeline: Path | None = None
    audio: Path | None = None
    out_dir: Path | None = None
    usage: Path | None = None

    def any(self) -> bool:
        return any(
            value is not None
            for value in (self.script, self.timeline, self.audio, self.out_dir, self.usage)
        )


@dataclass(frozen=True)
class ArtifactPaths:
    script: Path
    timeline: Path
    audio: Path
    out_dir: Path

    def as_dict(self) -> dict[str, Path]:
        return {
            "script": self.script,
            "timeline": self.timeline,
            "audio": self.audio,
            "out_dir": self.out_dir,
        }


def default_artifact_paths(composition_id: str, root: Path) -> ArtifactPaths:
    root = Path(root)
    video_dir = root / "src" / "videos" / composition_id
    return ArtifactPaths(
        script=video_dir / f"{composition_id}.script.json",
        timeline=video_dir / f"{composition_id}.timeline.json",
        audio=root / "public" / "videoml" / f"{composition_id}.wav",
        out_dir=root / ".videoml" / "out" / composition_id,
    )


def derive_artifact_paths(
    composition_id: str,
    source_path: Path,
    project_dir: Path | None = None,
    overrides: ArtifactOverrides | None = None,
) -> ArtifactPaths:
    """Compute the artifact paths for one composition.

    Args:
        composition_id: Composition identifier (used in file names).
        source_path: Source file declaring the composition. Only used to
            find the project root when project_dir is not given.
        project_dir: Explicit project root.
        overrides: Per-field explicit paths.
    """
    root = project_dir if project_dir is not None else find_project_root(source_path)
    defaults = default_artifact_paths(composition_id, root)
    if overrides is None:
        return defaults

    def _pick(override, default):
        return override if override is not None else default

    return ArtifactPaths(
        script=_pick(overrides.script, defaults.script),
        timeline=_pick(overrides.timeline, defaults.timeline),
        audio=_pick(overrides.audio, defaults.audio),
        out_dir=_pick(overrides.out_dir, defaults.out_dir),
    )
