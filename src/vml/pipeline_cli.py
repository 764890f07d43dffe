"""CLI for the one-shot pipeline — generate, then render, one composition.

Uses default artifact paths throughout. The source must resolve to a
single file declaring a single composition.

Usage:
    vml pipeline content/intro.babulus.xml
    vml pipeline content/intro.babulus.xml --out /tmp/intro.mp4 --frames /tmp/frames
"""

import argparse
import logging
import sys
from pathlib import Path

from .artifacts import derive_artifact_paths
from .common import configure_logging, find_config_path, load_config, resolve_path
from .errors import ValidationError
from .generate import GenerationOptions, run_batch
from .render import RenderInputs, RenderOptions, build_and_render
from .sources import load_runs, resolve_sources, composition_id
from .toolchain import load_toolchain, toolchain_name

logger = logging.getLogger(__name__)


def _parse_args(args=None):
    parser = argparse.ArgumentParser(
        prog="vml pipeline",
        description="Generate artifacts for one composition and render it to video.",
    )
    parser.add_argument(
        "source", nargs="?", default=None,
        help="Source file or directory (default: discover)",
    )
    parser.add_argument("--out", help="Output video path (default: <root>/public/videoml/<id>.mp4)")
    parser.add_argument("--frames", help="Frame directory (default: <out-dir>/frames)")
    parser.add_argument("--project-dir", help="Project root directory (prefix for outputs)")
    parser.add_argument("--toolchain", default=None, help="Toolchain module")
    return parser.parse_args(args)


def main(args=None, cwd=None):
    parsed = _parse_args(args)
    configure_logging()
    cwd = resolve_path(cwd or Path.cwd())
    project_dir = resolve_path(parsed.project_dir, cwd) if parsed.project_dir else None

    sources = resolve_sources(parsed.source, cwd)
    if len(sources) != 1:
        raise ValidationError(f"Pipeline expects a single source path (found {len(sources)}).")
    source = sources[0]

    config = load_config(find_config_path(project_dir, source))
    toolchain = load_toolchain(toolchain_name(parsed.toolchain, config))
    generate = toolchain.require("generate_composition")
    render_frames = toolchain.require("render_frames")

    runs = load_runs([source], toolchain.require("load_source"))
    compositions = runs[0].compositions
    if len(compositions) != 1:
        raise ValidationError(
            f"Pipeline requires a single composition in the source (found {len(compositions)})."
        )

    cid = composition_id(compositions[0])
    paths = derive_artifact_paths(cid, source, project_dir)
    run_batch(runs, GenerationOptions(project_dir=project_dir, config=config), generate)

    public_root = (project_dir or cwd) / "public"
    output_path = resolve_path(parsed.out, cwd) if parsed.out else public_root / "videoml" / f"{cid}.mp4"
    frames_dir = resolve_path(parsed.frames, cwd) if parsed.frames else paths.out_dir / "frames"

    audio = paths.audio if paths.audio.is_file() else None
    if audio is None:
        logger.info("%s: no audio at %s, rendering silent video", cid, paths.audio)

    output = build_and_render(
        RenderInputs(script=paths.script, timeline=paths.timeline, audio=audio),
        RenderOptions(frames_dir=frames_dir, output_path=output_path),
        render_frames,
        cwd=cwd,
    )
    print(f"write: {output}", file=sys.stderr)


if __name__ == "__main__":
    main()
