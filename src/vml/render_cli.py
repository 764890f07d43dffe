"""CLI for rendering — script/timeline JSON to PNG frames to video.

Usage:
    vml render --script src/videos/intro/intro.script.json \
        --timeline src/videos/intro/intro.timeline.json \
        --audio public/videoml/intro.wav \
        --frames /tmp/intro-frames --out /tmp/intro.mp4

    # First 60 frames only, 4 frame workers, extra encoder flags
    vml render --script intro.script.json --frames frames/ --out preview.mp4 \
        --end 59 --workers 4 --ffmpeg-arg=-crf --ffmpeg-arg=28
"""

import argparse
import sys
from pathlib import Path

from .common import configure_logging, find_config_path, load_config, resolve_path
from .render import (
    DEFAULT_FRAME_PATTERN, RenderInputs, RenderOptions, build_render_request, render_video,
)
from .toolchain import load_toolchain, toolchain_name


def _parse_args(args=None):
    parser = argparse.ArgumentParser(
        prog="vml render",
        description="Render a generated script to PNG frames and encode them with ffmpeg.",
    )
    parser.add_argument("--script", required=True, help="Path to script.json")
    parser.add_argument("--frames", required=True, help="Output directory for PNG frames")
    parser.add_argument("--out", required=True, help="Output video path")
    parser.add_argument("--timeline", help="Optional timeline.json for duration data")
    parser.add_argument("--audio", help="Optional audio file path")
    parser.add_argument("--title", help="Storyboard title")
    parser.add_argument("--subtitle", help="Storyboard subtitle")
    parser.add_argument("--start", type=int, default=0, help="Start frame (default: 0)")
    parser.add_argument("--end", type=int, default=None, help="End frame, inclusive (default: timeline end)")
    parser.add_argument(
        "--pattern", default=DEFAULT_FRAME_PATTERN,
        help=f"Frame filename pattern (default: {DEFAULT_FRAME_PATTERN})",
    )
    parser.add_argument("--scale", type=float, default=1.0, help="Device scale factor (default: 1)")
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Parallel frame workers (default: renderer decides; 1 disables)",
    )
    parser.add_argument("--browser-bundle", help="Path to the renderer's browser bundle")
    parser.add_argument(
        "--ffmpeg-arg", dest="ffmpeg_args", action="append", default=[],
        help="Extra ffmpeg argument (repeat for multiple)",
    )
    parser.add_argument("--fps", type=float, default=None, help="Override fps")
    parser.add_argument("--width", type=int, default=None, help="Override width")
    parser.add_argument("--height", type=int, default=None, help="Override height")
    parser.add_argument("--duration", type=int, default=None, help="Override duration in frames")
    parser.add_argument("--debug-layout", action="store_true", help="Show layout bounds")
    parser.add_argument(
        "--no-clean", dest="clean", action="store_false",
        help="Keep existing frames instead of deleting them before rendering",
    )
    parser.add_argument(
        "--ffmpeg", default=None,
        help="ffmpeg binary (default: ffmpeg on PATH, else the imageio-ffmpeg build)",
    )
    parser.add_argument("--toolchain", default=None, help="Toolchain module providing render_frames")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args(args)


def _render_toolchain(cli_value, script_path: Path):
    """Resolve the toolchain, consulting the project config near the script."""
    name = toolchain_name(cli_value)
    if name is None:
        config = load_config(find_config_path(None, script_path))
        name = toolchain_name(None, config)
    return load_toolchain(name)


def main(args=None, cwd=None):
    parsed = _parse_args(args)
    configure_logging(parsed.quiet)
    cwd = resolve_path(cwd or Path.cwd())

    inputs = RenderInputs(
        script=resolve_path(parsed.script, cwd),
        timeline=resolve_path(parsed.timeline, cwd) if parsed.timeline else None,
        audio=resolve_path(parsed.audio, cwd) if parsed.audio else None,
    )
    options = RenderOptions(
        frames_dir=resolve_path(parsed.frames, cwd),
        output_path=resolve_path(parsed.out, cwd),
        frame_pattern=parsed.pattern,
        start_frame=parsed.start,
        end_frame=parsed.end,
        scale=parsed.scale,
        workers=parsed.workers,
        encoder_path=parsed.ffmpeg,
        encoder_args=parsed.ffmpeg_args,
        fps=parsed.fps,
        width=parsed.width,
        height=parsed.height,
        duration_frames=parsed.duration,
        clean_frames=parsed.clean,
        title=parsed.title,
        subtitle=parsed.subtitle,
        browser_bundle=resolve_path(parsed.browser_bundle, cwd) if parsed.browser_bundle else None,
        debug_layout=parsed.debug_layout,
    )

    # Inputs are checked before the toolchain is imported or frames touched.
    request = build_render_request(inputs, options, cwd=cwd)
    toolchain = _render_toolchain(parsed.toolchain, inputs.script)
    output = render_video(request, toolchain.require("render_frames"))
    print(f"write: {output}", file=sys.stderr)


if __name__ == "__main__":
    main()
