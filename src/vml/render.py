"""Render handoff — turn generated artifacts into a finished video.

Two steps:
  1. The toolchain's render_frames() rasterises script + timeline into a
     numbered PNG sequence under frames_dir. It picks the end frame (from
     the timeline duration) and the worker count when they are not set.
  2. ffmpeg encodes the sequence, muxing in the audio track if one is
     given. Extra encoder args are appended verbatim after ours.

Paths are resolved against cwd and checked before anything is touched,
so a missing script fails without cleaning or writing frames.
"""

import json
import logging
import re
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import imageio_ffmpeg

from .common import resolve_path
from .errors import CollaboratorError, MissingArtifactError, ValidationError

logger = logging.getLogger(__name__)


DEFAULT_FRAME_PATTERN = "frame-%06d.png"

# Codec settings match the section exports: x264, yuv420p for players.
VIDEO_CODEC_ARGS = ["-c:v", "libx264", "-pix_fmt", "yuv420p"]
AUDIO_CODEC_ARGS = ["-c:a", "aac", "-shortest"]

_PRINTF_INT = re.compile(r"%0?\d*d")


@dataclass(frozen=True)
class RenderInputs:
    """Artifacts a render reads. Only the script is required."""
    script: Path
    timeline: Path | None = None
    audio: Path | None = None


@dataclass
class RenderOptions:
    frames_dir: Path
    output_path: Path
    frame_pattern: str = DEFAULT_FRAME_PATTERN
    start_frame: int = 0
    end_frame: int | None = None
    scale: float = 1.0
    workers: int | None = None
    encoder_path: str | None = None
    encoder_args: list[str] = field(default_factory=list)
    fps: float | None = None
    width: int | None = None
    height: int | None = None
    duration_frames: int | None = None
    clean_frames: bool = True
    title: str | None = None
    subtitle: str | None = None
    browser_bundle: Path | None = None
    debug_layout: bool = False


@dataclass(frozen=True)
class RenderRequest:
    """What the toolchain's render_frames() receives."""
    script: Any
    timeline: Any
    frames_dir: Path
    output_path: Path
    audio_path: Path | None
    frame_pattern: str
    start_frame: int
    end_frame: int | None
    device_scale_factor: float
    workers: int | None
    encoder_path: str
    encoder_args: tuple[str, ...]
    fps: float | None
    width: int | None
    height: int | None
    duration_frames: int | None
    clean_frames: bool
    title: str | None = None
    subtitle: str | None = None
    browser_bundle: Path | None = None
    debug_layout: bool = False


@dataclass(frozen=True)
class RenderedFrames:
    """What render_frames() reports: the frames it wrote and their rate."""
    fps: float
    start_frame: int
    end_frame: int


# ── Helpers ───────────────────────────────────────────────────────


def default_encoder() -> str:
    """ffmpeg on PATH, else the binary bundled with imageio-ffmpeg."""
    return shutil.which("ffmpeg") or imageio_ffmpeg.get_ffmpeg_exe()


def frame_glob(pattern: str) -> str:
    """Turn a printf frame pattern ('frame-%06d.png') into a glob."""
    return _PRINTF_INT.sub("*", pattern)


def clean_frames(frames_dir: Path, pattern: str) -> int:
    """Delete stale frames matching pattern. Other files are kept."""
    if not frames_dir.is_dir():
        return 0
    removed = 0
    for stale in frames_dir.glob(frame_glob(pattern)):
        if stale.is_file():
            stale.unlink()
            removed += 1
    return removed


def _read_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def _validate_options(options: RenderOptions) -> None:
    if options.start_frame < 0:
        raise ValidationError(f"--start must be >= 0, got {options.start_frame}")
    if options.end_frame is not None and options.end_frame < options.start_frame:
        raise ValidationError(
            f"--end ({options.end_frame}) must be >= --start ({options.start_frame})"
        )
    if options.workers is not None and options.workers < 1:
        raise ValidationError(f"--workers must be a positive integer, got {options.workers}")
    if options.scale <= 0:
        raise ValidationError(f"--scale must be > 0, got {options.scale}")
    if not _PRINTF_INT.search(options.frame_pattern):
        raise ValidationError(
            f"--pattern must contain a frame number placeholder like %06d, "
            f"got '{options.frame_pattern}'"
        )


# ── Request building ─────────────────────────────────────────────


def build_render_request(
    inputs: RenderInputs,
    options: RenderOptions,
    cwd: Path | None = None,
) -> RenderRequest:
    """Resolve, check and load render inputs.

    Raises:
        MissingArtifactError: Script (or a given timeline/audio) is missing.
        ValidationError: Bad frame range, worker count, scale or pattern.
    """
    script_path = resolve_path(inputs.script, cwd)
    timeline_path = resolve_path(inputs.timeline, cwd) if inputs.timeline else None
    audio_path = resolve_path(inputs.audio, cwd) if inputs.audio else None

    if not script_path.is_file():
        raise MissingArtifactError(f"Script not found: {script_path}")
    if timeline_path is not None and not timeline_path.is_file():
        raise MissingArtifactError(f"Timeline not found: {timeline_path}")
    if audio_path is not None and not audio_path.is_file():
        raise MissingArtifactError(f"Audio not found: {audio_path}")
    _validate_options(options)

    return RenderRequest(
        script=_read_json(script_path),
        timeline=_read_json(timeline_path) if timeline_path else None,
        frames_dir=resolve_path(options.frames_dir, cwd),
        output_path=resolve_path(options.output_path, cwd),
        audio_path=audio_path,
        frame_pattern=options.frame_pattern,
        start_frame=options.start_frame,
        end_frame=options.end_frame,
        device_scale_factor=options.scale,
        workers=options.workers,
        encoder_path=options.encoder_path or default_encoder(),
        encoder_args=tuple(options.encoder_args),
        fps=options.fps,
        width=options.width,
        height=options.height,
        duration_frames=options.duration_frames,
        clean_frames=options.clean_frames,
        title=options.title,
        subtitle=options.subtitle,
        browser_bundle=resolve_path(options.browser_bundle, cwd) if options.browser_bundle else None,
        debug_layout=options.debug_layout,
    )


# ── Encoding ─────────────────────────────────────────────────────


def _format_rate(fps: float) -> str:
    """Frame rate as ffmpeg expects it, without losing precision."""
    fps = float(fps)
    return str(int(fps)) if fps.is_integer() else repr(fps)


def encoder_command(request: RenderRequest, frames: RenderedFrames) -> list[str]:
    """Build the ffmpeg command for an already rendered frame sequence."""
    fps = request.fps or frames.fps
    cmd = [
        request.encoder_path, "-y",
        "-framerate", _format_rate(fps),
        "-start_number", str(frames.start_frame),
        "-i", str(request.frames_dir / request.frame_pattern),
    ]
    if request.audio_path is not None:
        cmd += ["-i", str(request.audio_path)]
    cmd += VIDEO_CODEC_ARGS
    # image2 reads on until the first gap in numbering, so stop at end_frame.
    cmd += ["-frames:v", str(frames.end_frame - frames.start_frame + 1)]
    if request.audio_path is not None:
        cmd += AUDIO_CODEC_ARGS
    cmd += list(request.encoder_args)
    cmd.append(str(request.output_path))
    return cmd


def encode_frames(request: RenderRequest, frames: RenderedFrames) -> None:
    request.output_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = encoder_command(request, frames)
    logger.info("encoding frames %d-%d at %sfps", frames.start_frame, frames.end_frame, _format_rate(request.fps or frames.fps))
    try:
        subprocess.run(cmd, check=True, capture_output=True)
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or b"").decode(errors="replace").strip()
        tail = "\n".join(stderr.splitlines()[-20:])
        raise CollaboratorError(
            f"Encoder exited with status {exc.returncode}: {' '.join(cmd)}\n{tail}"
        ) from exc


def render_video(
    request: RenderRequest,
    render_frames: Callable[[RenderRequest], RenderedFrames],
) -> Path:
    """Render frames with the toolchain, then encode them.

    Returns:
        The absolute output path.
    """
    if request.clean_frames:
        removed = clean_frames(request.frames_dir, request.frame_pattern)
        if removed:
            logger.info("removed %d stale frames from %s", removed, request.frames_dir)
    request.frames_dir.mkdir(parents=True, exist_ok=True)

    frames = render_frames(request)
    if not isinstance(frames, RenderedFrames):
        raise CollaboratorError(
            f"render_frames() must return RenderedFrames, got {type(frames).__name__}"
        )
    encode_frames(request, frames)
    return request.output_path


def build_and_render(
    inputs: RenderInputs,
    options: RenderOptions,
    render_frames: Callable[[RenderRequest], RenderedFrames],
    cwd: Path | None = None,
) -> Path:
    """Check inputs, build the request, render and encode."""
    request = build_render_request(inputs, options, cwd)
    return render_video(request, render_frames)
