"""Toolchain used by the tests.

Sources are tiny XML files:

    <videoml>
      <composition id="intro" title="Intro"/>
    </videoml>

generate_composition() writes deterministic script/timeline JSON (no
audio). render_frames() writes solid-color 64x48 PNGs, one per frame.
"""

import json
import xml.etree.ElementTree as ET
from pathlib import Path

import numpy as np
from PIL import Image

from vml.render import RenderedFrames

FPS = 10
DURATION_FRAMES = 5
SIZE = (64, 48)

CALLS = []


def load_source(path):
    root = ET.parse(path).getroot()
    return [
        {"id": el.get("id"), "title": el.get("title", "")}
        for el in root.iter("composition")
    ]


def _write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2, sort_keys=True)


def generate_composition(request):
    CALLS.append(("generate", request))
    comp = request.composition
    _write_json(request.paths.script, {
        "id": comp["id"],
        "title": comp["title"],
        "fps": FPS,
        "width": SIZE[0],
        "height": SIZE[1],
        "durationFrames": DURATION_FRAMES,
    })
    _write_json(request.paths.timeline, {
        "id": comp["id"],
        "durationFrames": DURATION_FRAMES,
        "seed": request.seed,
    })


def render_frames(request):
    CALLS.append(("render", request))
    fps = request.fps or request.script["fps"]
    if request.end_frame is not None:
        end = request.end_frame
    else:
        end = (request.timeline or request.script)["durationFrames"] - 1
    w, h = SIZE
    for n in range(request.start_frame, end + 1):
        frame = np.full((h, w, 3), (n * 40) % 256, dtype=np.uint8)
        Image.fromarray(frame).save(request.frames_dir / (request.frame_pattern % n))
    return RenderedFrames(fps=fps, start_frame=request.start_frame, end_frame=end)
