"""Tests for `vml render`."""

import json

import imageio_ffmpeg
import pytest

from vml.errors import MissingArtifactError
from vml.render_cli import main

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


@pytest.fixture
def artifacts(tmp_path):
    script = tmp_path / "intro.script.json"
    script.write_text(json.dumps({"id": "intro", "fps": 10, "durationFrames": 5}))
    timeline = tmp_path / "intro.timeline.json"
    timeline.write_text(json.dumps({"durationFrames": 5}))
    return script, timeline


class TestRenderCli:
    def test_forwards_options(self, tmp_path, artifacts, toolchain, capsys):
        main([
            "--script", "intro.script.json", "--timeline", "intro.timeline.json",
            "--frames", "frames", "--out", "out/intro.mp4",
            "--start", "1", "--end", "3", "--workers", "2", "--scale", "2",
            "--title", "Intro", "--debug-layout",
            "--ffmpeg", _FFMPEG, "--ffmpeg-arg=-crf", "--ffmpeg-arg=30",
        ], cwd=tmp_path)

        (_, req), = toolchain.CALLS
        assert (req.start_frame, req.end_frame) == (1, 3)
        assert req.workers == 2
        assert req.device_scale_factor == 2.0
        assert req.title == "Intro" and req.debug_layout
        assert req.encoder_args == ("-crf", "30")
        assert req.frames_dir == tmp_path / "frames"
        assert (tmp_path / "out" / "intro.mp4").exists()
        assert f"write: {tmp_path / 'out' / 'intro.mp4'}" in capsys.readouterr().err

    def test_missing_script_before_toolchain(self, tmp_path, monkeypatch):
        monkeypatch.delenv("VIDEOML_TOOLCHAIN", raising=False)
        with pytest.raises(MissingArtifactError):
            main(["--script", "nope.json", "--frames", "f", "--out", "o.mp4"], cwd=tmp_path)
        assert not (tmp_path / "f").exists()

    def test_no_clean_flag(self, tmp_path, artifacts, toolchain):
        frames = tmp_path / "frames"
        frames.mkdir()
        (frames / "frame-000042.png").write_bytes(b"stale")
        main([
            "--script", "intro.script.json", "--frames", "frames", "--out", "o.mp4",
            "--end", "1", "--no-clean", "--ffmpeg", _FFMPEG,
        ], cwd=tmp_path)
        (_, req), = toolchain.CALLS
        assert req.clean_frames is False
        assert (frames / "frame-000042.png").exists()
