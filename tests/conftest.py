"""Shared test fixtures for vml tests."""

from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent


def write_source(path: Path, *composition_ids: str) -> Path:
    """Write a test source file declaring the given compositions."""
    path.parent.mkdir(parents=True, exist_ok=True)
    comps = "\n".join(
        f'  <composition id="{cid}" title="{cid.title()}"/>' for cid in composition_ids
    )
    path.write_text(f"<videoml>\n{comps}\n</videoml>\n")
    return path


@pytest.fixture
def project(tmp_path):
    """An empty project root (package.json marker) with a content/ dir."""
    root = tmp_path / "project"
    (root / "content").mkdir(parents=True)
    (root / "package.json").write_text("{}")
    return root


@pytest.fixture
def toolchain(monkeypatch):
    """Select the test toolchain via VIDEOML_TOOLCHAIN and reset its call log."""
    monkeypatch.syspath_prepend(str(TESTS_DIR))
    monkeypatch.setenv("VIDEOML_TOOLCHAIN", "vml_test_toolchain")
    import vml_test_toolchain

    vml_test_toolchain.CALLS.clear()
    return vml_test_toolchain


@pytest.fixture
def make_source():
    return write_source
