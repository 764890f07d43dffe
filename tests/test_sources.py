"""Tests for source resolution and composition loading."""

import pytest

from vml.errors import AmbiguousDiscoveryError, NotFoundError
from vml.sources import (
    SourceRun,
    composition_id,
    count_compositions,
    find_source_files,
    load_runs,
    resolve_sources,
)


def _touch(path, text="<videoml/>"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestFindSourceFiles:
    def test_matches_only_source_suffixes(self, tmp_path):
        a = _touch(tmp_path / "b.babulus.xml")
        b = _touch(tmp_path / "a.babulus.ts")
        _touch(tmp_path / "notes.md")
        _touch(tmp_path / "helpers.ts")
        _touch(tmp_path / "frame.png")
        assert find_source_files(tmp_path) == [b, a]

    def test_recurses_sorted(self, tmp_path):
        deep = _touch(tmp_path / "z" / "y" / "deep.babulus.xml")
        top = _touch(tmp_path / "top.babulus.xml")
        mid = _touch(tmp_path / "m" / "mid.videoml.xml")
        assert find_source_files(tmp_path) == sorted([deep, top, mid], key=str)

    def test_non_recursive_skips_subdirs(self, tmp_path):
        top = _touch(tmp_path / "top.babulus.xml")
        _touch(tmp_path / "sub" / "nested.babulus.xml")
        assert find_source_files(tmp_path, recursive=False) == [top]


class TestResolveSources:
    def test_explicit_file(self, tmp_path):
        src = _touch(tmp_path / "intro.babulus.xml")
        assert resolve_sources("intro.babulus.xml", tmp_path) == [src]

    def test_explicit_directory(self, tmp_path):
        a = _touch(tmp_path / "videos" / "a.babulus.xml")
        b = _touch(tmp_path / "videos" / "nested" / "b.babulus.ts")
        _touch(tmp_path / "videos" / "readme.txt")
        assert resolve_sources("videos", tmp_path) == [a, b]

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(NotFoundError, match="does not exist"):
            resolve_sources("nope.babulus.xml", tmp_path)

    def test_directory_without_sources_raises(self, tmp_path):
        _touch(tmp_path / "empty" / "notes.txt")
        with pytest.raises(NotFoundError, match="No source files found under"):
            resolve_sources("empty", tmp_path)

    def test_content_file_is_not_a_content_dir(self, tmp_path):
        (tmp_path / "content").write_text("not a directory")
        src = _touch(tmp_path / "only.babulus.xml")
        assert resolve_sources(None, tmp_path) == [src]

    def test_not_found_is_validation_error(self):
        from vml.errors import ValidationError
        assert issubclass(NotFoundError, ValidationError)
        assert issubclass(AmbiguousDiscoveryError, ValidationError)

    def test_discovery_in_content_returns_all(self, tmp_path):
        a = _touch(tmp_path / "content" / "a.babulus.xml")
        b = _touch(tmp_path / "content" / "series" / "b.babulus.xml")
        c = _touch(tmp_path / "content" / "c.babulus.ts")
        assert resolve_sources(None, tmp_path) == sorted([a, b, c], key=str)

    def test_discovery_in_cwd_single(self, tmp_path):
        src = _touch(tmp_path / "only.babulus.xml")
        assert resolve_sources(None, tmp_path) == [src]

    def test_discovery_in_cwd_ambiguous(self, tmp_path):
        _touch(tmp_path / "a.babulus.xml")
        _touch(tmp_path / "b.babulus.xml")
        with pytest.raises(AmbiguousDiscoveryError, match="Multiple"):
            resolve_sources(None, tmp_path)

    def test_discovery_in_cwd_is_not_recursive(self, tmp_path):
        _touch(tmp_path / "sub" / "a.babulus.xml")
        with pytest.raises(AmbiguousDiscoveryError, match="No "):
            resolve_sources(None, tmp_path)

    def test_discovery_empty_content_raises(self, tmp_path):
        (tmp_path / "content").mkdir()
        _touch(tmp_path / "outside.babulus.xml")
        with pytest.raises(AmbiguousDiscoveryError):
            resolve_sources(None, tmp_path)

    def test_results_are_absolute(self, tmp_path):
        _touch(tmp_path / "content" / "a.babulus.xml")
        assert all(p.is_absolute() for p in resolve_sources(None, tmp_path))


class TestCompositionId:
    def test_mapping(self):
        assert composition_id({"id": "intro"}) == "intro"

    def test_attribute(self):
        class Comp:
            id = "outro"
        assert composition_id(Comp()) == "outro"

    def test_missing_id_raises(self):
        from vml.errors import ValidationError
        with pytest.raises(ValidationError, match="no id"):
            composition_id({"title": "x"})


class TestLoadRuns:
    def test_one_call_per_source_in_order(self, tmp_path):
        calls = []

        def loader(path):
            calls.append(path)
            return [{"id": f"{path.stem}-1"}, {"id": f"{path.stem}-2"}]

        a, b = tmp_path / "a.babulus.xml", tmp_path / "b.babulus.xml"
        runs = load_runs([a, b], loader)
        assert calls == [a, b]
        assert runs[0] == SourceRun(path=a, compositions=({"id": "a.babulus-1"}, {"id": "a.babulus-2"}))
        assert [composition_id(c) for c in runs[1].compositions] == ["b.babulus-1", "b.babulus-2"]
        assert count_compositions(runs) == 4

    def test_loader_errors_propagate(self, tmp_path):
        def loader(path):
            raise SyntaxError("bad source")

        with pytest.raises(SyntaxError, match="bad source"):
            load_runs([tmp_path / "a.babulus.xml"], loader)
