"""CLI for generation — source file(s) to script/timeline/audio artifacts.

Usage:
    # Discover the source in ./content/ (or cwd) and generate everything
    vml generate

    # One file, explicit outputs (single composition only)
    vml generate content/intro.babulus.xml \
        --script-out /tmp/intro.script.json --audio-out /tmp/intro.wav

    # Regenerate on every change to the sources or the project config
    vml generate content/ --watch
"""

import argparse
from pathlib import Path

from .artifacts import ArtifactOverrides
from .common import configure_logging, find_config_path, load_config, resolve_path
from .errors import ValidationError
from .generate import GenerationOptions, plan_batch, run_batch
from .sources import load_runs, resolve_sources
from .toolchain import load_toolchain, toolchain_name
from .watch import WatchSession, watch


def _parse_args(args=None):
    parser = argparse.ArgumentParser(
        prog="vml generate",
        description="Generate script, timeline and audio for each composition.",
    )
    parser.add_argument(
        "source", nargs="?", default=None,
        help="Source file (.babulus.ts/.babulus.xml) or directory (default: discover)",
    )
    parser.add_argument("--script-out", help="Output script JSON path")
    parser.add_argument("--timeline-out", help="Output timeline JSON path")
    parser.add_argument("--audio-out", help="Output audio path")
    parser.add_argument("--out-dir", help="Intermediate output directory")
    parser.add_argument("--usage-out", help="Usage ledger output path")
    parser.add_argument(
        "--no-usage", dest="usage", action="store_false",
        help="Disable the usage ledger",
    )
    parser.add_argument(
        "--env", "--environment", dest="environment", default=None,
        help="Environment name for provider selection",
    )
    parser.add_argument("--provider", help="Override voiceover provider")
    parser.add_argument("--sfx-provider", help="Override SFX provider")
    parser.add_argument("--music-provider", help="Override music provider")
    parser.add_argument("--seed", type=int, default=None, help="Override voiceover seed")
    parser.add_argument(
        "--fresh", action="store_true",
        help="Force regeneration of all audio (ignore cached results)",
    )
    parser.add_argument(
        "--watch", action="store_true",
        help="Watch source file(s) and config, re-run generation on change",
    )
    parser.add_argument(
        "--initial-build", action="store_true",
        help="With --watch: generate everything once before waiting for changes",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("--project-dir", help="Project root directory (prefix for outputs)")
    parser.add_argument(
        "--toolchain", default=None,
        help="Toolchain module (default: $VIDEOML_TOOLCHAIN or config 'toolchain')",
    )
    return parser.parse_args(args)


def _overrides(parsed, cwd: Path) -> ArtifactOverrides:
    def _opt(value):
        return resolve_path(value, cwd) if value else None

    return ArtifactOverrides(
        script=_opt(parsed.script_out),
        timeline=_opt(parsed.timeline_out),
        audio=_opt(parsed.audio_out),
        out_dir=_opt(parsed.out_dir),
        usage=_opt(parsed.usage_out),
    )


def main(args=None, cwd=None):
    parsed = _parse_args(args)
    configure_logging(parsed.quiet)

    cwd = resolve_path(cwd or Path.cwd())
    project_dir = resolve_path(parsed.project_dir, cwd) if parsed.project_dir else None
    overrides = _overrides(parsed, cwd)

    sources = resolve_sources(parsed.source, cwd)
    if parsed.watch and overrides.any() and len(sources) != 1:
        raise ValidationError(
            "When using --watch with multiple sources, omit explicit output overrides."
        )

    config_path = find_config_path(project_dir, sources[0])
    config = load_config(config_path)
    toolchain = load_toolchain(toolchain_name(parsed.toolchain, config))
    load_source = toolchain.require("load_source")
    generate = toolchain.require("generate_composition")

    def _options(cfg):
        return GenerationOptions(
            project_dir=project_dir,
            overrides=overrides,
            config=cfg,
            provider=parsed.provider,
            sfx_provider=parsed.sfx_provider,
            music_provider=parsed.music_provider,
            seed=parsed.seed,
            fresh=parsed.fresh,
            usage_enabled=parsed.usage,
            environment=parsed.environment,
            verbose=not parsed.quiet,
        )

    runs = load_runs(sources, load_source)
    # Validate up front, before the first generation call (and before
    # watching, so a bad invocation never reaches the observer).
    plan_batch(runs, _options(config))

    if not parsed.watch:
        run_batch(runs, _options(config), generate)
        return

    session = WatchSession.create(sources, config_path)
    current = {run.path: run for run in runs}

    def _rebuild(scope):
        # Reload what changed so the new batch sees the edited content.
        cfg = load_config(session.config_path)
        targets = [p for p in session.sources if scope is None or p in scope]
        for run in load_runs(targets, load_source):
            current[run.path] = run
        run_batch(
            [current[p] for p in session.sources], _options(cfg), generate, scope=scope,
        )

    watch(session, _rebuild, initial_build=parsed.initial_build, quiet=parsed.quiet)


if __name__ == "__main__":
    main()
