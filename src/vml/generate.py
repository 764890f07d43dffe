"""Generation orchestration — one request per composition, in order.

A batch is planned in full before anything is generated:
  1. Output overrides are only legal when the batch holds exactly one
     composition (counted across every resolved source, not just the
     ones in scope).
  2. Artifact paths are derived for every in-scope composition.
  3. No two compositions may share an artifact path (ids are only unique
     within a source file, so two sources can collide).

Only then are the requests issued, sequentially. The first failure stops
the batch and propagates; nothing is retried.
"""

import logging
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .artifacts import ArtifactOverrides, ArtifactPaths, derive_artifact_paths
from .errors import ValidationError
from .sources import SourceRun, composition_id, count_compositions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationOptions:
    """Batch-wide settings shared by every request of a batch."""
    project_dir: Path | None = None
    overrides: ArtifactOverrides = field(default_factory=ArtifactOverrides)
    config: dict = field(default_factory=dict)
    provider: str | None = None
    sfx_provider: str | None = None
    music_provider: str | None = None
    seed: int | None = None
    fresh: bool = False
    usage_enabled: bool = True
    environment: str | None = None
    verbose: bool = True


@dataclass(frozen=True)
class GenerationRequest:
    """Everything the toolchain's generate_composition() receives."""
    composition: Any
    composition_id: str
    source_path: Path
    paths: ArtifactPaths
    config: dict
    provider: str | None
    sfx_provider: str | None
    music_provider: str | None
    seed: int | None
    fresh: bool
    usage_path: Path | None
    usage_enabled: bool
    environment: str | None
    logger: logging.LoggerAdapter
    verbose: bool


class CompositionLogger(logging.LoggerAdapter):
    """Prefix every message with the composition id."""

    def process(self, msg, kwargs):
        return f"{self.extra['composition']}: {msg}", kwargs


def composition_logger(cid: str) -> CompositionLogger:
    return CompositionLogger(logger, {"composition": cid})


# ── Validation ───────────────────────────────────────────────────


def validate_overrides(runs: Sequence[SourceRun], overrides: ArtifactOverrides) -> None:
    total = count_compositions(runs)
    if overrides.any() and total != 1:
        raise ValidationError(
            f"Output overrides require a single composition (found {total})."
        )


def _check_collisions(requests: Sequence[GenerationRequest]) -> None:
    """Reject two compositions that would write the same artifact."""
    owners = {}
    for req in requests:
        for kind, path in req.paths.as_dict().items():
            owner = owners.get(path)
            if owner is not None:
                raise ValidationError(
                    f"Compositions '{owner.composition_id}' ({owner.source_path}) and "
                    f"'{req.composition_id}' ({req.source_path}) both write "
                    f"{kind} to {path}. Rename one of them."
                )
            owners[path] = req


# ── Planning & execution ─────────────────────────────────────────


def plan_batch(
    runs: Sequence[SourceRun],
    options: GenerationOptions,
    scope: Collection[Path] | None = None,
) -> list[GenerationRequest]:
    """Validate a batch and build its requests without side effects.

    Args:
        runs: Every resolved source run.
        options: Batch-wide settings.
        scope: If set, only runs whose path is in scope are planned.

    Raises:
        ValidationError: Overrides with more than one composition, or
            colliding artifact paths.
    """
    validate_overrides(runs, options.overrides)

    requests = []
    for run in runs:
        if scope is not None and run.path not in scope:
            continue
        for comp in run.compositions:
            cid = composition_id(comp)
            paths = derive_artifact_paths(
                cid, run.path, options.project_dir, options.overrides,
            )
            requests.append(GenerationRequest(
                composition=comp,
                composition_id=cid,
                source_path=run.path,
                paths=paths,
                config=options.config,
                provider=options.provider,
                sfx_provider=options.sfx_provider,
                music_provider=options.music_provider,
                seed=options.seed,
                fresh=options.fresh,
                usage_path=options.overrides.usage if options.usage_enabled else None,
                usage_enabled=options.usage_enabled,
                environment=options.environment,
                logger=composition_logger(cid),
                verbose=options.verbose,
            ))

    _check_collisions(requests)
    return requests


def run_batch(
    runs: Sequence[SourceRun],
    options: GenerationOptions,
    generate: Callable[[GenerationRequest], Any],
    scope: Collection[Path] | None = None,
) -> int:
    """Plan a batch, then generate each composition one at a time.

    Returns:
        Number of compositions generated.
    """
    requests = plan_batch(runs, options, scope)
    for req in requests:
        req.logger.info("generating from %s", req.source_path.name)
        generate(req)
        req.logger.info("wrote %s", req.paths.script)
    return len(requests)
