"""Toolchain binding — the external collaborators vml drives.

A toolchain is an importable module exposing any of:

  load_source(path) -> sequence of compositions (objects with `.id`,
      or mappings with an "id" key)
  generate_composition(request: GenerationRequest) -> None
  render_frames(request: RenderRequest) -> RenderedFrames

The module is named by (first match wins): the --toolchain option, the
VIDEOML_TOOLCHAIN environment variable, the `toolchain` key of the
project config.
"""

import importlib
import os
from collections.abc import Callable
from dataclasses import dataclass

from .errors import ValidationError


TOOLCHAIN_ENV_VAR = "VIDEOML_TOOLCHAIN"

TOOLCHAIN_HOOKS = ("load_source", "generate_composition", "render_frames")


@dataclass(frozen=True)
class Toolchain:
    name: str
    load_source: Callable | None = None
    generate_composition: Callable | None = None
    render_frames: Callable | None = None

    def require(self, hook: str) -> Callable:
        """Return a hook, or fail if the toolchain doesn't provide it."""
        fn = getattr(self, hook)
        if fn is None:
            raise ValidationError(
                f"Toolchain '{self.name}' does not provide '{hook}'"
            )
        return fn


def toolchain_name(cli_value: str | None, config: dict | None = None) -> str | None:
    """Pick the toolchain module name from CLI, environment, then config."""
    if cli_value:
        return cli_value
    env_value = os.environ.get(TOOLCHAIN_ENV_VAR)
    if env_value:
        return env_value
    if config:
        value = config.get("toolchain")
        if value:
            return str(value)
    return None


def load_toolchain(name: str | None) -> Toolchain:
    """Import a toolchain module and collect its hooks.

    Raises:
        ValidationError: No name given, or the module cannot be imported.
    """
    if not name:
        raise ValidationError(
            "No toolchain configured. Pass --toolchain, set "
            f"{TOOLCHAIN_ENV_VAR}, or add 'toolchain:' to the project config."
        )
    try:
        module = importlib.import_module(name)
    except ModuleNotFoundError as exc:
        # Only the toolchain itself being absent is a user error; a missing
        # dependency inside it is the toolchain's own failure.
        if exc.name is None or not (name == exc.name or name.startswith(exc.name + ".")):
            raise
        raise ValidationError(f"Cannot import toolchain '{name}': {exc}") from exc

    hooks = {}
    for hook in TOOLCHAIN_HOOKS:
        fn = getattr(module, hook, None)
        if fn is not None and not callable(fn):
            raise ValidationError(f"Toolchain '{name}': '{hook}' is not callable")
        hooks[hook] = fn
    return Toolchain(name=name, **hooks)
