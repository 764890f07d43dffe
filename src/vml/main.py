"""Subcommand dispatcher for vml.

Usage:
    vml generate [source] [--watch] ...
    vml render   --script ... --frames ... --out ...
    vml pipeline [source] [--out ...]

Exit codes: 0 on success, 2 on invalid input (message only), 1 on any
other failure (with traceback).
"""

import argparse
import sys

from .errors import ValidationError


COMMANDS = {
    "generate": "Generate script/timeline/audio artifacts from source files",
    "render": "Render a generated script to frames and encode a video",
    "pipeline": "Generate and render a single composition",
}


def _dispatch(command, remaining):
    if command == "generate":
        from .generate_cli import main as generate_main
        generate_main(remaining)
    elif command == "render":
        from .render_cli import main as render_main
        render_main(remaining)
    elif command == "pipeline":
        from .pipeline_cli import main as pipeline_main
        pipeline_main(remaining)


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="vml",
        description="VideoML CLI — generate, watch and render compositions.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    for name, help_text in COMMANDS.items():
        subparsers.add_parser(name, help=help_text, add_help=False)

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        _dispatch(parsed.command, remaining)
    except ValidationError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
