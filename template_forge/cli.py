"""Command-line interface for template-forge.

Usage::

    template-forge init my-extension
    template-forge init my-extension --template ./my-template --defaults
    template-forge init . --select ui=popup,options --select features= --yes
    template-forge apply ./checkout --defaults --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from template_forge import __version__
from template_forge.commands import apply_project, init_project
from template_forge.config import ForgeConfig
from template_forge.engine import UserSelections
from template_forge.errors import ForgeError
from template_forge.selections import parse_selection_args
from template_forge.template.source import is_valid_template_source
from template_forge.utils import console, print_error, print_warning


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--select", "-s",
        action="append",
        default=[],
        metavar="LAYER=ID,ID",
        help="Items to keep in a layer; repeatable. Skips the prompt for every layer.",
    )
    parser.add_argument(
        "--defaults",
        action="store_true",
        help="Keep each layer's default-enabled items instead of prompting",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the planned changes without touching any file",
    )
    parser.add_argument(
        "--no-transaction",
        action="store_true",
        help="Do not snapshot the project before applying (no rollback on failure)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="template-forge",
        description="Scaffold projects from layered, configurable templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  template-forge init my-extension\n"
            "  template-forge init my-extension --template ./my-template --defaults\n"
            "  template-forge apply ./checkout --select ui=popup --dry-run\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create a project from a template")
    init_parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="Directory to create the project in (default: current directory)",
    )
    init_parser.add_argument(
        "--template", "-t",
        default=None,
        help="Template git URL or local path (prompted for when omitted)",
    )
    init_parser.add_argument(
        "--branch", "-b",
        default=None,
        help="Template branch to clone (default: master)",
    )
    init_parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Write into a non-empty directory without asking",
    )
    _add_selection_arguments(init_parser)

    apply_parser = subparsers.add_parser(
        "apply", help="Apply selections to an existing template checkout"
    )
    apply_parser.add_argument("directory", help="Directory holding template.config.json")
    _add_selection_arguments(apply_parser)

    return parser


async def _run(
    args: argparse.Namespace, config: ForgeConfig, selections: UserSelections | None
) -> None:
    if args.command == "init":
        await init_project(
            args.directory,
            repo_url=args.template,
            selections=selections,
            config=config,
            branch=args.branch,
            use_defaults=args.defaults,
            assume_yes=args.yes,
            dry_run=args.dry_run,
        )
        return

    await apply_project(
        args.directory,
        selections=selections,
        config=config,
        use_defaults=args.defaults,
        dry_run=args.dry_run,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``template-forge`` and ``python -m template_forge``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "template", None) and not is_valid_template_source(args.template):
        parser.error(f"invalid template source: {args.template}")
    try:
        selections = parse_selection_args(args.select) if args.select else None
    except ValueError as exc:
        parser.error(str(exc))

    config = ForgeConfig.from_env()
    if args.no_transaction:
        config = config.model_copy(update={"transactional": False})

    try:
        asyncio.run(_run(args, config, selections))
    except ForgeError as exc:
        print_error(f"\n❌ Error: {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        print_warning("\nOperation cancelled.")
        sys.exit(130)
    except Exception as exc:
        print_error(f"\n❌ Unexpected error: {exc}")
        console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
