"""CLI entrypoints for tsrefactor commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .logging import configure_logging
from .orchestrator import Orchestrator
from .report import render_execution, render_json, render_text


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity (reports unparsable and oversized files).",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_quiet_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Only log warnings and errors (ignored with --verbose).",
    )


def _add_path_arguments(parser: argparse.ArgumentParser, *, with_lib: bool = True) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    if with_lib:
        parser.add_argument(
            "--lib-path",
            default=None,
            help="Lib directory to check and migrate (defaults to lib_path in .tsrefactor.yml, then src/lib).",
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsrefactor",
        description="Find duplicated TypeScript code and plan module migrations.",
    )
    _add_verbose_option(parser)
    _add_quiet_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write DEBUG logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Detect duplicates, check lib structure and print the migration plan.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_quiet_option(analyze_parser, suppress_default=True)
    _add_path_arguments(analyze_parser)
    analyze_parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format for the analysis report.",
    )
    analyze_parser.add_argument(
        "--no-types",
        action="store_true",
        help="Skip duplicate interface/type alias detection.",
    )

    quick_parser = subparsers.add_parser(
        "quick-scan",
        help="List exported names declared in more than one file (regex only).",
    )
    _add_verbose_option(quick_parser, suppress_default=True)
    _add_quiet_option(quick_parser, suppress_default=True)
    _add_path_arguments(quick_parser, with_lib=False)

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Execute the migration plan (preview unless --apply is given).",
    )
    _add_verbose_option(migrate_parser, suppress_default=True)
    _add_quiet_option(migrate_parser, suppress_default=True)
    _add_path_arguments(migrate_parser)
    migrate_parser.add_argument(
        "--apply",
        action="store_true",
        help="Write changes to disk instead of previewing them.",
    )
    migrate_parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not copy moved or deleted files under .tsrefactor/backups.",
    )
    migrate_parser.add_argument(
        "--types",
        action="store_true",
        help="Also remove identical duplicate interfaces and type aliases, repointing their imports.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for tsrefactor commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    verbose = bool(args.verbose)

    configure_logging(verbose=verbose, quiet=bool(args.quiet), log_file=args.log_file)

    orchestrator = Orchestrator()

    if args.command == "analyze":
        try:
            analysis = orchestrator.run_analysis(
                args.path,
                lib_path=args.lib_path,
                include_types=False if args.no_types else None,
                verbose=verbose,
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (RuntimeError, ValueError) as exc:
            parser.exit(1, f"tsrefactor analyze failed: {exc}\nRun with --verbose for more details.\n")
        print(render_json(analysis) if args.format == "json" else render_text(analysis))
    elif args.command == "quick-scan":
        try:
            result = orchestrator.run_quick_scan(args.path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        print(f"Functions declared in several files ({len(result.functions)}):")
        for line in result.functions:
            print(f"  {_relativize_line(line)}")
        print(f"Types declared in several files ({len(result.types)}):")
        for line in result.types:
            print(f"  {_relativize_line(line)}")
    elif args.command == "migrate":
        try:
            outcome = orchestrator.run_migration(
                args.path,
                lib_path=args.lib_path,
                dry_run=not args.apply,
                backup=not args.no_backup,
                types=args.types,
                verbose=verbose,
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (RuntimeError, ValueError) as exc:
            parser.exit(1, f"tsrefactor migrate failed: {exc}\nRun with --verbose for more details.\n")
        print(render_execution(outcome.execution))
        if outcome.type_execution is not None:
            print(render_execution(outcome.type_execution, title="Type migration"))
        if not outcome.succeeded:
            parser.exit(1, "One or more migration actions failed.\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize_line(line: str) -> str:
    name, _, files = line.partition(": ")
    return f"{name}: {', '.join(_relativize(Path(item)) for item in files.split(', '))}"


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
