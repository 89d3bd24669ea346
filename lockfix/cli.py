"""Command-line interface for lockfix."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from lockfix.__version__ import __version__
from lockfix.config import Settings
from lockfix.core.audit import audit_cmd, request_report, validate_args
from lockfix.core.report import enrich_tree
from lockfix.errors import InstallError, LockfixError, NoLockfileError
from lockfix.managers import detect_manager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockfix",
        description="Audit an npm project's lockfile and apply targeted security fixes.",
    )
    parser.add_argument(
        "subcommand",
        nargs="*",
        help="Nothing to print the audit report, or `fix` to install the safe remediations",
    )
    parser.add_argument(
        "-C",
        "--directory",
        default=".",
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Report what `fix` would change without writing the lockfile",
    )
    parser.add_argument(
        "--registry",
        default=None,
        help="Registry that serves audit requests",
    )
    parser.add_argument(
        "-g",
        "--global",
        action="store_true",
        default=None,
        dest="global_mode",
        help="Audit global packages (not supported)",
    )
    parser.add_argument(
        "--tui",
        action="store_true",
        help="Browse the report as an interactive dependency tree",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) output",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbose: bool, tui: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    if tui:
        # The terminal belongs to the UI
        logging.basicConfig(
            filename="debug.log",
            level=level,
            filemode="w",
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
    else:
        logging.basicConfig(
            level=level,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def browse(settings: Settings, where: str) -> int:
    from lockfix.app import ReportApp

    report, _ = asyncio.run(request_report(settings, where))
    manager = detect_manager(where)
    if manager is None:
        raise NoLockfileError()
    root, versions = manager.get_dependencies(where)
    enrich_tree(root, report)
    ReportApp(root, report, total_pkgs=len(versions)).run()
    return 1 if report.vulnerability_count() > 0 else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.tui and not args.subcommand)

    overrides = {
        "dry_run": args.dry_run,
        "registry": args.registry,
        "global_mode": args.global_mode,
    }
    settings = Settings(**{k: v for k, v in overrides.items() if v is not None})

    try:
        if args.tui and not args.subcommand:
            validate_args(args.subcommand, settings)
            return browse(settings, args.directory)
        return asyncio.run(audit_cmd(args.subcommand, settings, args.directory))
    except InstallError as e:
        logging.error(f"{e.code}: {e}")
        return e.returncode
    except LockfixError as e:
        logging.error(f"{e.code}: {e}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
