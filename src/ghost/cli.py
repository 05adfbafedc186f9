"""
Command-line interface for ghost.

This module provides the `ghost` CLI tool for generating and running C/C++
workspace builds.

Exit codes:
    0    success
    1    any fatal error
    2    declared sources missing, or a package without compilable sources
    130  interrupted
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, NoReturn, Optional

from rich.console import Console

from ghost import __version__
from ghost.build import DiscoveryMismatchError, GhostOrchestrator
from ghost.errors import GhostError
from ghost.output import init_timer, log_build_complete, log_header, set_verbose

console = Console(stderr=True, highlight=False)

COMMANDS = ("build", "discover", "help")


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    profile: Optional[Path] = None
    generate_only: bool = False
    verbose: bool = False


@dataclass
class DiscoverArgs:
    """Arguments for the discover command."""

    project_dir: Path
    profile: Optional[Path] = None
    verbose: bool = False


def _success(message: str) -> None:
    console.print(f"[bold green]✓ {message}[/bold green]")


def _failure(message: str, detail: Optional[str] = None) -> None:
    console.print()
    console.print(f"[bold red]✗ {message}[/bold red]")
    if detail:
        console.print()
        console.print(detail, markup=False)


def _report_mismatch(error: DiscoveryMismatchError) -> None:
    _failure("Declared source files are missing")
    for line in error.format_report():
        console.print(line, markup=False)


def _configure_logging(verbose: bool) -> None:
    set_verbose(verbose)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def build_command(args: BuildArgs) -> None:
    """Generate build.ninja and compile_commands.json, then run ninja.

    Examples:
        ghost build                        # Build with the default toolchain
        ghost build --profile gcc.toml     # Build with an explicit profile
        ghost build -n                     # Only generate the build files
        ghost build -C path/to/workspace   # Build another workspace
    """
    init_timer()
    log_header("Ghost Build Graph Compiler", __version__)

    try:
        orchestrator = GhostOrchestrator(args.project_dir, verbose=args.verbose)
        result = orchestrator.build(profile_path=args.profile, generate_only=args.generate_only)

        console.print()
        if result.ran_executor:
            _success("Build successful!")
        else:
            _success(f"Generated {result.build_file}")
        log_build_complete(result.build_time)
        sys.exit(0)

    except DiscoveryMismatchError as e:
        _report_mismatch(e)
        sys.exit(e.exit_code)

    except GhostError as e:
        _failure("Build failed!", str(e))
        sys.exit(e.exit_code)

    except KeyboardInterrupt:
        console.print()
        console.print("[bold yellow]✗ Build interrupted[/bold yellow]")
        sys.exit(130)

    except Exception as e:
        _failure("Unexpected error", f"{type(e).__name__}: {e}")

        if args.verbose:
            import traceback

            console.print()
            console.print("Traceback:")
            console.print(traceback.format_exc(), markup=False)

        sys.exit(1)


def discover_command(args: DiscoverArgs) -> None:
    """Check every workspace member's sources.

    Prints one line per package, "<name>: N files (M compilable) – OK".
    Missing files are listed per package and the command exits with 2.
    """
    try:
        orchestrator = GhostOrchestrator(args.project_dir, verbose=args.verbose)
        report = orchestrator.discover(profile_path=args.profile)

        print(f"Build dir: {report.build_dir}")
        print("Targets:")
        for package in report.packages:
            if not package.missing:
                print(f"{package.name}: {len(package.files)} files ({package.compilable} compilable) – OK")
        report.raise_for_missing()
        sys.exit(0)

    except DiscoveryMismatchError as e:
        _report_mismatch(e)
        sys.exit(e.exit_code)

    except GhostError as e:
        _failure("Discover failed!", str(e))
        sys.exit(e.exit_code)

    except KeyboardInterrupt:
        console.print()
        console.print("[bold yellow]✗ Discover interrupted[/bold yellow]")
        sys.exit(130)


def _project_dir_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-C",
        "--directory",
        dest="project_dir",
        type=Path,
        default=None,
        help="Workspace directory (default: current directory)",
    )


def _profile_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="Toolchain profile file (default: $GHOST_PROFILE, then the built-in clang profile)",
    )


def _verbose_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


class GhostArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit code 1.

    Exit code 2 is reserved for missing or uncompilable sources.
    """

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def create_parser() -> argparse.ArgumentParser:
    parser = GhostArgumentParser(
        prog="ghost",
        description="Ghost - manifest-driven build graph compiler for C/C++ workspaces",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ghost {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    build_parser = subparsers.add_parser(
        "build",
        help="Generate the build graph and run ninja",
    )
    _profile_argument(build_parser)
    build_parser.add_argument(
        "-n",
        "--generate-only",
        action="store_true",
        help="Write build.ninja and compile_commands.json without running ninja",
    )
    _verbose_argument(build_parser)
    _project_dir_argument(build_parser)

    discover_parser = subparsers.add_parser(
        "discover",
        help="Check that every member's declared sources exist",
    )
    _profile_argument(discover_parser)
    _verbose_argument(discover_parser)
    _project_dir_argument(discover_parser)

    subparsers.add_parser("help", help="Show this help message")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Ghost - manifest-driven build graph compiler for C/C++ workspaces."""
    parser = create_parser()
    args = sys.argv[1:] if argv is None else argv

    # Unknown commands fall back to help
    if args and not args[0].startswith("-") and args[0] not in COMMANDS:
        parser.print_help()
        sys.exit(0)

    parsed_args = parser.parse_args(args)

    if not parsed_args.command or parsed_args.command == "help":
        parser.print_help()
        sys.exit(0)

    project_dir = parsed_args.project_dir or Path.cwd()
    if not project_dir.exists():
        console.print(f"[bold red]✗ Error: Path does not exist: {project_dir}[/bold red]")
        sys.exit(1)

    if parsed_args.command == "build":
        _configure_logging(parsed_args.verbose)
        build_command(
            BuildArgs(
                project_dir=project_dir,
                profile=parsed_args.profile,
                generate_only=parsed_args.generate_only,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "discover":
        _configure_logging(parsed_args.verbose)
        discover_command(
            DiscoverArgs(
                project_dir=project_dir,
                profile=parsed_args.profile,
                verbose=parsed_args.verbose,
            )
        )


if __name__ == "__main__":
    main()
