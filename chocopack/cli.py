# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command-line interface for chocopack.

Commands:

    search: Search the Chocolatey repository for package names
    package: Run the packaging pipeline for one or more packages
    rollback: Run a package's generated uninstall script
    setup: Download IntuneWinAppUtil.exe to its configured location

Example:
    Package two applications:
        ```bash
        $ chocopack package 7zip notepadplusplus
        ```

    Use a configuration file and verbose output:
        ```bash
        $ chocopack package 7zip --config chocopack.yaml --verbose
        ```

Exit Codes:

- 0: Success (every package succeeded)
- 1: Error (any package failed, or configuration/setup problem)

Note:
    The CLI uses argparse for command parsing. Each command has its own
    handler function (cmd_<command>). Verbose mode shows full tracebacks
    on errors for debugging.
"""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
import sys

from chocopack.build.packager import fetch_intunewin_tool, verify_tool
from chocopack.chocolatey import ChocolateyClient
from chocopack.config import PipelineConfig, load_config
from chocopack.core import DeploymentOrchestrator
from chocopack.exceptions import ChocoPackError, ToolMissingError
from chocopack.logging import get_logger, set_global_logger


def _load_config(args: argparse.Namespace) -> PipelineConfig:
    path = Path(args.config) if args.config else None
    return load_config(path)


def _print_error(err: Exception, args: argparse.Namespace) -> None:
    print(f"Error: {err}")
    if args.verbose or args.debug:
        import traceback

        traceback.print_exc()


def cmd_search(args: argparse.Namespace) -> int:
    """Handler for 'chocopack search' command.

    Args:
        args: Parsed command-line arguments containing the search term.

    Returns:
        Exit code (0 if the search ran, 1 on error).
    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    try:
        config = _load_config(args)
        names = ChocolateyClient(config.choco_executable).search(args.term)
    except ChocoPackError as err:
        _print_error(err, args)
        return 1

    if not names:
        print(f"No packages found for: {args.term}")
        return 0

    for index, name in enumerate(names[: args.limit], start=1):
        print(f"{index:3}. {name}")
    return 0


def cmd_package(args: argparse.Namespace) -> int:
    """Handler for 'chocopack package' command.

    Runs the pipeline for each named package in order. A failed package is
    reported and the next one still runs. A missing IntuneWinAppUtil.exe
    stops the command before any package is processed, since every package
    would fail the same way.

    Args:
        args: Parsed command-line arguments containing package names,
            version, and flags.

    Returns:
        Exit code (0 if every package succeeded, 1 otherwise).
    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    try:
        config = _load_config(args)
        verify_tool(config)
    except ToolMissingError as err:
        # Every package would fail the same way
        _print_error(err, args)
        print("No packages were processed.")
        return 1
    except ChocoPackError as err:
        _print_error(err, args)
        return 1

    orchestrator = DeploymentOrchestrator(config, logger=logger)

    results = []
    for name in args.packages:
        print(f"Packaging: {name}")
        results.append(orchestrator.run(name, app_version=args.app_version))
        print()

    print("=" * 70)
    print("PACKAGE RESULTS")
    print("=" * 70)
    for result in results:
        if result.ok:
            print(f"  [OK] {result.raw_name}: {result.artifact.path}")
            if result.icon is not None and not result.icon.ok:
                print(f"       (icon not assigned: {result.icon.error})")
        else:
            print(f"  [X]  {result.raw_name}: {result.reason.value} - {result.error}")
            if result.rollback is not None:
                status = "ok" if result.rollback.ok else result.rollback.error
                print(f"       rollback: {status}")
    print("=" * 70)

    failed = [r for r in results if not r.ok]
    print()
    if failed:
        print(f"[FAILED] {len(failed)} of {len(results)} package(s) failed.")
        return 1
    print(f"[SUCCESS] {len(results)} package(s) created successfully!")
    return 0


def cmd_rollback(args: argparse.Namespace) -> int:
    """Handler for 'chocopack rollback' command.

    Args:
        args: Parsed command-line arguments containing the package name.

    Returns:
        Exit code (0 if the uninstall script ran successfully, 1 otherwise).
    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    try:
        config = _load_config(args)
    except ChocoPackError as err:
        _print_error(err, args)
        return 1

    result = DeploymentOrchestrator(config, logger=logger).rollback(args.package)
    if result.ok:
        print(f"[SUCCESS] Rolled back {args.package}")
        return 0
    print(f"[FAILED] Rollback of {args.package}: {result.error}")
    return 1


def cmd_setup(args: argparse.Namespace) -> int:
    """Handler for 'chocopack setup' command.

    Creates the apps and logos folders and downloads IntuneWinAppUtil.exe if
    it is not already present.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    try:
        config = _load_config(args)
        config.apps_root.mkdir(parents=True, exist_ok=True)
        config.logos_dir.mkdir(parents=True, exist_ok=True)
        tool_path = fetch_intunewin_tool(config)
    except (ChocoPackError, OSError) as err:
        _print_error(err, args)
        return 1

    print(f"Apps folder:      {config.apps_root}")
    print(f"Logos folder:     {config.logos_dir}")
    print(f"IntuneWinAppUtil: {tool_path}")
    print()
    print("[SUCCESS] Setup complete!")
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a chocopack YAML configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )


def _version() -> str:
    try:
        return version("chocopack")
    except PackageNotFoundError:
        from chocopack import __version__

        return __version__


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the chocopack CLI."""
    parser = argparse.ArgumentParser(
        prog="chocopack",
        description="chocopack - Chocolatey to Intune packaging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"chocopack {_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'search' command
    parser_search = subparsers.add_parser(
        "search",
        help="Search the Chocolatey repository",
        description="List Chocolatey package names matching a search term.",
    )
    parser_search.add_argument("term", help="Search term")
    parser_search.add_argument(
        "--limit",
        type=int,
        default=25,
        help="Maximum number of results to show (default: 25)",
    )
    _add_common_arguments(parser_search)
    parser_search.set_defaults(func=cmd_search)

    # 'package' command
    parser_package = subparsers.add_parser(
        "package",
        help="Create .intunewin packages from Chocolatey packages",
        description="Install each package, generate deployment scripts, and package it for Intune.",
    )
    parser_package.add_argument(
        "packages",
        nargs="+",
        help="Chocolatey package name(s), processed in order",
    )
    parser_package.add_argument(
        "--app-version",
        default="latest",
        help="Version reported by the detection script (default: latest)",
    )
    _add_common_arguments(parser_package)
    parser_package.set_defaults(func=cmd_package)

    # 'rollback' command
    parser_rollback = subparsers.add_parser(
        "rollback",
        help="Run a package's generated uninstall script",
        description="Run Uninstall.ps1 from a package folder created by 'chocopack package'.",
    )
    parser_rollback.add_argument("package", help="Package name")
    _add_common_arguments(parser_rollback)
    parser_rollback.set_defaults(func=cmd_rollback)

    # 'setup' command
    parser_setup = subparsers.add_parser(
        "setup",
        help="Create folders and download IntuneWinAppUtil.exe",
        description="Prepare the working folders and fetch IntuneWinAppUtil.exe if missing.",
    )
    _add_common_arguments(parser_setup)
    parser_setup.set_defaults(func=cmd_setup)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the chocopack CLI.

    This function is registered as the 'chocopack' console script in
    pyproject.toml.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
