# cli.py
import argparse
import asyncio
import sys
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .app import create_bootstrapper
from .context import CancellationToken
from .logger import setup_logging
from .models import BootstrapperConfig, load_config
from .packaging import cleanup_stale_binary
from .publisher import publish_release
from .types import ConfigError, UpdaterError


def build_config(args: argparse.Namespace) -> BootstrapperConfig:
    """Merge the configuration file (or the defaults) with command-line flags."""
    config = load_config(args.config) if args.config else BootstrapperConfig()
    updates = {}
    if args.quiet:
        updates["quiet"] = True
    if args.debug:
        updates["debug"] = True
    if args.base_url:
        updates["base_url"] = args.base_url
    if not updates:
        return config
    try:
        return BootstrapperConfig.model_validate({**config.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigError(f"Invalid command-line option: {e}") from e


def main(argv: Optional[List[str]] = None) -> int:
    """
    The main entry point of the installer.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(
        description="Install, update, repair or uninstall the application"
    )
    parser.add_argument(
        "--uninstall", action="store_true", help="Remove the installed application"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Verbose logging on the console"
    )
    parser.add_argument(
        "--quiet", action="store_true", help="No progress display and no prompts"
    )
    parser.add_argument(
        "--config", type=str, help="Path to a configuration file (JSON)"
    )
    parser.add_argument(
        "--base-url", type=str, help="Override the update server URL"
    )
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_name, debug=config.debug, quiet=config.quiet)
    cleanup_stale_binary()

    cancel = CancellationToken()
    try:
        bootstrapper = create_bootstrapper(config)
        runner = bootstrapper.uninstall if args.uninstall else bootstrapper.install
        outcome = asyncio.run(runner(cancel))
    except KeyboardInterrupt:
        cancel.cancel()
        logger.warning("Operation cancelled by the user")
        return 1
    except UpdaterError as e:
        logger.error(f"Error: {e}")
        return 1

    return 0 if outcome.succeeded else 1


def _print_summary(console: Console, result) -> None:
    table = Table(title="Release Summary", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Branch", result.branch)
    table.add_row("Version", result.version)
    table.add_row("Files", str(result.file_count))
    table.add_row("Release path", result.version_info.release_path)
    table.add_row("Release hash", result.version_info.release_hash)
    table.add_row("Catalog", str(result.catalog_path))
    console.print(table)

    branch = result.catalog.get_branch(result.branch)
    versions = Table(title=f"Versions of {result.branch}", show_header=True)
    versions.add_column("Version", style="cyan")
    versions.add_column("Files", style="green")
    versions.add_column("Current", style="yellow")
    for version in branch.sorted_versions():
        info = branch.versions[version]
        versions.add_row(version, str(len(info.files)), "*" if version == branch.current_version else "")
    console.print(versions)


def publish_main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point of the release publisher.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(
        description="Generate a catalog and create release artifacts for app updates"
    )
    parser.add_argument(
        "--input", required=True, help="Input directory containing the release files"
    )
    parser.add_argument(
        "--branch", required=True, help="Branch name (e.g., main, beta)"
    )
    parser.add_argument(
        "--release-version", required=True, help="Release version number (semver)"
    )
    parser.add_argument(
        "--output", required=True, help="Output directory for release artifacts and catalog"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Simulate the process without writing any files"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Verbose logging on the console"
    )
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug)
    console = Console()
    if args.dry_run:
        console.print("[yellow]DRY RUN: No files will be written.[/yellow]")

    try:
        result = publish_release(
            args.input, args.branch, args.release_version, args.output, dry_run=args.dry_run
        )
    except (FileNotFoundError, ValueError, OSError) as e:
        console.print(Panel(f"[red]Error: {e}[/red]", title="Error Occurred"))
        return 1

    _print_summary(console, result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
