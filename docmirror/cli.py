"""Command-line interface for docmirror.

This module provides the CLI options for mirroring a configured resource.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import load_config
from .sync import RepoMirror


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration.

    Args:
        verbose: Enable debug logging if True
    """
    level = logging.DEBUG if verbose else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level, format=format_str, handlers=[logging.StreamHandler()]
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="docmirror",
        description="Mirror documentation from GitHub repositories into a local content folder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mirror the 'handbook' resource using the default config
  docmirror handbook

  # Use a custom config and content root
  docmirror handbook -c my-config.yaml --content-root ./content

  # Show what would be written
  docmirror handbook --dry-run

  # List configured resources
  docmirror --list
        """.strip(),
    )

    parser.add_argument(
        "resource",
        nargs="?",
        help="Name of the resource to sync",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("docmirror.yaml"),
        help="Path to the configuration YAML file (default: docmirror.yaml)",
    )

    parser.add_argument(
        "--content-root",
        type=Path,
        default=None,
        help="Override the content root from the configuration",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of concurrent downloads (default: from configuration)",
    )

    parser.add_argument(
        "--in-place",
        action="store_true",
        help="Write files directly into the destination instead of staging them first",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be written without downloading anything",
    )

    parser.add_argument(
        "--timeout",
        type=int,
        default=30,
        help="Request timeout in seconds (default: 30)",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List configured resources and exit",
    )

    parser.add_argument(
        "--test-connection",
        action="store_true",
        help="Test access to the resource's repository and exit",
    )

    return parser


def list_resources(mirror: RepoMirror) -> None:
    """Print each configured resource and where it is mirrored to."""
    for name, resource in mirror.registry.items():
        content = ", ".join(resource["content"]) if "content" in resource else "*"
        print(f"{name}")
        print(f"  repo:        {resource['repo']}")
        print(f"  branch:      {resource['branch']}")
        print(f"  content:     {content}")
        print(f"  destination: {mirror.destination(name)}")


def main() -> None:
    """Main entry point for the CLI application."""
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    if not args.list and not args.resource:
        parser.error("a resource name is required unless --list is given")

    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")

    try:
        # Load and validate configuration
        try:
            config = load_config(args.config)
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            sys.exit(1)

        overrides = {"timeout": args.timeout, "staged": not args.in_place}
        if args.content_root is not None:
            overrides["content_root"] = args.content_root
        if args.workers is not None:
            overrides["max_workers"] = args.workers

        mirror = RepoMirror.from_config(config, **overrides)

        if args.list:
            list_resources(mirror)
            sys.exit(0)

        if args.test_connection:
            sys.exit(0 if mirror.test_connectivity(args.resource) else 1)

        result = mirror.sync(args.resource, dry_run=args.dry_run)

        # Report results
        if result.is_success:
            logger.info(f"✓ Sync completed successfully: {result}")
            if not args.dry_run:
                logger.info(f"Files saved to: {mirror.destination(args.resource).absolute()}")
        else:
            logger.error(f"✗ Sync failed: {result.error}")
            if result.written_files:
                logger.error(
                    f"  {result.file_count} files were written before the failure "
                    "and may be out of date with each other"
                )

        sys.exit(0 if result.is_success else 1)

    except KeyboardInterrupt:
        logger.info("Sync interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == "__main__":
    main()
