"""Main entry point for the docmirror GitHub Action.

This module maps the action's ``INPUT_*`` environment variables onto the
command-line interface and runs it.
"""

import logging
import os
import sys

from docmirror.cli import main

logger = logging.getLogger(__name__)


def build_argv_from_env() -> list[str]:
    """Translate GitHub Actions inputs into CLI arguments."""
    argv = []

    if os.getenv("INPUT_RESOURCE"):
        argv.append(os.getenv("INPUT_RESOURCE"))

    if os.getenv("INPUT_CONFIG"):
        argv.extend(["--config", os.getenv("INPUT_CONFIG")])

    if os.getenv("INPUT_CONTENT_ROOT"):
        argv.extend(["--content-root", os.getenv("INPUT_CONTENT_ROOT")])

    if os.getenv("INPUT_WORKERS"):
        argv.extend(["--workers", os.getenv("INPUT_WORKERS")])

    if os.getenv("INPUT_IN_PLACE", "false").lower() == "true":
        argv.append("--in-place")

    if os.getenv("INPUT_DRY_RUN", "false").lower() == "true":
        argv.append("--dry-run")

    return argv


def main_with_env_parsing() -> None:
    """Main entry point that handles GitHub Actions environment variables."""
    sys.argv.extend(build_argv_from_env())
    logger.debug(f"Final sys.argv = {sys.argv}")

    main()


if __name__ == "__main__":
    main_with_env_parsing()
