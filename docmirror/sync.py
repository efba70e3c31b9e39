"""Mirror orchestration for docmirror.

This module runs one sync pass for a named resource: validate the resource,
list the remote tree, filter it, then materialize directories and files under
``<content_root>/<resource name>``.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from typing_extensions import TypedDict

from .config import DEFAULT_API_URL, DEFAULT_MAX_WORKERS, Config, ResourceRegistry, SyncResource
from .errors import ConfigError, FilesystemError, SyncError
from .github import GitHubClient
from .tree import (
    TreeEntry,
    destination_for,
    directory_skeleton,
    ensure_directory,
    filter_entries,
    write_file,
)

logger = logging.getLogger(__name__)


class SyncState(enum.Enum):
    VALIDATING = "validating"
    LISTING = "listing"
    PROCESSING = "processing"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


class SyncOutcome(TypedDict):
    """Payload handed back to whatever triggered a sync."""

    status: str
    message: str


class SyncResult:
    """Result of one sync pass.

    Records the directories and files that reached the destination, and the
    error that ended the pass if it did not complete.
    """

    def __init__(self, resource: str, dry_run: bool = False):
        """Initialize empty sync result."""
        self.resource = resource
        self.dry_run = dry_run
        self.state = SyncState.VALIDATING
        self.directories: list[str] = []
        self.written_files: list[str] = []
        self.total_bytes = 0
        self.error: Optional[SyncError] = None

    def add_directory(self, path: str) -> None:
        self.directories.append(path)

    def add_file(self, path: str, size_bytes: int) -> None:
        """Record a file written to the destination.

        Args:
            path: Repository path of the file
            size_bytes: Size of the written file in bytes
        """
        self.written_files.append(path)
        self.total_bytes += size_bytes

    def fail(self, error: SyncError) -> None:
        self.error = error
        self.state = SyncState.FAILED

    @property
    def file_count(self) -> int:
        return len(self.written_files)

    @property
    def is_success(self) -> bool:
        """True if the pass processed every entry."""
        return self.state is SyncState.DONE

    def __str__(self) -> str:
        """String representation of sync results."""
        verb = "would write" if self.dry_run else "wrote"
        summary = (
            f"{self.resource}: {verb} {self.file_count} files in "
            f"{len(self.directories)} directories, {self.total_bytes} bytes"
        )
        if self.error is not None:
            return f"{summary}; failed: {self.error}"
        return summary


class RepoMirror:
    """Main synchronization orchestrator.

    Holds the resource registry and the local content root. Each call to
    :meth:`sync` runs an independent pass; passes for the same resource are
    serialized.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        content_root: Path,
        timeout: int = 30,
        max_workers: int = DEFAULT_MAX_WORKERS,
        staged: bool = True,
        api_url: str = DEFAULT_API_URL,
    ):
        """Initialize the mirror.

        Args:
            registry: Resources that may be synced
            content_root: Directory that receives one folder per resource
            timeout: Request timeout in seconds
            max_workers: Number of concurrent blob downloads (1 is sequential)
            staged: Download into a staging directory and move files into
                place only once every blob succeeded
            api_url: Base URL of the GitHub REST API
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.registry = registry
        self.content_root = Path(content_root)
        self.timeout = timeout
        self.max_workers = max_workers
        self.staged = staged
        self.api_url = api_url
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: Config, **overrides) -> RepoMirror:
        """Build a mirror from a loaded configuration.

        Keyword overrides replace the matching constructor arguments.
        """
        options = {
            "content_root": config["content_root"],
            "max_workers": config["max_workers"],
            "api_url": config["api_url"],
        }
        options.update(overrides)
        return cls(ResourceRegistry.from_config(config), **options)

    def destination(self, name: str) -> Path:
        return self.content_root / name

    def create_client(self, resource: SyncResource) -> GitHubClient:
        return GitHubClient(
            resource["repo"],
            resource["token"],
            timeout=self.timeout,
            api_url=self.api_url,
        )

    def sync(self, name: str, dry_run: bool = False) -> SyncResult:
        """Mirror one resource into its destination folder.

        Failures are reported on the returned result rather than raised.

        Args:
            name: Registered resource name
            dry_run: If True, list what would be written without touching disk

        Returns:
            Result of the pass

        Example:
            >>> mirror = RepoMirror.from_config(load_config(Path("docmirror.yaml")))
            >>> result = mirror.sync("handbook")
            >>> result.is_success
            True
        """
        with self._lock_for(name):
            return SyncPass(self, name, dry_run).run()

    def trigger(self, name: Optional[str]) -> SyncOutcome:
        """Run a sync on behalf of an interactive caller.

        Returns:
            Status payload with a human-readable message
        """
        if not name:
            return {"status": "error", "message": "No resource provided"}

        result = self.sync(name)
        if result.is_success:
            return {"status": "success", "message": "Documentation synced successfully!"}
        return {"status": "error", "message": str(result.error)}

    def test_connectivity(self, name: str) -> bool:
        """Test that a resource's repository is reachable with its token.

        Returns:
            True if GitHub is accessible, False otherwise
        """
        logger.info(f"Testing GitHub connectivity for {name}...")
        try:
            resource = self.registry.lookup(name)
        except ConfigError as e:
            logger.error(f"✗ {e}")
            return False

        with self.create_client(resource) as client:
            is_connected = client.test_connection()

        if is_connected:
            logger.info(f"✓ {resource['repo']} is reachable")
        else:
            logger.error(f"✗ {resource['repo']} is not reachable")

        return is_connected

    def _lock_for(self, name: str) -> threading.Lock:
        # unknown names fail in validation; they get a throwaway lock
        if name not in self.registry:
            return threading.Lock()
        with self._locks_guard:
            return self._locks.setdefault(name, threading.Lock())


class SyncPass:
    """State machine for a single pass over one resource."""

    def __init__(self, mirror: RepoMirror, name: str, dry_run: bool = False):
        self.mirror = mirror
        self.name = name
        self.dry_run = dry_run
        self.result = SyncResult(name, dry_run=dry_run)

    def run(self) -> SyncResult:
        logger.info(f"Starting sync of {self.name}")
        if self.dry_run:
            logger.info("DRY RUN MODE - No files will be written")

        try:
            resource = self.mirror.registry.lookup(self.name)

            self.result.state = SyncState.LISTING
            with self.mirror.create_client(resource) as client:
                entries = client.fetch_tree(resource["branch"])

                self.result.state = SyncState.PROCESSING
                self._process(client, resource, entries)
        except SyncError as e:
            failed_in = self.result.state
            self.result.fail(e)
            logger.error(f"✗ Sync of {self.name} failed while {failed_in.value}: {e}")
        else:
            self.result.state = SyncState.DONE
            logger.info(f"✓ {self.result}")

        return self.result

    def _process(
        self, client: GitHubClient, resource: SyncResource, entries: list[TreeEntry]
    ) -> None:
        entries = filter_entries(entries, resource.get("content"))
        directories = directory_skeleton(entries)
        files = [entry.path for entry in entries if not entry.is_directory]

        destination = self.mirror.destination(self.name)
        for path in directories + files:
            # reject unsafe paths before anything is written
            destination_for(destination, path)

        if self.dry_run:
            for directory in directories:
                self.result.add_directory(directory)
            for path in files:
                logger.info(f"Would write {path}")
                self.result.add_file(path, 0)  # Unknown size in dry run
            return

        if not self.mirror.staged:
            self._materialize(
                client, resource["branch"], destination, directories, files,
                self.result.add_directory, self.result.add_file,
            )
            return

        ensure_directory(self.mirror.content_root)
        try:
            staging = Path(
                tempfile.mkdtemp(prefix=f".{self.name}-", dir=self.mirror.content_root)
            )
        except OSError as e:
            raise FilesystemError(str(self.mirror.content_root), str(e)) from e

        try:
            staged_files: list[tuple[str, int]] = []
            self._materialize(
                client, resource["branch"], staging, directories, files,
                lambda path: None,
                lambda path, size: staged_files.append((path, size)),
            )
            self.result.state = SyncState.APPLYING
            self._apply(staging, destination, directories, staged_files)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _materialize(
        self,
        client: GitHubClient,
        branch: str,
        root: Path,
        directories: list[str],
        files: list[str],
        on_directory: Callable[[str], None],
        on_file: Callable[[str, int], None],
    ) -> None:
        """Create the directory skeleton under ``root``, then download files.

        Every directory exists before any blob is requested, so files can be
        written in any order. Results are reported in listing order and the
        first failure in that order ends the pass.
        """
        for directory in directories:
            ensure_directory(destination_for(root, directory))
            on_directory(directory)

        if self.mirror.max_workers == 1 or len(files) <= 1:
            for path in files:
                on_file(path, self._fetch_and_write(client, branch, root, path))
            return

        with ThreadPoolExecutor(max_workers=self.mirror.max_workers) as executor:
            futures = [
                executor.submit(self._fetch_and_write, client, branch, root, path)
                for path in files
            ]
            try:
                for path, future in zip(files, futures):
                    on_file(path, future.result())
            except SyncError:
                for future in futures:
                    future.cancel()
                raise

    def _fetch_and_write(
        self, client: GitHubClient, branch: str, root: Path, path: str
    ) -> int:
        content = client.fetch_blob(path, ref=branch)
        output_path = destination_for(root, path)
        write_file(content, output_path)
        logger.info(f"✓ Downloaded {client.repo}:{path} ({len(content)} bytes)")
        return len(content)

    def _apply(
        self,
        staging: Path,
        destination: Path,
        directories: list[str],
        staged_files: list[tuple[str, int]],
    ) -> None:
        """Move staged files into the destination, overwriting existing ones."""
        ensure_directory(destination)
        for directory in directories:
            ensure_directory(destination_for(destination, directory))
            self.result.add_directory(directory)

        for path, size in staged_files:
            target = destination_for(destination, path)
            try:
                os.replace(destination_for(staging, path), target)
            except OSError as e:
                raise FilesystemError(str(target), str(e)) from e
            self.result.add_file(path, size)

        logger.info(f"Applied {len(staged_files)} files to {destination}")
