"""GitHub API client for listing and downloading repository content.

This module wraps the two REST endpoints a mirror pass needs: the recursive
git tree listing of a branch and the per-path contents endpoint.
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from typing import Optional
from urllib.parse import quote

import requests

from .config import DEFAULT_API_URL
from .errors import BlobDownloadFailed, RemoteUnavailable
from .tree import EntryKind, TreeEntry

logger = logging.getLogger(__name__)


class GitHubClient:
    """Client for one repository on the GitHub REST API.

    Every request carries the bearer token of the resource being mirrored.
    Each thread gets its own ``requests.Session``, since sessions are not
    documented as thread-safe; :meth:`close` closes all of them.
    """

    API_VERSION = "2022-11-28"

    def __init__(
        self,
        repo: str,
        token: str,
        timeout: int = 30,
        api_url: str = DEFAULT_API_URL,
    ):
        """Initialize the GitHub client.

        Args:
            repo: Repository in format 'owner/repo'
            token: GitHub token used for every request
            timeout: Request timeout in seconds
            api_url: Base URL of the REST API
        """
        self.repo = repo
        self.token = token
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """HTTP session of the calling thread, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(
                {
                    "Accept": "application/vnd.github+json",
                    "Authorization": f"Bearer {self.token}",
                    "X-GitHub-Api-Version": self.API_VERSION,
                    "User-Agent": "docmirror/1.0.0",
                }
            )
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def fetch_tree(self, branch: str) -> list[TreeEntry]:
        """List every entry of a branch, recursively.

        The order of the response is kept. Entries that are neither blobs
        nor trees (submodule commits) are dropped.

        Args:
            branch: Branch name to list

        Returns:
            Tree entries in listing order

        Raises:
            RemoteUnavailable: If the request fails or the body is not a tree listing

        Example:
            >>> client = GitHubClient("owner/repo", token)
            >>> [e.path for e in client.fetch_tree("main")][:2]
            ['docs', 'docs/index.md']
        """
        url = f"{self.api_url}/repos/{self.repo}/git/trees/{quote(branch, safe='/')}"
        logger.info(f"Listing {self.repo}@{branch}")

        try:
            response = self.session.get(
                url, params={"recursive": "1"}, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise RemoteUnavailable(self.repo, branch, str(e)) from e

        if not response.ok:
            raise RemoteUnavailable(self.repo, branch, response.text)

        try:
            data = response.json()
            raw_entries = data["tree"]
            if not isinstance(raw_entries, list):
                raise TypeError(f"'tree' is {type(raw_entries).__name__}, not a list")

            entries = []
            for item in raw_entries:
                kind = EntryKind.from_git_type(item.get("type"))
                if kind is None:
                    logger.debug(f"Ignoring {item.get('type')} entry {item.get('path')}")
                    continue
                path = item["path"]
                if not isinstance(path, str):
                    raise TypeError(f"entry path is {type(path).__name__}, not a string")
                entries.append(TreeEntry(path=path, kind=kind))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise RemoteUnavailable(self.repo, branch, response.text) from e

        if data.get("truncated"):
            logger.warning(
                f"Tree listing for {self.repo}@{branch} was truncated by GitHub; "
                "entries beyond the limit will not be mirrored"
            )

        logger.info(f"Listed {len(entries)} entries from {self.repo}@{branch}")
        return entries

    def fetch_blob(self, path: str, ref: Optional[str] = None) -> bytes:
        """Download one file through the contents endpoint.

        Args:
            path: Path of the file within the repository
            ref: Branch, tag or commit to read from (repository default if None)

        Returns:
            Decoded file content

        Raises:
            BlobDownloadFailed: If the request fails or carries no content
        """
        # URL encode the file path to handle spaces and special characters
        encoded_path = quote(path, safe="/")
        url = f"{self.api_url}/repos/{self.repo}/contents/{encoded_path}"
        params = {"ref": ref} if ref else None

        logger.debug(f"Downloading {self.repo}:{path}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise BlobDownloadFailed(path, str(e)) from e

        if not response.ok:
            raise BlobDownloadFailed(path, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise BlobDownloadFailed(path, "response is not JSON") from e

        if not isinstance(data, dict) or data.get("content") is None:
            raise BlobDownloadFailed(path, "response carries no content")

        encoding = data.get("encoding", "base64")
        if encoding != "base64":
            raise BlobDownloadFailed(path, f"unexpected encoding: {encoding}")

        try:
            # GitHub wraps base64 content at 60 columns; newlines are discarded
            content = base64.b64decode(data["content"])
        except (binascii.Error, TypeError) as e:
            raise BlobDownloadFailed(path, f"invalid base64 content: {e}") from e

        logger.debug(f"Downloaded {self.repo}:{path} ({len(content)} bytes)")
        return content

    def test_connection(self) -> bool:
        """Check that the repository is reachable with the configured token.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            response = self.session.get(
                f"{self.api_url}/repos/{self.repo}", timeout=self.timeout
            )
            return response.status_code == 200
        except requests.RequestException:
            return False

    def close(self) -> None:
        """Close the HTTP sessions of every thread that used this client."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def __enter__(self) -> GitHubClient:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
