"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Callable, Optional

import pytest
import responses

from docmirror.config import ResourceRegistry, SyncResource
from docmirror.sync import RepoMirror

API_URL = "https://api.github.com"
REPO = "owner/docs"


class GitHubStub:
    """Registers GitHub API responses for one repository."""

    def __init__(self, rsps: responses.RequestsMock, repo: str = REPO):
        self.rsps = rsps
        self.repo = repo

    def tree(
        self,
        entries: list[tuple[str, str]],
        branch: str = "main",
        truncated: bool = False,
    ) -> None:
        self.rsps.add(
            responses.GET,
            f"{API_URL}/repos/{self.repo}/git/trees/{branch}",
            json={
                "sha": "abc123",
                "tree": [{"path": path, "type": kind} for path, kind in entries],
                "truncated": truncated,
            },
            status=200,
        )

    def tree_error(self, status: int, body: str, branch: str = "main") -> None:
        self.rsps.add(
            responses.GET,
            f"{API_URL}/repos/{self.repo}/git/trees/{branch}",
            body=body,
            status=status,
        )

    def blob(self, path: str, content: bytes) -> None:
        self.rsps.add(
            responses.GET,
            f"{API_URL}/repos/{self.repo}/contents/{path}",
            json={
                "path": path,
                "encoding": "base64",
                "content": base64.encodebytes(content).decode("ascii"),
            },
            status=200,
        )

    def blob_error(self, path: str, status: int = 404) -> None:
        self.rsps.add(
            responses.GET,
            f"{API_URL}/repos/{self.repo}/contents/{path}",
            json={"message": "Not Found"},
            status=status,
        )

    def requested_urls(self) -> list[str]:
        return [call.request.url for call in self.rsps.calls]

    def requested_blobs(self) -> list[str]:
        prefix = f"{API_URL}/repos/{self.repo}/contents/"
        return [
            url[len(prefix):].split("?")[0]
            for url in self.requested_urls()
            if url.startswith(prefix)
        ]


@pytest.fixture
def github():
    """Mock the GitHub API for the duration of a test."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield GitHubStub(rsps)


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    return tmp_path / "content" / "docs"


@pytest.fixture
def make_resource() -> Callable[..., SyncResource]:
    def factory(
        name: str = "handbook",
        content: Optional[list[str]] = None,
        **overrides: str,
    ) -> SyncResource:
        resource: SyncResource = {
            "name": name,
            "repo": REPO,
            "branch": "main",
            "token": "ghp_test_token",
        }
        resource.update(overrides)  # type: ignore[typeddict-item]
        if content is not None:
            resource["content"] = content
        return resource

    return factory


@pytest.fixture
def make_mirror(
    content_root: Path, make_resource: Callable[..., SyncResource]
) -> Callable[..., RepoMirror]:
    """Build a mirror over a single 'handbook' resource."""

    def factory(
        content: Optional[list[str]] = None,
        resource: Optional[SyncResource] = None,
        **options,
    ) -> RepoMirror:
        resource = resource or make_resource(content=content)
        registry = ResourceRegistry({resource["name"]: resource})
        return RepoMirror(registry, content_root, **options)

    return factory


def snapshot(root: Path) -> tuple[set[str], dict[str, bytes]]:
    """Return the directory set and file contents under ``root``."""
    directories = {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_dir()}
    files = {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in root.rglob("*")
        if p.is_file()
    }
    return directories, files


@pytest.fixture(name="snapshot")
def snapshot_fixture() -> Callable[[Path], tuple[set[str], dict[str, bytes]]]:
    return snapshot
