"""Tests for GitHub client module."""

import base64
import threading
from unittest.mock import patch

import pytest
import requests
import responses

from docmirror.errors import BlobDownloadFailed, RemoteUnavailable
from docmirror.github import GitHubClient
from docmirror.tree import EntryKind, TreeEntry

TREE_URL = "https://api.github.com/repos/owner/docs/git/trees/main"
CONTENTS_URL = "https://api.github.com/repos/owner/docs/contents"


class TestGitHubClient:
    """Test cases for GitHubClient."""

    def test_init_sets_headers(self) -> None:
        client = GitHubClient("owner/docs", "ghp_test_token")

        headers = client.session.headers
        assert headers["Authorization"] == "Bearer ghp_test_token"
        assert headers["Accept"] == "application/vnd.github+json"
        assert headers["X-GitHub-Api-Version"] == "2022-11-28"

    def test_timeout_configuration(self) -> None:
        """Test timeout configuration."""
        client = GitHubClient("owner/docs", "t", timeout=60)
        assert client.timeout == 60

    @responses.activate
    def test_fetch_tree(self) -> None:
        """Test that the listing keeps response order and drops submodules."""
        responses.add(
            responses.GET,
            TREE_URL,
            json={
                "tree": [
                    {"path": "docs", "type": "tree"},
                    {"path": "docs/index.md", "type": "blob"},
                    {"path": "vendor/lib", "type": "commit"},
                    {"path": "README.md", "type": "blob"},
                ]
            },
            status=200,
        )

        client = GitHubClient("owner/docs", "ghp_test_token")
        entries = client.fetch_tree("main")

        assert entries == [
            TreeEntry("docs", EntryKind.DIRECTORY),
            TreeEntry("docs/index.md", EntryKind.FILE),
            TreeEntry("README.md", EntryKind.FILE),
        ]

        request = responses.calls[0].request
        assert "recursive=1" in request.url
        assert request.headers["Authorization"] == "Bearer ghp_test_token"

    @responses.activate
    def test_fetch_tree_failure_carries_body(self) -> None:
        body = '{"message": "Bad credentials"}'
        responses.add(responses.GET, TREE_URL, body=body, status=401)

        client = GitHubClient("owner/docs", "bad")
        with pytest.raises(RemoteUnavailable) as exc_info:
            client.fetch_tree("main")

        assert exc_info.value.body == body
        assert "Bad credentials" in str(exc_info.value)

    @responses.activate
    def test_fetch_tree_connection_error(self) -> None:
        responses.add(
            responses.GET,
            TREE_URL,
            body=requests.exceptions.ConnectionError("connection refused"),
        )

        client = GitHubClient("owner/docs", "t")
        with pytest.raises(RemoteUnavailable, match="connection refused"):
            client.fetch_tree("main")

    @responses.activate
    def test_fetch_tree_unexpected_body(self) -> None:
        responses.add(responses.GET, TREE_URL, json={"sha": "abc"}, status=200)

        client = GitHubClient("owner/docs", "t")
        with pytest.raises(RemoteUnavailable):
            client.fetch_tree("main")

    @pytest.mark.parametrize(
        "body",
        [
            {"tree": None},
            {"tree": "docs"},
            {"tree": ["docs/index.md"]},
            {"tree": [{"type": "blob"}]},
            {"tree": [{"path": None, "type": "blob"}]},
            ["docs/index.md"],
        ],
    )
    @responses.activate
    def test_fetch_tree_malformed_listing(self, body) -> None:
        """Test that a listing of the wrong shape is reported as unavailable."""
        responses.add(responses.GET, TREE_URL, json=body, status=200)

        client = GitHubClient("owner/docs", "t")
        with pytest.raises(RemoteUnavailable) as exc_info:
            client.fetch_tree("main")

        assert exc_info.value.repo == "owner/docs"
        assert exc_info.value.branch == "main"

    @responses.activate
    def test_fetch_tree_truncated_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        responses.add(
            responses.GET,
            TREE_URL,
            json={"tree": [{"path": "a.md", "type": "blob"}], "truncated": True},
            status=200,
        )

        client = GitHubClient("owner/docs", "t")
        entries = client.fetch_tree("main")

        assert [entry.path for entry in entries] == ["a.md"]
        assert "truncated" in caplog.text

    @responses.activate
    def test_fetch_blob(self) -> None:
        """Test that wrapped base64 content decodes to the original bytes."""
        content = bytes(range(256)) * 4
        responses.add(
            responses.GET,
            f"{CONTENTS_URL}/docs/index.md",
            json={
                "encoding": "base64",
                "content": base64.encodebytes(content).decode("ascii"),
            },
            status=200,
        )

        client = GitHubClient("owner/docs", "t")
        assert client.fetch_blob("docs/index.md", ref="main") == content

        assert "ref=main" in responses.calls[0].request.url

    @responses.activate
    def test_fetch_blob_empty_file(self) -> None:
        responses.add(
            responses.GET,
            f"{CONTENTS_URL}/empty.md",
            json={"encoding": "base64", "content": ""},
            status=200,
        )

        client = GitHubClient("owner/docs", "t")
        assert client.fetch_blob("empty.md") == b""

    @responses.activate
    def test_fetch_blob_url_encoding(self) -> None:
        """Test file download with special characters in path."""
        responses.add(
            responses.GET,
            f"{CONTENTS_URL}/path%20with%20spaces/file.md",
            json={"encoding": "base64", "content": "Y29udGVudA=="},
            status=200,
        )

        client = GitHubClient("owner/docs", "t")
        assert client.fetch_blob("path with spaces/file.md") == b"content"

    @responses.activate
    def test_fetch_blob_not_found(self) -> None:
        responses.add(
            responses.GET,
            f"{CONTENTS_URL}/missing.md",
            json={"message": "Not Found"},
            status=404,
        )

        client = GitHubClient("owner/docs", "t")
        with pytest.raises(BlobDownloadFailed) as exc_info:
            client.fetch_blob("missing.md")

        assert exc_info.value.path == "missing.md"
        assert "Failed to download blob: missing.md" in str(exc_info.value)

    @responses.activate
    def test_fetch_blob_without_content(self) -> None:
        """Test that a directory listing response is not treated as a file."""
        responses.add(
            responses.GET,
            f"{CONTENTS_URL}/docs",
            json=[{"path": "docs/a.md", "type": "file"}],
            status=200,
        )

        client = GitHubClient("owner/docs", "t")
        with pytest.raises(BlobDownloadFailed, match="no content"):
            client.fetch_blob("docs")

    @responses.activate
    def test_fetch_blob_unsupported_encoding(self) -> None:
        responses.add(
            responses.GET,
            f"{CONTENTS_URL}/big.bin",
            json={"encoding": "none", "content": ""},
            status=200,
        )

        client = GitHubClient("owner/docs", "t")
        with pytest.raises(BlobDownloadFailed, match="unexpected encoding"):
            client.fetch_blob("big.bin")

    @responses.activate
    def test_test_connection_success(self) -> None:
        responses.add(
            responses.GET, "https://api.github.com/repos/owner/docs", json={}, status=200
        )

        with GitHubClient("owner/docs", "t") as client:
            assert client.test_connection() is True

    @responses.activate
    def test_test_connection_failure(self) -> None:
        responses.add(
            responses.GET, "https://api.github.com/repos/owner/docs", status=404
        )

        with GitHubClient("owner/docs", "t") as client:
            assert client.test_connection() is False

    @responses.activate
    def test_custom_api_url(self) -> None:
        responses.add(
            responses.GET,
            "https://github.example.com/api/v3/repos/owner/docs/git/trees/main",
            json={"tree": []},
            status=200,
        )

        client = GitHubClient(
            "owner/docs", "t", api_url="https://github.example.com/api/v3/"
        )
        assert client.fetch_tree("main") == []

    def test_each_thread_gets_its_own_session(self) -> None:
        client = GitHubClient("owner/docs", "ghp_test_token")
        main_session = client.session
        seen = []

        worker = threading.Thread(target=lambda: seen.append(client.session))
        worker.start()
        worker.join(timeout=5)

        assert client.session is main_session
        assert len(seen) == 1
        assert seen[0] is not main_session
        assert seen[0].headers["Authorization"] == "Bearer ghp_test_token"

    def test_close_closes_every_session(self) -> None:
        client = GitHubClient("owner/docs", "t")
        sessions = [client.session]
        worker = threading.Thread(target=lambda: sessions.append(client.session))
        worker.start()
        worker.join(timeout=5)

        with patch.object(requests.Session, "close") as close:
            client.close()

        assert close.call_count == 2
        assert client.session not in sessions
