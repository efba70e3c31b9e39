"""Exceptions raised while mirroring a repository.

Every error aborts the running pass. The orchestrator records the first one
on the pass result; nothing is retried.
"""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for all mirroring failures."""


class ConfigError(SyncError):
    """A resource could not be resolved into a usable configuration."""


class UnknownResource(ConfigError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot find resource: {name}")


class IncompleteResource(ConfigError):
    def __init__(self, name: str, missing: list[str]):
        self.name = name
        self.missing = missing
        super().__init__(
            f"Missing some configuration for: {name} ({', '.join(missing)})"
        )


class RemoteUnavailable(SyncError):
    """The tree listing request did not succeed.

    ``body`` holds the raw response body, or the transport error text when
    no response was received.
    """

    def __init__(self, repo: str, branch: str, body: str):
        self.repo = repo
        self.branch = branch
        self.body = body
        super().__init__(f"Failed to list {repo}@{branch}: {body}")


class BlobDownloadFailed(SyncError):
    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        self.reason = reason
        message = f"Failed to download blob: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class FilesystemError(SyncError):
    """A local directory or file could not be created or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Filesystem error at {path}: {reason}")
