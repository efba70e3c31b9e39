"""docmirror - mirror GitHub repository trees onto local disk.

This package downloads the files of a GitHub branch, optionally limited to a
set of path prefixes, into a local content folder for each configured resource.
"""

from .config import Config, ResourceRegistry, SyncResource, load_config
from .errors import (
    BlobDownloadFailed,
    ConfigError,
    FilesystemError,
    IncompleteResource,
    RemoteUnavailable,
    SyncError,
    UnknownResource,
)
from .github import GitHubClient
from .sync import RepoMirror, SyncResult, SyncState

__version__ = "1.0.0"

__all__ = [
    "Config",
    "ResourceRegistry",
    "SyncResource",
    "load_config",
    "GitHubClient",
    "RepoMirror",
    "SyncResult",
    "SyncState",
    "SyncError",
    "ConfigError",
    "UnknownResource",
    "IncompleteResource",
    "RemoteUnavailable",
    "BlobDownloadFailed",
    "FilesystemError",
]
